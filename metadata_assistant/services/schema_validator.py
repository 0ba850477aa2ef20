"""Structural validation of candidate metadata documents."""

import logging
from typing import Any, Dict, List, Optional

from ..config.models import ValidatorConfig
from ..models.validation import ValidationIssue, ValidationResult

logger = logging.getLogger(__name__)


class SchemaValidator:
    """Shallow, non-recursive gate applied to every proposed document.

    This is not a schema engine. It rejects obviously malformed candidates
    cheaply; the archive runs the full schema check on commit.
    """

    def __init__(self, config: Optional[ValidatorConfig] = None):
        """Initialize the validator with its field lists.

        Args:
            config: Field lists to check, defaults to the dandiset contract
        """
        self.config = config or ValidatorConfig()

    def validate(self, candidate: Any) -> ValidationResult:
        """Validate a candidate document.

        Errors are ordered deterministically: required-field checks first in
        configured order, then string, non-empty list and list checks.

        Args:
            candidate: Document to check

        Returns:
            ValidationResult listing every problem found
        """
        if not isinstance(candidate, dict):
            return ValidationResult.from_issues([
                ValidationIssue(path="/", message="Metadata must be an object", keyword="type")
            ])

        issues: List[ValidationIssue] = []
        issues.extend(self._check_required(candidate))
        issues.extend(self._check_strings(candidate))
        issues.extend(self._check_lists(candidate, self.config.non_empty_list_fields, non_empty=True))
        issues.extend(self._check_lists(candidate, self.config.list_fields, non_empty=False))

        result = ValidationResult.from_issues(issues)
        if not result.valid:
            logger.debug(f"Candidate rejected with {len(issues)} issue(s): {format_validation_errors(issues)}")
        return result

    def _check_required(self, candidate: Dict[str, Any]) -> List[ValidationIssue]:
        issues = []
        for field in self.config.required_fields:
            if candidate.get(field) is None:
                issues.append(ValidationIssue(
                    path=f"/{field}",
                    message=f"Missing required field: {field}",
                    keyword="required",
                    params={"missingProperty": field},
                ))
        return issues

    def _check_strings(self, candidate: Dict[str, Any]) -> List[ValidationIssue]:
        issues = []
        for field in self.config.string_fields:
            value = candidate.get(field)
            if value is None:
                continue
            if not isinstance(value, str):
                issues.append(ValidationIssue(
                    path=f"/{field}",
                    message=f'Field "{field}" must be a string',
                    keyword="type",
                ))
            elif not value.strip():
                issues.append(ValidationIssue(
                    path=f"/{field}",
                    message=f'Field "{field}" cannot be empty',
                    keyword="minLength",
                ))
        return issues

    def _check_lists(self, candidate: Dict[str, Any], fields: List[str], non_empty: bool) -> List[ValidationIssue]:
        issues = []
        for field in fields:
            value = candidate.get(field)
            if value is None:
                continue
            if not isinstance(value, list):
                issues.append(ValidationIssue(
                    path=f"/{field}",
                    message=f'Field "{field}" must be an array',
                    keyword="type",
                ))
            elif non_empty and not value:
                issues.append(ValidationIssue(
                    path=f"/{field}",
                    message=f'Field "{field}" must have at least one entry',
                    keyword="minItems",
                ))
        return issues


def format_validation_errors(errors: List[ValidationIssue]) -> str:
    """Render validation issues as a single human-readable line.

    Args:
        errors: Issues to render

    Returns:
        Semicolon-separated messages, empty string when there are none
    """
    rendered = []
    for err in errors:
        params = err.params or {}
        msg = err.message
        if err.keyword == "enum" and params.get("allowedValues"):
            msg += ". Allowed values: " + ", ".join(str(v) for v in params["allowedValues"])
        if err.keyword == "required" and params.get("missingProperty"):
            msg = f"Missing required property: {params['missingProperty']}"
        if err.keyword == "additionalProperties" and params.get("additionalProperty"):
            msg = f"Unknown property: {params['additionalProperty']}"

        location = f" at {err.path}" if err.path and err.path != "/" else ""
        rendered.append(f"{msg}{location}")
    return "; ".join(rendered)
