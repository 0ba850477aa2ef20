"""Structural validation result models."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator


class ValidationIssue(BaseModel):
    """A single structural problem found in a candidate document."""

    path: str = Field(..., description="JSON-pointer style location, '/' for the root")
    message: str = Field(..., description="Human-readable description")
    keyword: str = Field(..., description="Failed check: required, type, minLength, minItems")
    params: Optional[Dict[str, Any]] = Field(default=None, description="Check-specific parameters")


class ValidationResult(BaseModel):
    """Outcome of validating a candidate document."""

    valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_consistency(self):
        """A result is valid exactly when it carries no errors."""
        if self.valid and self.errors:
            raise ValueError("A valid result cannot carry errors")
        if not self.valid and not self.errors:
            raise ValueError("An invalid result must carry at least one error")
        return self

    @classmethod
    def from_issues(cls, issues: List[ValidationIssue]) -> "ValidationResult":
        return cls(valid=not issues, errors=list(issues))

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)
