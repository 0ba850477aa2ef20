"""Best-effort resolution checks for ORCID, ROR and URL values."""

import asyncio
import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import aiohttp
from pydantic import BaseModel

from ..config.models import LookupConfig

logger = logging.getLogger(__name__)

ORCID_PATTERN = re.compile(r"^\d{4}-\d{4}-\d{4}-(\d{3}X|\d{4})$")
ROR_URL_PATTERN = re.compile(r"^https://ror\.org/[a-z0-9]+$")
URL_PATTERN = re.compile(r"^https?://.+")

_CONTRIBUTOR_OR_AFFILIATION_IDENTIFIER = re.compile(r"(contributor|affiliation)\.\d+\.identifier$")
_CONTRIBUTOR_ENTRY = re.compile(r"contributor\.\d+$")
_AFFILIATION_ENTRY = re.compile(r"affiliation\.\d+$")


class IdentifierCheck(BaseModel):
    """Outcome of an identifier resolution check."""

    is_valid: bool
    error: Optional[str] = None


VALID = IdentifierCheck(is_valid=True)


class IdentifierValidator:
    """Verifies that identifiers in proposed values resolve to real records.

    Only a definite "does not exist" answer (HTTP 404) or a malformed value
    rejects a proposal. Network failures and unexpected statuses are logged
    and treated as valid.
    """

    def __init__(self, config: Optional[LookupConfig] = None):
        self.config = config or LookupConfig()

    async def validate_orcid(self, orcid: str) -> IdentifierCheck:
        """Check the format of an ORCID iD and that it resolves on pub.orcid.org."""
        if not ORCID_PATTERN.match(orcid):
            return IdentifierCheck(
                is_valid=False,
                error=f'Invalid ORCID format: "{orcid}". Expected format: 0000-0000-0000-0000 or 0000-0000-0000-000X',
            )

        try:
            status = await self._status("HEAD", f"https://pub.orcid.org/v3.0/{orcid}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not validate ORCID {orcid}: {e}")
            return VALID

        if status == 404:
            return IdentifierCheck(
                is_valid=False,
                error=f'ORCID "{orcid}" does not exist. Please verify the ORCID is correct.',
            )
        if not 200 <= status < 300:
            logger.warning(f"ORCID validation returned status {status} for {orcid}")
        return VALID

    async def validate_ror(self, ror_url: str) -> IdentifierCheck:
        """Check the format of a ROR URL and that it resolves on api.ror.org."""
        if not ROR_URL_PATTERN.match(ror_url):
            return IdentifierCheck(
                is_valid=False,
                error=f'Invalid ROR ID format: "{ror_url}". Expected format: https://ror.org/[alphanumeric]',
            )

        ror_id = ror_url[len("https://ror.org/"):]
        try:
            status = await self._status("GET", f"https://api.ror.org/organizations/{ror_id}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not validate ROR ID {ror_url}: {e}")
            return VALID

        if status == 404:
            return IdentifierCheck(
                is_valid=False,
                error=f'ROR ID "{ror_url}" does not exist. Please verify the ROR ID is correct.',
            )
        if not 200 <= status < 300:
            logger.warning(f"ROR validation returned status {status} for {ror_url}")
        return VALID

    async def validate_url(self, url: str) -> IdentifierCheck:
        """Check that a generic http(s) URL does not answer 404."""
        if not URL_PATTERN.match(url):
            return IdentifierCheck(
                is_valid=False,
                error=f'Invalid URL format: "{url}". URLs must start with http:// or https://',
            )

        hostname = urlparse(url).hostname
        if not hostname:
            return IdentifierCheck(is_valid=False, error=f'Invalid URL: "{url}"')
        if any(domain in hostname for domain in self.config.skip_validation_domains):
            return VALID

        try:
            status = await self._status("HEAD", url)
            if status == 405:
                status = await self._status("GET", url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Could not validate URL {url}: {e}")
            return VALID

        if status == 404:
            return IdentifierCheck(is_valid=False, error=f'URL "{url}" does not exist (404 Not Found).')
        return VALID

    async def validate_identifier_in_value(self, path: str, value: Any) -> IdentifierCheck:
        """Find identifiers and URLs in a proposed value and verify them.

        The path decides how a bare string is interpreted; structured values
        (Person, Organization and Affiliation objects) are inspected by their
        ``schemaKey``.

        Args:
            path: Dot-separated path the value is proposed for
            value: Proposed JSON value

        Returns:
            The first failing check, or a valid result
        """
        if value is None:
            return VALID

        if isinstance(value, str) and _CONTRIBUTOR_OR_AFFILIATION_IDENTIFIER.search(path):
            if ORCID_PATTERN.match(value):
                return await self.validate_orcid(value)
            if ROR_URL_PATTERN.match(value):
                return await self.validate_ror(value)

        if isinstance(value, dict):
            result = await self._validate_object(value)
            if not result.is_valid:
                return result

        if path.endswith(".identifier") and isinstance(value, str):
            parent = path[: -len(".identifier")]
            if _CONTRIBUTOR_ENTRY.search(parent):
                if ORCID_PATTERN.match(value):
                    return await self.validate_orcid(value)
                if ROR_URL_PATTERN.match(value):
                    return await self.validate_ror(value)
            if _AFFILIATION_ENTRY.search(parent) and ROR_URL_PATTERN.match(value):
                return await self.validate_ror(value)

        if path.endswith(".url") and isinstance(value, str) and value:
            return await self.validate_url(value)

        if path == "protocol" and isinstance(value, list):
            for url in value:
                if isinstance(url, str):
                    result = await self.validate_url(url)
                    if not result.is_valid:
                        return result

        return VALID

    async def _validate_object(self, obj: Dict[str, Any]) -> IdentifierCheck:
        schema_key = obj.get("schemaKey")
        identifier = obj.get("identifier")

        if schema_key == "Person" and isinstance(identifier, str) and identifier:
            result = await self.validate_orcid(identifier)
            if not result.is_valid:
                return result

        if schema_key in ("Organization", "Affiliation") and isinstance(identifier, str) and identifier:
            result = await self.validate_ror(identifier)
            if not result.is_valid:
                return result

        affiliations = obj.get("affiliation")
        if isinstance(affiliations, list):
            for affiliation in affiliations:
                if isinstance(affiliation, dict):
                    aff_identifier = affiliation.get("identifier")
                    if isinstance(aff_identifier, str) and aff_identifier:
                        result = await self.validate_ror(aff_identifier)
                        if not result.is_valid:
                            return result

        url = obj.get("url")
        if isinstance(url, str) and url:
            result = await self.validate_url(url)
            if not result.is_valid:
                return result

        return VALID

    async def _status(self, method: str, url: str) -> int:
        """Issue a request and return only its status code.

        Raises:
            aiohttp.ClientError: If the host cannot be reached
            asyncio.TimeoutError: If the request exceeds the lookup timeout
        """
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        headers = {"Accept": "application/json", "User-Agent": self.config.user_agent}
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(method, url, headers=headers, allow_redirects=False) as response:
                return response.status
