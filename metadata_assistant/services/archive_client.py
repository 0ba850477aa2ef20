"""Client for DANDI-compatible archive APIs."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..config.models import ArchiveConfig
from ..models.errors import NetworkException


class DandisetVersionInfo(BaseModel):
    """Version info returned by ``/dandisets/{id}/versions/{version}/info/``."""

    model_config = ConfigDict(extra="allow")

    version: str
    name: str = ""
    status: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    version_validation_errors: List[Dict[str, Any]] = Field(default_factory=list)
    asset_validation_errors: List[Dict[str, Any]] = Field(default_factory=list)


def _is_transient(error: BaseException) -> bool:
    """Unreachable hosts, rate limits and server errors are worth retrying."""
    if not isinstance(error, NetworkException):
        return False
    status = error.details.get("status")
    return status is None or status == 429 or status >= 500


class ArchiveClient(ABC):
    """Fetches and commits dandiset metadata."""

    @abstractmethod
    async def fetch_version_info(
        self, dandiset_id: str, version: str, api_key: Optional[str] = None
    ) -> DandisetVersionInfo:
        """Fetch a dandiset version and its metadata.

        Raises:
            NetworkException: If the archive is unreachable or answers non-2xx
        """
        pass

    @abstractmethod
    async def commit_metadata(
        self, dandiset_id: str, version: str, metadata: Dict[str, Any], api_key: str
    ) -> Dict[str, Any]:
        """Replace the metadata of a draft version.

        Raises:
            NetworkException: If the archive is unreachable or rejects the update
        """
        pass


class DandiArchiveClient(ArchiveClient):
    """aiohttp implementation of the DANDI REST API."""

    def __init__(self, config: Optional[ArchiveConfig] = None):
        self.config = config or ArchiveConfig()
        self.api_url = self.config.resolved_api_url
        self.logger = logging.getLogger(__name__)

    def _headers(self, api_key: Optional[str]) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"token {api_key}"
        return headers

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_transient),
    )
    async def fetch_version_info(
        self, dandiset_id: str, version: str, api_key: Optional[str] = None
    ) -> DandisetVersionInfo:
        """Fetch a dandiset version, retrying transient failures."""
        url = f"{self.api_url}/dandisets/{dandiset_id}/versions/{version}/info/"
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, headers=self._headers(api_key or self.config.api_key)) as response:
                    if response.status == 404:
                        raise NetworkException(
                            "DANDISET_NOT_FOUND",
                            f"Dandiset {dandiset_id} version {version} not found",
                            {"url": url, "status": 404},
                        )
                    if response.status != 200:
                        raise NetworkException(
                            "ARCHIVE_HTTP_ERROR",
                            f"Failed to fetch dandiset info: HTTP {response.status} {response.reason}",
                            {"url": url, "status": response.status},
                        )
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Archive unreachable while fetching {url}: {e}")
            raise NetworkException("ARCHIVE_UNREACHABLE", f"Could not reach the archive: {e}", {"url": url})

        return DandisetVersionInfo.model_validate(data)

    async def commit_metadata(
        self, dandiset_id: str, version: str, metadata: Dict[str, Any], api_key: str
    ) -> Dict[str, Any]:
        """PUT the folded metadata to a draft version. Not retried."""
        url = f"{self.api_url}/dandisets/{dandiset_id}/versions/{version}/"
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        body = {"metadata": metadata, "name": metadata.get("name", "")}

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.put(url, json=body, headers=self._headers(api_key)) as response:
                    if response.status not in (200, 201):
                        error_text = await response.text()
                        self.logger.error(f"Commit rejected with HTTP {response.status}: {error_text[:500]}")
                        raise NetworkException(
                            "COMMIT_REJECTED",
                            f"Archive rejected the metadata update: HTTP {response.status}",
                            {"url": url, "status": response.status, "body": error_text[:500]},
                        )
                    return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Archive unreachable while committing to {url}: {e}")
            raise NetworkException("ARCHIVE_UNREACHABLE", f"Could not reach the archive: {e}", {"url": url})
