"""The fetch_url tool: retrieve external pages as plain text."""

import asyncio
import logging
import re
from typing import Any, Dict

import aiohttp
from bs4 import BeautifulSoup, Comment

from .registry import BaseTool, ToolExecutionContext
from ..models.errors import NetworkException
from ..models.requests import FetchUrlParams

logger = logging.getLogger(__name__)

_NON_CONTENT_TAGS = ["script", "style", "noscript"]
_BLANK_RUNS = re.compile(r"[ \t\r\f\v]+")
_NEWLINE_RUNS = re.compile(r"\n\s*\n+")


def html_to_text(markup: str) -> str:
    """Extract the readable text of an HTML page.

    Scripts, styles and comments are dropped, entities are decoded and runs
    of blank lines collapse to one.
    """
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(_NON_CONTENT_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()

    lines = (_BLANK_RUNS.sub(" ", line).strip() for line in soup.get_text("\n").splitlines())
    return _NEWLINE_RUNS.sub("\n\n", "\n".join(lines)).strip()


class FetchUrlTool(BaseTool):
    """Fetches a URL so the assistant can quote real content instead of guessing."""

    name = "fetch_url"
    description = (
        "Fetch the content of a web page or JSON API (http/https). Use this to read publications, "
        "OpenAlex records, or any external source before proposing metadata based on it."
    )
    parameters = {
        "url": {
            "type": "string",
            "description": "The http(s) URL to fetch, e.g. https://api.openalex.org/works/doi:10.1016/j.neuron.2016.12.011",
        },
    }
    required = ["url"]

    def get_detailed_description(self) -> str:
        return """Use this tool to retrieve external content. NEVER invent information from a URL you have not fetched.

- HTML pages are converted to plain text; JSON and text responses are returned as-is
- Long responses are truncated, check the "truncated" flag
- If the fetch fails, tell the user instead of guessing the content"""

    async def execute(self, params: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
        """Fetch the URL and return status, content type and text.

        Raises:
            NetworkException: If the host cannot be reached
        """
        args = FetchUrlParams.model_validate(params)
        lookup_config = context.config.lookup_config
        max_chars = lookup_config.url_fetch_max_chars

        timeout = aiohttp.ClientTimeout(total=lookup_config.timeout)
        headers = {"User-Agent": lookup_config.user_agent}
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(args.url, headers=headers) as response:
                    status = response.status
                    content_type = response.headers.get("Content-Type", "")
                    raw = await response.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkException("FETCH_FAILED", f"Failed to fetch {args.url}: {e}", {"url": args.url})

        if status >= 400:
            logger.info(f"fetch_url got HTTP {status} for {args.url}")
            return {
                "success": False,
                "error": f"HTTP {status} fetching {args.url}",
                "status": status,
                "hint": "Tell the user the page could not be retrieved; do not guess its content.",
            }

        text = html_to_text(raw) if "html" in content_type.lower() else raw
        truncated = len(text) > max_chars
        if truncated:
            text = text[:max_chars]

        return {
            "success": True,
            "url": args.url,
            "status": status,
            "contentType": content_type,
            "content": text,
            "truncated": truncated,
        }
