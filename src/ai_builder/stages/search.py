"""
Search stage: retrieve web results and render them for prompt augmentation.
"""

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from ..backend.client import BackendClient
from ..config import settings
from ..exceptions import ApplicationError, PreconditionError, TransportError
from ..prompt.toon import format_to_toon
from .base import Stage

logger = logging.getLogger(__name__)

NO_SEARCH = "no-search"

SEARCH_TOOLS = {
    "basic": "parallel_ai-search",
    "advanced": "perplexity-search",
    "deep": "parallel_ai-search-pro",
}
DEFAULT_SEARCH_TOOL = "parallel_ai-search"

# USD per query
SEARCH_TOOL_PRICING = {
    "parallel_ai-search": 0.004,
    "perplexity-search": 0.005,
    "google_pse-search": 0.005,
    "tavily-search": 0.008,
    "firecrawl-search": 0.008,
    "parallel_ai-search-pro": 0.009,
    "tavily-search-advanced": 0.016,
    "exa_ai-search": 0.025,
}

MIN_RESULTS = 1
MAX_RESULTS = 20
MAX_SNIPPET_LENGTH = 1200

SEARCH_RESULT_FIELDS = ["source_host", "source_title", "source_link", "snippet"]

_QUERY_PREFIX = re.compile(r"^(?:User Prompt|Prompt)\s*:?\s*", re.IGNORECASE)
_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_BULLET_ONLY_LINE = re.compile(r"^\s*[*•-]\s*$", re.MULTILINE)
_BOILERPLATE_TAILS = [
    re.compile(r"All rights reserved.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"AP News Code of Conduct.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"Privacy / Do Not Sell My Info.*$", re.IGNORECASE | re.DOTALL),
]


def resolve_search_tool(search_type: Optional[str]) -> str:
    """Map a user-facing search type to a backend search tool."""
    if search_type in SEARCH_TOOL_PRICING:
        return search_type
    return SEARCH_TOOLS.get(search_type or "", DEFAULT_SEARCH_TOOL)


def search_cost(tool: str, queries: int = 1) -> float:
    return SEARCH_TOOL_PRICING.get(tool, 0.0) * queries


def validate_max_results(value: Any) -> int:
    """
    Parse and bound-check the requested number of results.

    Raises:
        PreconditionError: If the value is not an integer in 1..20
    """
    if value is None or value == "":
        return settings.SEARCH_DEFAULT_MAX_RESULTS
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise PreconditionError(f"max_results must be an integer, got {value!r}") from None
    if not MIN_RESULTS <= count <= MAX_RESULTS:
        raise PreconditionError(f"max_results must be between {MIN_RESULTS} and {MAX_RESULTS}")
    return count


def clean_query(prompt: str) -> str:
    return _QUERY_PREFIX.sub("", prompt.strip()).strip()


def normalize_snippet(snippet: Optional[str]) -> str:
    """Strip markdown links, ornamental bullets, footer boilerplate and excess whitespace."""
    if not snippet or not isinstance(snippet, str):
        return ""

    cleaned = _MARKDOWN_LINK.sub(r"\1", snippet)
    cleaned = _BULLET_ONLY_LINE.sub("", cleaned)
    cleaned = cleaned.replace("\r", "")
    cleaned = re.sub(r"[ \t]{2,}", " ", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned).strip()

    for pattern in _BOILERPLATE_TAILS:
        cleaned = pattern.sub("", cleaned)
    cleaned = cleaned.strip()

    if len(cleaned) <= MAX_SNIPPET_LENGTH:
        return cleaned
    return cleaned[:MAX_SNIPPET_LENGTH].rstrip() + "..."


def extract_host(url: Optional[str]) -> str:
    if not url:
        return ""
    host = urlparse(url).hostname or ""
    return host[4:] if host.startswith("www.") else host


@dataclass
class SearchHit:
    """A normalized search result."""

    title: str
    url: str
    snippet: str = ""
    date: Optional[str] = None
    source_host: str = ""

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "SearchHit":
        url = raw.get("source_link") or raw.get("url") or ""
        return cls(
            title=raw.get("source_title") or raw.get("title") or "",
            url=url,
            snippet=normalize_snippet(raw.get("snippet")),
            date=raw.get("date") or None,
            source_host=raw.get("source_host") or extract_host(url),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "source_host": self.source_host,
            "source_title": self.title,
            "source_link": self.url,
            "snippet": self.snippet,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_row()
        data.update({"title": self.title, "url": self.url, "date": self.date})
        return data


def format_search_results(hits: List[SearchHit]) -> str:
    """Render search hits as a titled TOON block for appending to a prompt."""
    if not hits:
        return ""
    block = format_to_toon("search-results", [hit.to_row() for hit in hits], SEARCH_RESULT_FIELDS)
    return "## Search Results\n\n" + block


def coerce_search_results(raw: Any) -> List[Dict[str, Any]]:
    """Accept a list of result records or a JSON string holding one."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return []
    if isinstance(raw, dict):
        raw = raw.get("results") or raw.get("searchResults") or []
    if not isinstance(raw, list):
        return []
    return [item for item in raw if isinstance(item, dict)]


@dataclass
class SearchQuery:
    """Input of the search stage."""

    prompt: str
    search_type: str = "basic"
    max_results: Optional[Any] = None


@dataclass
class SearchOutput:
    """Output of the search stage."""

    hits: List[SearchHit]
    rendering: str
    tool: str
    cost: float
    duration: float
    attempts: int = 1
    usage: Dict[str, Any] = field(default_factory=dict)


class SearchStage(Stage[SearchQuery, SearchOutput]):
    """
    Query the search endpoint, retrying on timeouts and connection failures.

    HTTP status errors, malformed bodies and empty result lists are not
    retried.
    """

    name = "search"

    def __init__(
        self,
        client: BackendClient,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        request_timeout: Optional[float] = None,
    ):
        super().__init__(client, timeout=None)
        self.max_retries = settings.SEARCH_MAX_RETRIES if max_retries is None else max_retries
        self.retry_base_delay = (
            settings.SEARCH_RETRY_BASE_DELAY if retry_base_delay is None else retry_base_delay
        )
        self.request_timeout = request_timeout or settings.SEARCH_TIMEOUT

    async def _execute(self, query: SearchQuery) -> SearchOutput:
        text = clean_query(query.prompt)
        if not text:
            raise PreconditionError("Search query cannot be empty")
        max_results = validate_max_results(query.max_results)
        tool = resolve_search_tool(query.search_type)

        start = time.monotonic()
        payload = {
            "userPrompt": text,
            "body": {"search_tool_name": tool, "max_results": max_results},
        }

        attempt = 0
        while True:
            try:
                data = await self.client.post_envelope(
                    settings.SEARCH_PATH, payload, timeout=self.request_timeout
                )
                break
            except TransportError as e:
                if attempt >= self.max_retries:
                    raise
                delay = self.retry_base_delay * (2 ** attempt)
                attempt += 1
                logger.warning(
                    f"Search attempt {attempt}/{self.max_retries + 1} failed ({e.message}), "
                    f"retrying in {delay:g}s"
                )
                await asyncio.sleep(delay)

        if data.search_results is not None:
            records = [item.model_dump(exclude_none=True) for item in data.search_results]
        else:
            records = coerce_search_results(data.response)

        hits = [SearchHit.from_raw(record) for record in records][:max_results]
        if not hits:
            raise ApplicationError("No search results found")

        cost = search_cost(tool)
        duration = time.monotonic() - start
        logger.info(f"Search via {tool} returned {len(hits)} result(s) in {duration:.2f}s")
        return SearchOutput(
            hits=hits,
            rendering=format_search_results(hits),
            tool=tool,
            cost=cost,
            duration=duration,
            attempts=attempt + 1,
            usage={"cost": cost, "tool": tool},
        )
