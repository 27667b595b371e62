"""Evidence lookup used by the fact checker.

Sources never raise: a failed or unconfigured lookup is reported as "no
evidence found" so the caller can mark the assertion indeterminate.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Evidence:
    source_ref: str
    snippet: str
    title: str = ""


class EvidenceSource(ABC):
    """Search backend queried once per assertion."""

    name: str

    @abstractmethod
    async def search(self, query: str) -> list[Evidence]:
        ...


class NullEvidenceSource(EvidenceSource):
    """Returns no evidence; every assertion ends up indeterminate."""

    name = "none"

    async def search(self, query: str) -> list[Evidence]:
        return []


class TavilySearch(EvidenceSource):
    """Web search through the Tavily API."""

    name = "tavily"
    endpoint = "https://api.tavily.com/search"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        api_key_env: str = "TAVILY_API_KEY",
        max_results: int = 3,
        timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key or os.getenv(api_key_env, "")
        self.max_results = max_results
        self.timeout = timeout
        self._http = http_client

    async def search(self, query: str) -> list[Evidence]:
        if not self.api_key:
            logger.warning("Tavily API key not configured, skipping search")
            return []

        payload = {
            "api_key": self.api_key,
            "query": query,
            "search_depth": "basic",
            "max_results": self.max_results,
            "include_answer": False,
        }
        try:
            if self._http is not None:
                resp = await self._http.post(self.endpoint, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.post(self.endpoint, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Tavily search failed for %r: %s", query[:60], exc)
            return []

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            logger.warning("Tavily returned an unexpected body for %r", query[:60])
            return []

        return [
            Evidence(
                source_ref=item.get("url", ""),
                snippet=item.get("content") or item.get("snippet") or "",
                title=item.get("title") or "",
            )
            for item in results[: self.max_results]
            if isinstance(item, dict)
        ]


_SOURCES: dict[str, type[EvidenceSource]] = {
    "none": NullEvidenceSource,
    "tavily": TavilySearch,
}


def create_evidence_source(name: str, **kwargs) -> EvidenceSource:
    cls = _SOURCES.get(name.lower())
    if cls is None:
        raise ValueError(f"Unknown evidence source {name!r}. Choose from {list(_SOURCES)}")
    return cls(**kwargs)
