"""
External search client: site-scoped boolean queries against SERP providers.

Two provider/engine combinations are supported:
- ValueSERP with the Google engine (default for every domain)
- SerpApi with the Bing engine (alternate-engine domains, e.g. msn.com)

Both responses are flattened into one candidate list (organic results,
video results, inline videos, knowledge graph), filtered, scored against the
unscoped query and ranked.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.config import Settings
from app.utils.domains import RoutingClass, normalize_domain
from app.utils.http_fetch import get_with_deadline, open_client
from app.utils.search_types import (
    Candidate,
    ConfigurationError,
    SearchResult,
    UpstreamLogicalError,
    UpstreamTransportError,
)
from app.utils.secure_logger import get_logger, redact_sensitive
from app.utils.similarity import rank_by_score, similarity

logger = get_logger(__name__)

# SerpApi reports an empty result page through its "error" field.
_EMPTY_RESULT_MARKERS = ("hasn't returned any results", "has not returned any results")


@dataclass(frozen=True)
class SearchProvider:
    name: str
    display_name: str
    endpoint: str
    engine: str
    key_setting: str

    def api_key(self, settings: Settings) -> str:
        return getattr(settings, self.key_setting, "") or ""


VALUESERP = SearchProvider(
    name="valueserp",
    display_name="ValueSERP",
    endpoint="https://api.valueserp.com/search",
    engine="google",
    key_setting="valueserp_key",
)

SERPAPI_BING = SearchProvider(
    name="serpapi",
    display_name="SerpApi",
    endpoint="https://serpapi.com/search.json",
    engine="bing",
    key_setting="serpapi_key",
)

PROVIDERS_BY_CLASS = {
    RoutingClass.STANDARD_WEB_SEARCH: VALUESERP,
    RoutingClass.ALTERNATE_ENGINE_DOMAIN: SERPAPI_BING,
}


def provider_for(routing_class: RoutingClass) -> Optional[SearchProvider]:
    """Provider used for a routing class; None for internal-search-only domains."""
    return PROVIDERS_BY_CLASS.get(routing_class)


def build_boolean_query(domain: str, query: str) -> str:
    return f'site:{normalize_domain(domain)} "{query.strip()}"'


def build_params(provider: SearchProvider, settings: Settings, boolean_query: str) -> dict[str, Any]:
    if provider.engine == "bing":
        return {
            "api_key": provider.api_key(settings),
            "engine": "bing",
            "q": boolean_query,
            "cc": settings.search_country_code,
            "count": settings.search_num_results,
        }
    return {
        "api_key": provider.api_key(settings),
        "q": boolean_query,
        "location": settings.search_location,
        "gl": settings.search_gl,
        "hl": settings.search_hl,
        "num": settings.search_num_results,
    }


# =============================================================================
# Response normalization
# =============================================================================


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _from_item(item: dict) -> Candidate:
    return Candidate(
        link=item.get("link") or "",
        title=item.get("title") or "",
        snippet=item.get("snippet") or "",
    )


def merge_candidates(payload: dict) -> list[Candidate]:
    """
    Flatten a provider payload into candidates, in fixed order:
    organic, video, inline videos, knowledge graph. No filtering here.
    """
    merged: list[Candidate] = []

    for key in ("organic_results", "video_results"):
        merged.extend(_from_item(item) for item in _as_list(payload.get(key)) if isinstance(item, dict))

    for video in _as_list(payload.get("inline_videos")):
        if not isinstance(video, dict):
            continue
        parts = [str(p) for p in (video.get("source"), video.get("length")) if p]
        merged.append(
            Candidate(
                link=video.get("link") or "",
                title=video.get("title") or "",
                snippet=" · ".join(parts),
            )
        )

    graph = payload.get("knowledge_graph")
    if isinstance(graph, dict) and isinstance(graph.get("source"), dict):
        merged.append(
            Candidate(
                link=graph["source"].get("link") or "",
                title=graph.get("title") or "",
                snippet=graph.get("description") or "",
            )
        )

    return merged


def filter_candidates(candidates: list[Candidate]) -> list[Candidate]:
    return [c for c in candidates if c.link and c.title]


def rank_candidates(candidates: list[Candidate], query: str) -> list[SearchResult]:
    """Score candidates against the unscoped query; stable descending sort."""
    scored = [
        SearchResult(
            url=c.link,
            title=c.title,
            description=c.snippet,
            similarity=similarity(c.title, query),
        )
        for c in candidates
    ]
    return rank_by_score(scored, key=lambda r: r.similarity)


def _provider_error_message(payload: dict) -> Optional[str]:
    """Logical failure reported inside a 2xx response, or None."""
    info = payload.get("request_info")
    if isinstance(info, dict) and info.get("success") is False:
        return info.get("message") or "Unknown error"

    error = payload.get("error")
    if error:
        if any(marker in str(error).lower() for marker in _EMPTY_RESULT_MARKERS):
            return None
        return str(error)
    return None


# =============================================================================
# Query
# =============================================================================


async def search_candidates(
    domain: str,
    query: str,
    routing_class: RoutingClass,
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list[SearchResult]:
    """
    Run one site-scoped query and return ranked results (best first).

    Raises UpstreamTransportError / UpstreamLogicalError on failure; never
    retries.
    """
    provider = provider_for(routing_class)
    if provider is None:
        raise ValueError(f"no search provider for routing class {routing_class.value}")
    if not provider.api_key(settings):
        raise ConfigurationError(f"{provider.display_name} key non configurata")

    boolean_query = build_boolean_query(domain, query)
    params = build_params(provider, settings, boolean_query)
    logger.info("[Search] engine=%s query=%s", provider.engine, boolean_query)

    try:
        async with open_client(transport=transport, headers={"Accept": "application/json"}) as client:
            response = await get_with_deadline(
                client, provider.endpoint, settings.search_timeout_seconds, params=params
            )
    except asyncio.TimeoutError as e:
        logger.warning("[Search] %s timeout after %ss", provider.display_name, settings.search_timeout_seconds)
        raise UpstreamTransportError(f"Errore {provider.display_name}: timeout", detail="timeout") from e
    except httpx.HTTPError as e:
        logger.warning("[Search] %s transport error: %s", provider.display_name, e)
        detail = redact_sensitive(str(e)) or type(e).__name__
        raise UpstreamTransportError(f"Errore {provider.display_name}: {detail}", detail=detail) from e

    if response.status_code >= 400:
        logger.warning("[Search] %s error: HTTP %s", provider.display_name, response.status_code)
        raise UpstreamTransportError(
            f"Errore {provider.display_name}: HTTP {response.status_code}",
            detail=response.text[:200],
        )

    try:
        payload = response.json()
    except ValueError as e:
        raise UpstreamTransportError(
            f"Errore {provider.display_name}: risposta non valida", detail=str(e)
        ) from e
    if not isinstance(payload, dict):
        raise UpstreamTransportError(f"Errore {provider.display_name}: risposta non valida")

    message = _provider_error_message(payload)
    if message:
        logger.warning("[Search] %s reported: %s", provider.display_name, message)
        raise UpstreamLogicalError(f"Errore {provider.display_name}: {message}", detail=message)

    merged = merge_candidates(payload)
    kept = filter_candidates(merged)
    logger.debug("[Search] %d candidates, %d with link and title", len(merged), len(kept))
    return rank_candidates(kept, query)
