"""
Resolution router: pick a strategy for the destination domain and return
one best answer.

Routing classes never fall back to each other. An internal-search-only
domain is not sent to a search provider, and a search-engine domain is not
crawled directly.
"""

from __future__ import annotations

from typing import Optional

import httpx

from app.config import Settings
from app.utils.domains import RoutingClass, classify_domain, is_domain_like, normalize_domain
from app.utils.search_types import (
    ConfigurationError,
    InputError,
    ResolutionError,
    SearchRequest,
    SearchResult,
)
from app.utils.secure_logger import get_logger
from app.utils.serp_client import provider_for, search_candidates
from app.utils.site_probe import probe_site
from app.utils.telemetry import record_resolution

logger = get_logger(__name__)


def validate_request(domain: Optional[str], query: Optional[str]) -> SearchRequest:
    """Reject missing/blank input before any network call."""
    domain_value = (domain or "").strip()
    query_value = (query or "").strip()
    if not domain_value or not query_value:
        raise InputError()
    if not is_domain_like(normalize_domain(domain_value)):
        raise InputError("Dominio non valido", detail=domain_value)
    return SearchRequest(domain=domain_value, query=query_value)


def classify(request: SearchRequest, settings: Settings) -> RoutingClass:
    return classify_domain(
        request.domain,
        settings.internal_search_domains,
        settings.alternate_engine_domains,
    )


def ensure_credentials(routing_class: RoutingClass, settings: Settings) -> None:
    """Raise ConfigurationError when the provider for this class has no key."""
    provider = provider_for(routing_class)
    if provider is not None and not provider.api_key(settings):
        raise ConfigurationError(f"{provider.display_name} key non configurata")


async def _resolve_internal(
    domain: str, query: str, settings: Settings, transport
) -> SearchResult:
    hit = await probe_site(domain, query, settings, transport=transport)
    if hit is None:
        return SearchResult.not_found()
    return SearchResult(url=hit.url, title=hit.title, description=hit.description)


async def _resolve_external(
    domain: str, query: str, routing_class: RoutingClass, settings: Settings, transport
) -> SearchResult:
    ranked = await search_candidates(domain, query, routing_class, settings, transport=transport)
    if not ranked:
        return SearchResult.not_found()
    return ranked[0]


async def resolve(
    request: SearchRequest,
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SearchResult:
    """
    Resolve one (domain, query) pair.

    ConfigurationError propagates (it is raised before any network call).
    Upstream transport/provider failures become an error-carrying result.
    """
    domain = normalize_domain(request.domain)
    routing_class = classify(request, settings)
    ensure_credentials(routing_class, settings)
    logger.info("[Resolve] %s -> %s", domain, routing_class.value)

    try:
        if routing_class is RoutingClass.INTERNAL_SEARCH_ONLY:
            result = await _resolve_internal(domain, request.query, settings, transport)
        else:
            result = await _resolve_external(
                domain, request.query, routing_class, settings, transport
            )
    except ConfigurationError:
        raise
    except ResolutionError as e:
        record_resolution(routing_class.value, "error")
        return SearchResult.from_error(e)

    record_resolution(routing_class.value, "found" if result.found else "not_found")
    if result.found:
        logger.info("[Resolve] found %s", result.url)
    else:
        logger.info("[Resolve] no result for %s on %s", request.query, domain)
    return result
