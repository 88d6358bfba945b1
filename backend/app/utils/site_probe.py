"""
Direct-fetch prober for sites that search engines do not index reliably.

Tries, in order and strictly one request at a time:
1. the site's WordPress REST post search (only for overrides that ask for it)
2. direct URL guesses built from the query slug
3. the site's own search page (``/?s=``)

Each step is an error boundary: a timeout, network failure or non-2xx
status is logged and the chain moves on. The first step that yields a hit
wins.
"""

from __future__ import annotations

import asyncio
import re
import unicodedata
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from urllib.parse import quote_plus, urlparse

import httpx

from app.config import DEFAULT_URL_TEMPLATES, Settings, SiteOverride
from app.utils.domains import domain_matches, normalize_domain
from app.utils.html_extract import (
    DESCRIPTION_MAX_CHARS,
    TITLE_MAX_CHARS,
    detect_template_family,
    extract_description,
    extract_link_with_text,
    extract_title,
    html_to_text,
    is_no_results_page,
)
from app.utils.http_fetch import fetch_page, get_with_deadline, open_client
from app.utils.secure_logger import get_logger, log_error
from app.utils.similarity import rank_by_score, similarity
from app.utils.telemetry import record_probe_hit

logger = get_logger(__name__)

WP_JSON_PER_PAGE = 5

# Failures that skip a single attempt without aborting the probe.
ATTEMPT_ERRORS = (httpx.HTTPError, asyncio.TimeoutError, ValueError)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s-]")
_SEPARATORS_RE = re.compile(r"[\s-]+")


@dataclass
class ProbeHit:
    url: str
    title: str
    description: str = ""


def slugify(text: str) -> str:
    """
    URL slug: lowercase, diacritics removed, non-alphanumerics dropped,
    whitespace collapsed to single hyphens.

    "Perché l'Italia è così" -> "perche-litalia-e-cosi"
    """
    decomposed = unicodedata.normalize("NFKD", text or "")
    ascii_text = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    cleaned = _NON_ALNUM_RE.sub("", ascii_text.lower())
    return _SEPARATORS_RE.sub("-", cleaned).strip("-")


def find_site_override(domain: str, overrides) -> Optional[SiteOverride]:
    for override in overrides:
        if domain_matches(domain, override.domain):
            return override
    return None


@dataclass
class _ProbeContext:
    domain: str
    query: str
    slug: str
    timeout: float
    override: Optional[SiteOverride]
    client: httpx.AsyncClient

    @property
    def url_templates(self) -> tuple[str, ...]:
        if self.override and self.override.url_templates:
            return self.override.url_templates
        return DEFAULT_URL_TEMPLATES


# =============================================================================
# Steps
# =============================================================================


def _rendered(value) -> str:
    """WordPress fields come as {"rendered": html}; some plugins send a plain string."""
    if isinstance(value, dict):
        value = value.get("rendered", "")
    return value if isinstance(value, str) else ""


async def _probe_wp_json(ctx: _ProbeContext) -> Optional[ProbeHit]:
    url = f"https://{ctx.domain}/wp-json/wp/v2/posts"
    params = {
        "search": ctx.query,
        "per_page": WP_JSON_PER_PAGE,
        "_fields": "link,title,excerpt",
    }
    response = await get_with_deadline(ctx.client, url, ctx.timeout, params=params)
    response.raise_for_status()
    posts = response.json()
    if not isinstance(posts, list):
        return None

    hits = []
    for post in posts:
        if not isinstance(post, dict):
            continue
        link = post.get("link")
        if not isinstance(link, str) or not link:
            continue
        title = html_to_text(_rendered(post.get("title")), TITLE_MAX_CHARS)
        excerpt = html_to_text(_rendered(post.get("excerpt")), DESCRIPTION_MAX_CHARS)
        hits.append(ProbeHit(url=link, title=title, description=excerpt))

    ranked = rank_by_score(hits, key=lambda h: similarity(h.title, ctx.query))
    return ranked[0] if ranked else None


async def _try_direct_url(ctx: _ProbeContext, url: str) -> Optional[ProbeHit]:
    page = await fetch_page(ctx.client, url, ctx.timeout)
    if is_no_results_page(page.text):
        logger.debug("[Probe] no-results page at %s", url)
        return None
    if urlparse(page.url).path in ("", "/"):
        logger.debug("[Probe] %s redirected to the home page", url)
        return None
    return ProbeHit(
        url=page.url,
        title=extract_title(page.text),
        description=extract_description(page.text),
    )


async def _probe_direct_urls(ctx: _ProbeContext) -> Optional[ProbeHit]:
    for template in ctx.url_templates:
        url = template.format(domain=ctx.domain, slug=ctx.slug)
        try:
            hit = await _try_direct_url(ctx, url)
        except ATTEMPT_ERRORS as e:
            logger.debug("[Probe] direct candidate %s skipped: %s", url, _describe(e))
            continue
        except Exception as e:
            log_error(__name__, e, {"step": "direct_url", "url": url})
            continue
        if hit:
            return hit
    return None


async def _probe_internal_search(ctx: _ProbeContext) -> Optional[ProbeHit]:
    url = f"https://{ctx.domain}/?s={quote_plus(ctx.query)}"
    page = await fetch_page(ctx.client, url, ctx.timeout)
    if is_no_results_page(page.text):
        logger.debug("[Probe] internal search reported no results for %s", ctx.domain)
        return None

    family = (ctx.override and ctx.override.template_family) or detect_template_family(page.text)
    link, text = extract_link_with_text(page.text, page.url, family)
    if not link:
        return None
    return ProbeHit(url=link, title=text)


ProbeStep = Callable[[_ProbeContext], Awaitable[Optional[ProbeHit]]]


def _build_steps(override: Optional[SiteOverride]) -> list[tuple[str, ProbeStep]]:
    steps: list[tuple[str, ProbeStep]] = []
    if override and override.prefer_wp_json:
        steps.append(("wp_json", _probe_wp_json))
    steps.append(("direct_url", _probe_direct_urls))
    steps.append(("internal_search", _probe_internal_search))
    return steps


def _describe(error: Exception) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return "timeout"
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code}"
    return str(error) or type(error).__name__


# =============================================================================
# Entry point
# =============================================================================


async def probe_site(
    domain: str,
    query: str,
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[ProbeHit]:
    """
    Look for a page matching ``query`` directly on ``domain``.

    Returns None when every step is exhausted without a positive match.
    """
    host = normalize_domain(domain)
    slug = slugify(query)
    if not host or not slug:
        return None

    override = find_site_override(host, settings.site_overrides)
    timeout = (override and override.timeout_seconds) or settings.probe_timeout_seconds
    verify = override.verify_tls if override else True

    async with open_client(verify=verify, transport=transport) as client:
        ctx = _ProbeContext(
            domain=host,
            query=query.strip(),
            slug=slug,
            timeout=timeout,
            override=override,
            client=client,
        )
        for name, step in _build_steps(override):
            try:
                hit = await step(ctx)
            except ATTEMPT_ERRORS as e:
                logger.info("[Probe] %s step failed for %s: %s", name, host, _describe(e))
                continue
            except Exception as e:
                log_error(__name__, e, {"step": name, "domain": host})
                continue
            if hit:
                logger.info("[Probe] %s hit for %s: %s", name, host, hit.url)
                record_probe_hit(name)
                return hit

    return None
