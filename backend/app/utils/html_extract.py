"""
HTML extraction heuristics for third-party search and article pages.

Every function here is best-effort: an empty string means "nothing found",
never an error. Link extraction is driven by a strategy table keyed by
template family; add a family by adding an entry to TEMPLATE_EXTRACTORS.
"""

from __future__ import annotations

import re
from typing import Callable, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from app.utils.domains import normalize_domain

TITLE_MAX_CHARS = 200
DESCRIPTION_MAX_CHARS = 300

# "No results" markers seen on internal search pages (compared lowercased).
NO_RESULTS_PHRASES = (
    # it
    "nessun risultato",
    "nessun articolo",
    "non ha prodotto risultati",
    "nessun contenuto trovato",
    # en
    "no results",
    "nothing found",
    "nothing matched",
    # fr / es / de
    "aucun résultat",
    "no se encontraron resultados",
    "keine ergebnisse",
)

_WHITESPACE_RE = re.compile(r"\s+")
_SKIPPED_HREF_PREFIXES = ("#", "javascript:", "mailto:", "tel:")

# Ordered most specific first.
GENERIC_ANCHOR_SELECTORS = (
    "a.search-result[href]",
    ".search-result a[href]",
    ".search-results a[href]",
    ".entry-title a[href]",
    "h2.entry-title a[href]",
    "article header a[href]",
    "article h2 a[href]",
    "article h3 a[href]",
)

CARD_CLASSES = {"card", "post-card", "card-post", "news-card", "article-card"}
POST_MARKERS = {"type-post", "post", "format-standard", "format-video"}
ATTACHMENT_MARKERS = {"type-attachment", "attachment", "media"}
CARD_TITLE_SELECTORS = (
    ".card-title a[href]",
    ".entry-title a[href]",
    "h2 a[href]",
    "h3 a[href]",
)


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def extract_title(html: str) -> str:
    """First <title> content, whitespace collapsed, max 200 chars."""
    soup = _soup(html)
    tag = soup.find("title")
    if tag is None:
        return ""
    return collapse_whitespace(tag.get_text())[:TITLE_MAX_CHARS]


def extract_description(html: str) -> str:
    """Meta description (or og:description), whitespace collapsed."""
    soup = _soup(html)
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content"):
            return collapse_whitespace(tag["content"])[:DESCRIPTION_MAX_CHARS]
    return ""


def html_to_text(html: str, limit: Optional[int] = None) -> str:
    """Strip markup from an HTML fragment (e.g. a REST API ``rendered`` field)."""
    text = collapse_whitespace(_soup(html).get_text(separator=" "))
    return text[:limit] if limit else text


def is_no_results_page(html: str) -> bool:
    """True when the visible page text contains a known "no results" phrase."""
    soup = _soup(html)
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    lowered = soup.get_text(separator=" ").lower()
    return any(phrase in lowered for phrase in NO_RESULTS_PHRASES)


# =============================================================================
# Anchor helpers
# =============================================================================


def _qualify(href: str, base_url: str) -> str:
    return urljoin(base_url, href.strip())


def _is_usable_anchor(tag: Tag, base_url: str) -> bool:
    href = (tag.get("href") or "").strip()
    if not href or href.lower().startswith(_SKIPPED_HREF_PREFIXES):
        return False
    # the site logo / home link is never a result
    return urlparse(_qualify(href, base_url)).path not in ("", "/")


def _same_host(url: str, base_url: str) -> bool:
    return normalize_domain(urlparse(url).netloc) == normalize_domain(urlparse(base_url).netloc)


def _first_usable(tags, base_url: str) -> Optional[Tag]:
    for tag in tags:
        if _is_usable_anchor(tag, base_url):
            return tag
    return None


def _generic_fallback(soup: BeautifulSoup, base_url: str) -> Optional[Tag]:
    return _first_usable(soup.find_all("a", href=True), base_url)


# =============================================================================
# Template strategies: (soup, base_url) -> anchor tag or None
# =============================================================================


def _generic_anchor(soup: BeautifulSoup, base_url: str) -> Optional[Tag]:
    for selector in GENERIC_ANCHOR_SELECTORS:
        tag = _first_usable(soup.select(selector), base_url)
        if tag is not None:
            return tag
    return _generic_fallback(soup, base_url)


def _card_blocks(soup: BeautifulSoup) -> list[Tag]:
    """Repeated listing blocks, genuine posts first; attachment/media entries dropped."""
    blocks = [
        tag
        for tag in soup.find_all(["article", "div", "li"])
        if CARD_CLASSES.intersection(tag.get("class") or [])
    ]
    posts, others = [], []
    for block in blocks:
        classes = set(block.get("class") or [])
        if classes & ATTACHMENT_MARKERS:
            continue
        (posts if classes & POST_MARKERS else others).append(block)
    return posts + others


def _cards_anchor(soup: BeautifulSoup, base_url: str) -> Optional[Tag]:
    blocks = _card_blocks(soup)
    for block in blocks:
        for selector in CARD_TITLE_SELECTORS:
            tag = _first_usable(block.select(selector), base_url)
            if tag is not None:
                return tag
    for block in blocks:
        for tag in block.find_all("a", href=True):
            if _is_usable_anchor(tag, base_url) and _same_host(
                _qualify(tag["href"], base_url), base_url
            ):
                return tag
    return _generic_fallback(soup, base_url)


TEMPLATE_EXTRACTORS: dict[str, Callable[[BeautifulSoup, str], Optional[Tag]]] = {
    "generic": _generic_anchor,
    "cards": _cards_anchor,
}


def detect_template_family(html: str) -> str:
    """Pick "cards" when the page has card listing blocks, otherwise "generic"."""
    return "cards" if _card_blocks(_soup(html)) else "generic"


def extract_link_with_text(
    html: str, base_url: str, template_family: Optional[str] = None
) -> tuple[str, str]:
    """
    Return (absolute link, anchor text) of the first matching result anchor.

    Unknown or missing families fall back to "generic". Returns ("", "")
    when nothing usable is found.
    """
    strategy = TEMPLATE_EXTRACTORS.get(template_family or "generic", _generic_anchor)
    tag = strategy(_soup(html), base_url)
    if tag is None:
        return "", ""
    text = collapse_whitespace(tag.get_text(" ")) or collapse_whitespace(tag.get("title") or "")
    return _qualify(tag["href"], base_url), text[:TITLE_MAX_CHARS]


def extract_first_matching_link(
    html: str, base_url: str, template_family: Optional[str] = None
) -> str:
    link, _ = extract_link_with_text(html, base_url, template_family)
    return link
