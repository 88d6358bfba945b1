"""
Domain normalization and routing classification.

A raw domain typed by an operator ("HTTPS://WWW.Example.com/path?x=1") is
reduced to a comparable host key ("example.com"). The routing class of a
domain is a pure function of that key and the configured domain lists.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, Optional

_QUOTE_CHARS = " \t\r\n\"'`"
_SCHEME_RE = re.compile(r"^https?://")
_PORT_RE = re.compile(r":\d+$")
_LIST_SEPARATORS_RE = re.compile(r"\r?\n|,|;")


class RoutingClass(str, Enum):
    """Resolution strategy assigned to a destination domain."""

    STANDARD_WEB_SEARCH = "standard_web_search"
    ALTERNATE_ENGINE_DOMAIN = "alternate_engine_domain"
    INTERNAL_SEARCH_ONLY = "internal_search_only"


def _strip_once(value: str) -> str:
    value = value.strip(_QUOTE_CHARS)
    value = _SCHEME_RE.sub("", value)
    if value.startswith("www."):
        value = value[4:]
    for sep in ("/", "?", "#"):
        value = value.split(sep, 1)[0]
    value = _PORT_RE.sub("", value)
    while value.endswith((".*", "*", ".")):
        value = value[:-2] if value.endswith(".*") else value[:-1]
    return value.strip(_QUOTE_CHARS)


def normalize_domain(raw: Optional[str]) -> str:
    """
    Canonicalize a raw domain/URL string into a lowercase host key.

    Strips quotes, scheme, ``www.``, path/query/fragment, port and trailing
    dots or wildcard leftovers (``*``, ``.*``). Applied until the value stops
    changing, so ``normalize_domain(normalize_domain(x)) == normalize_domain(x)``.

    Inputs without a dot are returned as-is (possibly empty); rejecting them
    is up to the caller.
    """
    value = (raw or "").lower()
    # every step only removes characters, so this terminates
    while True:
        stripped = _strip_once(value)
        if stripped == value:
            return value
        value = stripped


def is_domain_like(domain: str) -> bool:
    return bool(domain) and "." in domain


def parse_domain_list(raw: str | Iterable[str] | None) -> list[str]:
    """
    Parse operator input into unique normalized domains, keeping input order.

    Text input is split on newlines, commas and semicolons. Entries that do
    not look like a domain are dropped.
    """
    if raw is None:
        return []
    items = _LIST_SEPARATORS_RE.split(raw) if isinstance(raw, str) else list(raw)

    seen: dict[str, None] = {}
    for item in items:
        domain = normalize_domain(str(item))
        if is_domain_like(domain):
            seen.setdefault(domain, None)
    return list(seen)


def domain_matches(domain: str, pattern: str) -> bool:
    """Exact or subdomain match: "it.msn.com" matches "msn.com", "notmsn.com" does not."""
    domain_lower = normalize_domain(domain)
    pattern_lower = normalize_domain(pattern)
    if not domain_lower or not pattern_lower:
        return False
    return domain_lower == pattern_lower or domain_lower.endswith("." + pattern_lower)


def matches_any(domain: str, patterns: Iterable[str]) -> bool:
    return any(domain_matches(domain, p) for p in patterns)


def classify_domain(
    domain: str,
    internal_search_domains: Iterable[str],
    alternate_engine_domains: Iterable[str],
) -> RoutingClass:
    """
    Assign a routing class to a domain. First match wins:
    internal-search-only list, then alternate-engine list, then standard.
    """
    normalized = normalize_domain(domain)
    if matches_any(normalized, internal_search_domains):
        return RoutingClass.INTERNAL_SEARCH_ONLY
    if matches_any(normalized, alternate_engine_domains):
        return RoutingClass.ALTERNATE_ENGINE_DOMAIN
    return RoutingClass.STANDARD_WEB_SEARCH
