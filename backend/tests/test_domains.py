"""
Domain normalization and routing classification tests

Usage:
    pytest backend/tests/test_domains.py -v
"""

import pytest

from app.utils.domains import (
    RoutingClass,
    classify_domain,
    domain_matches,
    normalize_domain,
    parse_domain_list,
)

INTERNAL = ["internal.example.it", "slow-site.it"]
ALTERNATE = ["msn.com"]


class TestNormalizeDomain:
    """normalize_domain: raw operator input -> host key"""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("HTTPS://WWW.Example.com/path?x=1#y", "example.com"),
            ("http://example.it", "example.it"),
            ("www.example.it/", "example.it"),
            ("example.it:8080", "example.it"),
            ("example.it.", "example.it"),
            ("example.it.*", "example.it"),
            ("example.it*", "example.it"),
            ('  "example.it"  ', "example.it"),
            ("`https://www.example.it/a/b`", "example.it"),
            ("example.it?s=query", "example.it"),
            ("example.it#top", "example.it"),
            ("it.msn.com", "it.msn.com"),
        ],
    )
    def test_examples(self, raw, expected):
        assert normalize_domain(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "localhost",
            "www.www.example.it",
            "https://https://example.it",
            "example.it:80.",
            "example.it. /path",
            "'www.example.it:443/'",
            "EXAMPLE.IT.*.*",
            "https://www.",
            "*",
            "a.b.c.d.e/f?g#h",
        ],
    )
    def test_idempotent(self, raw):
        once = normalize_domain(raw)
        assert normalize_domain(once) == once

    def test_non_domain_input_is_preserved(self):
        """No dot: returned as-is, rejection is the caller's job"""
        assert normalize_domain("localhost") == "localhost"
        assert normalize_domain("") == ""
        assert normalize_domain(None) == ""


class TestParseDomainList:
    def test_splits_on_newline_comma_semicolon(self):
        raw = "example.it\nhttps://www.other.it/x, third.it; fourth.it"
        assert parse_domain_list(raw) == ["example.it", "other.it", "third.it", "fourth.it"]

    def test_dedupes_preserving_order(self):
        raw = "b.it\nwww.a.it\nB.IT\nhttps://a.it/"
        assert parse_domain_list(raw) == ["b.it", "a.it"]

    def test_drops_non_domains(self):
        assert parse_domain_list("localhost\n\n  \nexample.it") == ["example.it"]

    def test_accepts_list(self):
        assert parse_domain_list(["WWW.A.IT", "a.it", "b.it"]) == ["a.it", "b.it"]


class TestDomainMatches:
    def test_exact_and_subdomain(self):
        assert domain_matches("msn.com", "msn.com")
        assert domain_matches("it.msn.com", "msn.com")
        assert domain_matches("https://www.msn.com/it-it", "msn.com")

    def test_no_partial_label_match(self):
        assert not domain_matches("notmsn.com", "msn.com")
        assert not domain_matches("msn.com.evil.it", "msn.com")


class TestClassifyDomain:
    def test_internal_search_only(self):
        assert classify_domain("internal.example.it", INTERNAL, ALTERNATE) is RoutingClass.INTERNAL_SEARCH_ONLY
        assert classify_domain("www.slow-site.it/foo", INTERNAL, ALTERNATE) is RoutingClass.INTERNAL_SEARCH_ONLY

    def test_alternate_engine(self):
        assert classify_domain("msn.com", INTERNAL, ALTERNATE) is RoutingClass.ALTERNATE_ENGINE_DOMAIN
        assert classify_domain("IT.MSN.COM", INTERNAL, ALTERNATE) is RoutingClass.ALTERNATE_ENGINE_DOMAIN

    def test_standard(self):
        assert classify_domain("example.it", INTERNAL, ALTERNATE) is RoutingClass.STANDARD_WEB_SEARCH

    def test_internal_list_wins_over_alternate(self):
        assert (
            classify_domain("msn.com", ["msn.com"], ["msn.com"])
            is RoutingClass.INTERNAL_SEARCH_ONLY
        )

    def test_pure_function(self):
        results = {classify_domain("internal.example.it", INTERNAL, ALTERNATE) for _ in range(5)}
        assert results == {RoutingClass.INTERNAL_SEARCH_ONLY}
