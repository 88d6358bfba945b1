"""
External search client tests: payload merge, ranking and provider errors.
"""

import asyncio

import httpx
import pytest

from conftest import RecordingTransport, make_settings

from app.utils.domains import RoutingClass
from app.utils.search_types import (
    Candidate,
    ConfigurationError,
    UpstreamLogicalError,
    UpstreamTransportError,
)
from app.utils.serp_client import (
    SERPAPI_BING,
    VALUESERP,
    build_boolean_query,
    build_params,
    filter_candidates,
    merge_candidates,
    provider_for,
    rank_candidates,
    search_candidates,
)

FULL_PAYLOAD = {
    "organic_results": [
        {"link": "https://example.it/a/", "title": "Articolo A", "snippet": "a"},
        {"link": "https://example.it/b/", "title": "", "snippet": "no title"},
    ],
    "video_results": [
        {"link": "https://example.it/v/", "title": "Video", "snippet": "v"},
    ],
    "inline_videos": [
        {"link": "https://example.it/iv/", "title": "Inline", "source": "YouTube", "length": "3:12"},
        {"title": "No link", "source": "Dailymotion"},
    ],
    "knowledge_graph": {
        "title": "Knowledge",
        "description": "kg description",
        "source": {"link": "https://example.it/kg/"},
    },
}


class TestMergeCandidates:
    def test_counts_and_order(self):
        merged = merge_candidates(FULL_PAYLOAD)
        # 2 organic + 1 video + 2 inline + 1 knowledge graph
        assert len(merged) == 6
        assert [c.link for c in merged] == [
            "https://example.it/a/",
            "https://example.it/b/",
            "https://example.it/v/",
            "https://example.it/iv/",
            "",
            "https://example.it/kg/",
        ]

    def test_filter_keeps_link_and_title(self):
        kept = filter_candidates(merge_candidates(FULL_PAYLOAD))
        assert len(kept) == 4
        assert all(c.link and c.title for c in kept)

    def test_inline_video_snippet(self):
        merged = merge_candidates(FULL_PAYLOAD)
        assert merged[3].snippet == "YouTube · 3:12"
        assert merged[4].snippet == "Dailymotion"

    def test_knowledge_graph(self):
        kg = merge_candidates(FULL_PAYLOAD)[-1]
        assert kg == Candidate(link="https://example.it/kg/", title="Knowledge", snippet="kg description")

    def test_knowledge_graph_without_source_is_absent(self):
        assert merge_candidates({"knowledge_graph": {"title": "x"}}) == []

    def test_empty_payload(self):
        assert merge_candidates({}) == []
        assert merge_candidates({"organic_results": None}) == []


class TestRankCandidates:
    def test_best_first(self):
        candidates = [
            Candidate("https://e.it/1", "Notizie varie"),
            Candidate("https://e.it/2", "Privacy Policy", "policy"),
        ]
        ranked = rank_candidates(candidates, "privacy")
        assert ranked[0].url == "https://e.it/2"
        assert ranked[0].similarity == 0.8
        assert ranked[0].description == "policy"

    def test_ties_keep_merge_order(self):
        candidates = [Candidate(f"https://e.it/{i}", f"Titolo {i}") for i in range(4)]
        ranked = rank_candidates(candidates, "nessuna corrispondenza")
        assert [r.url for r in ranked] == [c.link for c in candidates]


class TestQueryBuilding:
    def test_boolean_query(self):
        assert build_boolean_query("https://www.Example.it/", " privacy ") == 'site:example.it "privacy"'

    def test_provider_routing(self):
        assert provider_for(RoutingClass.STANDARD_WEB_SEARCH) is VALUESERP
        assert provider_for(RoutingClass.ALTERNATE_ENGINE_DOMAIN) is SERPAPI_BING
        assert provider_for(RoutingClass.INTERNAL_SEARCH_ONLY) is None

    def test_google_params(self, settings):
        params = build_params(VALUESERP, settings, "q")
        assert params["api_key"] == "test-valueserp-key"
        assert (params["location"], params["gl"], params["hl"], params["num"]) == ("Italy", "it", "it", 10)
        assert "engine" not in params

    def test_bing_params(self, settings):
        params = build_params(SERPAPI_BING, settings, "q")
        assert params["api_key"] == "test-serpapi-key"
        assert params["engine"] == "bing"
        assert params["cc"] == "IT"


@pytest.mark.asyncio
class TestSearchCandidates:
    async def test_success(self, settings):
        transport = RecordingTransport(lambda r: httpx.Response(200, json=FULL_PAYLOAD))
        ranked = await search_candidates(
            "example.it", "Articolo A", RoutingClass.STANDARD_WEB_SEARCH, settings, transport=transport
        )
        assert len(ranked) == 4
        assert ranked[0].url == "https://example.it/a/"
        request = transport.requests[0]
        assert request.url.host == "api.valueserp.com"
        assert request.url.params["q"] == 'site:example.it "Articolo A"'

    async def test_alternate_engine_uses_serpapi(self, settings):
        transport = RecordingTransport(lambda r: httpx.Response(200, json={"organic_results": []}))
        ranked = await search_candidates(
            "msn.com", "meteo", RoutingClass.ALTERNATE_ENGINE_DOMAIN, settings, transport=transport
        )
        assert ranked == []
        assert transport.requests[0].url.host == "serpapi.com"
        assert transport.requests[0].url.params["engine"] == "bing"

    async def test_http_error_single_call(self, settings):
        transport = RecordingTransport(lambda r: httpx.Response(500, text="boom"))
        with pytest.raises(UpstreamTransportError) as exc:
            await search_candidates("example.it", "x", RoutingClass.STANDARD_WEB_SEARCH, settings, transport=transport)
        assert exc.value.message == "Errore ValueSERP: HTTP 500"
        assert len(transport.requests) == 1

    async def test_network_error(self, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamTransportError) as exc:
            await search_candidates(
                "example.it", "x", RoutingClass.STANDARD_WEB_SEARCH, settings, transport=RecordingTransport(handler)
            )
        assert exc.value.message.startswith("Errore ValueSERP:")

    async def test_timeout_single_call(self):
        settings = make_settings(search_timeout_seconds=0.05)

        async def slow(request):
            await asyncio.sleep(1)
            return httpx.Response(200, json=FULL_PAYLOAD)

        transport = RecordingTransport(slow)
        with pytest.raises(UpstreamTransportError) as exc:
            await search_candidates("example.it", "x", RoutingClass.STANDARD_WEB_SEARCH, settings, transport=transport)
        assert exc.value.message == "Errore ValueSERP: timeout"
        assert len(transport.requests) == 1

    async def test_logical_error_valueserp(self, settings):
        payload = {"request_info": {"success": False, "message": "Invalid API key"}}
        transport = RecordingTransport(lambda r: httpx.Response(200, json=payload))
        with pytest.raises(UpstreamLogicalError) as exc:
            await search_candidates("example.it", "x", RoutingClass.STANDARD_WEB_SEARCH, settings, transport=transport)
        assert exc.value.message == "Errore ValueSERP: Invalid API key"

    async def test_serpapi_empty_marker_is_not_an_error(self, settings):
        payload = {"error": "Bing hasn't returned any results for this query."}
        transport = RecordingTransport(lambda r: httpx.Response(200, json=payload))
        ranked = await search_candidates(
            "msn.com", "x", RoutingClass.ALTERNATE_ENGINE_DOMAIN, settings, transport=transport
        )
        assert ranked == []

    async def test_missing_key(self):
        settings = make_settings(valueserp_key="")
        transport = RecordingTransport(lambda r: httpx.Response(200, json={}))
        with pytest.raises(ConfigurationError):
            await search_candidates("example.it", "x", RoutingClass.STANDARD_WEB_SEARCH, settings, transport=transport)
        assert transport.requests == []
