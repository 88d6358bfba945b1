"""
Search Router

Request boundary for the resolution core: accepts (domain, query) pairs and
always answers with a {url, title, description, error} body. Failures never
escape as unhandled exceptions.

- POST /api/search        single pair
- POST /api/search/batch  every (article, domain) combination, sequentially
"""

from typing import Optional, Union

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.config import Settings, get_settings
from app.limiter import limiter
from app.utils.domains import parse_domain_list
from app.utils.resolver import resolve, validate_request
from app.utils.search_types import MISSING_INPUT_MESSAGE, ResolutionError, SearchResult
from app.utils.secure_logger import get_logger, log_error
from app.utils.serp_client import build_boolean_query
from app.utils.telemetry import record_rejection

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["search"])

# HTTP status per error_type; success and "not found" are 200.
_STATUS_BY_ERROR_TYPE = {
    "input": 400,
    "configuration": 500,
    "transport": 500,
    "provider": 500,
    "internal": 500,
}


class SearchRequestBody(BaseModel):
    # Optional so that missing fields get the uniform error body instead of a 422
    domain: Optional[str] = None
    query: Optional[str] = None


class SearchResponse(BaseModel):
    url: str = ""
    title: str = ""
    description: str = ""
    error: Optional[str] = None


class BatchSearchBody(BaseModel):
    """Domains and articles as free text (one per line) or lists."""

    domains: Union[str, list[str]] = ""
    articles: Union[str, list[str]] = ""


class BatchRow(SearchResponse):
    domain: str
    article: str
    search_query: str


class BatchSearchResponse(BaseModel):
    total: int
    found: int
    results: list[BatchRow]


def get_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Outbound transport; None means real network. Overridden in tests."""
    return None


def parse_article_list(raw: Union[str, list[str], None]) -> list[str]:
    if raw is None:
        return []
    lines = raw.splitlines() if isinstance(raw, str) else raw
    return [line.strip() for line in lines if line and line.strip()]


async def run_search(
    domain: Optional[str],
    query: Optional[str],
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SearchResult:
    """Validate and resolve one pair; every failure becomes an error result."""
    try:
        request = validate_request(domain, query)
        return await resolve(request, settings, transport=transport)
    except ResolutionError as e:
        record_rejection(e.error_type)
        logger.warning(f"[Search] rejected ({e.error_type}): {e.message}")
        return SearchResult.from_error(e)
    except Exception as e:
        log_error(__name__, e, {"domain": domain, "query": query})
        return SearchResult(error=f"Errore: {e}", error_type="internal")


def _status_for(result: SearchResult) -> int:
    return _STATUS_BY_ERROR_TYPE.get(result.error_type, 200)


@router.post("/search", response_model=SearchResponse)
@limiter.limit("60/minute")
async def search(
    request: Request,
    payload: SearchRequestBody,
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
):
    """
    Find the page for one article on one domain.

    Returns 200 with the best match, or 200 with url="" and a
    "Nessun risultato trovato" error when nothing matched. Missing input is
    400; missing provider keys and upstream failures are 500.
    """
    result = await run_search(payload.domain, payload.query, settings, transport)
    return JSONResponse(status_code=_status_for(result), content=result.to_dict())


@router.post("/search/batch", response_model=BatchSearchResponse)
@limiter.limit("10/minute")
async def search_batch(
    request: Request,
    payload: BatchSearchBody,
    settings: Settings = Depends(get_settings),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_transport),
):
    """
    Resolve every (article, domain) pair, article-major, one at a time.

    Per-pair failures are reported in the row; only empty or oversized input
    rejects the whole batch.
    """
    domains = parse_domain_list(payload.domains)
    articles = parse_article_list(payload.articles)

    if not domains or not articles:
        return JSONResponse(status_code=400, content={"error": MISSING_INPUT_MESSAGE})

    total = len(domains) * len(articles)
    if total > settings.batch_max_pairs:
        return JSONResponse(
            status_code=400,
            content={"error": f"Troppe ricerche: {total} (massimo {settings.batch_max_pairs})"},
        )

    logger.info(f"[Batch] {len(articles)} articles x {len(domains)} domains = {total} searches")

    rows: list[BatchRow] = []
    for article in articles:
        for domain in domains:
            result = await run_search(domain, article, settings, transport)
            rows.append(
                BatchRow(
                    domain=domain,
                    article=article,
                    search_query=build_boolean_query(domain, article),
                    **result.to_dict(),
                )
            )

    found = sum(1 for row in rows if row.url and not row.error)
    body = BatchSearchResponse(total=total, found=found, results=rows)
    return JSONResponse(content=body.model_dump())
