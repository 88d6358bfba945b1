from fastapi import APIRouter, Depends

from app.config import Settings, get_settings
from app.utils import telemetry

router = APIRouter()


@router.get("/health")
async def health_check():
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check():
    return {"status": "ready"}


@router.get("/health/config")
async def config_status(settings: Settings = Depends(get_settings)):
    """Which provider keys are present (never the keys) and the routing lists."""
    return {
        "providers": {
            "valueserp": bool(settings.valueserp_key),
            "serpapi": bool(settings.serpapi_key),
        },
        "internal_search_domains": list(settings.internal_search_domains),
        "alternate_engine_domains": list(settings.alternate_engine_domains),
        "site_overrides": [o.domain for o in settings.site_overrides],
    }


@router.get("/health/stats")
async def stats():
    return telemetry.snapshot()
