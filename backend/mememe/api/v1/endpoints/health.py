from fastapi import APIRouter, Depends

from mememe.services.cache import CacheService, get_cache_service

router = APIRouter()


@router.get("/health")
async def healthcheck(
    cache: CacheService = Depends(get_cache_service),
) -> dict[str, str]:
    """Lightweight readiness probe including distributed cache status."""
    return {"status": "ok", "cache": await cache.health_status()}
