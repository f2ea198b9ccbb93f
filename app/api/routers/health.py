# app/api/routers/health.py
from fastapi import APIRouter, Depends

from app.api.deps import get_cache
from app.utils.cache import TTLCache

router = APIRouter(tags=["health"])


@router.get("/health")
def health(cache: TTLCache = Depends(get_cache)):
    return {"status": "ok", "cache": cache.stats()}
