"""Health check utilities."""

from typing import Dict

from docshelf.services.health import check_redis
from docshelf.services.kv_store import KVStoreService


async def check_all_dependencies(kv_store: KVStoreService) -> Dict:
    """
    Check all service dependencies.

    Args:
        kv_store: Backing key-value store.

    Returns:
        Dictionary with overall status and individual service statuses.
    """
    redis_status = await check_redis(kv_store)
    overall_status = "healthy" if redis_status.get("status") == "healthy" else "unhealthy"
    return {"status": overall_status, "services": {"redis": redis_status}}


async def check_readiness(kv_store: KVStoreService) -> Dict:
    """
    Check service readiness.

    Args:
        kv_store: Backing key-value store.

    Returns:
        Readiness status dictionary.
    """
    redis_status = await check_redis(kv_store)
    ready = redis_status.get("status") == "healthy"
    return {"ready": ready, "redis": ready}
