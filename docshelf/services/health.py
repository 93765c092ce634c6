"""Health check service for dependency verification."""

import time
from typing import Any, Dict

from docshelf.services.kv_store import KVStoreService


async def check_redis(kv_store: KVStoreService) -> Dict[str, Any]:
    """
    Check Redis connectivity and health.

    Args:
        kv_store: KVStoreService instance.

    Returns:
        Health status dictionary.
    """
    try:
        start_time = time.time()
        if not kv_store.client:
            return {"status": "unhealthy", "error": "Not connected", "latency_ms": 0}

        await kv_store.client.ping()
        latency_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
            "latency_ms": 0,
        }
