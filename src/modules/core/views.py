import time
from typing import Any, Dict

import structlog
from django.conf import settings
from django.core.cache import caches
from django.db import connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

logger = structlog.get_logger()


def health_check(request: HttpRequest) -> JsonResponse:
    """Report availability of the inventory database and the order store."""
    services: Dict[str, Dict[str, Any]] = {}
    overall_healthy = True

    # Inventory database
    try:
        start = time.monotonic()
        conn = connections["default"]
        conn.ensure_connection()
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        services["database"] = {
            "status": "up",
            "response_time_ms": round((time.monotonic() - start) * 1000, 2),
        }
    except Exception:
        services["database"] = {"status": "down"}
        overall_healthy = False
        logger.error("health_check_db_failure")

    # Order store (key-value cache)
    try:
        start = time.monotonic()
        store = caches[settings.ORDER_STORE_CACHE_ALIAS]
        store.set("_health_check", "ok", 10)
        result = store.get("_health_check")
        if result != "ok":
            raise ConnectionError("Order store read failed")
        services["order_store"] = {
            "status": "up",
            "response_time_ms": round((time.monotonic() - start) * 1000, 2),
        }
    except Exception:
        services["order_store"] = {"status": "down"}
        overall_healthy = False
        logger.error("health_check_order_store_failure")

    status_code = 200 if overall_healthy else 503

    logger.info(
        "health_check_completed", status="healthy" if overall_healthy else "unhealthy"
    )

    return JsonResponse(
        {
            "status": "healthy" if overall_healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=status_code,
    )
