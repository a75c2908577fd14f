"""Health check API endpoints."""

from datetime import datetime, timezone

import requests
from fastapi import APIRouter, Depends

from app.core.dependencies import get_filter_data_cache, get_tcms_client, get_view_cache
from tcms_client import DEFAULT_HTTP_BACKOFF, DEFAULT_HTTP_RETRIES, DEFAULT_HTTP_TIMEOUT, DataStoreError

router = APIRouter(tags=["health"])


@router.get("/healthz")
def health_check(view_cache=Depends(get_view_cache), filter_cache=Depends(get_filter_data_cache)):
    """Basic health check endpoint."""
    return {
        "ok": True,
        "cache": {
            "views": view_cache.stats(),
            "filter_data": filter_cache.stats(),
        },
        "http": {
            "timeout_seconds": DEFAULT_HTTP_TIMEOUT,
            "retries": DEFAULT_HTTP_RETRIES,
            "backoff_seconds": DEFAULT_HTTP_BACKOFF,
        },
    }


@router.get("/health/detailed")
def detailed_health_check(
    client=Depends(get_tcms_client),
    view_cache=Depends(get_view_cache),
    filter_cache=Depends(get_filter_data_cache),
):
    """Health check including data store connectivity."""
    health_status = {
        "ok": True,
        "checks": {
            "cache": {"status": "healthy", "views": view_cache.stats(), "filter_data": filter_cache.stats()},
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        client.ping()
        health_status["checks"]["data_store"] = {"status": "healthy", "base_url": client.base_url}
    except requests.exceptions.ConnectionError as e:
        health_status["ok"] = False
        health_status["checks"]["data_store"] = {
            "status": "connection_error",
            "error": "Cannot connect to the data store",
            "details": str(e),
        }
    except requests.exceptions.HTTPError as e:
        code = e.response.status_code if e.response is not None else "unknown"
        health_status["ok"] = False
        health_status["checks"]["data_store"] = {
            "status": "http_error",
            "error": f"Data store API error: {code}",
            "details": str(e),
        }
    except (requests.exceptions.RequestException, DataStoreError) as e:
        health_status["ok"] = False
        health_status["checks"]["data_store"] = {"status": "error", "error": "Data store check failed", "details": str(e)}

    return health_status
