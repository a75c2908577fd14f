"""FastAPI dependency injection setup."""

from functools import lru_cache

from fastapi import HTTPException

from app.core.config import config
from app.execution.registry import ViewRegistry
from app.services.cache import TTLCache
from tcms_client import DEFAULT_HTTP_BACKOFF, DEFAULT_HTTP_RETRIES, DEFAULT_HTTP_TIMEOUT, TCMSClient, env_or_die


@lru_cache()
def get_filter_data_cache() -> TTLCache:
    """Features and tags used by the filter controls."""
    return TTLCache(ttl_seconds=config.FILTER_DATA_CACHE_TTL, maxsize=8)


@lru_cache()
def get_view_cache() -> TTLCache:
    return TTLCache(ttl_seconds=config.VIEW_CACHE_TTL, maxsize=config.VIEW_CACHE_MAXSIZE)


@lru_cache()
def get_view_registry() -> ViewRegistry:
    return ViewRegistry(
        get_view_cache(),
        page_size=config.PAGE_SIZE,
        debounce_seconds=config.search_debounce_seconds,
        executions_timeout=config.EXECUTIONS_TIMEOUT_SECONDS,
        notification_history=config.NOTIFICATION_HISTORY,
    )


def get_tcms_client() -> TCMSClient:
    """Get data store client instance."""
    try:
        base_url = env_or_die("TCMS_STORE_URL").rstrip("/")
        api_key = env_or_die("TCMS_STORE_KEY")
    except SystemExit:
        raise HTTPException(status_code=500, detail="Server missing data store credentials")

    return TCMSClient(
        base_url=base_url,
        api_key=api_key,
        access_token=config.ACCESS_TOKEN,
        user_id=config.USER_ID,
        timeout=DEFAULT_HTTP_TIMEOUT,
        max_attempts=DEFAULT_HTTP_RETRIES,
        backoff=DEFAULT_HTTP_BACKOFF,
    )
