from app.core import bootstrap  # noqa: F401  (loads .env before config is read)

import requests
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import execution, health
from app.core.config import config
from app.core.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware
from app.execution.models import InvalidViewRequest
from app.execution.state import InvalidTransition
from app.services.error_handler import ErrorHandler
from tcms_client import DEFAULT_HTTP_BACKOFF, DEFAULT_HTTP_RETRIES, DEFAULT_HTTP_TIMEOUT, DataStoreError

app = FastAPI(title="TCMS Execution Service", version="0.1.0")

# Added last so it wraps request logging and sets the correlation id first
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(ErrorHandlingMiddleware)


async def _structured_error(request: Request, exc: Exception):
    return ErrorHandler.handle_exception(exc, request)


for _exc_type in (
    StarletteHTTPException,
    RequestValidationError,
    InvalidViewRequest,
    DataStoreError,
    requests.exceptions.RequestException,
    InvalidTransition,
):
    app.add_exception_handler(_exc_type, _structured_error)

app.include_router(health.router)
app.include_router(execution.router)


@app.on_event("startup")
def on_startup():
    print("--- Execution View Configuration ---")
    print(f"Data store:          {config.STORE_URL or '(not configured)'}")
    print(f"Page size:           {config.PAGE_SIZE}")
    print(f"Search debounce:     {config.SEARCH_DEBOUNCE_MS} ms")
    print(f"Executions timeout:  {config.EXECUTIONS_TIMEOUT_SECONDS:g} s")
    print(f"HTTP timeout/retry:  {DEFAULT_HTTP_TIMEOUT:g} s / {DEFAULT_HTTP_RETRIES} (backoff {DEFAULT_HTTP_BACKOFF:g})")
    print("------------------------------------", flush=True)
