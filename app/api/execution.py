"""Execution view API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.core.dependencies import get_filter_data_cache, get_tcms_client, get_view_registry
from app.execution.models import TEST_TYPES
from app.models.requests import ExecutionRequest, FilterChange, SearchRequest, validate_result_filter
from app.models.responses import ErrorResponse, ExecutionViewResponse, FilterDataResponse
from app.services.cache import cache_meta
from app.utils.helpers import run_blocking

router = APIRouter(
    prefix="/api/execution",
    tags=["execution"],
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)


def _check_test_type(test_type: str) -> str:
    if test_type not in TEST_TYPES:
        raise HTTPException(status_code=400, detail=f"test_type must be one of {', '.join(TEST_TYPES)}")
    return test_type


async def _view(test_type: str, run_id: str | None, client, registry):
    """Return the controller for the key once page 0 and the overlay have loaded."""
    controller, _ = registry.get_or_create(client, _check_test_type(test_type), run_id)
    await controller.ensure_loaded()
    return controller


@router.get("/views/{test_type}", response_model=ExecutionViewResponse)
async def get_view(
    test_type: str,
    run_id: str | None = Query(default=None),
    client=Depends(get_tcms_client),
    registry=Depends(get_view_registry),
):
    controller = await _view(test_type, run_id, client, registry)
    return controller.snapshot()


@router.post("/views/{test_type}/filters", response_model=ExecutionViewResponse)
async def change_filter(
    test_type: str,
    body: FilterChange,
    run_id: str | None = Query(default=None),
    client=Depends(get_tcms_client),
    registry=Depends(get_view_registry),
):
    if body.canonical_name() == "result":
        try:
            validate_result_filter(body.value or "all")
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
    controller = await _view(test_type, run_id, client, registry)
    await controller.handle_filter_change(body.name, body.value)
    return controller.snapshot()


@router.delete("/views/{test_type}/filters", response_model=ExecutionViewResponse)
async def clear_filters(
    test_type: str,
    run_id: str | None = Query(default=None),
    client=Depends(get_tcms_client),
    registry=Depends(get_view_registry),
):
    controller = await _view(test_type, run_id, client, registry)
    await controller.clear_filters()
    return controller.snapshot()


@router.post("/views/{test_type}/search", status_code=status.HTTP_202_ACCEPTED)
async def search(
    test_type: str,
    body: SearchRequest,
    run_id: str | None = Query(default=None),
    client=Depends(get_tcms_client),
    registry=Depends(get_view_registry),
):
    controller = await _view(test_type, run_id, client, registry)
    controller.set_search_text(body.text)
    return {"accepted": True, "search_text": controller.search_text, "debounce_seconds": controller.debounce_seconds}


@router.post("/views/{test_type}/load-more", response_model=ExecutionViewResponse)
async def load_more(
    test_type: str,
    run_id: str | None = Query(default=None),
    client=Depends(get_tcms_client),
    registry=Depends(get_view_registry),
):
    controller = await _view(test_type, run_id, client, registry)
    await controller.handle_load_more()
    return controller.snapshot()


@router.post("/views/{test_type}/executions")
async def record_execution(
    test_type: str,
    body: ExecutionRequest,
    run_id: str = Query(...),
    client=Depends(get_tcms_client),
    registry=Depends(get_view_registry),
):
    controller = await _view(test_type, run_id, client, registry)
    record = await controller.record_execution(body.case_id, body.status, body.notes or "")
    return {"execution": record.to_dict()}


@router.get("/filter-data", response_model=FilterDataResponse)
async def filter_data(client=Depends(get_tcms_client), cache=Depends(get_filter_data_cache)):
    """Features, tags and test runs for the filter controls."""
    cache_key = ("filter-data",)
    cached = cache.get(cache_key)
    if cached:
        payload, expires_at = cached
        return {**payload, "meta": cache_meta(True, expires_at)}

    features = await run_blocking(client.get_features)
    tags = await run_blocking(client.get_tags)
    runs = await run_blocking(client.get_test_runs)
    payload = {"features": features or [], "tags": tags or [], "runs": runs or []}
    expires_at = cache.set(cache_key, payload)
    return {**payload, "meta": cache_meta(False, expires_at)}
