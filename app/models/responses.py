"""Response models for API endpoints."""

from typing import Any

from pydantic import BaseModel


class TestCasesStateModel(BaseModel):
    phase: str
    error: str | None = None
    count: int


class ExecutionViewResponse(BaseModel):
    """Snapshot of one execution view."""

    test_type: str
    test_run_id: str | None = None
    search_text: str = ""
    filters: dict[str, Any]
    test_cases_state: TestCasesStateModel
    is_loading: bool
    loading_executions: bool
    has_more: bool
    test_executions: dict[str, dict[str, Any]]
    filtered_test_cases: list[dict[str, Any]]
    notifications: list[dict[str, Any]]


class FilterDataResponse(BaseModel):
    features: list[dict[str, Any]]
    tags: list[dict[str, Any]]
    runs: list[dict[str, Any]] = []
    meta: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: Any
    error_code: str | None = None
    timestamp: str | None = None
    correlation_id: str | None = None
