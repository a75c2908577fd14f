"""Request models for API endpoints."""

from typing import Any

from pydantic import BaseModel, field_validator

from app.execution.filters import normalize_filter_name
from app.execution.models import EXECUTION_STATUSES, RESULT_FILTERS


class FilterChange(BaseModel):
    name: str
    value: Any = None

    @field_validator("name")
    @classmethod
    def _known_filter(cls, value: str) -> str:
        normalize_filter_name(value)
        return value

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, value):
        if isinstance(value, tuple):
            return list(value)
        return value

    def canonical_name(self) -> str:
        return normalize_filter_name(self.name)


class SearchRequest(BaseModel):
    text: str = ""

    @field_validator("text", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value


class ExecutionRequest(BaseModel):
    case_id: str
    status: str
    notes: str | None = None

    @field_validator("case_id")
    @classmethod
    def _case_id_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("case_id is required")
        return value

    @field_validator("status")
    @classmethod
    def _known_status(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in EXECUTION_STATUSES:
            raise ValueError(f"status must be one of {', '.join(EXECUTION_STATUSES)}")
        return value


def validate_result_filter(value: Any) -> None:
    if value not in RESULT_FILTERS:
        raise ValueError(f"result must be one of {', '.join(RESULT_FILTERS)}")
