"""Domain types for the test execution view."""

import re
from dataclasses import dataclass, field
from typing import Any

PAGE_SIZE = 20

ALL = "all"
NOT_EXECUTED = "not_executed"

TEST_TYPES = ("manual", "automated")
PRIORITIES = ("low", "medium", "high", "critical")
CASE_STATUSES = ("draft", "ready", "deprecated")
EXECUTION_STATUSES = ("pending", "passed", "failed", "blocked", "skipped")
RESULT_FILTERS = (ALL, NOT_EXECUTED) + EXECUTION_STATUSES[1:]


class InvalidViewRequest(ValueError):
    """The caller asked the execution view for something it cannot do."""


def script_name(title: str | None) -> str:
    """Script file name derived from a case title."""
    slug = re.sub(r"\s+", "_", (title or "untitled").strip().lower())
    return f"{slug or 'untitled'}.py"


@dataclass(frozen=True)
class TestCaseSummary:
    """One test case row as shown in the execution view."""

    __test__ = False

    id: str
    title: str
    feature_id: str | None
    feature_name: str
    priority: str
    test_type: str
    status: str
    description: str = ""
    created_at: str | None = None
    script: str | None = None
    is_fallback: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "TestCaseSummary":
        feature = row.get("features") or {}
        test_type = row.get("test_type") or "manual"
        title = row.get("title") or "Untitled Test Case"
        return cls(
            id=str(row["id"]),
            title=title,
            feature_id=row.get("feature_id"),
            feature_name=feature.get("name") if isinstance(feature, dict) and feature.get("name") else "Unknown Feature",
            priority=row.get("priority") or "medium",
            test_type=test_type,
            status=row.get("status") or "draft",
            description=row.get("description") or "",
            created_at=row.get("created_at"),
            script=script_name(row.get("title")) if test_type == "automated" else None,
        )


@dataclass(frozen=True)
class ExecutionRecord:
    """Outcome of one test case within one test run."""

    test_run_id: str
    test_case_id: str
    status: str
    executed_at: str | None = None
    notes: str = ""
    id: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ExecutionRecord":
        return cls(
            test_run_id=str(row.get("test_run_id")),
            test_case_id=str(row["test_case_id"]),
            status=row.get("status") or "pending",
            executed_at=row.get("executed_at"),
            notes=row.get("notes") or "",
            id=str(row["id"]) if row.get("id") is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "test_run_id": self.test_run_id,
            "test_case_id": self.test_case_id,
            "status": self.status,
            "executed_at": self.executed_at,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class FilterSet:
    """Selected filter values; "all" and empty mean no restriction."""

    feature_id: str = ALL
    priority: str = ALL
    tag_ids: tuple[str, ...] = ()
    status: str = ALL
    result: str = ALL

    def to_dict(self) -> dict[str, Any]:
        return {
            "featureId": self.feature_id,
            "priority": self.priority,
            "tagIds": list(self.tag_ids),
            "status": self.status,
            "result": self.result,
        }


@dataclass(frozen=True)
class FetchParams:
    test_type: str
    search_text: str = ""
    feature_id: str = ALL
    priority: str = ALL
    status: str = ALL
    page_index: int = 0

    @classmethod
    def from_filters(cls, test_type: str, search_text: str, filters: FilterSet, page_index: int) -> "FetchParams":
        return cls(
            test_type=test_type,
            search_text=search_text,
            feature_id=filters.feature_id,
            priority=filters.priority,
            status=filters.status,
            page_index=page_index,
        )


@dataclass(frozen=True)
class ProjectedTestCase:
    """A test case annotated with its execution status for the selected run."""

    case: TestCaseSummary
    status: str
    last_executed: str | None = None

    @property
    def id(self) -> str:
        return self.case.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.case.id,
            "title": self.case.title,
            "feature": self.case.feature_name,
            "feature_id": self.case.feature_id,
            "priority": self.case.priority,
            "test_type": self.case.test_type,
            "case_status": self.case.status,
            "status": self.status,
            "last_executed": self.last_executed,
            "description": self.case.description,
            "script": self.case.script,
            "is_fallback": self.case.is_fallback,
        }


@dataclass
class TestCasesState:
    """Snapshot of the page-fetch state for one view."""

    __test__ = False

    test_type: str
    cases: list[TestCaseSummary] = field(default_factory=list)
    phase: str = "idle"
    error: str | None = None
