"""Combines fetched test cases with the execution overlay.

Every function here is pure: the output depends only on the arguments and
preserves the order of the input cases.
"""

from typing import Iterable, Mapping

from app.execution.models import ALL, NOT_EXECUTED, ExecutionRecord, ProjectedTestCase, TestCaseSummary


def annotate(
    cases: Iterable[TestCaseSummary], overlay: Mapping[str, ExecutionRecord]
) -> list[ProjectedTestCase]:
    annotated = []
    for case in cases:
        record = overlay.get(case.id)
        if record is None:
            annotated.append(ProjectedTestCase(case=case, status=NOT_EXECUTED))
        else:
            annotated.append(ProjectedTestCase(case=case, status=record.status, last_executed=record.executed_at))
    return annotated


def _matches(case_id: str, overlay: Mapping[str, ExecutionRecord], result_filter: str) -> bool:
    record = overlay.get(case_id)
    if result_filter == NOT_EXECUTED:
        # "pending" rows are placeholders, so they count as not executed here
        return record is None or record.status == "pending"
    return record is not None and record.status == result_filter


def project(
    pages: Iterable[TestCaseSummary],
    overlay: Mapping[str, ExecutionRecord],
    result_filter: str = ALL,
) -> list[ProjectedTestCase]:
    """Annotate cases with their execution status and apply the result filter."""
    annotated = annotate(pages, overlay)
    if not result_filter or result_filter == ALL:
        return annotated
    return [item for item in annotated if _matches(item.id, overlay, result_filter)]


def narrow_to(cases: Iterable[TestCaseSummary], allowed_ids: set[str] | None) -> list[TestCaseSummary]:
    """Keep cases whose id is allowed; None means no restriction."""
    if allowed_ids is None:
        return list(cases)
    return [case for case in cases if case.id in allowed_ids]
