"""Client-side state for the test execution view.

One controller owns the filters, the accumulated test case pages, the tag
narrowing and the execution overlay for a single (test_type, test_run)
pairing. Page fetches and overlay loads are tagged with monotonically
increasing request ids; a response is applied only when its id is still the
latest one issued, so a slow response for an old filter set can never
overwrite a newer one.
"""

import asyncio
import sys
from typing import Any

import requests

from app.execution.fallback import fallback_test_cases
from app.execution.filters import QUERY_FILTERS, FilterState
from app.execution.models import (
    EXECUTION_STATUSES,
    PAGE_SIZE,
    TEST_TYPES,
    ExecutionRecord,
    FetchParams,
    FilterSet,
    InvalidViewRequest,
    ProjectedTestCase,
    TestCasesState,
    TestCaseSummary,
)
from app.execution.notifications import Notifier
from app.execution.overlay import DEFAULT_TIMEOUT_SECONDS, ExecutionLoadError, ExecutionOverlay
from app.execution.page_fetcher import FetchError, PageFetcher
from app.execution.projector import narrow_to, project
from app.execution.state import FETCH_TRANSITIONS, OVERLAY_TRANSITIONS, FetchPhase, OverlayPhase, StateMachine
from app.execution.tags import TagMembershipResolver
from app.utils.helpers import run_blocking, utc_now_iso
from tcms_client import DataStoreError

DEFAULT_DEBOUNCE_SECONDS = 0.3


class TestExecutionViewController:
    __test__ = False

    def __init__(
        self,
        client,
        test_type: str,
        test_run_id: str | None = None,
        *,
        page_size: int = PAGE_SIZE,
        notifier: Notifier | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        executions_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if test_type not in TEST_TYPES:
            raise InvalidViewRequest(f"Unknown test type: {test_type}")
        self.client = client
        self.test_type = test_type
        self.test_run_id = test_run_id or None
        self.debounce_seconds = max(0.0, debounce_seconds)
        self.notifier = notifier or Notifier()

        self.page_fetcher = PageFetcher(client, page_size=page_size)
        self.tag_resolver = TagMembershipResolver(client)
        self.overlay = ExecutionOverlay(client, timeout_seconds=executions_timeout)
        self.filter_state = FilterState()

        self.search_text = ""
        self.features: list[dict] = []
        self.tags: list[dict] = []

        self._pages: list[TestCaseSummary] = []
        self._page_index = 0
        self._has_more = False
        self._fetch_error: str | None = None
        self._tag_matches: set[str] | None = None
        self._executions: dict[str, ExecutionRecord] = {}

        self._fetch_state = StateMachine(FETCH_TRANSITIONS, FetchPhase.IDLE)
        self._overlay_state = StateMachine(OVERLAY_TRANSITIONS, OverlayPhase.EMPTY)
        self._request_seq = 0
        self._tag_seq = 0
        self._overlay_seq = 0
        self._search_task: asyncio.Task | None = None
        self._initial_load: asyncio.Task | None = None

    # --- caller-facing state ---

    @property
    def filters(self) -> FilterSet:
        return self.filter_state.value

    @property
    def is_loading(self) -> bool:
        return self._fetch_state.state == FetchPhase.LOADING

    @property
    def loading_executions(self) -> bool:
        return self._overlay_state.state == OverlayPhase.LOADING

    @property
    def fetch_phase(self) -> FetchPhase:
        return self._fetch_state.state

    @property
    def overlay_phase(self) -> OverlayPhase:
        return self._overlay_state.state

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def test_cases_state(self) -> TestCasesState:
        return TestCasesState(
            test_type=self.test_type,
            cases=list(self._pages),
            phase=self._fetch_state.state.value,
            error=self._fetch_error,
        )

    @property
    def test_executions(self) -> dict[str, ExecutionRecord]:
        return dict(self._executions)

    @property
    def filtered_test_cases(self) -> list[ProjectedTestCase]:
        cases = narrow_to(self._pages, self._tag_matches if self.filters.tag_ids else None)
        return project(cases, self._executions, self.filters.result)

    async def ensure_loaded(self):
        """Load page 0 and the overlay once; concurrent first callers share the same load."""
        task = self._initial_load
        if task is None or (not task.done() and task.get_loop() is not asyncio.get_running_loop()):
            task = self._initial_load = asyncio.create_task(self._load_initial())
        if not task.done():
            await asyncio.shield(task)

    async def _load_initial(self):
        await self.load_test_cases(reset=True)
        await self.load_test_executions(self.test_run_id)

    # --- page loading ---

    async def _match_tags(self, cases: list[TestCaseSummary]) -> set[str] | None:
        # Re-resolve if the tag selection changed while the lookup was running
        while True:
            tag_ids = self.filters.tag_ids
            if not tag_ids:
                return None
            matches = await self.tag_resolver.resolve(set(tag_ids), {case.id for case in cases})
            if self.filters.tag_ids == tag_ids:
                return matches

    async def load_test_cases(self, reset: bool = True) -> bool:
        """Fetch page 0 (reset) or the next page; returns False for a discarded stale response."""
        page_index = 0 if reset else self._page_index + 1
        self._request_seq += 1
        seq = self._request_seq
        params = FetchParams.from_filters(self.test_type, self.search_text, self.filters, page_index)
        self._fetch_state.transition(FetchPhase.LOADING)

        try:
            page = await self.page_fetcher.fetch(params)
        except FetchError as exc:
            if seq != self._request_seq:
                return False
            print(f"[execution-view] {exc}", file=sys.stderr, flush=True)
            cases = fallback_test_cases(self.test_type)
            matches = await self._match_tags(cases)
            if seq != self._request_seq:
                return False
            self._apply_page(cases, 0, False, matches)
            self._fetch_error = str(exc)
            self._fetch_state.transition(FetchPhase.ERROR)
            self.notifier.notify(
                "Error loading test cases",
                "Showing sample data while the data store is unavailable.",
                variant="destructive",
            )
            return True

        if seq != self._request_seq:
            return False
        cases = page if reset else self._pages + page
        matches = await self._match_tags(cases)
        if seq != self._request_seq:
            return False
        self._apply_page(cases, page_index, self.page_fetcher.has_more(page), matches)
        self._fetch_error = None
        self._fetch_state.transition(FetchPhase.LOADED)
        return True

    def _apply_page(self, cases, page_index, has_more, matches):
        self._pages = cases
        self._page_index = page_index
        self._has_more = has_more
        self._tag_matches = matches
        # Any narrowing still in flight was computed for the previous pages
        self._tag_seq += 1

    async def handle_load_more(self) -> bool:
        if self.is_loading or not self._has_more:
            return False
        return await self.load_test_cases(reset=False)

    async def _renarrow(self):
        self._tag_seq += 1
        seq = self._tag_seq
        pages = self._pages
        matches = await self._match_tags(pages)
        if seq == self._tag_seq and pages is self._pages:
            self._tag_matches = matches

    async def handle_filter_change(self, name: str, value: Any) -> FilterSet:
        field_name = self.filter_state.set_filter(name, value)
        if field_name in QUERY_FILTERS:
            await self.load_test_cases(reset=True)
        elif field_name == "tag_ids":
            await self._renarrow()
        return self.filters

    async def clear_filters(self) -> FilterSet:
        self.filter_state.clear_all()
        await self.load_test_cases(reset=True)
        return self.filters

    def set_search_text(self, text: str) -> asyncio.Task:
        """Schedule a page-0 reload after the debounce window; earlier pending reloads are dropped."""
        self.search_text = text or ""
        pending = self._search_task
        if pending is not None and not pending.done() and pending.get_loop() is asyncio.get_running_loop():
            pending.cancel()
        self._search_task = asyncio.create_task(self._debounced_search())
        return self._search_task

    async def _debounced_search(self):
        await asyncio.sleep(self.debounce_seconds)
        await self.load_test_cases(reset=True)

    async def flush_search(self):
        task = self._search_task
        if task is not None and not task.done():
            try:
                await task
            except asyncio.CancelledError:
                pass

    # --- executions ---

    async def load_test_executions(self, run_id: str | None) -> dict[str, ExecutionRecord]:
        self._overlay_seq += 1
        seq = self._overlay_seq
        self.test_run_id = run_id or None
        self._executions = {}
        if not run_id:
            self._overlay_state.transition(OverlayPhase.EMPTY)
            return {}

        self._overlay_state.transition(OverlayPhase.LOADING)
        try:
            overlay = await self.overlay.load(run_id)
        except ExecutionLoadError as exc:
            if seq != self._overlay_seq:
                return self.test_executions
            print(f"[execution-view] {exc}", file=sys.stderr, flush=True)
            self._overlay_state.transition(OverlayPhase.FAILED)
            self.notifier.notify("Error loading test executions", str(exc), variant="destructive")
            return {}

        if seq != self._overlay_seq:
            return self.test_executions
        self._executions = overlay
        self._overlay_state.transition(OverlayPhase.READY)
        return self.test_executions

    def update_execution_locally(self, case_id: str, status: str, notes: str = "") -> ExecutionRecord:
        if not self.test_run_id:
            raise InvalidViewRequest("No test run selected")
        if status not in EXECUTION_STATUSES:
            raise InvalidViewRequest(f"Unknown execution status: {status}")
        previous = self._executions.get(case_id)
        record = ExecutionRecord(
            test_run_id=self.test_run_id,
            test_case_id=case_id,
            status=status,
            executed_at=utc_now_iso(),
            notes=notes or "",
            id=previous.id if previous else None,
        )
        self._executions[case_id] = record
        return record

    async def record_execution(self, case_id: str, status: str, notes: str = "") -> ExecutionRecord:
        if not self.test_run_id:
            raise InvalidViewRequest("Select a test run before recording an execution")
        if status not in EXECUTION_STATUSES:
            raise InvalidViewRequest(f"Unknown execution status: {status}")
        payload = {
            "test_run_id": self.test_run_id,
            "test_case_id": case_id,
            "status": status,
            "notes": notes or "",
        }
        previous = self._executions.get(case_id)
        try:
            if previous is not None and previous.id:
                # The run already has a row for this case; overwrite it in place
                updates = {"status": status, "notes": payload["notes"], "executed_at": utc_now_iso()}
                row = await run_blocking(self.client.update_test_execution, previous.id, updates)
                payload.update(updates, id=previous.id)
            else:
                row = await run_blocking(self.client.create_test_execution, payload)
        except (requests.exceptions.RequestException, DataStoreError) as exc:
            self.notifier.notify("Error saving execution", str(exc), variant="destructive")
            raise
        record = ExecutionRecord.from_row({**payload, **(row or {})})
        self._executions[case_id] = record
        self.notifier.notify("Execution saved", f"Test case marked as {status}")
        return record

    # --- lookups ---

    async def load_filter_data(self) -> dict[str, list]:
        try:
            self.features = await run_blocking(self.client.get_features) or []
            self.tags = await run_blocking(self.client.get_tags) or []
        except (requests.exceptions.RequestException, DataStoreError) as exc:
            print(f"Warning: could not load filter data: {exc}", file=sys.stderr)
        return {"features": self.features, "tags": self.tags}

    def snapshot(self) -> dict[str, Any]:
        state = self.test_cases_state
        return {
            "test_type": self.test_type,
            "test_run_id": self.test_run_id,
            "search_text": self.search_text,
            "filters": self.filters.to_dict(),
            "test_cases_state": {
                "phase": state.phase,
                "error": state.error,
                "count": len(state.cases),
            },
            "is_loading": self.is_loading,
            "loading_executions": self.loading_executions,
            "has_more": self.has_more,
            "test_executions": {case_id: rec.to_dict() for case_id, rec in self._executions.items()},
            "filtered_test_cases": [item.to_dict() for item in self.filtered_test_cases],
            "notifications": [n.to_dict() for n in self.notifier.history()],
        }
