"""Execution status overlay for the selected test run."""

import asyncio
import sys
from typing import Iterable

import requests

from app.execution.models import ExecutionRecord
from app.utils.helpers import run_blocking
from tcms_client import DataStoreError

DEFAULT_TIMEOUT_SECONDS = 10.0


class ExecutionLoadError(Exception):
    """Raised when the executions of a run could not be loaded."""

    def __init__(self, run_id: str, message: str):
        super().__init__(f"Failed to load executions for run {run_id}: {message}")
        self.run_id = run_id


def build_overlay(records: Iterable[ExecutionRecord]) -> dict[str, ExecutionRecord]:
    """Map case id -> record, keeping the most recently executed row per case.

    Rows without a timestamp sort first; ties keep the store's order.
    """
    ordered = sorted(records, key=lambda r: (r.executed_at is not None, r.executed_at or ""))
    overlay: dict[str, ExecutionRecord] = {}
    for record in ordered:
        overlay[record.test_case_id] = record
    return overlay


class ExecutionOverlay:
    def __init__(self, client, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.client = client
        self.timeout_seconds = timeout_seconds

    async def _read(self, run_id: str) -> list:
        return await run_blocking(self.client.get_executions_for_run, run_id) or []

    async def _read_with_repair(self, run_id: str) -> list:
        rows = await self._read(run_id)
        if rows:
            return rows
        run = await run_blocking(self.client.get_test_run, run_id)
        if run is None:
            return []
        inserted = await run_blocking(self.client.ensure_test_run_has_executions, run_id)
        print(f"[execution-view] run {run_id} had no executions; created {inserted} placeholders", flush=True)
        return await self._read(run_id)

    async def load(self, run_id: str | None) -> dict[str, ExecutionRecord]:
        if not run_id:
            return {}
        try:
            rows = await asyncio.wait_for(self._read_with_repair(run_id), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise ExecutionLoadError(run_id, f"timed out after {self.timeout_seconds:g}s") from None
        except (requests.exceptions.RequestException, DataStoreError, ConnectionError) as exc:
            raise ExecutionLoadError(run_id, str(exc)) from exc

        records = []
        for row in rows:
            try:
                records.append(ExecutionRecord.from_row(row))
            except (KeyError, TypeError) as exc:
                print(f"Warning: skipping malformed execution row in run {run_id}: {exc}", file=sys.stderr)
        return build_overlay(records)
