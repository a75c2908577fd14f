import contextlib
import contextvars
import os
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

import requests


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


DEFAULT_HTTP_TIMEOUT = _env_float("TCMS_HTTP_TIMEOUT", 20.0)
try:
    DEFAULT_HTTP_RETRIES = max(1, int(os.getenv("TCMS_HTTP_RETRIES", "3")))
except (TypeError, ValueError):
    DEFAULT_HTTP_RETRIES = 3
DEFAULT_HTTP_BACKOFF = max(0.5, _env_float("TCMS_HTTP_BACKOFF", 1.6))

ANONYMOUS_USER_ID = "00000000-0000-0000-0000-000000000000"

# LIKE wildcards (PostgREST reads "*" as "%"); backslash goes first
_LIKE_SPECIAL_CHARS = ("\\", "*", "%", "_")

# Keeps each in.(...) filter well under common 8 KB URL limits
MEMBERSHIP_CHUNK_SIZE = 100


def env_or_die(key: str) -> str:
    v = os.getenv(key)
    if not v:
        print(f"Missing env var: {key}", file=sys.stderr)
        sys.exit(2)
    return v


# --- Telemetry helpers ---
_telemetry_ctx: contextvars.ContextVar[dict | None] = contextvars.ContextVar(
    "tcms_telemetry", default=None
)


@contextlib.contextmanager
def capture_telemetry():
    """Capture data store call telemetry for the current context."""
    data = {"api_calls": []}
    token = _telemetry_ctx.set(data)
    try:
        yield data
    finally:
        _telemetry_ctx.reset(token)


def record_api_call(
    kind: str, table: str, elapsed_ms: float, status: str, error: str | None = None
):
    telemetry = _telemetry_ctx.get()
    if telemetry is None:
        return
    telemetry.setdefault("api_calls", []).append(
        {
            "kind": kind,
            "table": table,
            "elapsed_ms": round(elapsed_ms, 2),
            "status": status,
            "error": error,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


class DataStoreError(Exception):
    """Raised when the data store answers with an error payload."""

    def __init__(self, table: str, message: str, code: str | None = None):
        super().__init__(f"Data store error for '{table}': {message}")
        self.table = table
        self.message = message
        self.code = code


# --- PostgREST filter helpers ---


def eq(value: Any) -> str:
    return f"eq.{value}"


def in_(values: Iterable[Any]) -> str:
    quoted = []
    for v in values:
        text = str(v)
        if any(ch in text for ch in ',()"'):
            text = '"' + text.replace('"', '\\"') + '"'
        quoted.append(text)
    return f"in.({','.join(quoted)})"


def ilike_contains(text: str) -> str:
    """Case-insensitive substring match; wildcard characters in text match literally."""
    escaped = str(text).strip()
    for ch in _LIKE_SPECIAL_CHARS:
        escaped = escaped.replace(ch, "\\" + ch)
    return f"ilike.*{escaped}*"


def _rest_url(base_url: str, table: str) -> str:
    return f"{base_url}/rest/v1/{table}"


def _raise_for_payload(table: str, data: Any):
    if isinstance(data, dict) and "message" in data and ("code" in data or "hint" in data):
        raise DataStoreError(table, str(data.get("message")), data.get("code"))


def _is_retryable(exc: requests.exceptions.RequestException) -> bool:
    if isinstance(exc, (requests.exceptions.Timeout, requests.exceptions.ConnectionError)):
        return True
    if isinstance(exc, requests.exceptions.HTTPError):
        status_code = exc.response.status_code if exc.response is not None else None
        return status_code == 429 or (status_code is not None and 500 <= status_code < 600)
    return False


def _send(
    kind: str,
    table: str,
    call,
    *,
    max_attempts: int | None,
    backoff: float | None,
):
    """Run one HTTP call with retry/backoff for transient errors."""
    attempts = max(1, max_attempts or DEFAULT_HTTP_RETRIES)
    delay = DEFAULT_HTTP_BACKOFF if backoff is None else backoff
    last_exc: Exception | None = None
    for attempt in range(1, attempts + 1):
        start = time.perf_counter()
        try:
            r = call()
            if 400 <= r.status_code < 500 and r.status_code != 429:
                # PostgREST reports query errors as JSON bodies on 4xx
                try:
                    _raise_for_payload(table, r.json())
                except ValueError:
                    pass
            r.raise_for_status()
            data = r.json() if r.content else []
            _raise_for_payload(table, data)
            record_api_call(kind, table, (time.perf_counter() - start) * 1000.0, "ok")
            return data
        except DataStoreError as exc:
            record_api_call(
                kind, table, (time.perf_counter() - start) * 1000.0, "error", str(exc)
            )
            raise
        except requests.exceptions.RequestException as exc:
            last_exc = exc
            record_api_call(
                kind, table, (time.perf_counter() - start) * 1000.0, "error", str(exc)
            )
            if not _is_retryable(exc) or attempt == attempts:
                raise
            time.sleep(delay)
            delay *= 1.6
    if last_exc:
        raise last_exc


def api_get(
    session: requests.Session,
    base_url: str,
    table: str,
    params: dict[str, Any] | None = None,
    *,
    timeout: float | None = None,
    max_attempts: int | None = None,
    backoff: float | None = None,
) -> list:
    """GET rows from a table with configurable timeout + retry."""
    url = _rest_url(base_url, table)
    data = _send(
        "GET",
        table,
        lambda: session.get(url, params=params or {}, timeout=timeout or DEFAULT_HTTP_TIMEOUT),
        max_attempts=max_attempts,
        backoff=backoff,
    )
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return [data]
    return []


def api_post(
    session: requests.Session,
    base_url: str,
    table: str,
    rows: list[dict[str, Any]] | dict[str, Any],
    *,
    timeout: float | None = None,
    max_attempts: int | None = None,
    backoff: float | None = None,
) -> list:
    """Insert rows and return the stored representation."""
    url = _rest_url(base_url, table)
    data = _send(
        "POST",
        table,
        lambda: session.post(
            url,
            json=rows,
            headers={"Prefer": "return=representation"},
            timeout=timeout or DEFAULT_HTTP_TIMEOUT,
        ),
        max_attempts=max_attempts,
        backoff=backoff,
    )
    return data if isinstance(data, list) else [data]


def api_patch(
    session: requests.Session,
    base_url: str,
    table: str,
    params: dict[str, Any],
    payload: dict[str, Any],
    *,
    timeout: float | None = None,
    max_attempts: int | None = None,
    backoff: float | None = None,
) -> list:
    """Update the rows matched by params."""
    if not params:
        raise ValueError("Refusing to update without a row filter")
    url = _rest_url(base_url, table)
    data = _send(
        "PATCH",
        table,
        lambda: session.patch(
            url,
            params=params,
            json=payload,
            headers={"Prefer": "return=representation"},
            timeout=timeout or DEFAULT_HTTP_TIMEOUT,
        ),
        max_attempts=max_attempts,
        backoff=backoff,
    )
    return data if isinstance(data, list) else [data]


def get_test_cases_page(
    session,
    base_url,
    *,
    test_type: str,
    offset: int,
    limit: int,
    search: str | None = None,
    feature_id: str | None = None,
    priority: str | None = None,
    status: str | None = None,
    timeout: float | None = None,
    max_attempts: int | None = None,
    backoff: float | None = None,
) -> list:
    """Return one page of test cases, newest first."""
    params: dict[str, Any] = {
        "select": "*,features(name)",
        "test_type": eq(test_type),
        "order": "created_at.desc",
        "offset": max(0, offset),
        "limit": max(1, limit),
    }
    if search and search.strip():
        params["title"] = ilike_contains(search)
    if feature_id:
        params["feature_id"] = eq(feature_id)
    if priority:
        params["priority"] = eq(priority)
    if status:
        params["status"] = eq(status)
    return api_get(
        session,
        base_url,
        "test_cases",
        params,
        timeout=timeout,
        max_attempts=max_attempts,
        backoff=backoff,
    )


def get_case_tag_memberships(
    session,
    base_url,
    tag_ids: Iterable[str],
    *,
    case_ids: Iterable[str] | None = None,
    timeout: float | None = None,
    max_attempts: int | None = None,
    backoff: float | None = None,
) -> list:
    """Return (test_case_id, tag_id) rows for the given tags."""
    tag_ids = list(tag_ids)
    if not tag_ids:
        return []
    params: dict[str, Any] = {"select": "test_case_id,tag_id", "tag_id": in_(tag_ids)}
    if case_ids is None:
        return api_get(
            session,
            base_url,
            "test_case_tags",
            params,
            timeout=timeout,
            max_attempts=max_attempts,
            backoff=backoff,
        )

    case_ids = list(dict.fromkeys(case_ids))
    rows: list = []
    for start in range(0, len(case_ids), MEMBERSHIP_CHUNK_SIZE):
        chunk = case_ids[start : start + MEMBERSHIP_CHUNK_SIZE]
        rows.extend(
            api_get(
                session,
                base_url,
                "test_case_tags",
                {**params, "test_case_id": in_(chunk)},
                timeout=timeout,
                max_attempts=max_attempts,
                backoff=backoff,
            )
        )
    return rows


def get_executions_for_run(
    session,
    base_url,
    run_id: str,
    *,
    timeout: float | None = None,
    max_attempts: int | None = None,
    backoff: float | None = None,
) -> list:
    return api_get(
        session,
        base_url,
        "test_executions",
        {"select": "*", "test_run_id": eq(run_id)},
        timeout=timeout,
        max_attempts=max_attempts,
        backoff=backoff,
    )


def get_test_run(
    session,
    base_url,
    run_id: str,
    *,
    timeout: float | None = None,
    max_attempts: int | None = None,
    backoff: float | None = None,
) -> dict | None:
    rows = api_get(
        session,
        base_url,
        "test_runs",
        {"select": "*", "id": eq(run_id), "limit": 1},
        timeout=timeout,
        max_attempts=max_attempts,
        backoff=backoff,
    )
    return rows[0] if rows else None


def ensure_test_run_has_executions(
    session,
    base_url,
    run_id: str,
    *,
    user_id: str | None = None,
    timeout: float | None = None,
    max_attempts: int | None = None,
    backoff: float | None = None,
) -> int:
    """Insert a pending execution per test case when the run has none.

    Returns the number of placeholder rows inserted; 0 when the run already
    had executions or no test cases exist.
    """
    existing = api_get(
        session,
        base_url,
        "test_executions",
        {"select": "id", "test_run_id": eq(run_id), "limit": 1},
        timeout=timeout,
        max_attempts=max_attempts,
        backoff=backoff,
    )
    if existing:
        return 0

    cases = api_get(
        session,
        base_url,
        "test_cases",
        {"select": "id"},
        timeout=timeout,
        max_attempts=max_attempts,
        backoff=backoff,
    )
    if not cases:
        return 0

    executed_by = user_id or ANONYMOUS_USER_ID
    rows = [
        {
            "test_run_id": run_id,
            "test_case_id": case["id"],
            "status": "pending",
            "executed_by": executed_by,
        }
        for case in cases
        if case.get("id") is not None
    ]
    api_post(
        session,
        base_url,
        "test_executions",
        rows,
        timeout=timeout,
        max_attempts=max_attempts,
        backoff=backoff,
    )
    return len(rows)


def get_lookup_list(
    session,
    base_url,
    table: str,
    *,
    order: str = "name",
    timeout: float | None = None,
    max_attempts: int | None = None,
    backoff: float | None = None,
) -> list:
    """Return all rows of a small lookup table (features, tags, runs)."""
    return api_get(
        session,
        base_url,
        table,
        {"select": "*", "order": order},
        timeout=timeout,
        max_attempts=max_attempts,
        backoff=backoff,
    )


@dataclass(slots=True)
class TCMSClient:
    """Data store client with shared timeout/retry config."""

    base_url: str
    api_key: str
    access_token: str | None = None
    user_id: str | None = None
    timeout: float = DEFAULT_HTTP_TIMEOUT
    max_attempts: int = DEFAULT_HTTP_RETRIES
    backoff: float = DEFAULT_HTTP_BACKOFF

    def make_session(self) -> requests.Session:
        sess = requests.Session()
        sess.headers.update(
            {
                "apikey": self.api_key,
                "Authorization": f"Bearer {self.access_token or self.api_key}",
                "Accept": "application/json",
            }
        )
        return sess

    def _opts(self) -> dict[str, Any]:
        return {
            "timeout": self.timeout,
            "max_attempts": self.max_attempts,
            "backoff": self.backoff,
        }

    def get_test_cases_page(
        self,
        test_type: str,
        offset: int,
        limit: int,
        search: str | None = None,
        feature_id: str | None = None,
        priority: str | None = None,
        status: str | None = None,
    ):
        with self.make_session() as session:
            return get_test_cases_page(
                session,
                self.base_url,
                test_type=test_type,
                offset=offset,
                limit=limit,
                search=search,
                feature_id=feature_id,
                priority=priority,
                status=status,
                **self._opts(),
            )

    def get_case_tag_memberships(self, tag_ids, case_ids=None):
        with self.make_session() as session:
            return get_case_tag_memberships(
                session, self.base_url, tag_ids, case_ids=case_ids, **self._opts()
            )

    def get_executions_for_run(self, run_id: str):
        with self.make_session() as session:
            return get_executions_for_run(session, self.base_url, run_id, **self._opts())

    def get_test_run(self, run_id: str):
        with self.make_session() as session:
            return get_test_run(session, self.base_url, run_id, **self._opts())

    def ensure_test_run_has_executions(self, run_id: str):
        with self.make_session() as session:
            return ensure_test_run_has_executions(
                session, self.base_url, run_id, user_id=self.user_id, **self._opts()
            )

    def get_features(self):
        with self.make_session() as session:
            return get_lookup_list(session, self.base_url, "features", **self._opts())

    def get_tags(self):
        with self.make_session() as session:
            return get_lookup_list(session, self.base_url, "tags", **self._opts())

    def get_test_runs(self):
        with self.make_session() as session:
            return get_lookup_list(
                session, self.base_url, "test_runs", order="created_at.desc", **self._opts()
            )

    # Write operations
    def create_test_execution(self, payload: dict[str, Any]):
        body = {
            "test_run_id": payload.get("test_run_id"),
            "test_case_id": payload.get("test_case_id"),
            "status": payload.get("status") or "pending",
            "executed_by": payload.get("executed_by") or self.user_id or ANONYMOUS_USER_ID,
            "executed_at": payload.get("executed_at")
            or datetime.now(timezone.utc).isoformat(),
            "duration": payload.get("duration") or 0,
            "notes": payload.get("notes") or "",
        }
        with self.make_session() as session:
            rows = api_post(session, self.base_url, "test_executions", body, **self._opts())
        return rows[0] if rows else body

    def update_test_execution(self, execution_id: str, updates: dict[str, Any]):
        with self.make_session() as session:
            rows = api_patch(
                session,
                self.base_url,
                "test_executions",
                {"id": eq(execution_id)},
                updates,
                **self._opts(),
            )
        return rows[0] if rows else None

    def ping(self) -> int:
        """Cheap connectivity check; returns the number of rows read (0 or 1)."""
        with self.make_session() as session:
            rows = api_get(
                session,
                self.base_url,
                "test_runs",
                {"select": "id", "limit": 1},
                timeout=self.timeout,
                max_attempts=1,
                backoff=self.backoff,
            )
        return len(rows)
