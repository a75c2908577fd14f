"""Fetches pages of test cases for the execution view."""

import requests

from app.execution.models import ALL, PAGE_SIZE, FetchParams, TestCaseSummary
from app.utils.helpers import run_blocking
from tcms_client import DataStoreError


class FetchError(Exception):
    """Raised when a page of test cases could not be fetched."""

    def __init__(self, params: FetchParams, cause: Exception):
        super().__init__(f"Failed to load page {params.page_index} of {params.test_type} test cases: {cause}")
        self.params = params
        self.cause = cause


def _scalar(value: str) -> str | None:
    return None if not value or value == ALL else value


class PageFetcher:
    """Queries one page of test cases matching the active type, search and filters."""

    def __init__(self, client, page_size: int = PAGE_SIZE):
        self.client = client
        self.page_size = max(1, page_size)

    def has_more(self, page: list) -> bool:
        # A short page is the only end-of-data signal
        return len(page) == self.page_size

    async def fetch(self, params: FetchParams) -> list[TestCaseSummary]:
        offset = max(0, params.page_index) * self.page_size
        try:
            rows = await run_blocking(
                self.client.get_test_cases_page,
                params.test_type,
                offset,
                self.page_size,
                search=params.search_text.strip() or None,
                feature_id=_scalar(params.feature_id),
                priority=_scalar(params.priority),
                status=_scalar(params.status),
            )
        except (requests.exceptions.RequestException, DataStoreError, ConnectionError) as exc:
            raise FetchError(params, exc) from exc

        try:
            return [TestCaseSummary.from_row(row) for row in rows or []]
        except (KeyError, TypeError, AttributeError) as exc:
            raise FetchError(params, exc) from exc
