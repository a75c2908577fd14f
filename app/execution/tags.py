"""Narrows fetched test cases to the selected tags."""

import sys
from typing import AbstractSet, Iterable

import requests

from app.utils.helpers import run_blocking
from tcms_client import DataStoreError


class TagLookupError(Exception):
    """Raised when tag memberships could not be read."""


class TagMembershipResolver:
    def __init__(self, client):
        self.client = client

    async def lookup(self, tag_ids: Iterable[str], candidate_ids: Iterable[str]) -> set[str]:
        """Return the candidate ids that belong to at least one tag."""
        candidates = list(candidate_ids)
        try:
            rows = await run_blocking(
                self.client.get_case_tag_memberships, sorted(set(tag_ids)), candidates
            )
        except (requests.exceptions.RequestException, DataStoreError, ConnectionError) as exc:
            raise TagLookupError(str(exc)) from exc
        members = {str(row.get("test_case_id")) for row in rows or [] if row.get("test_case_id") is not None}
        return members & set(candidates)

    async def resolve(self, tag_ids: AbstractSet[str], candidate_ids: AbstractSet[str]) -> set[str]:
        if not tag_ids:
            return set(candidate_ids)
        if not candidate_ids:
            return set()
        try:
            return await self.lookup(tag_ids, candidate_ids)
        except TagLookupError as exc:
            print(f"Warning: tag lookup failed, hiding tagged results: {exc}", file=sys.stderr)
            return set()
