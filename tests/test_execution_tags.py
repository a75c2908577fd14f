import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from app.execution.tags import TagMembershipResolver
from tests.test_base import FakeStore

CASE_IDS = st.sets(st.text(alphabet="abcdef0123456789", min_size=1, max_size=6), max_size=15)


class TestTagResolution:
    @settings(max_examples=50, deadline=None)
    @given(candidates=CASE_IDS)
    def test_no_tags_returns_candidates_unchanged(self, candidates):
        store = FakeStore()
        resolver = TagMembershipResolver(store)
        assert asyncio.run(resolver.resolve(set(), candidates)) == candidates
        assert store.membership_calls == []

    @settings(max_examples=50, deadline=None)
    @given(candidates=CASE_IDS, tags=st.sets(st.sampled_from(["t1", "t2", "t3"]), min_size=1))
    def test_unmatched_tags_suppress_everything(self, candidates, tags):
        resolver = TagMembershipResolver(FakeStore(memberships=[]))
        assert asyncio.run(resolver.resolve(tags, candidates)) == set()


def test_keeps_candidates_in_any_selected_tag():
    store = FakeStore(
        memberships=[
            {"test_case_id": "a", "tag_id": "t1"},
            {"test_case_id": "b", "tag_id": "t2"},
            {"test_case_id": "c", "tag_id": "t3"},
            {"test_case_id": "z", "tag_id": "t1"},
        ]
    )
    resolver = TagMembershipResolver(store)
    result = asyncio.run(resolver.resolve({"t1", "t2"}, {"a", "b", "c"}))
    # "z" is tagged but was never loaded, so it must not appear
    assert result == {"a", "b"}


def test_lookup_failure_resolves_to_empty():
    store = FakeStore(memberships=[{"test_case_id": "a", "tag_id": "t1"}])
    store.fail_memberships = True
    resolver = TagMembershipResolver(store)
    assert asyncio.run(resolver.resolve({"t1"}, {"a"})) == set()


def test_no_candidates_skips_the_query():
    store = FakeStore()
    resolver = TagMembershipResolver(store)
    assert asyncio.run(resolver.resolve({"t1"}, set())) == set()
    assert store.membership_calls == []
