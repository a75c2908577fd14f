import pytest

from app.execution.filters import QUERY_FILTERS, FilterState, normalize_filter_name
from app.execution.models import FilterSet, TestCaseSummary, script_name
from tests.test_base import make_case_row


def test_set_filter_replaces_one_field():
    state = FilterState()
    before = state.value
    assert state.set_filter("priority", "high") == "priority"
    assert state.value.priority == "high"
    assert state.value.feature_id == before.feature_id
    assert state.value.result == "all"
    assert before.priority == "all"


def test_camel_case_names_are_accepted():
    state = FilterState()
    assert state.set_filter("featureId", "f1") == "feature_id"
    assert state.set_filter("tagIds", ["t1", "t2"]) == "tag_ids"
    assert state.value.feature_id == "f1"
    assert state.value.tag_ids == ("t1", "t2")
    assert state.value.to_dict()["tagIds"] == ["t1", "t2"]


def test_blank_values_mean_all():
    state = FilterState()
    state.set_filter("status", "ready")
    state.set_filter("status", "")
    assert state.value.status == "all"
    state.set_filter("tag_ids", "t9")
    assert state.value.tag_ids == ("t9",)
    state.set_filter("tag_ids", None)
    assert state.value.tag_ids == ()


def test_clear_all_restores_defaults():
    state = FilterState()
    state.set_filter("priority", "low")
    state.set_filter("tag_ids", ["t1"])
    state.set_filter("result", "failed")
    assert state.clear_all() == FilterSet()
    assert state.value == FilterSet()


def test_unknown_filter_name_is_rejected():
    with pytest.raises(ValueError):
        normalize_filter_name("owner")
    with pytest.raises(ValueError):
        FilterState().set_filter("owner", "me")


def test_only_scalar_filters_are_query_filters():
    assert QUERY_FILTERS == {"feature_id", "priority", "status"}


def test_automated_cases_get_a_script_name():
    case = TestCaseSummary.from_row(make_case_row(1, "automated", title="Login With  SSO"))
    assert case.script == "login_with_sso.py"
    assert TestCaseSummary.from_row(make_case_row(2)).script is None
    assert script_name(None) == "untitled.py"


def test_from_row_defaults_missing_feature():
    row = make_case_row(3)
    row["features"] = None
    case = TestCaseSummary.from_row(row)
    assert case.feature_name == "Unknown Feature"
    assert case.is_fallback is False
