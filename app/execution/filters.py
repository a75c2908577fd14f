"""Filter selection state for the execution view."""

from dataclasses import replace
from typing import Any

from app.execution.models import ALL, FilterSet, InvalidViewRequest

# Accepted names -> FilterSet field
_FIELD_NAMES = {
    "feature_id": "feature_id",
    "featureId": "feature_id",
    "priority": "priority",
    "tag_ids": "tag_ids",
    "tagIds": "tag_ids",
    "status": "status",
    "result": "result",
}

# Filters applied by the data store query; changing one refetches page 0
QUERY_FILTERS = frozenset({"feature_id", "priority", "status"})


def normalize_filter_name(name: str) -> str:
    try:
        return _FIELD_NAMES[name]
    except KeyError:
        raise InvalidViewRequest(f"Unknown filter: {name}") from None


def _coerce(field_name: str, value: Any):
    if field_name == "tag_ids":
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        return tuple(str(v) for v in value if v is not None and str(v).strip())
    if value is None or (isinstance(value, str) and not value.strip()):
        return ALL
    return str(value)


class FilterState:
    """Holds the current FilterSet; every change replaces it atomically."""

    def __init__(self, initial: FilterSet | None = None):
        self._value = initial or FilterSet()

    @property
    def value(self) -> FilterSet:
        return self._value

    def set_filter(self, name: str, value: Any) -> str:
        """Replace one field and return its canonical name."""
        field_name = normalize_filter_name(name)
        self._value = replace(self._value, **{field_name: _coerce(field_name, value)})
        return field_name

    def clear_all(self) -> FilterSet:
        self._value = FilterSet()
        return self._value
