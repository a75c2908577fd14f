"""Static placeholder test cases shown when the data store cannot be read."""

from dataclasses import replace

from app.execution.models import TEST_TYPES, InvalidViewRequest, TestCaseSummary

_PLACEHOLDERS = {
    "manual": [
        ("User Login Flow", "Authentication", "high", "Verify user can log in with valid credentials"),
        ("Password Reset", "Authentication", "medium", "Verify password reset email is delivered"),
    ],
    "automated": [
        ("API Authentication Test", "API", "critical", "Automated check of token issuance"),
        ("Database Connection Test", "Infrastructure", "high", "Automated check of database connectivity"),
    ],
}


def fallback_test_cases(test_type: str) -> list[TestCaseSummary]:
    """Return the placeholder list for a test type; every item has is_fallback=True."""
    if test_type not in TEST_TYPES:
        raise InvalidViewRequest(f"Unknown test type: {test_type}")
    cases = []
    for index, (title, feature, priority, description) in enumerate(_PLACEHOLDERS[test_type], start=1):
        row = {
            "id": f"fallback-{test_type}-{index}",
            "title": title,
            "feature_id": None,
            "features": {"name": feature},
            "priority": priority,
            "test_type": test_type,
            "status": "ready",
            "description": description,
        }
        cases.append(replace(TestCaseSummary.from_row(row), is_fallback=True))
    return cases
