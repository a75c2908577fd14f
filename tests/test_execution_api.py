"""
Tests for the execution view HTTP endpoints.
"""

import os
from unittest.mock import patch

from fastapi import HTTPException

from app.core.dependencies import get_tcms_client
from tests.test_base import BaseAPITestCase


class TestExecutionViewEndpoints(BaseAPITestCase):
    def test_view_loads_first_page_and_overlay(self):
        response = self.client.get("/api/execution/views/manual", params={"run_id": "run-1"})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["test_cases_state"]["count"], 20)
        self.assertTrue(data["has_more"])
        self.assertFalse(data["is_loading"])
        statuses = {item["id"]: item["status"] for item in data["filtered_test_cases"]}
        self.assertEqual(statuses["tc-25"], "failed")
        self.assertEqual(statuses["tc-24"], "passed")
        self.assertEqual(statuses["tc-10"], "not_executed")
        self.assertIn("X-Correlation-ID", response.headers)

    def test_view_is_reused_between_requests(self):
        self.client.get("/api/execution/views/manual")
        self.client.get("/api/execution/views/manual")
        self.assertEqual(len(self.store.page_calls), 1)

    def test_load_more_appends(self):
        self.client.get("/api/execution/views/manual")
        data = self.client.post("/api/execution/views/manual/load-more").json()
        self.assertEqual(data["test_cases_state"]["count"], 25)
        self.assertFalse(data["has_more"])

    def test_result_filter(self):
        response = self.client.post(
            "/api/execution/views/manual/filters",
            params={"run_id": "run-1"},
            json={"name": "result", "value": "failed"},
        )
        self.assertEqual(response.status_code, 200)
        ids = [item["id"] for item in response.json()["filtered_test_cases"]]
        self.assertEqual(ids, ["tc-25"])

    def test_invalid_result_filter_is_400(self):
        response = self.client.post(
            "/api/execution/views/manual/filters", json={"name": "result", "value": "exploded"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error_code"], "HTTP_400")

    def test_unknown_filter_name_is_400(self):
        response = self.client.post("/api/execution/views/manual/filters", json={"name": "owner", "value": "x"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error_code"], "VALIDATION_ERROR")

    def test_clear_filters(self):
        self.client.post("/api/execution/views/manual/filters", json={"name": "priority", "value": "high"})
        data = self.client.delete("/api/execution/views/manual/filters").json()
        self.assertEqual(data["filters"]["priority"], "all")
        self.assertEqual(data["test_cases_state"]["count"], 20)

    def test_unknown_test_type_is_400(self):
        response = self.client.get("/api/execution/views/exploratory")
        self.assertEqual(response.status_code, 400)

    def test_search_is_accepted(self):
        response = self.client.post("/api/execution/views/manual/search", json={"text": "Case 1"})
        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.json()["search_text"], "Case 1")

    def test_record_execution(self):
        response = self.client.post(
            "/api/execution/views/manual/executions",
            params={"run_id": "run-1"},
            json={"case_id": "tc-3", "status": "Blocked", "notes": "env down"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["execution"]["status"], "blocked")
        view = self.client.get("/api/execution/views/manual", params={"run_id": "run-1"}).json()
        self.assertEqual(view["test_executions"]["tc-3"]["notes"], "env down")

    def test_record_execution_rejects_unknown_status(self):
        response = self.client.post(
            "/api/execution/views/manual/executions",
            params={"run_id": "run-1"},
            json={"case_id": "tc-3", "status": "not_executed"},
        )
        self.assertEqual(response.status_code, 400)

    def test_store_outage_falls_back(self):
        self.store.fail_pages = True
        data = self.client.get("/api/execution/views/automated").json()
        self.assertEqual(data["test_cases_state"]["phase"], "error")
        self.assertTrue(all(item["is_fallback"] for item in data["filtered_test_cases"]))
        self.assertEqual(data["notifications"][0]["variant"], "destructive")

    def test_filter_data_is_cached(self):
        first = self.client.get("/api/execution/filter-data").json()
        self.assertEqual(first["features"], [{"id": "f1", "name": "Login"}])
        self.assertEqual(first["runs"], [{"id": "run-1", "name": "Release 1"}])
        self.assertFalse(first["meta"]["cache"]["hit"])
        second = self.client.get("/api/execution/filter-data").json()
        self.assertTrue(second["meta"]["cache"]["hit"])


class TestHealthEndpoints(BaseAPITestCase):
    def test_healthz(self):
        data = self.client.get("/healthz").json()
        self.assertTrue(data["ok"])
        self.assertIn("views", data["cache"])

    def test_detailed_health_reports_store(self):
        self.store.ping = lambda: 1
        self.store.base_url = "http://store"
        data = self.client.get("/health/detailed").json()
        self.assertTrue(data["ok"])
        self.assertEqual(data["checks"]["data_store"]["status"], "healthy")

    def test_missing_credentials_is_500(self):
        with patch.dict(os.environ, {"TCMS_STORE_URL": "", "TCMS_STORE_KEY": ""}):
            with self.assertRaises(HTTPException) as ctx:
                get_tcms_client()
        self.assertEqual(ctx.exception.status_code, 500)
