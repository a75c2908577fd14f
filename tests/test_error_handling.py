"""
Unit tests for structured error responses at the HTTP edge.
"""

import requests
from starlette.requests import Request

from app.execution.models import InvalidViewRequest
from app.services.error_handler import ErrorHandler
from tcms_client import DataStoreError
from tests.test_base import BaseAPITestCase


class TestStoreFailureHandling(BaseAPITestCase):
    def _record(self):
        return self.client.post(
            "/api/execution/views/manual/executions",
            params={"run_id": "run-1"},
            json={"case_id": "tc-1", "status": "passed"},
        )

    def test_data_store_error_is_502(self):
        def fail(payload):
            raise DataStoreError("test_executions", "permission denied", "42501")

        self.store.create_test_execution = fail
        response = self._record()
        self.assertEqual(response.status_code, 502)
        body = response.json()
        self.assertEqual(body["error_code"], "DATA_STORE_ERROR")
        self.assertEqual(body["table"], "test_executions")
        self.assertIn("correlation_id", body)

    def test_connection_error_is_502(self):
        def fail(payload):
            raise requests.exceptions.ConnectionError("Connection failed")

        self.store.create_test_execution = fail
        response = self._record()
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["error_code"], "EXTERNAL_API_ERROR")

    def test_failed_save_is_notified(self):
        def fail(payload):
            raise requests.exceptions.Timeout("Request timed out")

        self.store.create_test_execution = fail
        self._record()
        view = self.client.get("/api/execution/views/manual", params={"run_id": "run-1"}).json()
        self.assertEqual(view["notifications"][-1]["title"], "Error saving execution")
        self.assertNotIn("tc-1", view["test_executions"])

    def test_unexpected_error_is_500(self):
        def boom():
            raise RuntimeError("unexpected")

        self.store.get_features = boom
        response = self.client.get("/api/execution/filter-data")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error_code"], "INTERNAL_SERVER_ERROR")
        self.assertIn("X-Correlation-ID", response.headers)

    def test_correlation_id_is_echoed(self):
        response = self.client.get("/healthz", headers={"X-Correlation-ID": "abc-123"})
        self.assertEqual(response.headers["X-Correlation-ID"], "abc-123")

    def test_unknown_route_is_structured_404(self):
        response = self.client.get("/api/execution/nowhere")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error_code"], "HTTP_404")

    def test_plain_value_error_from_store_is_500(self):
        def bad_row():
            raise ValueError("could not parse row")

        self.store.get_features = bad_row
        response = self.client.get("/api/execution/filter-data")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error_code"], "INTERNAL_SERVER_ERROR")

    def test_unknown_filter_name_is_400(self):
        response = self.client.post("/api/execution/views/manual/filters", json={"name": "colour", "value": "red"})
        self.assertEqual(response.status_code, 400)

    def test_filter_data_outage_is_502_and_not_cached(self):
        features = self.store.get_features

        def down():
            raise requests.exceptions.ConnectionError("store down")

        self.store.get_features = down
        response = self.client.get("/api/execution/filter-data")
        self.assertEqual(response.status_code, 502)

        self.store.get_features = features
        response = self.client.get("/api/execution/filter-data")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["features"], [{"id": "f1", "name": "Login"}])
        self.assertFalse(body["meta"]["cache"]["hit"])


class TestErrorHandlerMapping:
    def _request(self):
        return Request({"type": "http", "method": "GET", "path": "/x", "headers": [], "query_string": b""})

    def test_invalid_view_request_is_400(self):
        response = ErrorHandler.handle_exception(InvalidViewRequest("No test run selected"), self._request())
        assert response.status_code == 400

    def test_plain_value_error_is_500(self):
        response = ErrorHandler.handle_exception(ValueError("bad"), self._request())
        assert response.status_code == 500
