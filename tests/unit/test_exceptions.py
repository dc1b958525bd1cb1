"""Tests for the servicegraph error hierarchy and its FastAPI handler."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from servicegraph.api.exceptions import register_exception_handlers
from servicegraph.errors import (
    BackendQueryError,
    InvalidGraphError,
    MetricParseError,
    ServiceGraphError,
    TransportError,
    ValidationError,
)


class TestProblemDetail:
    def test_base_defaults(self):
        err = ServiceGraphError()
        assert err.detail == "Internal Server Error"
        assert err.to_problem_detail() == {
            "type": "about:blank",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "Internal Server Error",
        }

    def test_instance_and_extra_included(self):
        err = ValidationError("bad window", instance="/graph", extra={"time_horizon": "x"})
        body = err.to_problem_detail()
        assert body["status"] == 422
        assert body["instance"] == "/graph"
        assert body["time_horizon"] == "x"

    def test_invalid_graph_names_node(self):
        err = InvalidGraphError("C")
        assert err.node == "C"
        assert err.status_code == 500
        assert err.to_problem_detail()["node"] == "C"

    def test_metric_parse_error_fields(self):
        err = MetricParseError("reqs/sec", "abc")
        assert (err.metric, err.raw_value) == ("reqs/sec", "abc")
        assert "abc" in str(err)

    @pytest.mark.parametrize(
        ("cls", "status"),
        [(BackendQueryError, 502), (TransportError, 500), (ValidationError, 422)],
    )
    def test_status_codes(self, cls, status):
        assert cls("x").status_code == status
        assert issubclass(cls, ServiceGraphError)


class TestHandler:
    @pytest.fixture()
    def client(self):
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/boom")
        async def boom() -> None:
            raise BackendQueryError("upstream down")

        @app.get("/explicit")
        async def explicit() -> None:
            raise ValidationError("nope", instance="/custom")

        return TestClient(app)

    def test_problem_json_response(self, client):
        resp = client.get("/boom")
        assert resp.status_code == 502
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["title"] == "Backend Query Failed"
        assert body["detail"] == "upstream down"
        assert body["instance"] == "/boom"

    def test_explicit_instance_kept(self, client):
        assert client.get("/explicit").json()["instance"] == "/custom"
