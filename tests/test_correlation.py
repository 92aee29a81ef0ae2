# CUI // SP-CTI
"""Tests for shinobi.core.correlation."""

import logging
import re

import pytest
from flask import Flask, g

from shinobi.core.correlation import (
    CORRELATION_HEADER,
    CorrelationLogFilter,
    clear_correlation_id,
    deterministic_run_id,
    generate_correlation_id,
    get_correlation_id,
    register_correlation_middleware,
    set_correlation_id,
)


@pytest.fixture()
def flask_app():
    """Create a minimal Flask app with correlation middleware registered."""
    app = Flask(__name__)
    app.config["TESTING"] = True
    register_correlation_middleware(app)

    @app.route("/test")
    def test_route():
        return {"cid": g.correlation_id, "current": get_correlation_id()}

    return app


class TestIds:
    def test_generated_id_is_12_hex(self):
        assert re.fullmatch(r"[0-9a-f]{12}", generate_correlation_id())

    def test_deterministic_run_id(self):
        assert deterministic_run_id("orders", "dev", "{}") == deterministic_run_id("orders", "dev", "{}")
        assert deterministic_run_id("orders", "dev") != deterministic_run_id("orders", "prod")
        assert len(deterministic_run_id("x")) == 12


class TestThreadLocal:
    def test_set_get_clear(self):
        assert get_correlation_id() is None
        set_correlation_id("abc123def456")
        assert get_correlation_id() == "abc123def456"
        clear_correlation_id()
        assert get_correlation_id() is None


class TestMiddleware:
    def test_generates_and_echoes_id(self, flask_app):
        response = flask_app.test_client().get("/test")
        cid = response.get_json()["cid"]
        assert response.headers[CORRELATION_HEADER] == cid
        assert response.get_json()["current"] == cid

    def test_reuses_incoming_header(self, flask_app):
        response = flask_app.test_client().get("/test", headers={CORRELATION_HEADER: "caller-supplied"})
        assert response.get_json()["cid"] == "caller-supplied"
        assert response.headers[CORRELATION_HEADER] == "caller-supplied"

    def test_cleared_after_request(self, flask_app):
        flask_app.test_client().get("/test")
        assert get_correlation_id() is None


class TestLogFilter:
    def test_injects_id(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        CorrelationLogFilter().filter(record)
        assert record.correlation_id == "-"
        set_correlation_id("run000000002")
        CorrelationLogFilter().filter(record)
        assert record.correlation_id == "run000000002"
