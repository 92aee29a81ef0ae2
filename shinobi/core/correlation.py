#!/usr/bin/env python3
# CUI // SP-CTI
"""Shinobi — Run Correlation IDs.

Every synthesis run (CLI invocation or plan API request) carries a run id
that is stamped on audit events and injected into log records, so one run's
config, binding and audit lines can be grouped.

Usage:
    from shinobi.core.correlation import register_correlation_middleware
    register_correlation_middleware(app)

    from shinobi.core.correlation import get_correlation_id
    run_id = get_correlation_id()
"""

import hashlib
import logging
import threading
import uuid
from typing import Optional

from flask import g, has_request_context, request

logger = logging.getLogger("shinobi.core.correlation")

CORRELATION_HEADER = "X-Correlation-ID"

# Thread-local storage for non-Flask contexts (CLI runs, tests)
_thread_local = threading.local()


def generate_correlation_id() -> str:
    """Generate a 12-character correlation ID (UUID prefix)."""
    return uuid.uuid4().hex[:12]


def deterministic_run_id(*parts: str) -> str:
    """Derive a 12-character run id from stable inputs (service, environment, ...)."""
    digest = hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
    return digest[:12]


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID.

    Checks the Flask request context (g.correlation_id) first, then
    thread-local storage. Returns None outside any run.
    """
    if has_request_context():
        cid = getattr(g, "correlation_id", None)
        if cid:
            return cid
    return getattr(_thread_local, "correlation_id", None)


def set_correlation_id(correlation_id: str):
    """Set the correlation ID in thread-local storage."""
    _thread_local.correlation_id = correlation_id


def clear_correlation_id():
    """Clear the thread-local correlation ID."""
    _thread_local.correlation_id = None


def register_correlation_middleware(app):
    """Register correlation ID middleware on a Flask app.

    Reuses an incoming X-Correlation-ID header when present and echoes the
    id back on the response.
    """
    @app.before_request
    def _inject_correlation_id():
        cid = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
        g.correlation_id = cid
        _thread_local.correlation_id = cid

    @app.after_request
    def _add_correlation_header(response):
        cid = getattr(g, "correlation_id", None)
        if cid:
            response.headers[CORRELATION_HEADER] = cid
        return response

    @app.teardown_request
    def _clear_correlation(exc=None):
        _thread_local.correlation_id = None


class CorrelationLogFilter(logging.Filter):
    """Logging filter that injects correlation_id into log records.

    Usage:
        handler = logging.StreamHandler()
        handler.addFilter(CorrelationLogFilter())
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(correlation_id)s] %(name)s: %(message)s"
        ))
    """

    def filter(self, record):
        record.correlation_id = get_correlation_id() or "-"
        return True
