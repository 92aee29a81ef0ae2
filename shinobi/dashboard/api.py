#!/usr/bin/env python3
# CUI // SP-CTI
"""Shinobi Plan API v1 Blueprint.

Endpoints:
    GET  /api/v1/health           - Liveness and version
    GET  /api/v1/component-types  - Component types with schemas and fallbacks
    GET  /api/v1/binders          - Supported (source type, capability) pairs
    POST /api/v1/plan             - Plan a manifest (200 success, 422 failed run)
    POST /api/v1/config/explain   - Precedence trace for one component

Malformed request bodies get 400. Every response carries X-Correlation-ID.

Usage:
    from shinobi.dashboard.api import create_app
    app = create_app({"SHINOBI_ARGS_DIR": "/etc/shinobi/args"})
"""

import logging

from flask import Blueprint, Flask, current_app, jsonify, request
from pydantic import ValidationError

from shinobi import __version__
from shinobi.core.correlation import register_correlation_middleware
from shinobi.core.errors import ShinobiError
from shinobi.dashboard.models import ExplainRequest, PlanRequest
from shinobi.project.manifest_loader import parse_manifest
from shinobi.synthesis.planner import SynthesisPlanner

logger = logging.getLogger("shinobi.dashboard.api")

plan_bp = Blueprint("plan_api", __name__, url_prefix="/api/v1")

PLANNER_KEY = "SHINOBI_PLANNER"


def _error(message, code="ERROR", status=400, details=None):
    """Return a standard JSON error response."""
    body = {"error": message, "code": code}
    if details is not None:
        body["details"] = details
    return jsonify(body), status


def _planner() -> SynthesisPlanner:
    return current_app.config[PLANNER_KEY]


def _parse(model):
    """Validate the JSON body against ``model`` and the manifest rules.

    Returns (request_model, manifest_result, None) or (None, None, error_response).
    """
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return None, None, _error("Request body must be a JSON object", code="BAD_REQUEST")
    try:
        parsed = model.model_validate(body)
    except ValidationError as exc:
        details = [{"loc": ".".join(str(p) for p in e["loc"]), "msg": e["msg"]} for e in exc.errors()]
        return None, None, _error("Invalid manifest", code="INVALID_MANIFEST", details=details)
    manifest = parse_manifest(parsed.to_manifest(), source="<request>", apply_env=False)
    if not manifest["valid"]:
        return None, None, _error("Invalid manifest", code="INVALID_MANIFEST",
                                  details=manifest["errors"])
    return parsed, manifest, None


@plan_bp.route("/health", methods=["GET"])
def health():
    return jsonify({
        "status": "ok",
        "service": "shinobi",
        "version": __version__,
        "classification": "CUI // SP-CTI",
    })


@plan_bp.route("/component-types", methods=["GET"])
def component_types():
    registry = _planner().component_types
    types = [registry.get(name).describe() for name in registry.type_names()]
    return jsonify({"component_types": types, "total": len(types)})


@plan_bp.route("/binders", methods=["GET"])
def binders():
    rows = _planner().binder_registry.supported_bindings()
    return jsonify({"bindings": rows, "total": len(rows)})


@plan_bp.route("/plan", methods=["POST"])
def plan():
    """POST /api/v1/plan -- Run the planner over a manifest body."""
    _, manifest, error = _parse(PlanRequest)
    if error:
        return error
    report = _planner().plan(manifest["context"], manifest["components"], manifest["bindings"])
    body = report.to_dict()
    body["warnings"] = manifest["warnings"]
    return jsonify(body), 200 if report.success else 422


@plan_bp.route("/config/explain", methods=["POST"])
def explain():
    """POST /api/v1/config/explain -- Precedence trace for body.component."""
    parsed, manifest, error = _parse(ExplainRequest)
    if error:
        return error
    spec = next((c for c in manifest["components"] if c.name == parsed.component), None)
    if spec is None:
        return _error(f"No component named '{parsed.component}'", code="NOT_FOUND", status=404)
    try:
        explanation = _planner().explain(manifest["context"], spec)
    except ShinobiError as exc:
        return jsonify({"error": exc.message, "code": "CONFIGURATION_ERROR",
                        "details": exc.to_dict()}), 422
    return jsonify(explanation)


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
def _register_error_handlers(app):
    """Register global JSON error handlers."""

    @app.errorhandler(400)
    def bad_request(exc):
        return _error("Bad request", code="BAD_REQUEST", details=str(exc))

    @app.errorhandler(404)
    def not_found(exc):
        return _error("Not found", code="NOT_FOUND", status=404)

    @app.errorhandler(405)
    def method_not_allowed(exc):
        return _error("Method not allowed", code="METHOD_NOT_ALLOWED", status=405)

    @app.errorhandler(500)
    def internal_error(exc):
        logger.error("Internal server error: %s", exc)
        return _error("Internal server error", code="INTERNAL_ERROR", status=500)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------
def create_app(config=None):
    """Flask application factory for the Shinobi Plan API.

    Args:
        config: Optional dict of Flask configuration overrides. Recognised
            keys: SHINOBI_PLANNER (a ready SynthesisPlanner),
            SHINOBI_ARGS_DIR, SHINOBI_AUDIT_DB, SHINOBI_LENIENT_ENUMS.

    Returns:
        Configured Flask app instance.
    """
    app = Flask(__name__)
    app.config.update(config or {})
    if not app.config.get(PLANNER_KEY):
        app.config[PLANNER_KEY] = SynthesisPlanner.from_directory(
            app.config.get("SHINOBI_ARGS_DIR"),
            app.config.get("SHINOBI_AUDIT_DB"),
            bool(app.config.get("SHINOBI_LENIENT_ENUMS", False)),
        )
    register_correlation_middleware(app)
    _register_error_handlers(app)
    app.register_blueprint(plan_bp)
    logger.info("Shinobi Plan API %s ready", __version__)
    return app


if __name__ == "__main__":
    create_app().run(host="127.0.0.1", port=5080)
