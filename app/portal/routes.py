from flask import Blueprint, current_app

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    schema_ok = bool(current_app.config.get("_schema_health_ok"))
    if not schema_ok:
        schema_ok = current_app.extensions["schema_health_check"]()
    return {"ok": True, "schema_ok": schema_ok}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for k8s/DO probes. No DB access, minimal overhead.
    """
    return "ok", 200
