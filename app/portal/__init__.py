import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request, session
from sqlalchemy import inspect as sa_inspect

from app.portal.auth import bp as auth_bp, load_current_user
from app.portal.config import load_config
from app.portal.db import init_db, teardown_db_session
from app.portal.errors import error_body, register_error_handlers
from app.portal.modules.customer_profiles.routes import bp as customer_profiles_bp
from app.portal.modules.invoices.routes import bp as invoices_bp
from app.portal.modules.item_requests.routes import bp as item_requests_bp
from app.portal.modules.items.routes import bp as items_bp
from app.portal.modules.payments.routes import bp as payments_bp
from app.portal.modules.quotes.routes import bp as quotes_bp
from app.portal.routes import bp as routes_bp

# Tables the API cannot serve without.
REQUIRED_TABLES = (
    "users",
    "roles",
    "user_roles",
    "audit_events",
    "customers",
    "items",
    "quotes",
    "quote_lines",
    "invoices",
    "invoice_lines",
    "invoice_payments",
    "invoice_activity_logs",
    "payments_received",
    "item_requests",
)

_UNGUARDED_PREFIXES = ("/health", "/healthz")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.json.sort_keys = False

    level = getattr(logging, app.config["LOG_LEVEL"], logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.logger.setLevel(level)

    register_error_handlers(app)

    # CSRF protection (minimal)
    from app.portal.security import ensure_csrf_token, validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_UNGUARDED_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if not app.config.get("CSRF_ENABLED"):
            return None
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Auth endpoints (login/register/logout) bootstrap the session.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return jsonify(error_body("CSRF token missing or invalid.")), 400
        return None

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(customer_profiles_bp, url_prefix="/api")
    app.register_blueprint(items_bp, url_prefix="/api")
    app.register_blueprint(quotes_bp, url_prefix="/api")
    app.register_blueprint(invoices_bp, url_prefix="/api")
    app.register_blueprint(payments_bp, url_prefix="/api")
    app.register_blueprint(item_requests_bp, url_prefix="/api")

    # Migration health (lean): detect drift between code expectations and DB schema.
    # Checked on first use and re-checked until it passes, so a DB migrated after
    # boot is picked up without a restart.
    app.config.setdefault("_schema_health_ok", False)
    app.config.setdefault("_schema_health_missing", [])
    app.config.setdefault("_schema_health_logged", False)

    def _run_schema_health_check() -> bool:
        missing: list[str] = []
        try:
            insp = sa_inspect(app.extensions["sqlalchemy_engine"])
            missing = [f"{t} (table)" for t in REQUIRED_TABLES if not insp.has_table(t)]
            if not missing and "client_ip" not in {c["name"] for c in insp.get_columns("audit_events")}:
                missing.append("audit_events.client_ip")
        except Exception as e:
            app.logger.exception("Schema health check failed: %s", e)
            missing = ["(schema inspection failed)"]

        app.config["_schema_health_missing"] = missing
        app.config["_schema_health_ok"] = not missing
        if missing and not app.config.get("_schema_health_logged"):
            app.config["_schema_health_logged"] = True
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))
        return not missing

    app.extensions["schema_health_check"] = _run_schema_health_check

    @app.before_request
    def _schema_health_guardrail():
        if app.config.get("_schema_health_ok"):
            return None
        if not request.path.startswith(("/api", "/auth")):
            return None
        if _run_schema_health_check():
            return None
        body = error_body("Database schema is out of date.", app.config.get("_schema_health_missing") or [])
        return jsonify(body), 503

    def _load_user_wrapper():
        if request.path.startswith(_UNGUARDED_PREFIXES):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
