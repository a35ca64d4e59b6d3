import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str
    csrf_enabled: bool

    organization_id: str
    organization_state_code: str
    gst_rate: str
    payment_terms_days: int
    currency_symbol: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///portal.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        csrf_enabled=_getenv("CSRF_ENABLED", "1") not in ("0", "false", "no"),
        organization_id=_getenv("ORGANIZATION_ID", "1"),
        # "27" is Maharashtra in the GST state code table.
        organization_state_code=_getenv("ORGANIZATION_STATE_CODE", "27"),
        gst_rate=_getenv("GST_RATE", "18"),
        payment_terms_days=_getenv_int("PAYMENT_TERMS_DAYS", 30),
        currency_symbol=_getenv("CURRENCY_SYMBOL", "₹"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "CSRF_ENABLED": s.csrf_enabled,
        "ORGANIZATION_ID": s.organization_id,
        "ORGANIZATION_STATE_CODE": s.organization_state_code,
        "GST_RATE": s.gst_rate,
        "PAYMENT_TERMS_DAYS": s.payment_terms_days,
        "CURRENCY_SYMBOL": s.currency_symbol,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # JSON bodies only; 1MB is plenty
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
