"""Centralized configuration for the consultation relay.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/consult-relay/<VARIABLE_NAME>``.
A missing required value raises at import time, so the server refuses to
boot rather than failing on the first request.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/consult-relay/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store /consult-relay/{name} (AWS)."
    )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise OSError(f"Invalid integer for {name}: {raw!r}") from None


# ── Environment ─────────────────────────────────────────────────────
APP_ENV: str = os.getenv("APP_ENV", "development")
IS_PRODUCTION: bool = APP_ENV == "production"

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = _int_env("SERVER_PORT", 3001)
CLIENT_ORIGIN: str = os.getenv(
    "CLIENT_ORIGIN",
    "https://regenmed.ai" if IS_PRODUCTION else "http://localhost:5173",
)
CORS_ORIGINS: list[str] = os.getenv("CORS_ORIGINS", CLIENT_ORIGIN).split(",")

# ── Session cookie ──────────────────────────────────────────────────
SESSION_SECRET: str = _require_env("SESSION_SECRET")
SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "consult_session")
SESSION_MAX_AGE_SECONDS: int = _int_env("SESSION_MAX_AGE_SECONDS", 60 * 60 * 24 * 30)
# Must stay lax or looser: the cookie has to survive the redirect back from Google
SESSION_SAME_SITE: str = os.getenv("SESSION_SAME_SITE", "lax")
SESSION_HTTPS_ONLY: bool = IS_PRODUCTION

# ── Google OAuth ────────────────────────────────────────────────────
GOOGLE_CLIENT_ID: str = _require_env("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET: str = _require_env("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI: str = _require_env("GOOGLE_REDIRECT_URI")
GOOGLE_AUTH_URI: str = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URI: str = "https://oauth2.googleapis.com/token"
GOOGLE_API_BASE_URL: str = "https://www.googleapis.com"
CALENDAR_ID: str = os.getenv("CALENDAR_ID", "primary")

# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _require_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-haiku-4-5")

# ── Brand & assistant persona ───────────────────────────────────────
BRAND_NAME: str = os.getenv("BRAND_NAME", "regenmed.ai")
ASSISTANT_NAME: str = os.getenv("ASSISTANT_NAME", "Rex")

# ── Appointment defaults ────────────────────────────────────────────
DISPLAY_TIMEZONE: str = os.getenv("DISPLAY_TIMEZONE", "UTC")
APPOINTMENT_DURATION_MINUTES: int = _int_env("APPOINTMENT_DURATION_MINUTES", 30)
REMINDER_EMAIL_MINUTES: int = _int_env("REMINDER_EMAIL_MINUTES", 24 * 60)
REMINDER_POPUP_MINUTES: int = _int_env("REMINDER_POPUP_MINUTES", 30)
