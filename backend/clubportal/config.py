import logging
import os

from dotenv import load_dotenv

# Load .env at repo root
load_dotenv(dotenv_path=os.path.join(os.path.dirname(os.path.dirname(__file__)), "..", ".env"))


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clubportal.db")
CORS_ORIGIN = os.getenv("CORS_ORIGIN", "http://localhost:5173")

SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "24"))
RESET_TOKEN_TTL_MINUTES = int(os.getenv("RESET_TOKEN_TTL_MINUTES", "60"))
DEFAULT_STUDENT_PASSWORD = os.getenv("DEFAULT_STUDENT_PASSWORD", "Clubs@123")

RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Club Portal <noreply@clubportal.local>")
EMAIL_DOMAIN = os.getenv("EMAIL_DOMAIN", "clubportal.local")
EMAIL_MAX_RETRIES = int(os.getenv("EMAIL_MAX_RETRIES", "2"))
EMAIL_RETRY_DELAY_SECONDS = float(os.getenv("EMAIL_RETRY_DELAY_SECONDS", "1.0"))
EMAIL_THROTTLE_SECONDS = float(os.getenv("EMAIL_THROTTLE_SECONDS", "2.0"))
EMAIL_TIMEOUT_SECONDS = float(os.getenv("EMAIL_TIMEOUT_SECONDS", "10.0"))

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
NOTICE_WINDOW_DAYS = int(os.getenv("NOTICE_WINDOW_DAYS", "3"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SEED_DEMO_DATA = _env_bool("SEED_DEMO_DATA", True)


def configure_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    if any(getattr(h, "_clubportal", False) for h in root.handlers):
        root.setLevel(level or LOG_LEVEL)
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    handler._clubportal = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level or LOG_LEVEL)
