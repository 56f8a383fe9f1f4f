import os
from dotenv import load_dotenv

load_dotenv()


def _get_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_optional_int(name: str):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return int(value)


APP_ENV = os.getenv("APP_ENV", "development")
IS_PRODUCTION = APP_ENV == "production"

# -------- DATABASE / CACHE --------
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./padel.db")
REDIS_URL = os.getenv("REDIS_URL")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", REDIS_URL or "redis://localhost:6379/0")

# -------- AUTH --------
JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))
CRON_SECRET = os.getenv("CRON_SECRET")

# -------- PAYMENT GATEWAY --------
MIDTRANS_SERVER_KEY = os.getenv("MIDTRANS_SERVER_KEY", "")
MIDTRANS_CLIENT_KEY = os.getenv("MIDTRANS_CLIENT_KEY", "")
MIDTRANS_IS_PRODUCTION = _get_bool("MIDTRANS_IS_PRODUCTION")
MIDTRANS_TIMEOUT_SECONDS = float(os.getenv("MIDTRANS_TIMEOUT_SECONDS", 10))
SITE_URL = os.getenv("SITE_URL", "http://localhost:3000")

# -------- EMAIL --------
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Padel Batu Alam Permai <onboarding@resend.dev>")
# Outside production every email goes to this inbox instead of the customer
EMAIL_TEST_RECIPIENT = os.getenv("EMAIL_TEST_RECIPIENT")

# -------- VENUE / POLICY --------
VENUE_TIMEZONE = os.getenv("VENUE_TIMEZONE", "Asia/Makassar")
DEPOSIT_PERCENTAGE = int(os.getenv("DEPOSIT_PERCENTAGE", 50))
REFUND_FULL_HOURS = float(os.getenv("REFUND_FULL_HOURS", 24))
REFUND_PARTIAL_HOURS = _get_optional_int("REFUND_PARTIAL_HOURS")
REFUND_PARTIAL_PERCENTAGE = int(os.getenv("REFUND_PARTIAL_PERCENTAGE", 50))
IMMEDIATE_REMINDER_HOURS = 3
REMINDER_WINDOW_HOURS = (3, 4)

# -------- SCHEDULING / LIMITS --------
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", 300))
LOOKUP_RATE_LIMIT = int(os.getenv("LOOKUP_RATE_LIMIT", 20))
LOOKUP_RATE_WINDOW_SECONDS = int(os.getenv("LOOKUP_RATE_WINDOW_SECONDS", 900))
AVAILABLE_SLOTS_CACHE_TTL = int(os.getenv("AVAILABLE_SLOTS_CACHE_TTL", 30))

LOG_DIR = os.getenv("LOG_DIR", "logs")
