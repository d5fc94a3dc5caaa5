import os
import logging
from dotenv import load_dotenv

# Load .env from project root
try:
    load_dotenv(dotenv_path=os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".env")))
except Exception:
    try:
        load_dotenv()
    except Exception:
        pass


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or "").strip().strip('"').strip("'")


# Database
DATABASE_URL = _env_str("DATABASE_URL", "sqlite:///./storefront.db")

# Mail
SMTP_HOST = _env_str("SMTP_HOST")
SMTP_PORT = _env_int("SMTP_PORT", 587)
SMTP_USER = _env_str("SMTP_USER")
SMTP_PASS = _env_str("SMTP_PASS")
SMTP_TIMEOUT_SEC = _env_int("SMTP_TIMEOUT_SEC", 20)
MAIL_FROM = _env_str("MAIL_FROM") or SMTP_USER
SMTP_FROM_NAME = _env_str("SMTP_FROM_NAME", "CultivateNaturally")

# Links embedded in emails
FRONTEND_URL = (_env_str("FRONTEND_URL", "http://localhost:5500").split(",")[0].strip() or "http://localhost:5500").rstrip("/")

# Abandoned cart nurture
CART_NURTURE_INTERVAL_SEC = _env_int("CART_NURTURE_INTERVAL_SEC", 15 * 60)
CART_REMINDER1_AFTER_SEC = _env_int("CART_REMINDER1_AFTER_SEC", 60 * 60)
CART_REMINDER2_AFTER_SEC = _env_int("CART_REMINDER2_AFTER_SEC", 24 * 60 * 60)
CART_REMINDER3_AFTER_SEC = _env_int("CART_REMINDER3_AFTER_SEC", 72 * 60 * 60)
RUN_CART_NURTURE = _env_str("RUN_CART_NURTURE", "0") == "1"

# Customer auth
JWT_SECRET = _env_str("JWT_SECRET") or _env_str("SECRET_KEY")
CUSTOMER_TOKEN_TTL_DAYS = _env_int("CUSTOMER_TOKEN_TTL_DAYS", 30)

# Internal endpoints
CRON_API_KEY = _env_str("CRON_API_KEY")
CHECKOUT_WEBHOOK_SECRET = _env_str("CHECKOUT_WEBHOOK_SECRET")

# Logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
logger = logging.getLogger("storefront")

TEMPLATES_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "templates"))
