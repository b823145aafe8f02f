import os
from dotenv import load_dotenv

# Load .env from the project root
load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./shopbot.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

APP_URL = os.getenv("APP_URL", "http://localhost:8000").rstrip("/")
ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN", "").strip()

# WhatsApp Cloud API
META_API_VERSION = os.getenv("META_API_VERSION", "v18.0")
WHATSAPP_VERIFY_TOKEN = os.getenv("WHATSAPP_VERIFY_TOKEN", "").strip()
WHATSAPP_PROVIDER = os.getenv("WHATSAPP_PROVIDER", "cloud").strip().lower()

# Payments
PAYMENTS_PROVIDER = os.getenv("PAYMENTS_PROVIDER", "razorpay").strip().lower()
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET", "").strip()
PAYMENT_LINK_EXPIRY_HOURS = int(os.getenv("PAYMENT_LINK_EXPIRY_HOURS", "24"))
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "INR").strip().upper()

# Tenant credentials (64 hex chars = 32 bytes)
TENANT_ENCRYPTION_KEY = os.getenv("TENANT_ENCRYPTION_KEY", "").strip()
TENANT_CACHE_TTL_SECONDS = int(os.getenv("TENANT_CACHE_TTL_SECONDS", "300"))
SERVICE_CACHE_TTL_SECONDS = int(os.getenv("SERVICE_CACHE_TTL_SECONDS", "600"))

# Geocoding (Nominatim usage policy: max 1 req/s)
NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/reverse")
GEOCODING_USER_AGENT = os.getenv("GEOCODING_USER_AGENT", "shopbot-whatsapp/1.0")
GEOCODING_MIN_INTERVAL_SECONDS = float(os.getenv("GEOCODING_MIN_INTERVAL_SECONDS", "1.0"))
DEFAULT_COUNTRY = os.getenv("DEFAULT_COUNTRY", "India").strip()

RECEIPTS_DIR = os.getenv("RECEIPTS_DIR", "data/receipts")
RECEIPTS_ENABLED = _env_flag("RECEIPTS_ENABLED", "1")
