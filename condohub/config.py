import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./condohub.db")

# Security - no default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))
INVITATION_EXPIRE_DAYS = int(os.getenv("INVITATION_EXPIRE_DAYS", "7"))

# Frontend base URL used in notification links and payment return URLs
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
# Public base URL of this API, used for payment gateway callbacks
PUBLIC_API_URL = os.getenv("PUBLIC_API_URL", "http://localhost:8000")

# File storage: documents, attachments and receipts live under STORAGE_PATH/condominiums/{id}
STORAGE_PATH = os.getenv("STORAGE_PATH", str(Path(__file__).resolve().parent.parent / "storage"))
BACKUP_PATH = os.getenv("BACKUP_PATH", os.path.join(STORAGE_PATH, "backups"))

# Rate limiting (login attempts per IP)
REDIS_URL = os.getenv("REDIS_URL")
LOGIN_RATE_LIMIT = int(os.getenv("LOGIN_RATE_LIMIT", "10"))
LOGIN_RATE_WINDOW = int(os.getenv("LOGIN_RATE_WINDOW", "300"))

# IfthenPay (Multibanco / MB WAY) configuration
IFTHENPAY_API_URL = os.getenv("IFTHENPAY_API_URL", "https://api.ifthenpay.com")
IFTHENPAY_ENVIRONMENT = os.getenv("IFTHENPAY_ENVIRONMENT", "sandbox")  # sandbox, production
IFTHENPAY_MB_KEY = os.getenv("IFTHENPAY_MB_KEY")
IFTHENPAY_MBWAY_KEY = os.getenv("IFTHENPAY_MBWAY_KEY")
IFTHENPAY_ANTI_PHISHING_KEY = os.getenv("IFTHENPAY_ANTI_PHISHING_KEY")
# Multibanco references expire after this many days
IFTHENPAY_MB_EXPIRY_DAYS = int(os.getenv("IFTHENPAY_MB_EXPIRY_DAYS", "3"))

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()

SECURITY_HEADERS_ENABLED = os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() == "true"
SECURITY_HEADERS_EXCLUDED_PATHS = ["/health", "/docs", "/openapi.json"]
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000"
).split(",")
