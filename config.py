import os
import sys
import logging

from dotenv import load_dotenv

load_dotenv()

# Environment
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")
DATABASE_TYPE = os.getenv("DATABASE_TYPE", "mongodb")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", 60 * 24))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

INVOICE_DIR = os.getenv("INVOICE_DIR", os.path.join(os.getcwd(), "invoices"))
INVOICE_WAIT_TIMEOUT = float(os.getenv("INVOICE_WAIT_TIMEOUT", 5))
INVOICE_POLL_INTERVAL = float(os.getenv("INVOICE_POLL_INTERVAL", 0.1))
VAT_RATE = float(os.getenv("VAT_RATE", 0.2))

SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "false").lower() in ("1", "true", "yes")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 8000))

log = logging.getLogger("storefront")


def setup_logging(level: str = LOG_LEVEL):
    """Configures the storefront logger once."""
    log.setLevel(level)
    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - [%(levelname)-7s] - %(message)s"
        ))
        log.addHandler(handler)
    log.debug("Logging configured at %s", level)
