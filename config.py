import os
import sys
import logging

from dotenv import load_dotenv
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "buzzmart")

# Shared secret of the external auth provider that issues bearer tokens
JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")

TRANSACTION_MAX_ATTEMPTS = int(os.getenv("TRANSACTION_MAX_ATTEMPTS", "5"))
ORDER_NUMBER_PREFIX = os.getenv("ORDER_NUMBER_PREFIX", "BUZZ")

# Checkout pricing
FREE_DELIVERY_THRESHOLD = 100
DELIVERY_CHARGE = 40

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - [%(levelname)-7s] - %(message)s"


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configures the root logger once."""
    root = logging.getLogger()
    root.setLevel(level)
    if not root.hasHandlers():
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    logging.getLogger(__name__).debug("Logging configured at %s", level)
