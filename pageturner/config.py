"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration."""

    # Upstream catalog
    CATALOG_BASE_URL = os.getenv("CATALOG_BASE_URL", "https://openlibrary.org")
    COVERS_BASE_URL = os.getenv("COVERS_BASE_URL", "https://covers.openlibrary.org")
    USER_AGENT = os.getenv("USER_AGENT", "pageturner/0.1 (+https://openlibrary.org/developers/api)")

    # Defaults
    DEFAULT_TIMEOUT = int(os.getenv("DEFAULT_TIMEOUT", "15"))
    DEFAULT_MAX_ATTEMPTS = int(os.getenv("DEFAULT_MAX_ATTEMPTS", "3"))
    DEFAULT_BACKOFF = float(os.getenv("DEFAULT_BACKOFF", "1.0"))
    DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
