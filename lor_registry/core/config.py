"""
Registry configuration - environment driven settings for the store, engine and API.
"""

import os
from pathlib import Path

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/registry.db")

# Storage backend (sqlite is durable, memory is process-local)
STORE_BACKEND = os.getenv("STORE_BACKEND", "sqlite")  # sqlite|memory
SQLITE_TIMEOUT_SEC = float(os.getenv("SQLITE_TIMEOUT_SEC", "5.0"))

# Identity allowed to authorize approvers, fixed when the registry is first created
REGISTRY_OWNER = os.getenv("REGISTRY_OWNER", "owner")

# Debug flag is a function to stay dynamic
DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# Read operations retry transient store failures; writes never retry
READ_RETRY_ATTEMPTS = int(os.getenv("READ_RETRY_ATTEMPTS", "3"))
READ_RETRY_DELAY_SEC = float(os.getenv("READ_RETRY_DELAY_SEC", "0.05"))

# HTTP API
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

# Version string
VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def get_db_path():
    """Current database path (re-read so tests can point at a temporary file)."""
    return os.getenv("DB_PATH", DB_PATH)


def get_store_backend():
    return os.getenv("STORE_BACKEND", STORE_BACKEND).lower()


def get_registry_owner():
    return os.getenv("REGISTRY_OWNER", REGISTRY_OWNER).strip()


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or get_db_path()).parent.mkdir(parents=True, exist_ok=True)


def validate_config():
    """Validate registry configuration and return any issues."""
    issues = []

    if get_store_backend() not in ["sqlite", "memory"]:
        issues.append(f"Invalid STORE_BACKEND: {get_store_backend()}")

    if not get_registry_owner():
        issues.append("REGISTRY_OWNER must not be empty")

    if READ_RETRY_ATTEMPTS < 1:
        issues.append("READ_RETRY_ATTEMPTS must be >= 1")

    if READ_RETRY_DELAY_SEC < 0:
        issues.append("READ_RETRY_DELAY_SEC must be >= 0")

    if SQLITE_TIMEOUT_SEC <= 0:
        issues.append("SQLITE_TIMEOUT_SEC must be > 0")

    return issues


def build_store():
    """Get configured registry store implementation."""
    from .errors import ConfigurationError

    issues = validate_config()
    if issues:
        raise ConfigurationError("; ".join(issues))

    owner = get_registry_owner()
    if get_store_backend() == "memory":
        from .store import InMemoryRegistryStore
        return InMemoryRegistryStore(owner=owner)

    from .store import SQLiteRegistryStore
    return SQLiteRegistryStore(db_path=get_db_path(), owner=owner, timeout=SQLITE_TIMEOUT_SEC)


def build_engine(store=None):
    """Build a workflow engine around the given store, or the configured one."""
    from .workflow import WorkflowEngine

    return WorkflowEngine(
        store if store is not None else build_store(),
        read_retry_attempts=READ_RETRY_ATTEMPTS,
        read_retry_delay=READ_RETRY_DELAY_SEC,
    )
