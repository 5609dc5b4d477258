"""
Configuration module for the SafeHarbor service.

Centralizes all configuration with environment variable support
and validation.
"""

import os
from pathlib import Path
from typing import Dict, Optional

from safeharbor.addressing import DEFAULT_PROGRAM_ID
from safeharbor.pubkey import Pubkey
from safeharbor.validation import ValidationPolicy

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("SAFEHARBOR_ENV", "dev")  # dev|stage|prod

# Storage
DB_PATH = os.getenv("SAFEHARBOR_DB_PATH", "data/safeharbor.db")

# Program id (base58); empty means the built-in id
PROGRAM_ID = os.getenv("SAFEHARBOR_PROGRAM_ID", "")

# Signed request freshness (seconds)
MAX_CLOCK_SKEW_SECONDS = int(os.getenv("SAFEHARBOR_MAX_CLOCK_SKEW_SECONDS", "300"))

# Event backend: sqlite_hash_chain|structured_log
EVENT_BACKEND = os.getenv("SAFEHARBOR_EVENT_BACKEND", "sqlite_hash_chain")

# Logging
LOG_LEVEL = os.getenv("SAFEHARBOR_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("SAFEHARBOR_LOG_JSON", "true").lower() in ("1", "true", "yes")


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes")


# Validation policy flags
REQUIRE_BOUNTY_CAP = _flag("SAFEHARBOR_REQUIRE_BOUNTY_CAP", False)
ENFORCE_AGGREGATE_FLOOR = _flag("SAFEHARBOR_ENFORCE_AGGREGATE_FLOOR", True)
REQUIRE_URI_SCHEME = _flag("SAFEHARBOR_REQUIRE_URI_SCHEME", True)


# ============================================================
# Derived Settings
# ============================================================

def build_policy() -> ValidationPolicy:
    """Validation policy from the environment flags."""
    return ValidationPolicy(
        require_bounty_cap=REQUIRE_BOUNTY_CAP,
        enforce_aggregate_floor=ENFORCE_AGGREGATE_FLOOR,
        require_uri_scheme=REQUIRE_URI_SCHEME,
    )


def program_id(value: Optional[str] = None) -> Pubkey:
    """Configured program id, or the built-in one."""
    value = PROGRAM_ID if value is None else value
    return Pubkey.from_string(value) if value else DEFAULT_PROGRAM_ID


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Check the settings that can be wrong at startup.
    Returns dict of check name -> ok.
    """
    checks = {
        "db_dir_writable": os.access(Path(DB_PATH).parent, os.W_OK) or not Path(DB_PATH).parent.exists(),
        "event_backend_known": EVENT_BACKEND in ("sqlite_hash_chain", "structured_log"),
        "clock_skew_positive": MAX_CLOCK_SKEW_SECONDS > 0,
    }
    try:
        program_id()
        checks["program_id_valid"] = True
    except ValueError:
        checks["program_id_valid"] = False
    return checks


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("SAFEHARBOR_DEBUG", "").lower() in ("1", "true", "yes")
