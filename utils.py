# --- File: utils.py ---
import time
import uuid
from typing import Any, Optional

from zk_crypto_package.errors import ValidationError

# --- Utility Functions ---


def unix_now() -> int:
    """Current time as whole Unix seconds, the resolution used by commitments."""
    return int(time.time())


def new_message_id() -> str:
    return uuid.uuid4().hex


def require_text(value: Any, name: str) -> str:
    """Returns ``value`` stripped of surrounding whitespace, or raises if it is empty or not a string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string.", {"field": name})
    return value.strip()


def pick_timeout(override: Optional[float], default: Optional[float]) -> Optional[float]:
    return default if override is None else override
