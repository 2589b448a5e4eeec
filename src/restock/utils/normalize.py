"""Name normalization and id generation shared by the repositories."""

import random
import time
from typing import Any


def normalize_name(name: Any) -> str:
    """Lookup key for supplier/product names: trimmed and case-folded."""
    if not isinstance(name, str):
        return ""
    return name.strip().lower()


def safe_string(value: Any) -> str:
    """Return *value* trimmed if it is a string, else an empty string."""
    return value.strip() if isinstance(value, str) else ""


def generate_id(prefix: str = "id") -> str:
    """Return a fresh ``<prefix>-<ms timestamp>-<random hex>`` id."""
    return f"{prefix}-{int(time.time() * 1000)}-{random.getrandbits(48):x}"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
