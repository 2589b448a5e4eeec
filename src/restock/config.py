"""Application configuration: loads .env, then overrides from settings.json."""

import json
import os
import random
import string
import time
from pathlib import Path

from dotenv import load_dotenv

# Find the project root (where .env lives)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# Runtime settings file for in-app configuration
_SETTINGS_FILE = _PROJECT_ROOT / "data" / "settings.json"


def _load_settings() -> dict:
    """Load saved runtime settings from JSON file."""
    if _SETTINGS_FILE.exists():
        try:
            return json.loads(_SETTINGS_FILE.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def _save_settings(settings: dict):
    """Persist runtime settings to JSON file."""
    _SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    _SETTINGS_FILE.write_text(
        json.dumps(settings, indent=2), encoding="utf-8"
    )


def _generate_device_id() -> str:
    """Build an opaque ``device-<ms timestamp>-<random>`` identifier."""
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(random.choice(alphabet) for _ in range(9))
    return f"device-{int(time.time() * 1000)}-{suffix}"


# Load saved settings once at import time
_runtime = _load_settings()


class Config:
    """Central configuration: .env defaults, settings.json overrides."""

    # Paths
    PROJECT_ROOT: Path = _PROJECT_ROOT
    DATABASE_PATH: Path = Path(
        os.getenv("DATABASE_PATH", str(_PROJECT_ROOT / "data" / "restock.db"))
    )

    # Remote collaborators (settings.json overrides .env)
    SEND_EMAIL_API_URL: str = _runtime.get(
        "send_email_api_url",
        os.getenv(
            "SEND_EMAIL_API_URL",
            "https://restock-send-email.parse-doc.workers.dev",
        ),
    )
    COMPANY_API_URL: str = _runtime.get(
        "company_api_url",
        os.getenv(
            "COMPANY_API_URL",
            "https://restock-company.parse-doc.workers.dev",
        ),
    )
    HTTP_TIMEOUT: float = float(_runtime.get(
        "http_timeout",
        os.getenv("HTTP_TIMEOUT", "30"),
    ))

    # Email defaults
    DEFAULT_STORE_NAME: str = _runtime.get(
        "default_store_name",
        os.getenv("DEFAULT_STORE_NAME", "Restock App"),
    )

    # Device identity: generated once and cached in settings.json
    DEVICE_ID: str = _runtime.get("device_id", "")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def get_device_id(cls) -> str:
        """Return this device's identifier, creating and persisting it once."""
        if cls.DEVICE_ID:
            return cls.DEVICE_ID

        settings = _load_settings()
        device_id = settings.get("device_id")
        if not device_id:
            device_id = _generate_device_id()
            settings["device_id"] = device_id
            try:
                _save_settings(settings)
            except OSError:
                # Still usable for this process; regenerated next launch
                pass
        cls.DEVICE_ID = device_id
        return device_id

    @classmethod
    def update_api_urls(cls, send_email_url: str, company_url: str):
        """Update remote endpoint URLs at runtime and persist to disk."""
        cls.SEND_EMAIL_API_URL = send_email_url
        cls.COMPANY_API_URL = company_url

        settings = _load_settings()
        settings["send_email_api_url"] = send_email_url
        settings["company_api_url"] = company_url
        _save_settings(settings)

    @classmethod
    def update_http_timeout(cls, seconds: float):
        """Update the HTTP client timeout and persist."""
        cls.HTTP_TIMEOUT = float(seconds)
        settings = _load_settings()
        settings["http_timeout"] = cls.HTTP_TIMEOUT
        _save_settings(settings)
