from __future__ import annotations
"""
User Settings Store
Reads and writes the user's settings.json (token, account, period, cadence)
"""

import json
import os
from typing import Optional

from pydantic import ValidationError

from flarestats.config.periods import DEFAULT_PERIOD
from flarestats.errors import ConfigError
from flarestats.models import UserSettings
from flarestats.settings import settings


def settings_path() -> str:
    return os.path.join(settings.DATA_DIR, settings.SETTINGS_FILENAME)


def load_user_settings(path: Optional[str] = None) -> UserSettings:
    """
    Load persisted settings.
    A missing file yields defaults with the 24h period selected.
    """
    path = path or settings_path()
    if not os.path.exists(path):
        return UserSettings(period=DEFAULT_PERIOD)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return UserSettings.model_validate(data)
    except (OSError, ValueError, ValidationError) as e:
        raise ConfigError(f"Failed to read settings from {path}: {e}")


def save_user_settings(user_settings: UserSettings, path: Optional[str] = None) -> str:
    """Persist settings as pretty-printed JSON. Returns the path written."""
    path = path or settings_path()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(user_settings.model_dump(), f, indent=2)
    except OSError as e:
        raise ConfigError(f"Failed to write settings to {path}: {e}")
    return path
