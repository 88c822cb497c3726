"""Test configuration helpers."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from flarestats.settings import settings  # noqa: E402


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the settings store at a throwaway directory."""
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path))
    return tmp_path
