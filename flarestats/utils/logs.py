from __future__ import annotations
"""
Console logging helpers shared by the pipeline, scheduler and API.
"""

from datetime import datetime
from typing import Optional

LEVEL_PREFIXES = {
    "INFO": "ℹ️ ",
    "SUCCESS": "✅",
    "ERROR": "❌",
    "WARNING": "⚠️ ",
    "PROGRESS": "⏳"
}


def log_event(component: str, message: str, level: str = "INFO", context: Optional[str] = None):
    """Log with timestamp, component tag and optional account/site context"""
    timestamp = datetime.now().strftime("%H:%M:%S")
    prefix = LEVEL_PREFIXES.get(level, "")
    context_tag = f" [{context}]" if context else ""
    print(f"[{timestamp}] [{component}]{context_tag} {prefix} {message}")
