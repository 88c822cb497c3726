from __future__ import annotations
import threading
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, APIRouter
from fastapi.middleware.cors import CORSMiddleware

from flarestats.aggregator import fetch_analytics
from flarestats.errors import AnalyticsAPIError, ConfigError
from flarestats.events import ANALYTICS_REFRESHED_EVENT, event_bus
from flarestats.models import Snapshot, UserSettings, snapshot_to_dicts
from flarestats.scheduler import get_scheduler, parse_interval_ms
from flarestats.settings import settings
from flarestats.settings_store import load_user_settings, save_user_settings
from flarestats.utils.logs import log_event


# -------------------------------------------------------------------------
# Latest published snapshot
# -------------------------------------------------------------------------

class LatestSnapshot:
    """Keeps the most recent snapshot published by the background refresher"""

    def __init__(self):
        self._lock = threading.Lock()
        self.snapshot: Optional[Snapshot] = None
        self.received_at: Optional[datetime] = None

    def update(self, snapshot: Snapshot) -> None:
        with self._lock:
            self.snapshot = snapshot
            self.received_at = datetime.now()

    def read(self):
        with self._lock:
            return self.snapshot, self.received_at


latest_snapshot = LatestSnapshot()


# -------------------------------------------------------------------------
# Lifespan
# -------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the snapshot subscriber and stop the refresher on shutdown."""
    unsubscribe = event_bus.subscribe(ANALYTICS_REFRESHED_EVENT, latest_snapshot.update)

    yield

    # --- GRACEFUL SHUTDOWN ---
    unsubscribe()
    if get_scheduler().stop():
        log_event("API", "Background refresh stopped on shutdown")


app = FastAPI(
    title="FlareStats API",
    description="Cloudflare Web Analytics at a glance.",
    version="1.0.0",
    lifespan=lifespan
)

api_router = APIRouter(prefix="/api")

allowed_origins = settings.ALLOWED_ORIGINS

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------------

def _load_settings_or_400() -> UserSettings:
    try:
        return load_user_settings()
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))


# -------------------------------------------------------------------------
# Routes
# -------------------------------------------------------------------------

@app.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok", "refreshing": get_scheduler().is_running}


@api_router.get("/settings")
def get_settings() -> Dict[str, Any]:
    return _load_settings_or_400().model_dump()


@api_router.put("/settings")
def put_settings(user_settings: UserSettings) -> Dict[str, Any]:
    try:
        save_user_settings(user_settings)
    except ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return user_settings.model_dump()


@api_router.get("/analytics")
def get_analytics() -> List[Dict[str, Any]]:
    """Fetch now, independent of the background refresher."""
    user_settings = _load_settings_or_400()
    try:
        snapshot = fetch_analytics(user_settings)
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AnalyticsAPIError as e:
        log_event("API", f"On-demand fetch failed: {e}", "ERROR")
        raise HTTPException(status_code=502, detail=str(e))
    return snapshot_to_dicts(snapshot)


@api_router.get("/analytics/latest")
def get_latest_analytics() -> Dict[str, Any]:
    snapshot, received_at = latest_snapshot.read()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No refreshed snapshot yet")
    return {
        "received_at": received_at.isoformat(),
        "sites": snapshot_to_dicts(snapshot)
    }


@api_router.post("/refresh/start")
def start_refresh() -> Dict[str, Any]:
    user_settings = _load_settings_or_400()
    interval = parse_interval_ms(user_settings.refresh_interval) / 1000
    # Settings are re-read every cycle so edits apply without a restart
    get_scheduler().start(load_user_settings, interval_seconds=interval)
    return {"running": True, "interval_seconds": interval}


@api_router.post("/refresh/stop")
def stop_refresh() -> Dict[str, Any]:
    was_running = get_scheduler().stop()
    return {"running": False, "was_running": was_running}


@api_router.get("/refresh/status")
def refresh_status() -> Dict[str, Any]:
    return {"running": get_scheduler().is_running}


app.include_router(api_router)
