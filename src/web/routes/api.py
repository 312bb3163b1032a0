from __future__ import annotations

import time
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Request

from ..api_models import HealthResponse, PriceResponse, StatusResponse, SurgeEventResponse
from ..state import KioskState

router = APIRouter()

# Camera considered stale after this many seconds without a frame
STALE_FRAME_SECONDS = 10.0


def _kiosk_state(request: Request) -> KioskState:
    return request.app.state.kiosk


@router.get("/health", response_model=HealthResponse)
def health(request: Request):
    kiosk = _kiosk_state(request)
    snapshot = kiosk.get_snapshot()
    stats = snapshot["system_stats"]
    now = time.time()

    last_frame_ts = stats.get("last_frame_ts")
    last_frame_age = now - last_frame_ts if last_frame_ts is not None else None

    warnings: List[str] = []
    if last_frame_age is None:
        warnings.append("camera_no_frames")
    elif last_frame_age > STALE_FRAME_SECONDS:
        warnings.append("camera_stale")
    if snapshot["price"] is None:
        warnings.append("price_unavailable")

    return HealthResponse(
        status="ok" if not warnings else "degraded",
        uptime_seconds=int(now - stats.get("start_time", now)),
        last_frame_age_s=round(last_frame_age, 2) if last_frame_age is not None else None,
        frames_processed=stats.get("frames_processed", 0),
        database=kiosk.database is not None,
        warnings=warnings,
    )


@router.get("/status", response_model=StatusResponse)
def status(request: Request):
    """
    Aggregate kiosk status for the display: presence, price and surge counters.
    """
    snapshot = _kiosk_state(request).get_snapshot()
    return StatusResponse(
        presence=snapshot["presence"],
        price=snapshot["price"],
        surge_counts=snapshot["surge_counts"],
        online_interest=snapshot["online_interest"],
        timestamp=time.time(),
    )


@router.get("/price", response_model=PriceResponse)
def price(request: Request):
    snapshot = _kiosk_state(request).get_snapshot()
    if snapshot["price"] is None:
        raise HTTPException(status_code=503, detail="Price not computed yet")
    return snapshot["price"]


@router.get("/surges", response_model=List[SurgeEventResponse])
def surges(request: Request, limit: Optional[int] = Query(20, ge=1, le=500)):
    """Most recent surge events, newest first."""
    db = _kiosk_state(request).database
    if db is None:
        return []
    return [event.to_dict() for event in db.get_recent_surge_events(limit=limit)]
