"""
FastAPI application factory for the locker kiosk.

Routes:
- /api/health  -> liveness and camera freshness
- /api/status  -> presence, price and surge counters
- /api/price   -> current displayed price
- /api/surges  -> recent surge history
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import api
from .state import KioskState, state


def create_app(kiosk_state: Optional[KioskState] = None) -> FastAPI:
    """Create the FastAPI app bound to a kiosk state (the global one by default)."""
    app = FastAPI(
        title="Locker Kiosk",
        version="0.1.0",
        description="Smart-locker kiosk with presence-driven surge pricing",
    )
    app.state.kiosk = kiosk_state if kiosk_state is not None else state

    # The kiosk display runs as a separate web app during development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")

    return app
