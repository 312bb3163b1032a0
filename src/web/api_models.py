from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = Field(..., description="ok|degraded")
    uptime_seconds: int
    last_frame_age_s: Optional[float] = Field(None, description="Seconds since last camera frame")
    frames_processed: int = 0
    database: bool = Field(False, description="True if a database is attached")
    warnings: List[str] = Field(default_factory=list)


class PresenceResponse(BaseModel):
    status: str = Field(..., description="idle|tracking|priceIncreased|cooldown")
    timestamp: float
    tracking_id: Optional[int] = None
    presence_duration: float = 0.0
    triggered_at: Optional[float] = None
    cooldown_remaining: Optional[float] = None
    cooldown_paused: bool = False
    details: Optional[str] = None


class SurgeCountsResponse(BaseModel):
    total: int = 0
    physical: int = 0
    online: int = 0
    label: str = Field("none", description="none|physical|online|both")


class PriceResponse(BaseModel):
    """Current displayed price of the listed item."""
    item_id: str
    item_name: str
    starting_price: float
    floor_price: float
    decay_price: float
    final_price: float
    display_price: str = Field(..., description="Formatted final price, e.g. $94.00")
    surge_count: int
    surge_multiplier: float
    surge_offset: float
    discount_percentage: float
    at_floor: bool
    time_to_floor_seconds: Optional[float] = None
    time_remaining: Optional[str] = Field(None, description="Human-readable listing time left")
    computed_at: str


class OnlineInterestResponse(BaseModel):
    page_views: int
    click_count: int
    wishlist_adds: int
    last_activity: str
    score: int


class StatusResponse(BaseModel):
    presence: Optional[PresenceResponse] = None
    price: Optional[PriceResponse] = None
    surge_counts: SurgeCountsResponse
    online_interest: Optional[OnlineInterestResponse] = None
    timestamp: float


class SurgeEventResponse(BaseModel):
    source: str = Field(..., description="physical|online")
    timestamp: float
    surge_count: int
    price: float
    tracking_id: Optional[int] = None
