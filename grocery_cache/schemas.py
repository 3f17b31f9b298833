"""
Pydantic schemas for API request/response models
"""
from typing import Dict, Optional

from pydantic import BaseModel, Field


# ===== ON-DEMAND WARMING =====

class WarmLocationRequest(BaseModel):
    """Body of the on-demand warm call"""
    # Optional here so a missing id is answered with 400, not a 422
    location_id: Optional[str] = Field(None, alias="locationId")

    class Config:
        populate_by_name = True


class WarmLocationResponse(BaseModel):
    """Warmed, skipped, or failed - always with the location"""
    success: bool
    skipped: bool
    location_id: str = Field(alias="locationId")
    cached: Optional[int] = None
    errors: Optional[int] = None
    reason: Optional[str] = None

    class Config:
        populate_by_name = True


# ===== OPERATIONS =====

class ManualWarmResponse(BaseModel):
    """Result of an operator-triggered warm"""
    success: bool
    location_id: str = Field(alias="locationId")
    cached: int
    errors: int
    terms: int

    class Config:
        populate_by_name = True


class CleanupResponse(BaseModel):
    """Deleted row counts per cache"""
    success: bool
    deleted: Dict[str, int]
    timestamp: str


class CacheStats(BaseModel):
    """Row counts across the cache tables"""
    entries: int
    expired_entries: int
    image_entries: int
    warmed_locations: int
