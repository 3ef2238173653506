"""
Pydantic Schemas for the Progress Admin API.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


# =============================================================
# REQUEST SCHEMAS
# =============================================================

class SetScoreRequest(BaseModel):
    """Override a participant's score (clamped to bounds)."""
    score: float


class LostItemSchema(BaseModel):
    item_type: str
    amount: int = Field(1, ge=0)
    enchantments: Dict[str, int] = Field(default_factory=dict)
    durability_pct: Optional[float] = Field(None, ge=0, le=100)


class RegisterLossRequest(BaseModel):
    """Either a precomputed value or the list of lost items."""
    total_value: Optional[float] = None
    items: List[LostItemSchema] = Field(default_factory=list)


# =============================================================
# RESPONSE SCHEMAS
# =============================================================

class OperationResponse(BaseModel):
    success: bool
    participant_id: UUID
    score: Optional[float] = None
    message: str = ""


class CategoryScoreSchema(BaseModel):
    category: str
    value: float
    enabled: bool
    error: Optional[str] = None


class ProgressResponse(BaseModel):
    participant_id: UUID
    score: float
    penalty_applied: Optional[float] = None
    categories: List[CategoryScoreSchema] = Field(default_factory=list)
    computed_at: Optional[datetime] = None


class LossResponse(BaseModel):
    participant_id: UUID
    record_id: Optional[str] = None
    total_value: float
    recorded: bool


class HistoryEntrySchema(BaseModel):
    score: float
    recorded_at: float


class HistoryResponse(BaseModel):
    participant_id: UUID
    entries: List[HistoryEntrySchema]


class LeaderboardEntry(BaseModel):
    rank: int
    participant_id: UUID
    score: float


class LeaderboardResponse(BaseModel):
    entries: List[LeaderboardEntry]
