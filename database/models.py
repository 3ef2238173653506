"""
Database ORM Models.

============================================================
SCHEMA
============================================================
participant_progress   one row per participant
progress_history       one row per significant score change

Timestamps are Unix seconds (float) to match the engine clock.

============================================================
"""

from sqlalchemy import BigInteger, Column, Float, Index, Integer, String, Text

from .engine import Base


# =============================================================
# 1. PARTICIPANT PROGRESS TABLE
# =============================================================

class ParticipantProgress(Base):
    """
    Current progress per participant.

    Source: update_orchestrator (recompute / admin)
    Update Frequency: per significant recompute, autosave
    """
    __tablename__ = "participant_progress"

    participant_id = Column(String(36), primary_key=True)

    current_progress = Column(Float, nullable=False, default=1.0, index=True)
    previous_progress = Column(Float, nullable=False, default=1.0)

    first_seen_ts = Column(Float, nullable=False, default=0.0)
    last_seen_ts = Column(Float, nullable=False, default=0.0)
    last_update_ts = Column(Float, nullable=False, default=0.0)

    # JSON-encoded list of milestone keys
    completed_milestones = Column(Text, nullable=False, default="[]")
    last_known_equipment_value = Column(Float, nullable=False, default=0.0)
    total_loss_events = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<ParticipantProgress {self.participant_id} score={self.current_progress:.2f}>"


# =============================================================
# 2. PROGRESS HISTORY TABLE
# =============================================================

class ProgressHistory(Base):
    """
    Score history for trend display.

    Retention: cache.history_retention_seconds (default 30 days)
    """
    __tablename__ = "progress_history"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    participant_id = Column(String(36), nullable=False)
    score = Column(Float, nullable=False)
    recorded_at = Column(Float, nullable=False)

    __table_args__ = (
        Index("idx_progress_history_participant_time", "participant_id", "recorded_at"),
        Index("idx_progress_history_time", "recorded_at"),
    )
