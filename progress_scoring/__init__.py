"""
Progress Scoring - Package.

============================================================
PURPOSE
============================================================
Turns a participant snapshot into a normalized progress score.

============================================================
SIX CATEGORIES
============================================================
1. MILESTONES: world-state completion by sub-group
2. EXPERIENCE: experience level
3. EQUIPMENT: armor, tools, weapons, special items
4. WEALTH: balance from an optional wealth provider
5. STATISTICS: kills, blocks, distance, playtime
6. CUSTOM: server-defined milestones

Each category scores 0-100; weights (percent) combine them;
the current penalty is subtracted and the result clamped to
[min_score, max_score] (default 1-100).

============================================================
USAGE
============================================================
    from progress_scoring import (
        ScoreAggregator,
        ScoringInputs,
        ParticipantSnapshot,
        ExperienceSnapshot,
    )

    aggregator = ScoreAggregator()
    result = aggregator.evaluate(
        ScoringInputs(snapshot=ParticipantSnapshot(
            experience=ExperienceSnapshot(level=30),
        )),
        penalty=0.1,
    )
    print(result.final_score)

============================================================
"""

from .aggregator import ScoreAggregator, ScoringInputs
from .config import (
    CustomMilestoneConfig,
    EquipmentConfig,
    ExperienceConfig,
    MilestoneConfig,
    ScoringConfig,
    StatisticsConfig,
    WealthConfig,
)
from .scorers import (
    BaseCategoryScorer,
    CustomMilestoneScorer,
    EquipmentScorer,
    ExperienceScorer,
    MilestoneScorer,
    StatisticsScorer,
    WealthScorer,
)
from .types import (
    SNAPSHOT_CATEGORIES,
    Category,
    CategoryScore,
    EquipmentItem,
    EquipmentSnapshot,
    ExperienceSnapshot,
    GroupProgress,
    MilestoneSnapshot,
    ParticipantSnapshot,
    ProgressResult,
    StatisticsSnapshot,
)


__all__ = [
    "ScoreAggregator",
    "ScoringInputs",
    "ScoringConfig",
    "MilestoneConfig",
    "ExperienceConfig",
    "EquipmentConfig",
    "WealthConfig",
    "StatisticsConfig",
    "CustomMilestoneConfig",
    "BaseCategoryScorer",
    "MilestoneScorer",
    "ExperienceScorer",
    "EquipmentScorer",
    "WealthScorer",
    "StatisticsScorer",
    "CustomMilestoneScorer",
    "SNAPSHOT_CATEGORIES",
    "Category",
    "CategoryScore",
    "EquipmentItem",
    "EquipmentSnapshot",
    "ExperienceSnapshot",
    "GroupProgress",
    "MilestoneSnapshot",
    "ParticipantSnapshot",
    "ProgressResult",
    "StatisticsSnapshot",
]
