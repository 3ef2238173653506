"""
Progress Scoring - Aggregator.

============================================================
PURPOSE
============================================================
Runs the six category scorers and combines their scores with
weights and the current penalty into a final clamped score.

============================================================
COMBINATION
============================================================
    total = SUM(score[c] * weight[c] / 100)   over enabled c
    final = clamp(total - penalty, min_score, max_score)

- Disabled categories contribute 0 and are reported with 0
- A category with no configured weight contributes 0
- A scorer that raises contributes 0; the rest still count

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Mapping, Optional
import logging

from .config import ScoringConfig
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
    ParticipantSnapshot,
    ProgressResult,
)


logger = logging.getLogger(__name__)


# ============================================================
# INPUTS
# ============================================================


@dataclass(frozen=True)
class ScoringInputs:
    """
    Everything a single recompute gathered for scoring.

    snapshot is None when the host could not provide it; in that
    case snapshot_error names the reason and only the snapshot
    categories fail. Wealth is disabled when no provider exists.
    """

    snapshot: Optional[ParticipantSnapshot] = None
    snapshot_error: Optional[str] = None
    balance: Optional[float] = None
    wealth_available: bool = False
    balance_error: Optional[str] = None
    custom_milestones: FrozenSet[str] = field(default_factory=frozenset)


# ============================================================
# AGGREGATOR
# ============================================================


class ScoreAggregator:
    """
    Scores all categories and combines them.

    Stateless apart from configuration; safe to share between
    concurrent recomputes.
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()
        self.scorers: Dict[Category, BaseCategoryScorer] = {
            Category.MILESTONES: MilestoneScorer(self.config.milestones),
            Category.EXPERIENCE: ExperienceScorer(self.config.experience),
            Category.EQUIPMENT: EquipmentScorer(self.config.equipment),
            Category.WEALTH: WealthScorer(self.config.wealth),
            Category.STATISTICS: StatisticsScorer(self.config.statistics),
            Category.CUSTOM: CustomMilestoneScorer(self.config.custom),
        }

    # ----------------------------------------------------------
    # Scoring
    # ----------------------------------------------------------

    def _category_input(self, category: Category, inputs: ScoringInputs):
        snapshot = inputs.snapshot
        if category == Category.MILESTONES:
            return snapshot.milestones
        if category == Category.EXPERIENCE:
            return snapshot.experience
        if category == Category.EQUIPMENT:
            return snapshot.equipment
        if category == Category.STATISTICS:
            return snapshot.statistics
        if category == Category.WEALTH:
            return inputs.balance
        return inputs.custom_milestones

    def score_categories(self, inputs: ScoringInputs) -> Dict[Category, CategoryScore]:
        """
        Run every scorer with partial-failure semantics.

        Returns:
            One CategoryScore per category, in Category order
        """
        scores: Dict[Category, CategoryScore] = {}

        for category in Category:
            if not self.config.is_enabled(category):
                scores[category] = CategoryScore.disabled(category)
                continue

            if category == Category.WEALTH:
                if not inputs.wealth_available:
                    scores[category] = CategoryScore.disabled(category)
                    continue
                if inputs.balance_error:
                    scores[category] = CategoryScore.failed(category, inputs.balance_error)
                    continue

            if category in SNAPSHOT_CATEGORIES and inputs.snapshot is None:
                scores[category] = CategoryScore.failed(
                    category, inputs.snapshot_error or "snapshot unavailable"
                )
                continue

            try:
                scorer = self.scorers[category]
                scores[category] = scorer.score(self._category_input(category, inputs))
            except Exception as e:
                logger.warning(
                    f"Category scorer failed | category={category.value} | error={e}",
                    exc_info=True,
                )
                scores[category] = CategoryScore.failed(category, str(e))

        return scores

    # ----------------------------------------------------------
    # Combination
    # ----------------------------------------------------------

    def combine(
        self,
        scores: Mapping[Category, CategoryScore],
        weights: Optional[Mapping[str, float]] = None,
        penalty: float = 0.0,
        now: Optional[datetime] = None,
    ) -> ProgressResult:
        """
        Combine category scores into the final result.

        Args:
            scores: Category scores (values within [0, 100])
            weights: Percent weights keyed by category name;
                defaults to the configured weights
            penalty: Non-negative penalty to subtract
            now: Timestamp for the result; defaults to wall-clock UTC

        Returns:
            ProgressResult with final score clamped to bounds
        """
        weights = dict(self.config.weights if weights is None else weights)
        reported: Dict[Category, CategoryScore] = {}
        weighted_total = 0.0

        for category in Category:
            score = scores.get(category)
            if score is None or not score.enabled:
                reported[category] = CategoryScore.disabled(category)
                continue

            reported[category] = score
            weight = float(weights.get(category.value, 0.0))
            weighted_total += score.value * weight / 100.0

        penalty = max(0.0, penalty)
        total = weighted_total - penalty
        final = max(self.config.min_score, min(self.config.max_score, total))

        return ProgressResult(
            final_score=final,
            total_before_clamp=total,
            weighted_total=weighted_total,
            penalty_applied=penalty,
            category_scores=reported,
            weights=weights,
            computed_at=now or datetime.now(timezone.utc),
        )

    def evaluate(
        self, inputs: ScoringInputs, penalty: float = 0.0, now: Optional[datetime] = None
    ) -> ProgressResult:
        """Score all categories and combine them in one step."""
        return self.combine(self.score_categories(inputs), penalty=penalty, now=now)
