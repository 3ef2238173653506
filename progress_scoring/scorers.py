"""
Progress Scoring - Category Scorers.

============================================================
PURPOSE
============================================================
One scorer per signal category.

Each scorer:
1. Takes its category input (snapshot part, balance, or the
   participant's earned custom milestones)
2. Applies the category formula
3. Returns a CategoryScore within [0, 100]

============================================================
DESIGN PRINCIPLES
============================================================
- Pure functions: same input = same output
- No external state or side effects
- Monotonically non-decreasing in the primary input
- Every formula saturates at 100

============================================================
SCALING LAWS
============================================================
- Milestones: weighted completion percent + capped bonus
- Experience: ln(level+1) / ln(max+1), or linear
- Equipment: per-bucket sums, weighted average
- Wealth:     log10(balance) / log10(max)
- Statistics: sqrt for kills/blocks, ln for distance/playtime
- Custom:     earned points / total points

============================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional
import math

from core.constants import CATEGORY_SCORE_MAX, CATEGORY_SCORE_MIN

from .config import (
    CustomMilestoneConfig,
    EquipmentConfig,
    ExperienceConfig,
    MilestoneConfig,
    StatisticsConfig,
    WealthConfig,
)
from .types import (
    Category,
    CategoryScore,
    EquipmentItem,
    EquipmentSnapshot,
    ExperienceSnapshot,
    MilestoneSnapshot,
    StatisticsSnapshot,
)


def clamp_category(value: float) -> float:
    """Clamp a raw category value into [0, 100]."""
    if math.isnan(value):
        return CATEGORY_SCORE_MIN
    return max(CATEGORY_SCORE_MIN, min(CATEGORY_SCORE_MAX, value))


# ============================================================
# BASE SCORER
# ============================================================


class BaseCategoryScorer(ABC):
    """
    Abstract base class for category scorers.

    Subclasses implement compute(); score() wraps the raw value
    into a clamped CategoryScore.
    """

    @property
    @abstractmethod
    def category(self) -> Category:
        """Return the category this scorer handles."""
        pass

    @abstractmethod
    def compute(self, data: Any) -> float:
        """Compute the raw category value."""
        pass

    def score(self, data: Any) -> CategoryScore:
        return CategoryScore(
            category=self.category,
            value=clamp_category(self.compute(data)),
        )


# ============================================================
# MILESTONE COMPLETION
# ============================================================


class MilestoneScorer(BaseCategoryScorer):
    """
    Scores world-state milestone completion.

    Groups with no defined milestones count as 0% but keep their
    weight in the normalization.
    """

    def __init__(self, config: Optional[MilestoneConfig] = None):
        self.config = config or MilestoneConfig()

    @property
    def category(self) -> Category:
        return Category.MILESTONES

    def compute(self, data: MilestoneSnapshot) -> float:
        weighted = 0.0
        total_weight = 0.0

        for group, weight in self.config.group_weights.items():
            progress = data.groups.get(group)
            percent = progress.percent if progress else 0.0
            weighted += percent * weight
            total_weight += weight

        base = weighted / total_weight if total_weight > 0 else 0.0

        bonus = sum(
            self.config.headline_bonuses.get(key, 0.0)
            for key in data.completed_keys
        )
        bonus = min(bonus, self.config.max_bonus)

        return min(CATEGORY_SCORE_MAX, base + bonus)


# ============================================================
# EXPERIENCE
# ============================================================


class ExperienceScorer(BaseCategoryScorer):
    """Scores experience level with optional diminishing returns."""

    def __init__(self, config: Optional[ExperienceConfig] = None):
        self.config = config or ExperienceConfig()

    @property
    def category(self) -> Category:
        return Category.EXPERIENCE

    def compute(self, data: ExperienceSnapshot) -> float:
        level = data.level
        max_level = self.config.max_level

        if level <= 0:
            return 0.0

        if self.config.diminishing_returns:
            base = math.log(level + 1) / math.log(max_level + 1) * 100.0
        else:
            base = min(100.0, level / max_level * 100.0)

        # Highest milestone reached wins; bonuses do not stack
        bonus = 0.0
        for threshold, value in self.config.milestone_levels.items():
            if level >= threshold:
                bonus = max(bonus, value)

        return min(CATEGORY_SCORE_MAX, base + bonus)


# ============================================================
# EQUIPMENT
# ============================================================


ARMOR_SUFFIXES = ("_HELMET", "_CHESTPLATE", "_LEGGINGS", "_BOOTS")
TOOL_SUFFIXES = ("_PICKAXE", "_AXE", "_SHOVEL", "_HOE")
WEAPON_TYPES = ("BOW", "CROSSBOW", "TRIDENT")
SPECIAL_TYPES = ("ELYTRA", "SHIELD", "TOTEM_OF_UNDYING")

MATERIAL_PREFIXES = (
    ("NETHERITE_", "NETHERITE"),
    ("DIAMOND_", "DIAMOND"),
    ("IRON_", "IRON"),
    ("GOLDEN_", "GOLDEN"),
    ("STONE_", "STONE"),
    ("WOODEN_", "WOOD"),
    ("WOOD_", "WOOD"),
    ("LEATHER_", "LEATHER"),
    ("CHAINMAIL_", "CHAINMAIL"),
)


def extract_material(item_type: str) -> str:
    """DIAMOND_SWORD -> DIAMOND; unknown prefixes -> UNKNOWN."""
    name = item_type.upper()
    for prefix, material in MATERIAL_PREFIXES:
        if name.startswith(prefix):
            return material
    return "UNKNOWN"


class EquipmentScorer(BaseCategoryScorer):
    """
    Scores equipment quality.

    The equipped armor bucket gets the full-set bonus before the
    bucket cap and the weighted average. Armor pieces found in the
    inventory add to the same bucket without the bonus.
    """

    BUCKETS = ("armor", "tools", "weapons", "special")

    def __init__(self, config: Optional[EquipmentConfig] = None):
        self.config = config or EquipmentConfig()

    @property
    def category(self) -> Category:
        return Category.EQUIPMENT

    def categorize(self, item_type: str) -> Optional[str]:
        name = item_type.upper()

        if self.config.special_item_scores.get(name, 0.0) > 0:
            return "special"
        if name.endswith(ARMOR_SUFFIXES):
            return "armor"
        if name.endswith(TOOL_SUFFIXES):
            return "tools"
        if name.endswith("_SWORD") or name in WEAPON_TYPES:
            return "weapons"
        if name in SPECIAL_TYPES:
            return "special"
        return None

    def enchantment_multiplier(self, enchantments: Dict[str, int]) -> float:
        multiplier = 1.0
        for name, level in enchantments.items():
            value = self.config.enchantment_values.get(
                name.upper(), self.config.default_enchantment_value
            )
            multiplier += self.config.enchantment_base_multiplier * level * value
        return multiplier

    def evaluate_item(self, item: EquipmentItem) -> float:
        name = item.item_type.upper()

        special = self.config.special_item_scores.get(name, 0.0)
        if special > 0:
            return special

        base = self.config.material_scores.get(extract_material(name), 0.0)
        if base == 0.0:
            return 0.0

        score = base * self.enchantment_multiplier(item.enchantments)

        if item.durability_pct < self.config.durability_minimum_threshold:
            score *= self.config.low_durability_penalty

        return score

    def bucket_totals(self, data: EquipmentSnapshot) -> Dict[str, float]:
        """Uncapped per-bucket sums, exposed for breakdown displays."""
        buckets = {name: 0.0 for name in self.BUCKETS}

        if self.config.include_armor:
            pieces = [i for i in data.armor if i.item_type]
            armor = sum(self.evaluate_item(i) for i in pieces)
            if len(pieces) == self.config.full_set_pieces:
                armor *= self.config.full_set_bonus
            buckets["armor"] = armor

        if self.config.include_inventory:
            for item in data.inventory:
                bucket = self.categorize(item.item_type)
                if bucket is not None:
                    buckets[bucket] += self.evaluate_item(item)

        return buckets

    def compute(self, data: EquipmentSnapshot) -> float:
        buckets = self.bucket_totals(data)

        total = 0.0
        total_weight = 0.0
        for name, value in buckets.items():
            weight = self.config.component_weights.get(name, 0.0)
            total += min(100.0, value) * weight
            total_weight += weight

        return total / total_weight if total_weight > 0 else 0.0


# ============================================================
# WEALTH
# ============================================================


class WealthScorer(BaseCategoryScorer):
    """Scores an account balance on a log10 scale."""

    def __init__(self, config: Optional[WealthConfig] = None):
        self.config = config or WealthConfig()

    @property
    def category(self) -> Category:
        return Category.WEALTH

    def compute(self, data: Optional[float]) -> float:
        balance = data or 0.0
        if balance <= 0:
            return 0.0

        max_balance = self.config.max_balance
        base = math.log10(balance) / math.log10(max_balance) * 100.0
        base = max(0.0, min(100.0, base))

        bonus = 0.0
        for threshold, value in self.config.threshold_bonuses.items():
            if balance >= threshold:
                bonus = max(bonus, value)

        return min(CATEGORY_SCORE_MAX, base + bonus)


# ============================================================
# ACTIVITY STATISTICS
# ============================================================


def _bonus_points(counts: Dict[str, int], bonuses: Dict[str, float]) -> float:
    return sum(count * bonuses.get(name.upper(), 0.0) for name, count in counts.items())


class StatisticsScorer(BaseCategoryScorer):
    """Scores activity counters as a weighted average of four sub-scores."""

    def __init__(self, config: Optional[StatisticsConfig] = None):
        self.config = config or StatisticsConfig()

    @property
    def category(self) -> Category:
        return Category.STATISTICS

    def kills_score(self, data: StatisticsSnapshot) -> float:
        base = min(100.0, math.sqrt(data.total_kills) / math.sqrt(self.config.max_kills) * 100.0)
        bonus = min(
            self.config.rare_kill_cap,
            _bonus_points(data.kills_by_type, self.config.rare_kill_bonuses)
            * self.config.rare_kill_factor,
        )
        return min(100.0, base + bonus)

    def blocks_score(self, data: StatisticsSnapshot) -> float:
        base = min(100.0, math.sqrt(data.total_blocks) / math.sqrt(self.config.max_blocks) * 100.0)
        bonus = min(
            self.config.valuable_block_cap,
            _bonus_points(data.blocks_by_type, self.config.valuable_block_bonuses)
            * self.config.valuable_block_factor,
        )
        return min(100.0, base + bonus)

    def distance_score(self, data: StatisticsSnapshot) -> float:
        blocks = max(0.0, data.distance_cm) // 100
        return min(
            100.0,
            math.log(blocks + 1) / math.log(self.config.max_distance_blocks + 1) * 100.0,
        )

    def playtime_score(self, data: StatisticsSnapshot) -> float:
        hours = max(0.0, data.playtime_hours)
        return min(
            100.0,
            math.log(hours + 1) / math.log(self.config.max_playtime_hours + 1) * 100.0,
        )

    def sub_scores(self, data: StatisticsSnapshot) -> Dict[str, float]:
        return {
            "kills": self.kills_score(data),
            "blocks": self.blocks_score(data),
            "distance": self.distance_score(data),
            "playtime": self.playtime_score(data),
        }

    def compute(self, data: StatisticsSnapshot) -> float:
        total = 0.0
        total_weight = 0.0

        for name, value in self.sub_scores(data).items():
            weight = self.config.weights.get(name, 0.0)
            if weight > 0:
                total += value * weight
                total_weight += weight

        return total / total_weight if total_weight > 0 else 0.0


# ============================================================
# CUSTOM MILESTONES
# ============================================================


class CustomMilestoneScorer(BaseCategoryScorer):
    """Scores earned server-defined milestones by points."""

    def __init__(self, config: Optional[CustomMilestoneConfig] = None):
        self.config = config or CustomMilestoneConfig()

    @property
    def category(self) -> Category:
        return Category.CUSTOM

    def compute(self, data: Iterable[str]) -> float:
        total = self.config.total_points
        if not self.config.milestones or total <= 0:
            return 0.0

        earned = sum(self.config.milestones.get(key, 0.0) for key in set(data))
        return min(CATEGORY_SCORE_MAX, earned / total * 100.0)
