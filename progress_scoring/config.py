"""
Progress Scoring - Configuration.

============================================================
PURPOSE
============================================================
Configuration dataclasses for the six category scorers and the
aggregator.

Each section can be built from a plain mapping (the parsed YAML
section) with from_dict(); missing keys fall back to defaults.

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable configurations
- Names are matched case-insensitively (stored upper-case)
  for materials, enchantments, entities and blocks
- No validation here; see update_orchestrator.config

============================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from core.constants import (
    DEFAULT_CATEGORY_WEIGHTS,
    DEFAULT_MAX_SCORE,
    DEFAULT_MIN_SCORE,
)
from progress_scoring.types import Category


def _upper_keys(data: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    return {str(k).upper(): float(v) for k, v in (data or {}).items()}


def _float_map(data: Optional[Mapping[Any, Any]]) -> Dict[str, float]:
    return {str(k): float(v) for k, v in (data or {}).items()}


# ============================================================
# MILESTONE COMPLETION
# ============================================================


@dataclass(frozen=True)
class MilestoneConfig:
    """
    Milestone completion scoring.

    Sub-group percentages are weighted by group_weights and
    normalized by their sum. Headline milestones add a flat bonus,
    capped at max_bonus.
    """

    group_weights: Dict[str, float] = field(default_factory=lambda: {
        "story": 30.0,
        "nether": 20.0,
        "end": 20.0,
        "adventure": 15.0,
        "husbandry": 15.0,
    })
    headline_bonuses: Dict[str, float] = field(default_factory=lambda: {
        "minecraft:story/enter_the_nether": 2.0,
        "minecraft:story/enter_the_end": 4.0,
        "minecraft:end/kill_dragon": 10.0,
        "minecraft:nether/summon_wither": 5.0,
    })
    max_bonus: float = 20.0                  # bonus never exceeds 20 points

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MilestoneConfig":
        default = cls()
        return cls(
            group_weights=_float_map(data.get("group_weights")) or default.group_weights,
            headline_bonuses=_float_map(data["headline_bonuses"])
            if "headline_bonuses" in data else default.headline_bonuses,
            max_bonus=float(data.get("max_bonus", default.max_bonus)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "group_weights": dict(self.group_weights),
            "headline_bonuses": dict(self.headline_bonuses),
            "max_bonus": self.max_bonus,
        }


# ============================================================
# EXPERIENCE
# ============================================================


@dataclass(frozen=True)
class ExperienceConfig:
    """
    Experience level scoring.

    With diminishing returns: ln(level+1) / ln(max_level+1) * 100.
    Only the highest milestone level reached adds its bonus.
    """

    max_level: int = 100
    diminishing_returns: bool = True
    milestone_levels: Dict[int, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExperienceConfig":
        return cls(
            max_level=int(data.get("max_level", 100)),
            diminishing_returns=bool(data.get("diminishing_returns", True)),
            milestone_levels={
                int(k): float(v) for k, v in (data.get("milestone_levels") or {}).items()
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_level": self.max_level,
            "diminishing_returns": self.diminishing_returns,
            "milestone_levels": dict(self.milestone_levels),
        }


# ============================================================
# EQUIPMENT
# ============================================================


@dataclass(frozen=True)
class EquipmentConfig:
    """
    Equipment quality scoring.

    Item score = material score * enchant multiplier * durability
    factor. Items are summed per component bucket, each bucket is
    capped at 100, then component_weights average the buckets.
    """

    material_scores: Dict[str, float] = field(default_factory=lambda: {
        "NETHERITE": 25.0,
        "DIAMOND": 20.0,
        "IRON": 12.0,
        "CHAINMAIL": 10.0,
        "GOLDEN": 8.0,
        "STONE": 5.0,
        "LEATHER": 4.0,
        "WOOD": 3.0,
    })
    enchantment_values: Dict[str, float] = field(default_factory=lambda: {
        "PROTECTION": 1.5,
        "SHARPNESS": 1.5,
        "EFFICIENCY": 1.2,
        "FORTUNE": 1.5,
        "MENDING": 2.0,
        "UNBREAKING": 1.0,
        "SILK_TOUCH": 1.2,
        "LOOTING": 1.5,
    })
    default_enchantment_value: float = 1.0    # for enchantments not listed
    special_item_scores: Dict[str, float] = field(default_factory=lambda: {
        "ELYTRA": 40.0,
        "TOTEM_OF_UNDYING": 25.0,
        "TRIDENT": 30.0,
        "SHIELD": 10.0,
    })
    component_weights: Dict[str, float] = field(default_factory=lambda: {
        "armor": 35.0,
        "tools": 25.0,
        "weapons": 25.0,
        "special": 15.0,
    })
    enchantment_base_multiplier: float = 0.15
    durability_minimum_threshold: float = 20.0   # percent
    low_durability_penalty: float = 0.5          # factor below threshold
    full_set_bonus: float = 1.15                 # 4 equipped armor pieces
    full_set_pieces: int = 4
    include_armor: bool = True
    include_inventory: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EquipmentConfig":
        default = cls()
        return cls(
            material_scores=_upper_keys(data.get("material_scores")) or default.material_scores,
            enchantment_values=_upper_keys(data.get("enchantment_values")) or default.enchantment_values,
            default_enchantment_value=float(
                data.get("default_enchantment_value", default.default_enchantment_value)
            ),
            special_item_scores=_upper_keys(data.get("special_item_scores")) or default.special_item_scores,
            component_weights=_float_map(data.get("component_weights")) or default.component_weights,
            enchantment_base_multiplier=float(
                data.get("enchantment_base_multiplier", default.enchantment_base_multiplier)
            ),
            durability_minimum_threshold=float(
                data.get("durability_minimum_threshold", default.durability_minimum_threshold)
            ),
            low_durability_penalty=float(
                data.get("low_durability_penalty", default.low_durability_penalty)
            ),
            full_set_bonus=float(data.get("full_set_bonus", default.full_set_bonus)),
            include_armor=bool(data.get("include_armor", True)),
            include_inventory=bool(data.get("include_inventory", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material_scores": dict(self.material_scores),
            "enchantment_values": dict(self.enchantment_values),
            "default_enchantment_value": self.default_enchantment_value,
            "special_item_scores": dict(self.special_item_scores),
            "component_weights": dict(self.component_weights),
            "enchantment_base_multiplier": self.enchantment_base_multiplier,
            "durability_minimum_threshold": self.durability_minimum_threshold,
            "low_durability_penalty": self.low_durability_penalty,
            "full_set_bonus": self.full_set_bonus,
            "include_armor": self.include_armor,
            "include_inventory": self.include_inventory,
        }


# ============================================================
# WEALTH
# ============================================================


@dataclass(frozen=True)
class WealthConfig:
    """
    Wealth scoring: log10(balance) / log10(max_balance) * 100.

    threshold_bonuses maps a balance threshold to a bonus; only
    the highest threshold met applies.
    """

    max_balance: float = 1_000_000.0
    threshold_bonuses: Dict[float, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WealthConfig":
        return cls(
            max_balance=float(data.get("max_balance", 1_000_000.0)),
            threshold_bonuses={
                float(k): float(v) for k, v in (data.get("threshold_bonuses") or {}).items()
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_balance": self.max_balance,
            "threshold_bonuses": dict(self.threshold_bonuses),
        }


# ============================================================
# ACTIVITY STATISTICS
# ============================================================


@dataclass(frozen=True)
class StatisticsConfig:
    """
    Activity statistics scoring.

    Kills and blocks use sqrt scaling, distance and playtime use
    log scaling. Sub-scores with weight 0 are skipped.
    """

    weights: Dict[str, float] = field(default_factory=lambda: {
        "kills": 30.0,
        "blocks": 30.0,
        "distance": 20.0,
        "playtime": 20.0,
    })
    max_kills: int = 10_000
    max_blocks: int = 100_000
    max_distance_blocks: int = 1_000_000
    max_playtime_hours: int = 500
    rare_kill_bonuses: Dict[str, float] = field(default_factory=lambda: {
        "ENDER_DRAGON": 50.0,
        "WITHER": 30.0,
        "ELDER_GUARDIAN": 10.0,
        "WARDEN": 25.0,
    })
    valuable_block_bonuses: Dict[str, float] = field(default_factory=lambda: {
        "ANCIENT_DEBRIS": 5.0,
        "DIAMOND_ORE": 3.0,
        "DEEPSLATE_DIAMOND_ORE": 3.0,
        "EMERALD_ORE": 3.0,
    })
    rare_kill_factor: float = 0.1       # bonus points -> score
    rare_kill_cap: float = 25.0
    valuable_block_factor: float = 0.05
    valuable_block_cap: float = 20.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StatisticsConfig":
        default = cls()
        return cls(
            weights=_float_map(data.get("weights")) or default.weights,
            max_kills=int(data.get("max_kills", default.max_kills)),
            max_blocks=int(data.get("max_blocks", default.max_blocks)),
            max_distance_blocks=int(data.get("max_distance_blocks", default.max_distance_blocks)),
            max_playtime_hours=int(data.get("max_playtime_hours", default.max_playtime_hours)),
            rare_kill_bonuses=_upper_keys(data["rare_kill_bonuses"])
            if "rare_kill_bonuses" in data else default.rare_kill_bonuses,
            valuable_block_bonuses=_upper_keys(data["valuable_block_bonuses"])
            if "valuable_block_bonuses" in data else default.valuable_block_bonuses,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights": dict(self.weights),
            "max_kills": self.max_kills,
            "max_blocks": self.max_blocks,
            "max_distance_blocks": self.max_distance_blocks,
            "max_playtime_hours": self.max_playtime_hours,
            "rare_kill_bonuses": dict(self.rare_kill_bonuses),
            "valuable_block_bonuses": dict(self.valuable_block_bonuses),
        }


# ============================================================
# CUSTOM MILESTONES
# ============================================================


@dataclass(frozen=True)
class CustomMilestoneConfig:
    """Server-defined milestones: key -> points."""

    milestones: Dict[str, float] = field(default_factory=dict)

    @property
    def total_points(self) -> float:
        return sum(self.milestones.values())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CustomMilestoneConfig":
        return cls(milestones=_float_map(data.get("milestones")))

    def to_dict(self) -> Dict[str, Any]:
        return {"milestones": dict(self.milestones)}


# ============================================================
# AGGREGATE SCORING CONFIG
# ============================================================


@dataclass(frozen=True)
class ScoringConfig:
    """
    Complete scoring configuration.

    weights are percentages keyed by category name and should sum
    to 100. A category missing from enabled is enabled.
    """

    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CATEGORY_WEIGHTS))
    enabled: Dict[str, bool] = field(default_factory=dict)
    min_score: float = DEFAULT_MIN_SCORE
    max_score: float = DEFAULT_MAX_SCORE

    milestones: MilestoneConfig = field(default_factory=MilestoneConfig)
    experience: ExperienceConfig = field(default_factory=ExperienceConfig)
    equipment: EquipmentConfig = field(default_factory=EquipmentConfig)
    wealth: WealthConfig = field(default_factory=WealthConfig)
    statistics: StatisticsConfig = field(default_factory=StatisticsConfig)
    custom: CustomMilestoneConfig = field(default_factory=CustomMilestoneConfig)

    def is_enabled(self, category: Category) -> bool:
        return self.enabled.get(category.value, True)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScoringConfig":
        categories = data.get("categories") or {}
        return cls(
            weights=dict(data.get("weights") or {}),
            enabled={str(k): bool(v) for k, v in (data.get("enabled") or {}).items()},
            min_score=data.get("min_score", DEFAULT_MIN_SCORE),
            max_score=data.get("max_score", DEFAULT_MAX_SCORE),
            milestones=MilestoneConfig.from_dict(categories.get("milestones") or {}),
            experience=ExperienceConfig.from_dict(categories.get("experience") or {}),
            equipment=EquipmentConfig.from_dict(categories.get("equipment") or {}),
            wealth=WealthConfig.from_dict(categories.get("wealth") or {}),
            statistics=StatisticsConfig.from_dict(categories.get("statistics") or {}),
            custom=CustomMilestoneConfig.from_dict(categories.get("custom") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights": dict(self.weights),
            "enabled": dict(self.enabled),
            "min_score": self.min_score,
            "max_score": self.max_score,
            "categories": {
                "milestones": self.milestones.to_dict(),
                "experience": self.experience.to_dict(),
                "equipment": self.equipment.to_dict(),
                "wealth": self.wealth.to_dict(),
                "statistics": self.statistics.to_dict(),
                "custom": self.custom.to_dict(),
            },
        }
