"""
Update Orchestrator - Configuration.

============================================================
PURPOSE
============================================================
Top-level configuration for the progress engine, loadable from
YAML, plus validation.

============================================================
SECTIONS
============================================================
    scoring:   weights, bounds, per-category settings
    penalty:   decay schedule, expiry, flat fallback
    updates:   debounce delays, concurrency, event threshold
    cache:     retention, autosave, history cleanup
    logging:   level, format

============================================================
VALIDATION
============================================================
Fatal (ConfigurationError):
- an explicit config path that does not exist
- a loaded file without scoring.weights
- a core category weight missing, non-numeric or negative
- unknown category in weights
- min_score > max_score
- decay fractions not summing to 1, offsets not increasing

Warning only:
- category weights not summing to 100

============================================================
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
import logging
import math

import yaml

from core.constants import (
    DEFAULT_COLLABORATOR_TIMEOUT_SECONDS,
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_EVENT_THRESHOLD,
    DEFAULT_MAX_CONCURRENT_RECOMPUTES,
    DEFAULT_RECALCULATION_INTERVAL_SECONDS,
    WEIGHT_SUM_TOLERANCE,
)
from core.exceptions import InvalidConfigError, MissingConfigError
from participant_store.config import CacheConfig
from penalty_tracker.config import PENALTY_MODES, PenaltyConfig
from progress_scoring.config import ScoringConfig
from progress_scoring.types import Category


logger = logging.getLogger(__name__)


# ============================================================
# UPDATE ORCHESTRATION
# ============================================================


@dataclass(frozen=True)
class UpdateConfig:
    """
    Debounce and recompute settings.

    debounce_seconds is keyed by trigger name; unknown triggers
    use the "default" entry.
    """

    debounce_seconds: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_DEBOUNCE_SECONDS)
    )
    max_concurrent_recomputes: int = DEFAULT_MAX_CONCURRENT_RECOMPUTES
    collaborator_timeout_seconds: float = DEFAULT_COLLABORATOR_TIMEOUT_SECONDS
    event_threshold: float = DEFAULT_EVENT_THRESHOLD    # min |delta| to notify
    emit_events: bool = True
    save_on_recompute: bool = True
    recalculation_interval_seconds: float = DEFAULT_RECALCULATION_INTERVAL_SECONDS  # 0 disables

    def delay_for(self, trigger: str) -> float:
        return self.debounce_seconds.get(
            trigger, self.debounce_seconds.get("default", DEFAULT_DEBOUNCE_SECONDS["default"])
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UpdateConfig":
        debounce = dict(DEFAULT_DEBOUNCE_SECONDS)
        debounce.update(data.get("debounce_seconds") or {})
        return cls(
            debounce_seconds=debounce,
            max_concurrent_recomputes=data.get(
                "max_concurrent_recomputes", DEFAULT_MAX_CONCURRENT_RECOMPUTES
            ),
            collaborator_timeout_seconds=data.get(
                "collaborator_timeout_seconds", DEFAULT_COLLABORATOR_TIMEOUT_SECONDS
            ),
            event_threshold=data.get("event_threshold", DEFAULT_EVENT_THRESHOLD),
            emit_events=bool(data.get("emit_events", True)),
            save_on_recompute=bool(data.get("save_on_recompute", True)),
            recalculation_interval_seconds=data.get(
                "recalculation_interval_seconds", DEFAULT_RECALCULATION_INTERVAL_SECONDS
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "debounce_seconds": dict(self.debounce_seconds),
            "max_concurrent_recomputes": self.max_concurrent_recomputes,
            "collaborator_timeout_seconds": self.collaborator_timeout_seconds,
            "event_threshold": self.event_threshold,
            "emit_events": self.emit_events,
            "save_on_recompute": self.save_on_recompute,
            "recalculation_interval_seconds": self.recalculation_interval_seconds,
        }


# ============================================================
# LOGGING
# ============================================================


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    format: str = "text"    # text | json

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LoggingConfig":
        return cls(
            level=str(data.get("level", "INFO")).upper(),
            format=str(data.get("format", "text")).lower(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"level": self.level, "format": self.format}


# ============================================================
# TOP-LEVEL CONFIG
# ============================================================


@dataclass
class ProgressSystemConfig:
    """Complete engine configuration."""

    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    penalty: PenaltyConfig = field(default_factory=PenaltyConfig)
    updates: UpdateConfig = field(default_factory=UpdateConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ProgressSystemConfig":
        data = data or {}
        sections = {
            "scoring": ScoringConfig,
            "penalty": PenaltyConfig,
            "updates": UpdateConfig,
            "cache": CacheConfig,
            "logging": LoggingConfig,
        }
        parsed = {}
        for name, section_cls in sections.items():
            section = data.get(name) or {}
            if not isinstance(section, Mapping):
                raise InvalidConfigError(name, section, "expected a mapping")
            try:
                parsed[name] = section_cls.from_dict(section)
            except (TypeError, ValueError, AttributeError) as e:
                raise InvalidConfigError(name, section, f"malformed section: {e}") from e
        return cls(**parsed)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "ProgressSystemConfig":
        """Load configuration from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f)

        if data is not None and not isinstance(data, dict):
            raise InvalidConfigError("<root>", type(data).__name__, "expected a mapping")

        # Core weights are never defaulted for a loaded file
        scoring = (data or {}).get("scoring") or {}
        if isinstance(scoring, Mapping) and not scoring.get("weights"):
            raise MissingConfigError("scoring.weights", source=str(path))

        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scoring": self.scoring.to_dict(),
            "penalty": self.penalty.to_dict(),
            "updates": self.updates.to_dict(),
            "cache": self.cache.to_dict(),
            "logging": self.logging.to_dict(),
        }

    def validate(self) -> "ProgressSystemConfig":
        """
        Check the configuration.

        Raises:
            ConfigurationError: on any fatal problem

        Returns:
            self, for chaining
        """
        _validate_weights(self.scoring.weights)
        _validate_scoring(self.scoring)
        _validate_penalty(self.penalty)
        _validate_updates(self.updates)
        _validate_cache(self.cache)
        return self


# ============================================================
# VALIDATION HELPERS
# ============================================================


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def _require_number(key: str, value: Any, minimum: Optional[float] = 0.0) -> None:
    if not _is_number(value):
        raise InvalidConfigError(key, value, "must be numeric")
    if minimum is not None and value < minimum:
        raise InvalidConfigError(key, value, f"must be >= {minimum}")


def _validate_weights(weights: Mapping[str, Any]) -> None:
    if not isinstance(weights, Mapping):
        raise InvalidConfigError("scoring.weights", weights, "must be a mapping")

    known = set(Category.names())
    for key in weights:
        if key not in known:
            raise InvalidConfigError(f"scoring.weights.{key}", key, "unknown category")

    for name in Category.names():
        if name not in weights:
            raise MissingConfigError(f"scoring.weights.{name}")
        _require_number(f"scoring.weights.{name}", weights[name])

    total = sum(float(weights[name]) for name in Category.names())
    if abs(total - 100.0) > WEIGHT_SUM_TOLERANCE:
        logger.warning(
            f"Category weights sum to {total:.2f}, expected 100 | "
            f"scores will not span the full range"
        )


def _validate_scoring(scoring: ScoringConfig) -> None:
    _require_number("scoring.min_score", scoring.min_score, minimum=None)
    _require_number("scoring.max_score", scoring.max_score, minimum=None)
    if scoring.min_score > scoring.max_score:
        raise InvalidConfigError(
            "scoring.min_score", scoring.min_score,
            f"greater than max_score ({scoring.max_score})",
        )
    if scoring.experience.max_level <= 0:
        raise InvalidConfigError(
            "scoring.categories.experience.max_level", scoring.experience.max_level, "must be > 0"
        )
    if scoring.wealth.max_balance <= 1:
        raise InvalidConfigError(
            "scoring.categories.wealth.max_balance", scoring.wealth.max_balance, "must be > 1"
        )
    stats = scoring.statistics
    for key in ("max_kills", "max_blocks", "max_distance_blocks", "max_playtime_hours"):
        if getattr(stats, key) <= 0:
            raise InvalidConfigError(
                f"scoring.categories.statistics.{key}", getattr(stats, key), "must be > 0"
            )


def _validate_penalty(penalty: PenaltyConfig) -> None:
    if penalty.mode not in PENALTY_MODES:
        raise InvalidConfigError("penalty.mode", penalty.mode, f"must be one of {PENALTY_MODES}")

    offsets = penalty.decay_offsets_seconds
    fractions = penalty.decay_fractions
    if len(offsets) != len(fractions) or not offsets:
        raise InvalidConfigError(
            "penalty.decay_offsets_seconds", offsets,
            "must be non-empty and match decay_fractions in length",
        )
    for i, (offset, fraction) in enumerate(zip(offsets, fractions)):
        _require_number(f"penalty.decay_offsets_seconds[{i}]", offset)
        _require_number(f"penalty.decay_fractions[{i}]", fraction)
    if any(b <= a for a, b in zip(offsets, offsets[1:])):
        raise InvalidConfigError("penalty.decay_offsets_seconds", offsets, "must be strictly increasing")
    if abs(sum(fractions) - 1.0) > 1e-6:
        raise InvalidConfigError("penalty.decay_fractions", fractions, "must sum to 1")

    _require_number("penalty.hard_expiry_seconds", penalty.hard_expiry_seconds)
    _require_number("penalty.scale_constant", penalty.scale_constant)
    if penalty.scale_constant <= 0:
        raise InvalidConfigError("penalty.scale_constant", penalty.scale_constant, "must be > 0")
    _require_number("penalty.penalty_per_loss_event", penalty.penalty_per_loss_event)
    _require_number("penalty.max_flat_penalty", penalty.max_flat_penalty)


def _validate_updates(updates: UpdateConfig) -> None:
    for trigger, delay in updates.debounce_seconds.items():
        _require_number(f"updates.debounce_seconds.{trigger}", delay)
    _require_number("updates.event_threshold", updates.event_threshold)
    _require_number("updates.collaborator_timeout_seconds", updates.collaborator_timeout_seconds)
    _require_number("updates.recalculation_interval_seconds", updates.recalculation_interval_seconds)
    _require_number("updates.max_concurrent_recomputes", updates.max_concurrent_recomputes, minimum=1)


def _validate_cache(cache: CacheConfig) -> None:
    _require_number("cache.ttl_seconds", cache.ttl_seconds)
    _require_number("cache.autosave_interval_seconds", cache.autosave_interval_seconds)
    _require_number("cache.history_retention_seconds", cache.history_retention_seconds)


# ============================================================
# FACTORY FUNCTIONS
# ============================================================


def get_default_config() -> ProgressSystemConfig:
    """Get default configuration."""
    return ProgressSystemConfig()


def load_config(path: Optional[Union[str, Path]] = None) -> ProgressSystemConfig:
    """
    Load and validate configuration from file or use defaults.

    Defaults apply only when no path is given. An explicit path
    must exist and must define scoring.weights.

    Args:
        path: Optional path to YAML config file

    Returns:
        Validated ProgressSystemConfig

    Raises:
        MissingConfigError: if the file or its weights are missing
    """
    if path is None:
        return get_default_config().validate()

    if not Path(path).is_file():
        raise MissingConfigError(str(path), source="config file")

    return ProgressSystemConfig.from_yaml(path).validate()
