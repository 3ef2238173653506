"""
Tests for configuration loading and validation.

Tests cover:
- Defaults and the shipped example file
- YAML loading
- Fatal validation errors vs. warnings
"""

import logging
from pathlib import Path

import pytest
import yaml

from core.exceptions import ConfigurationError, InvalidConfigError, MissingConfigError
from penalty_tracker.config import PenaltyConfig
from progress_scoring.config import ScoringConfig
from update_orchestrator.config import (
    ProgressSystemConfig,
    UpdateConfig,
    get_default_config,
    load_config,
)


EXAMPLE_CONFIG = Path(__file__).resolve().parents[2] / "config" / "progress.example.yaml"


def _write(tmp_path, data) -> Path:
    path = tmp_path / "progress.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


# =============================================================
# TEST: Loading
# =============================================================

class TestLoading:
    def test_defaults_validate(self):
        config = get_default_config().validate()
        assert sum(config.scoring.weights.values()) == pytest.approx(100.0)
        assert config.penalty.decay_schedule == ((60, 0.3), (180, 0.3), (300, 0.4))

    def test_example_file_validates(self):
        config = load_config(EXAMPLE_CONFIG)
        assert config.scoring.custom.milestones == {"first_shop": 10.0, "town_founder": 25.0}
        assert config.updates.delay_for("level_up") == 0.25
        assert config.updates.delay_for("unheard_of") == 1

    def test_no_path_uses_defaults(self):
        config = load_config()
        assert config.scoring.min_score == 1
        assert sum(config.scoring.weights.values()) == pytest.approx(100.0)

    def test_missing_file_is_fatal(self, tmp_path):
        with pytest.raises(MissingConfigError):
            load_config(tmp_path / "absent.yaml")

    def test_file_without_weights_is_fatal(self, tmp_path):
        path = _write(tmp_path, {"scoring": {"min_score": 1}})
        with pytest.raises(MissingConfigError):
            load_config(path)

    def test_file_without_scoring_section_is_fatal(self, tmp_path):
        path = _write(tmp_path, {"penalty": {"mode": "decay"}})
        with pytest.raises(MissingConfigError):
            load_config(path)

    def test_partial_weights_are_not_filled(self, tmp_path):
        path = _write(tmp_path, {"scoring": {"weights": {"milestones": 50, "experience": 50}}})
        with pytest.raises(MissingConfigError):
            load_config(path)

    def test_partial_yaml_fills_defaults(self, tmp_path):
        path = _write(tmp_path, {
            "scoring": {
                "weights": dict(ScoringConfig().weights),
                "categories": {"experience": {"max_level": 50}},
            },
            "updates": {"debounce_seconds": {"inventory": 2.0}},
        })
        config = load_config(path)
        assert config.scoring.experience.max_level == 50
        assert config.updates.delay_for("inventory") == 2.0
        assert config.updates.delay_for("level_up") == 0.25

    def test_round_trip_through_dict(self):
        config = get_default_config()
        rebuilt = ProgressSystemConfig.from_dict(config.to_dict())
        assert rebuilt.to_dict() == config.to_dict()

    def test_non_mapping_root_rejected(self, tmp_path):
        path = tmp_path / "progress.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(InvalidConfigError):
            load_config(path)

    def test_non_mapping_section_rejected(self):
        with pytest.raises(InvalidConfigError):
            ProgressSystemConfig.from_dict({"penalty": [1, 2, 3]})


# =============================================================
# TEST: Weight validation
# =============================================================

class TestWeights:
    def _config(self, weights):
        return ProgressSystemConfig(scoring=ScoringConfig(weights=weights))

    def test_missing_weight(self):
        weights = {"milestones": 25, "experience": 15, "equipment": 20, "wealth": 15, "statistics": 25}
        with pytest.raises(MissingConfigError):
            self._config(weights).validate()

    def test_negative_weight(self):
        weights = dict(ScoringConfig().weights, wealth=-5)
        with pytest.raises(InvalidConfigError):
            self._config(weights).validate()

    def test_non_numeric_weight(self):
        weights = dict(ScoringConfig().weights, wealth="lots")
        with pytest.raises(InvalidConfigError):
            self._config(weights).validate()

    def test_unknown_category(self):
        weights = dict(ScoringConfig().weights, charisma=5)
        with pytest.raises(InvalidConfigError):
            self._config(weights).validate()

    def test_sum_off_100_only_warns(self, caplog):
        weights = dict(ScoringConfig().weights, custom=20)
        with caplog.at_level(logging.WARNING):
            self._config(weights).validate()
        assert "sum to 110.00" in caplog.text


# =============================================================
# TEST: Other validation
# =============================================================

class TestValidation:
    def test_min_above_max(self):
        config = ProgressSystemConfig(scoring=ScoringConfig(min_score=90, max_score=10))
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_decay_fractions_must_sum_to_one(self):
        config = ProgressSystemConfig(penalty=PenaltyConfig(decay_fractions=(0.3, 0.3, 0.3)))
        with pytest.raises(InvalidConfigError):
            config.validate()

    def test_decay_offsets_must_increase(self):
        config = ProgressSystemConfig(penalty=PenaltyConfig(decay_offsets_seconds=(60, 60, 300)))
        with pytest.raises(InvalidConfigError):
            config.validate()

    def test_unknown_penalty_mode(self):
        config = ProgressSystemConfig(penalty=PenaltyConfig(mode="linear"))
        with pytest.raises(InvalidConfigError):
            config.validate()

    def test_concurrency_must_be_positive(self):
        config = ProgressSystemConfig(updates=UpdateConfig(max_concurrent_recomputes=0))
        with pytest.raises(InvalidConfigError):
            config.validate()

    def test_malformed_section_wrapped(self, tmp_path):
        path = _write(tmp_path, {"scoring": {
            "weights": dict(ScoringConfig().weights),
            "categories": {"experience": {"max_level": "high"}},
        }})
        with pytest.raises(InvalidConfigError):
            load_config(path)
