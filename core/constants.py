"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines engine-wide constants.

- Single source of truth for default values
- Config dataclasses default to these
- No business logic here

============================================================
"""

from typing import Dict, Tuple


# ============================================================
# SYSTEM CONSTANTS
# ============================================================

SYSTEM_NAME = "progress-engine"
SYSTEM_VERSION = "1.0.0"

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400


# ============================================================
# SCORE BOUNDS
# ============================================================

DEFAULT_MIN_SCORE = 1.0
DEFAULT_MAX_SCORE = 100.0

CATEGORY_SCORE_MIN = 0.0
CATEGORY_SCORE_MAX = 100.0

# Tolerance when checking that category weights sum to 100
WEIGHT_SUM_TOLERANCE = 0.01


# ============================================================
# CATEGORY WEIGHTS (percent)
# ============================================================

DEFAULT_CATEGORY_WEIGHTS: Dict[str, float] = {
    "milestones": 25.0,
    "experience": 15.0,
    "equipment": 20.0,
    "wealth": 15.0,
    "statistics": 15.0,
    "custom": 10.0,
}


# ============================================================
# PENALTY DECAY
# ============================================================

DECAY_OFFSETS_SECONDS: Tuple[float, ...] = (60.0, 180.0, 300.0)
DECAY_FRACTIONS: Tuple[float, ...] = (0.3, 0.3, 0.4)
PENALTY_HARD_EXPIRY_SECONDS = 3600.0
PENALTY_SCALE_CONSTANT = 1000.0

# Flat mode (hosts that cannot report lost item value)
PENALTY_PER_LOSS_EVENT = 0.5
MAX_FLAT_PENALTY = 50.0


# ============================================================
# UPDATE ORCHESTRATION
# ============================================================

DEFAULT_DEBOUNCE_SECONDS: Dict[str, float] = {
    "level_up": 0.25,
    "inventory": 0.5,
    "milestone": 0.5,
    "quit": 0.5,
    "decay": 0.5,
    "loss": 0.5,
    "admin": 0.5,
    "join": 1.0,
    "periodic": 1.0,
    "statistics": 5.0,
    "default": 1.0,
}

DEFAULT_EVENT_THRESHOLD = 0.5
DEFAULT_MAX_CONCURRENT_RECOMPUTES = 8
DEFAULT_COLLABORATOR_TIMEOUT_SECONDS = 2.0


# ============================================================
# CACHE & MAINTENANCE
# ============================================================

DEFAULT_CACHE_TTL_SECONDS = 600.0
DEFAULT_AUTOSAVE_INTERVAL_SECONDS = 300.0
DEFAULT_RECALCULATION_INTERVAL_SECONDS = 60.0
DEFAULT_HISTORY_RETENTION_SECONDS = 30 * SECONDS_PER_DAY
