"""
Participant Store - Configuration.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from core.constants import (
    DEFAULT_AUTOSAVE_INTERVAL_SECONDS,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_HISTORY_RETENTION_SECONDS,
)


@dataclass(frozen=True)
class CacheConfig:
    """
    Cache retention and background persistence.

    With caching disabled, idle records are flushed and dropped on
    every eviction pass instead of after ttl_seconds.
    """

    enabled: bool = True
    ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS                   # idle time before eviction
    autosave_interval_seconds: float = DEFAULT_AUTOSAVE_INTERVAL_SECONDS
    history_retention_seconds: float = DEFAULT_HISTORY_RETENTION_SECONDS
    history_limit_default: int = 10

    @property
    def effective_ttl(self) -> float:
        return self.ttl_seconds if self.enabled else 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CacheConfig":
        return cls(
            enabled=bool(data.get("enabled", True)),
            ttl_seconds=data.get("ttl_seconds", DEFAULT_CACHE_TTL_SECONDS),
            autosave_interval_seconds=data.get(
                "autosave_interval_seconds", DEFAULT_AUTOSAVE_INTERVAL_SECONDS
            ),
            history_retention_seconds=data.get(
                "history_retention_seconds", DEFAULT_HISTORY_RETENTION_SECONDS
            ),
            history_limit_default=int(data.get("history_limit_default", 10)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "ttl_seconds": self.ttl_seconds,
            "autosave_interval_seconds": self.autosave_interval_seconds,
            "history_retention_seconds": self.history_retention_seconds,
            "history_limit_default": self.history_limit_default,
        }
