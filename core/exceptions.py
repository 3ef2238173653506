"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the progress engine.

- Provides clear exception hierarchy
- Separates fatal (configuration) from locally recovered errors
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
ProgressEngineError (base)
├── ConfigurationError
│   ├── MissingConfigError
│   └── InvalidConfigError
├── SnapshotUnavailableError
├── PersistenceError
├── InvariantViolationError
└── UnknownParticipantError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, degraded result."""

    HIGH = "high"
    """Serious issue, component cannot start."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class ProgressEngineError(Exception):
    """
    Base exception for all progress engine errors.

    All exceptions carry:
    - severity: for log level decisions
    - context: for debugging
    - recoverable: whether the engine continues after it
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_recoverable: bool = True

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.recoverable = recoverable if recoverable is not None else self.default_recoverable
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        base = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        return f"{base} | {ctx_str}" if ctx_str else base


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(ProgressEngineError):
    """Error in configuration. Fatal at load time."""

    default_severity = Severity.HIGH
    default_recoverable = False

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if expected_type:
            context["expected_type"] = expected_type
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""

    def __init__(self, key: str, source: str = "config"):
        super().__init__(
            message=f"Missing required configuration: {key}",
            config_key=key,
            context={"source": source},
        )


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


# ============================================================
# RUNTIME ERRORS
# ============================================================

class SnapshotUnavailableError(ProgressEngineError):
    """A collaborator could not provide category input."""

    def __init__(
        self,
        message: str,
        participant_id: Optional[Any] = None,
        source: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if participant_id is not None:
            context["participant_id"] = str(participant_id)
        if source:
            context["source"] = source

        super().__init__(message, context=context, **kwargs)


class PersistenceError(ProgressEngineError):
    """Persistence store failed to load or save."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        participant_id: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if operation:
            context["operation"] = operation
        if participant_id is not None:
            context["participant_id"] = str(participant_id)

        super().__init__(message, context=context, **kwargs)


class InvariantViolationError(ProgressEngineError):
    """Internal invariant broken; corrected by clamping."""

    default_severity = Severity.LOW


class UnknownParticipantError(ProgressEngineError):
    """Operation requires a participant the engine has never seen."""

    default_severity = Severity.LOW

    def __init__(self, participant_id: Any):
        super().__init__(
            message=f"Unknown participant: {participant_id}",
            context={"participant_id": str(participant_id)},
        )


__all__ = [
    "Severity",
    "ProgressEngineError",
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    "SnapshotUnavailableError",
    "PersistenceError",
    "InvariantViolationError",
    "UnknownParticipantError",
]
