"""
Update Orchestrator - Package.

============================================================
PURPOSE
============================================================
Schedules and runs progress recomputes, and exposes the
engine's public service surface.

============================================================
USAGE
============================================================
    from update_orchestrator import ProgressService, load_config
    from participant_store import InMemoryPersistenceStore

    service = ProgressService(
        snapshot_provider=my_host_adapter,
        store=InMemoryPersistenceStore(),
        config=load_config("config/progress.yaml"),
    )
    await service.start()
    service.request_update(participant_id, trigger="level_up")

============================================================
"""

from .config import (
    LoggingConfig,
    ProgressSystemConfig,
    UpdateConfig,
    get_default_config,
    load_config,
)
from .orchestrator import ParticipantState, UpdateOrchestrator
from .service import LossResult, OperationResult, ProgressService, to_participant_id


__all__ = [
    "LoggingConfig",
    "ProgressSystemConfig",
    "UpdateConfig",
    "get_default_config",
    "load_config",
    "ParticipantState",
    "UpdateOrchestrator",
    "LossResult",
    "OperationResult",
    "ProgressService",
    "to_participant_id",
]
