#!/usr/bin/env python3
"""
Progress Engine - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Runs the progress engine with its admin HTTP API.

- Loads and validates configuration
- Initializes the database store
- Starts the service maintenance loops
- Serves the admin API until interrupted, then flushes

Host integrations embed ProgressService directly and supply
their own SnapshotProvider; running this file standalone serves
stored scores with no live host attached.

============================================================
USAGE
============================================================
    python app.py --config config/progress.example.yaml

Environment:
    PROGRESS_DATABASE_URL   SQLAlchemy URL (default sqlite file)
    PROGRESS_HOST / PROGRESS_PORT

============================================================
"""

import argparse
import asyncio
import json
import logging
import os
import sys
import uuid
from typing import Optional

import uvicorn

from admin_api.router import create_app
from core.clock import ClockProtocol
from core.exceptions import ConfigurationError, SnapshotUnavailableError
from core.scheduler import Scheduler
from database.engine import create_database_engine, get_session_factory, initialize_database
from database.repository import SqlAlchemyPersistenceStore
from participant_store.interfaces import (
    ChangeNotifier,
    PersistenceStore,
    SnapshotProvider,
    WealthProvider,
)
from progress_scoring.types import ParticipantSnapshot
from update_orchestrator.config import ProgressSystemConfig, load_config
from update_orchestrator.service import ProgressService


logger = logging.getLogger("progress_engine")


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Configured application logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logger


# ============================================================
# WIRING
# ============================================================

class DetachedSnapshotProvider(SnapshotProvider):
    """Snapshot source for a process with no live host attached."""

    async def get_snapshot(self, participant_id: uuid.UUID) -> ParticipantSnapshot:
        raise SnapshotUnavailableError(
            "No host attached",
            participant_id=participant_id,
            source="detached",
        )


def build_progress_service(
    config: ProgressSystemConfig,
    snapshot_provider: SnapshotProvider,
    store: PersistenceStore,
    wealth_provider: Optional[WealthProvider] = None,
    notifier: Optional[ChangeNotifier] = None,
    scheduler: Optional[Scheduler] = None,
    clock: Optional[ClockProtocol] = None,
) -> ProgressService:
    """Construct a fully wired ProgressService."""
    return ProgressService(
        snapshot_provider=snapshot_provider,
        store=store,
        config=config,
        wealth_provider=wealth_provider,
        notifier=notifier,
        scheduler=scheduler,
        clock=clock,
    )


# ============================================================
# CLI
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Progress engine admin server")
    parser.add_argument("--config", default=os.getenv("PROGRESS_CONFIG"), help="Path to YAML config")
    parser.add_argument("--database-url", default=None, help="SQLAlchemy database URL")
    parser.add_argument("--host", default=os.getenv("PROGRESS_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PROGRESS_PORT", "8000")))
    parser.add_argument("--log-level", default=None, help="Override configured log level")
    return parser


async def run_application(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e.to_log_format()}", file=sys.stderr)
        return 1

    setup_logging(args.log_level or config.logging.level, config.logging.format)

    engine = create_database_engine(args.database_url)
    initialize_database(engine)
    store = SqlAlchemyPersistenceStore(get_session_factory(engine))

    service = build_progress_service(config, DetachedSnapshotProvider(), store)
    await service.start()

    server = uvicorn.Server(uvicorn.Config(
        create_app(service),
        host=args.host,
        port=args.port,
        log_level=(args.log_level or config.logging.level).lower(),
        access_log=True,
    ))

    logger.info(f"Starting progress admin API on {args.host}:{args.port}")
    try:
        await server.serve()
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await service.stop()
        engine.dispose()


def main() -> int:
    """Main entry point."""
    args = create_parser().parse_args()
    return asyncio.run(run_application(args))


if __name__ == "__main__":
    sys.exit(main())
