"""Backend runtime control utility

Provides startup, stop and status query logic for the UI shell.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from routine_backend.config import EngineConfig, get_config
from routine_backend.core.coordinator import RoutineCoordinator, get_coordinator
from routine_backend.core.logger import get_logger, setup_logging

logger = get_logger(__name__)


async def start_runtime(
    config_file: Optional[str] = None, date: Optional[str] = None
) -> RoutineCoordinator:
    """Load configuration and start the routine coordinator (if not already running)

    Args:
        config_file: Configuration file, the default location when omitted
        date: First date to show, today when omitted
    """
    loader = get_config(config_file)
    if config_file is not None:
        setup_logging()
    coordinator = get_coordinator(EngineConfig.from_loader(loader))

    if coordinator.is_running:
        logger.info("Routine coordinator already running")
        return coordinator

    await coordinator.start(date)
    status = coordinator.get_stats()
    logger.info(
        f"✓ Runtime started: mode={status['mode']}, date={status['current_date']}"
    )
    return coordinator


async def stop_runtime(*, quiet: bool = False) -> RoutineCoordinator:
    """Stop the routine coordinator, writing any pending comment edit first"""
    coordinator = get_coordinator()

    if not coordinator.is_running:
        if not quiet:
            logger.info("Routine coordinator not running")
        return coordinator

    await coordinator.stop(quiet=quiet)
    if not quiet:
        logger.info("Runtime stopped")
    return coordinator


def get_runtime_status() -> Dict[str, Any]:
    """Return current coordinator status"""
    return get_coordinator().get_stats()
