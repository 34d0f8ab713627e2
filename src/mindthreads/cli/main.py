# src/mindthreads/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console in the main thread.
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import StorageError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown: report unsaved changes, never raise."""
    store = getattr(state, "task_store", None)
    if store is None or not hasattr(store, "close"):
        return
    try:
        store.close()
    except Exception:
        logger.debug("Task store close failed.", exc_info=True)


def main() -> int:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    file_level = getattr(logging, level_name, logging.INFO)

    setup_logging(
        log_dir=settings.data_dir,
        file_level=file_level,
        log_to_file=settings.log_to_file,
    )

    logger.info("Starting %s...", settings.app_name)

    try:
        state = create_initial_state(settings=settings)
    except StorageError as e:
        logger.error("Cannot open task store: %s", e)
        print(f"Cannot open task store: {e}")
        return 1

    try:
        run_console_loop(state)
    finally:
        _shutdown(state)
        logger.info("Bye.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
