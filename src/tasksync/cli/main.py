# src/tasksync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts the user session (which starts
task sync), then runs the console REPL or waits for a signal.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..net.connectivity import HttpConnectivityMonitor

logger = logging.getLogger(__name__)


async def _shutdown(state: AppState, monitor_task: asyncio.Task | None) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.session.stop()
    except Exception:
        logger.exception("Failed to stop session.")

    if monitor_task is not None:
        monitor_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await monitor_task

    connectivity = state.connectivity
    if isinstance(connectivity, HttpConnectivityMonitor):
        try:
            await connectivity.aclose()
        except Exception:
            logger.debug("Connectivity monitor close failed.", exc_info=True)

    try:
        aclose = getattr(state.remote, "aclose", None)
        if aclose is not None:
            await aclose()
    except Exception:
        logger.debug("Remote close failed.", exc_info=True)


async def run(settings) -> None:
    state = await create_initial_state(settings=settings)

    monitor_task: asyncio.Task | None = None
    if isinstance(state.connectivity, HttpConnectivityMonitor):
        monitor_task = asyncio.create_task(state.connectivity.run(), name="connectivity-monitor")

    stop_main = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Some platforms do not support signal handlers on the loop.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop_main.set)

    try:
        await state.session.start()
        if settings.console_enabled:
            await run_console_loop(state)
        else:
            logger.info("Console disabled. Syncing in the background. Press Ctrl+C to stop.")
            await stop_main.wait()
    finally:
        await _shutdown(state, monitor_task)
        logger.info("Bye.")


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")


if __name__ == "__main__":
    main()
