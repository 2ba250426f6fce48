# src/tasksync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..remote.supabase_service import friendly_remote_error_message

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


async def run_console_loop(state: AppState) -> None:
    """
    Interactive REPL over the task store.

    input() runs in a worker thread so background sync (replay, realtime
    refetch, connectivity polling) keeps running while the prompt waits.
    """
    logger.info("Console connector started (demo=%s).", state.demo_mode)
    _print_ts("[CONSOLE] Use /help for commands, /exit to quit.\n")
    if state.demo_mode:
        _print_ts("[CONSOLE] Demo backend: use /net off and /net on to simulate connectivity.")

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            _print_ts("Commands start with '/'. Use /help.")
            continue

        try:
            response = await command_registry.handle(state, user_input)
        except Exception as e:
            logger.exception("Command handler crashed.")
            response = f"Internal error while handling a command: {friendly_remote_error_message(e)}"

        if response is not None:
            _print_ts(response)

    logger.info("Console connector finished.")
