# src/tasksync/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ..core.state import AppState
from ..net.connectivity import ManualConnectivityMonitor
from ..tasks.task_models import NewTask, SyncOutcome, Task, format_date_display
from ..tasks.task_views import filter_by_place, nearest_task, sort_by_date, sort_pending_first, unique_places

CommandHandler = Callable[[AppState, list[str]], Awaitable[str]]

logger = logging.getLogger(__name__)

NOT_SIGNED_IN = "Not signed in."


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return await handler(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def format_task(task: Task) -> str:
    mark = "x" if task.is_done else " "
    loc = f" @ {task.latitude:.5f},{task.longitude:.5f}" if task.has_location else ""
    return f"[{mark}] #{task.id} {task.name} | {task.place}{loc} | {format_date_display(task.date)}"


def _parse_id(args: list[str]) -> int | None:
    if not args:
        return None
    try:
        return int(args[0])
    except ValueError:
        return None


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    store = state.tasks
    user = state.session.user
    online = (await state.connectivity.get_current_state()).is_online
    backend = "in-memory demo" if state.demo_mode else "supabase"
    lines = [
        "Status:",
        f"  Backend: {backend}",
        f"  User: {(user.get('email') or user.get('id')) if user else '-'}",
        f"  Online: {'yes' if online else 'no'}",
        f"  Replay policy: {getattr(state.settings, 'replay_policy', 'retry')}",
    ]
    if store is not None:
        lines.append(f"  Tasks: {len(store.tasks)}")
        lines.append(f"  Pending offline changes: {len(store.offline_queue)}")
    return "\n".join(lines)


async def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list          -> all tasks, not-done first, each group by due date
    /list <place>  -> only tasks at that place
    """
    store = state.tasks
    if store is None:
        return NOT_SIGNED_IN
    place = " ".join(args).strip() or None
    tasks = sort_pending_first(sort_by_date(filter_by_place(store.tasks, place)))
    if not tasks:
        return f"No tasks at {place}." if place else "No tasks."
    return "\n".join(format_task(t) for t in tasks)


async def cmd_places(state: AppState, args: list[str]) -> str:
    store = state.tasks
    if store is None:
        return NOT_SIGNED_IN
    places = unique_places(store.tasks)
    if not places:
        return "No places yet."
    return "Places: " + ", ".join(places)


async def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add name | date | place
    /add name | date | place | lat lon
    """
    store = state.tasks
    user = state.session.user
    if store is None or user is None:
        return NOT_SIGNED_IN

    fields = [f.strip() for f in " ".join(args).split("|")]
    if len(fields) < 3:
        return "Usage: /add name | date | place [| lat lon]"

    latitude = longitude = None
    if len(fields) >= 4 and fields[3]:
        try:
            lat_s, lon_s = fields[3].replace(",", " ").split()
            latitude, longitude = float(lat_s), float(lon_s)
        except ValueError:
            return "Coordinates must look like: 52.2297 21.0122"

    try:
        new_task = NewTask(
            name=fields[0],
            date=fields[1],
            place=fields[2],
            creator_id=user["id"],
            latitude=latitude,
            longitude=longitude,
        )
    except ValueError as e:
        return f"Invalid task: {e}"

    result = await store.add_task(new_task)
    if not result:
        return f"Could not add task: {result.message}"
    return f"Added {format_task(result.data)}"


async def cmd_done(state: AppState, args: list[str]) -> str:
    store = state.tasks
    if store is None:
        return NOT_SIGNED_IN
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /done <id>"

    task = await store.fetch_task_by_id(task_id)
    if task is None:
        return f"Task #{task_id} not found."

    result = await store.toggle_done(task.id, task.is_done)
    if not result:
        return f"Could not update task #{task_id}: {result.message}"
    label = "done" if not task.is_done else "not done"
    if result.outcome == SyncOutcome.QUEUED:
        return f"Task #{task_id} marked {label}. {result.message}"
    return f"Task #{task_id} marked {label}."


async def cmd_rm(state: AppState, args: list[str]) -> str:
    store = state.tasks
    if store is None:
        return NOT_SIGNED_IN
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /rm <id>"
    result = await store.remove_task(task_id)
    if not result:
        return f"Could not remove task #{task_id}: {result.message}"
    return f"Task #{task_id} removed."


async def cmd_show(state: AppState, args: list[str]) -> str:
    store = state.tasks
    if store is None:
        return NOT_SIGNED_IN
    task_id = _parse_id(args)
    if task_id is None:
        return "Usage: /show <id>"
    task = await store.fetch_task_by_id(task_id)
    if task is None:
        return f"Task #{task_id} not found."
    lines = [
        format_task(task),
        f"  Due: {format_date_display(task.date)} ({task.date})",
        f"  Created: {task.created_at or '-'}",
    ]
    return "\n".join(lines)


async def cmd_queue(state: AppState, args: list[str]) -> str:
    store = state.tasks
    if store is None:
        return NOT_SIGNED_IN
    pending = store.offline_queue
    if not pending:
        return "No pending offline changes."
    lines = [f"Pending offline changes ({len(pending)}):"]
    for i, m in enumerate(pending, start=1):
        lines.append(f"{i}. task #{m.id} -> {'done' if m.new_value else 'not done'}")
    return "\n".join(lines)


async def cmd_sync(state: AppState, args: list[str]) -> str:
    store = state.tasks
    if store is None:
        return NOT_SIGNED_IN
    engine = store.engine
    if not await engine.is_online():
        return "Offline: changes stay queued until the connection is back."
    report = await engine.replay_offline_queue()
    if report.empty:
        result = await store.fetch_tasks()
        return f"Refreshed {len(store.tasks)} task(s)." if result else f"Refresh failed: {result.message}"
    return (
        f"Synced: {report.acknowledged} applied, {report.failed} failed, "
        f"{report.dropped} dropped, {len(report.remaining)} still pending."
    )


async def cmd_net(state: AppState, args: list[str]) -> str:
    """
    /net          -> show connectivity
    /net on|off   -> simulate connectivity (demo backend only)
    """
    monitor = state.connectivity
    if not args:
        online = (await monitor.get_current_state()).is_online
        return f"Network is {'ONLINE' if online else 'OFFLINE'}."

    if not isinstance(monitor, ManualConnectivityMonitor):
        return "Connectivity is checked automatically with a real backend."

    arg = args[0].lower()
    if arg in ("on", "1", "true", "yes"):
        monitor.set_online(True)
        await state.session.wait_idle()
        store = state.tasks
        queued = len(store.offline_queue) if store is not None else 0
        return f"Network ONLINE. Pending offline changes: {queued}."
    if arg in ("off", "0", "false", "no"):
        monitor.set_online(False)
        return "Network OFFLINE. Changes will be saved locally."
    return "Usage: /net on or /net off."


async def cmd_nearest(state: AppState, args: list[str]) -> str:
    store = state.tasks
    if store is None:
        return NOT_SIGNED_IN
    try:
        lat, lon = float(args[0]), float(args[1])
    except (IndexError, ValueError):
        return "Usage: /nearest <lat> <lon>"
    found = nearest_task(store.tasks, lat, lon)
    if found is None:
        return "No task has a location."
    task, dist = found
    return f"Nearest: {format_task(task)} ({dist:.2f} km)"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show backend, user, connectivity and queue size.")
registry.register("list", cmd_list, help_text="List tasks: /list [place].", aliases=["ls"])
registry.register("places", cmd_places, help_text="List distinct task places.")
registry.register("add", cmd_add, help_text="Add a task: /add name | date | place [| lat lon].")
registry.register("done", cmd_done, help_text="Toggle done: /done <id>.", aliases=["toggle"])
registry.register("rm", cmd_rm, help_text="Remove a task: /rm <id>.", aliases=["del"])
registry.register("show", cmd_show, help_text="Show task details: /show <id>.")
registry.register("queue", cmd_queue, help_text="Show changes waiting to be synced.")
registry.register("sync", cmd_sync, help_text="Replay pending changes now and refresh.")
registry.register("net", cmd_net, help_text="Connectivity: /net | /net on | /net off (demo).")
registry.register("nearest", cmd_nearest, help_text="Nearest task: /nearest <lat> <lon>.")
