import logging
from collections.abc import Callable, Mapping
from typing import Any

from ikanban.models.events import (
    LogLevel,
    RuntimeEvent,
    RuntimeEventType,
    RuntimeLogEntry,
    UiUpdate,
)

logger = logging.getLogger(__name__)

EventListener = Callable[[RuntimeEvent], None]
UiListener = Callable[[UiUpdate], None]
LogListener = Callable[[RuntimeLogEntry], None]
Unsubscribe = Callable[[], None]

SOURCE = "runtime-event-bus"


class RuntimeEventBus:
    """In-process fan-out of runtime events over three channels.

    Every emitted event goes to the raw channel, then (unless it is a
    ``log.appended``) to the UI projection, then to the log projection.
    Delivery is synchronous: an ``emit`` called from inside a listener is
    fully delivered before the outer ``emit`` resumes.
    """

    def __init__(self):
        self._sequence = 0
        self._listeners: list[EventListener] = []
        self._ui_listeners: list[UiListener] = []
        self._log_listeners: list[LogListener] = []

    def emit(
        self,
        event_type: RuntimeEventType | str,
        payload: Mapping[str, Any] | None = None,
    ) -> RuntimeEvent:
        try:
            event_type = RuntimeEventType(event_type)
        except ValueError:
            raise ValueError(f"Unknown runtime event type: {event_type!r}") from None

        self._sequence += 1
        event = RuntimeEvent(
            sequence=self._sequence,
            type=event_type,
            payload=dict(payload or {}),
        )

        self._deliver(self._listeners, event)
        if event.type != RuntimeEventType.LOG_APPENDED:
            self._deliver(self._ui_listeners, to_ui_update(event))
        self._deliver(self._log_listeners, to_log_entry(event))
        return event

    def subscribe(self, listener: EventListener) -> Unsubscribe:
        return _register(self._listeners, listener)

    def subscribe_to_ui_updates(self, listener: UiListener) -> Unsubscribe:
        return _register(self._ui_listeners, listener)

    def subscribe_to_logs(self, listener: LogListener) -> Unsubscribe:
        return _register(self._log_listeners, listener)

    def listener_count(self) -> int:
        return (
            len(self._listeners)
            + len(self._ui_listeners)
            + len(self._log_listeners)
        )

    @staticmethod
    def _deliver(listeners: list, item: Any) -> None:
        # Snapshot so listeners may unsubscribe during delivery.
        for listener in list(listeners):
            try:
                listener(item)
            except Exception:
                logger.exception(
                    "Event bus listener failed for %s",
                    getattr(item, "type", getattr(item, "event_type", None)),
                )


def _register(listeners: list, listener: Callable) -> Unsubscribe:
    listeners.append(listener)
    active = True

    def unsubscribe() -> None:
        nonlocal active
        if not active:
            return
        active = False
        listeners.remove(listener)

    return unsubscribe


def to_ui_update(event: RuntimeEvent) -> UiUpdate:
    scope, _, action = event.type.value.partition(".")
    return UiUpdate(
        sequence=event.sequence,
        event_type=event.type,
        scope=scope,
        action=action,
        task_id=_optional_str(event.payload.get("task_id")),
        project_id=_optional_str(event.payload.get("project_id")),
    )


def to_log_entry(event: RuntimeEvent) -> RuntimeLogEntry:
    payload = event.payload
    if event.type == RuntimeEventType.LOG_APPENDED:
        level = _coerce_level(payload.get("level"))
        source = _optional_str(payload.get("source")) or SOURCE
        message = str(payload.get("message", ""))
    else:
        level = (
            LogLevel.ERROR
            if event.type == RuntimeEventType.TASK_FAILED
            else LogLevel.INFO
        )
        source = SOURCE
        message = describe_event(event.type, payload)

    return RuntimeLogEntry(
        sequence=event.sequence,
        event_type=event.type,
        level=level,
        source=source,
        message=message,
        task_id=_optional_str(payload.get("task_id")),
        project_id=_optional_str(payload.get("project_id")),
    )


def describe_event(event_type: RuntimeEventType, payload: Mapping[str, Any]) -> str:
    """Human-readable log line for a non-log event."""
    task_id = payload.get("task_id", "unknown")

    match event_type:
        case RuntimeEventType.TASK_ENQUEUED:
            return f"Task {task_id} enqueued in state {payload.get('state', 'queued')}."
        case RuntimeEventType.TASK_STATE_CHANGED:
            return (
                f"Task {task_id} moved from {payload.get('previous_state')} "
                f"to {payload.get('next_state')}."
            )
        case RuntimeEventType.WORKTREE_CREATED | RuntimeEventType.TASK_WORKTREE_CREATED:
            return (
                f"Worktree {payload.get('name', 'unknown')} created at "
                f"{payload.get('directory', 'unknown')}."
            )
        case RuntimeEventType.SESSION_CREATED | RuntimeEventType.TASK_SESSION_CREATED:
            return f"Session {payload.get('session_id', 'unknown')} created."
        case (
            RuntimeEventType.SESSION_PROMPT_SUBMITTED
            | RuntimeEventType.TASK_PROMPT_SUBMITTED
        ):
            return f"Prompt submitted to session {payload.get('session_id', 'unknown')}."
        case RuntimeEventType.WORKTREE_CLEANUP | RuntimeEventType.TASK_CLEANUP_COMPLETED:
            outcome = "removed" if payload.get("removed") else "kept"
            return f"Worktree cleanup for task {task_id}: {outcome}."
        case RuntimeEventType.WORKTREE_REMOVED:
            return f"Worktree removed at {payload.get('directory', 'unknown')}."
        case RuntimeEventType.WORKTREE_MERGED:
            if payload.get("merged"):
                return (
                    f"Task {task_id} merged into {payload.get('default_branch')} "
                    f"as {payload.get('commit_hash')}."
                )
            return f"Task {task_id} had no changes to merge."
        case RuntimeEventType.TASK_FAILED:
            return f"Task {task_id} failed: {payload.get('error', 'unknown error')}"
        case RuntimeEventType.TASK_COMPLETED:
            return f"Task {task_id} completed."
        case _:
            return f"{event_type.value} for task {task_id}."


def _coerce_level(value: Any) -> LogLevel:
    try:
        return LogLevel(value)
    except ValueError:
        return LogLevel.INFO


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None
