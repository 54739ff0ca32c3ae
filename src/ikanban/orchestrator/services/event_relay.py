"""Translate orchestrator task events into runtime bus events."""

from typing import Any

from ikanban.models.events import (
    OrchestratorEvent,
    OrchestratorEventType,
    RuntimeEventType,
)
from ikanban.models.task import TaskState
from ikanban.orchestrator.services.event_bus import RuntimeEventBus


def relay_orchestrator_event(event: OrchestratorEvent, bus: RuntimeEventBus) -> None:
    task = event.task
    base: dict[str, Any] = {"task_id": task.task_id, "project_id": task.project_id}

    match event.type:
        case OrchestratorEventType.TASK_ENQUEUED:
            bus.emit(
                RuntimeEventType.TASK_ENQUEUED,
                {**base, "state": task.state.value, "created_at": task.created_at},
            )

        case OrchestratorEventType.TASK_STATE_CHANGED:
            bus.emit(
                RuntimeEventType.TASK_STATE_CHANGED,
                {
                    **base,
                    "previous_state": _state_value(event.from_state),
                    "next_state": _state_value(event.to_state),
                    "changed_at": task.updated_at,
                },
            )
            if event.to_state == TaskState.COMPLETED:
                bus.emit(
                    RuntimeEventType.TASK_COMPLETED,
                    {**base, "completed_at": task.updated_at},
                )

        case OrchestratorEventType.TASK_WORKTREE_CREATED if event.worktree:
            worktree = event.worktree
            bus.emit(
                RuntimeEventType.WORKTREE_CREATED,
                {
                    **base,
                    "name": worktree.name,
                    "branch": worktree.branch,
                    "directory": worktree.directory,
                    "created_at": worktree.created_at,
                },
            )

        case OrchestratorEventType.TASK_SESSION_CREATED if event.session:
            session = event.session
            bus.emit(
                RuntimeEventType.SESSION_CREATED,
                {
                    **base,
                    "session_id": session.session_id,
                    "directory": session.directory,
                    "title": session.title,
                    "created_at": session.created_at,
                },
            )

        case OrchestratorEventType.TASK_PROMPT_SUBMITTED if event.prompt:
            bus.emit(
                RuntimeEventType.SESSION_PROMPT_SUBMITTED,
                {
                    **base,
                    "session_id": event.prompt.session_id,
                    "prompt": event.prompt.prompt,
                    "submitted_at": event.prompt.submitted_at,
                },
            )

        case OrchestratorEventType.TASK_CLEANUP_COMPLETED if event.cleanup:
            cleanup = event.cleanup
            bus.emit(
                RuntimeEventType.WORKTREE_CLEANUP,
                {
                    **base,
                    "policy": cleanup.policy.value,
                    "directory": cleanup.worktree_directory,
                    "removed": cleanup.removed,
                },
            )
            if cleanup.removed:
                bus.emit(
                    RuntimeEventType.WORKTREE_REMOVED,
                    {**base, "directory": cleanup.worktree_directory},
                )

        case OrchestratorEventType.TASK_WORKTREE_MERGED if event.merge:
            bus.emit(
                RuntimeEventType.WORKTREE_MERGED,
                {**base, **event.merge.model_dump(exclude={"task_id"})},
            )

        case OrchestratorEventType.TASK_FAILED:
            bus.emit(
                RuntimeEventType.TASK_FAILED,
                {**base, "error": event.error or task.error or "Unknown error"},
            )


def _state_value(state: TaskState | None) -> str | None:
    return state.value if state is not None else None
