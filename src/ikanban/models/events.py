from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from ikanban.models.task import TaskRuntime, TaskState
from ikanban.models.worktree import (
    CleanupTaskWorktreeResult,
    ManagedWorktree,
    WorktreeMergeResult,
)
from ikanban.models.conversation import ConversationSessionMeta, PromptSubmission


class RuntimeEventType(StrEnum):
    TASK_ENQUEUED = "task.enqueued"
    TASK_STATE_CHANGED = "task.state.changed"
    TASK_WORKTREE_CREATED = "task.worktree.created"
    TASK_SESSION_CREATED = "task.session.created"
    TASK_PROMPT_SUBMITTED = "task.prompt.submitted"
    TASK_CLEANUP_COMPLETED = "task.cleanup.completed"
    TASK_FAILED = "task.failed"
    TASK_COMPLETED = "task.completed"
    WORKTREE_CREATED = "worktree.created"
    WORKTREE_CLEANUP = "worktree.cleanup"
    WORKTREE_REMOVED = "worktree.removed"
    WORKTREE_MERGED = "worktree.merged"
    SESSION_CREATED = "session.created"
    SESSION_PROMPT_SUBMITTED = "session.prompt.submitted"
    LOG_APPENDED = "log.appended"


class LogLevel(StrEnum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class RuntimeEvent(BaseModel):
    sequence: int
    type: RuntimeEventType
    payload: dict[str, Any] = Field(default_factory=dict)


class UiUpdate(BaseModel):
    sequence: int
    event_type: RuntimeEventType
    scope: str
    action: str
    task_id: str | None = None
    project_id: str | None = None


class RuntimeLogEntry(BaseModel):
    sequence: int
    event_type: RuntimeEventType
    level: LogLevel
    source: str
    message: str
    task_id: str | None = None
    project_id: str | None = None


class OrchestratorEventType(StrEnum):
    TASK_ENQUEUED = "task.enqueued"
    TASK_STATE_CHANGED = "task.state.changed"
    TASK_WORKTREE_CREATED = "task.worktree.created"
    TASK_SESSION_CREATED = "task.session.created"
    TASK_PROMPT_SUBMITTED = "task.prompt.submitted"
    TASK_CLEANUP_COMPLETED = "task.cleanup.completed"
    TASK_WORKTREE_MERGED = "task.worktree.merged"
    TASK_FAILED = "task.failed"


class OrchestratorEvent(BaseModel):
    """A task-level notification published by the orchestrator.

    ``task`` is a snapshot taken at emission time; the type-specific
    fields are only set for the matching event types.
    """

    type: OrchestratorEventType
    task: TaskRuntime
    from_state: TaskState | None = None
    to_state: TaskState | None = None
    worktree: ManagedWorktree | None = None
    session: ConversationSessionMeta | None = None
    prompt: PromptSubmission | None = None
    cleanup: CleanupTaskWorktreeResult | None = None
    merge: WorktreeMergeResult | None = None
    error: str | None = None

    @property
    def task_id(self) -> str:
        return self.task.task_id
