from enum import StrEnum

from pydantic import BaseModel, Field

from ikanban.models.common import now_ms


class TaskState(StrEnum):
    QUEUED = "queued"
    CREATING_WORKTREE = "creating_worktree"
    RUNNING = "running"
    REVIEW = "review"
    COMPLETED = "completed"
    FAILED = "failed"
    CLEANING = "cleaning"


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED})

# Source of truth for the task lifecycle. FAILED is reachable from every
# non-terminal state; CLEANING returns to whichever state it was entered from.
VALID_TRANSITIONS: dict[TaskState, list[TaskState]] = {
    TaskState.QUEUED: [TaskState.CREATING_WORKTREE, TaskState.FAILED],
    TaskState.CREATING_WORKTREE: [TaskState.RUNNING, TaskState.FAILED],
    TaskState.RUNNING: [TaskState.REVIEW, TaskState.FAILED],
    TaskState.REVIEW: [TaskState.COMPLETED, TaskState.CLEANING, TaskState.FAILED],
    TaskState.COMPLETED: [TaskState.CLEANING],
    TaskState.FAILED: [TaskState.CLEANING],
    TaskState.CLEANING: [TaskState.REVIEW, TaskState.COMPLETED, TaskState.FAILED],
}


def is_terminal(state: TaskState) -> bool:
    return state in TERMINAL_STATES


class TaskRuntime(BaseModel):
    task_id: str
    project_id: str
    state: TaskState = TaskState.QUEUED
    title: str | None = None
    prompt: str | None = None
    session_id: str | None = None
    worktree_directory: str | None = None
    error: str | None = None
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)


class RunTaskInput(BaseModel):
    task_id: str
    project_id: str
    initial_prompt: str
    title: str | None = None
    start_command: str | None = None
