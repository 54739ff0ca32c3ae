from enum import StrEnum

from pydantic import BaseModel


class CleanupPolicy(StrEnum):
    KEEP = "keep"
    REMOVE = "remove"


class DiffMode(StrEnum):
    WORKING_TREE = "working_tree"
    BRANCH = "branch"


class ManagedWorktree(BaseModel):
    task_id: str
    project_directory: str
    name: str
    branch: str
    directory: str
    created_at: int


class CleanupTaskWorktreeResult(BaseModel):
    policy: CleanupPolicy
    task_id: str
    worktree_directory: str | None = None
    removed: bool


class WorktreeMergeResult(BaseModel):
    task_id: str
    merged: bool
    branch: str
    default_branch: str
    commit_hash: str | None = None
    committed_pending_changes: bool = False


class WorktreeDiff(BaseModel):
    task_id: str
    branch: str
    default_branch: str
    mode: DiffMode
    diff: str
