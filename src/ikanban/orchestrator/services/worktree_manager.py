"""Maps tasks to git worktrees and runs worktree-scoped git operations.

Worktrees are created, listed, reset and removed through the agent runtime
so that the runtime knows about them; branch bookkeeping, merging and
diffing go straight to git.
"""

import logging
import re
from collections.abc import Callable
from typing import Protocol

from ikanban.errors import GitCommandError, InvalidInputError
from ikanban.models.common import normalize_directory, normalize_timestamp, now_ms
from ikanban.models.worktree import (
    CleanupPolicy,
    CleanupTaskWorktreeResult,
    DiffMode,
    ManagedWorktree,
    WorktreeDiff,
    WorktreeMergeResult,
)
from ikanban.orchestrator.services.git_ops import GitOps
from ikanban.runtime_client.responses import read_data_or_throw, read_mapping_or_throw

logger = logging.getLogger(__name__)

WORKTREE_TASK_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class ClientProvider(Protocol):
    async def get_client(self, directory: str): ...


def normalize_task_id(task_id: str | None) -> str:
    normalized = (task_id or "").strip()
    if not normalized:
        raise InvalidInputError("Task id is required.")
    if not WORKTREE_TASK_ID_PATTERN.match(normalized):
        raise InvalidInputError(
            "Task id can only include letters, numbers, hyphen, and "
            "underscore for worktree naming."
        )
    return normalized


def build_task_worktree_name(task_id: str, timestamp: float | None = None) -> str:
    """Derive the worktree name for a task.

    Deterministic for a given ``(task_id, timestamp)`` pair.
    """
    normalized_task_id = normalize_task_id(task_id)
    created_at = normalize_timestamp(now_ms() if timestamp is None else timestamp)
    return f"task-{normalized_task_id}-{created_at}"


def should_remove_worktree(policy: CleanupPolicy | str) -> bool:
    return policy == CleanupPolicy.REMOVE


def resolve_cleanup_policy(
    policy: CleanupPolicy | str | None,
    fallback: CleanupPolicy = CleanupPolicy.KEEP,
) -> CleanupPolicy:
    if policy is None:
        return fallback
    try:
        return CleanupPolicy(policy)
    except ValueError:
        raise InvalidInputError(
            f"Unknown cleanup policy: {policy!r}. Expected 'keep' or 'remove'."
        ) from None


class WorktreeManager:
    """One git worktree per task, tracked in memory."""

    def __init__(
        self,
        runtime: ClientProvider,
        git_ops: GitOps | None = None,
        *,
        delete_branch_on_remove: bool = True,
        merge_message_prefix: str = "ikanban",
        clock: Callable[[], int] = now_ms,
    ):
        self._runtime = runtime
        self._git = git_ops or GitOps()
        self._delete_branch_on_remove = delete_branch_on_remove
        self._merge_message_prefix = merge_message_prefix
        self._clock = clock
        self._task_to_directory: dict[str, str] = {}

    async def create_task_worktree(
        self,
        project_directory: str,
        task_id: str,
        *,
        start_command: str | None = None,
        timestamp: float | None = None,
    ) -> ManagedWorktree:
        project_directory = normalize_directory(project_directory, "Project directory")
        task_id = normalize_task_id(task_id)
        created_at = normalize_timestamp(
            self._clock() if timestamp is None else timestamp,
        )
        name = build_task_worktree_name(task_id, created_at)

        client = await self._runtime.get_client(project_directory)
        payload = read_mapping_or_throw(
            await client.worktree.create(
                directory=project_directory,
                name=name,
                start_command=start_command,
            ),
            "Failed to create worktree",
        )

        directory = normalize_directory(payload.get("directory"), "Worktree directory")
        self._task_to_directory[task_id] = directory
        logger.info("Created worktree %s for task %s at %s", name, task_id, directory)

        return ManagedWorktree(
            task_id=task_id,
            project_directory=project_directory,
            name=payload.get("name") or name,
            branch=payload.get("branch") or "",
            directory=directory,
            created_at=created_at,
        )

    async def list_worktrees(self, project_directory: str) -> list[str]:
        project_directory = normalize_directory(project_directory, "Project directory")
        client = await self._runtime.get_client(project_directory)
        directories = read_data_or_throw(
            await client.worktree.list(directory=project_directory),
            "Failed to list worktrees",
        )
        return [normalize_directory(d, "Worktree directory") for d in directories]

    async def reset_worktree(
        self, project_directory: str, worktree_directory: str,
    ) -> bool:
        project_directory = normalize_directory(project_directory, "Project directory")
        worktree_directory = normalize_directory(worktree_directory, "Worktree directory")
        client = await self._runtime.get_client(project_directory)
        return bool(
            read_data_or_throw(
                await client.worktree.reset(
                    directory=project_directory,
                    worktree_directory=worktree_directory,
                ),
                "Failed to reset worktree",
            )
        )

    async def remove_worktree(
        self, project_directory: str, worktree_directory: str,
    ) -> bool:
        project_directory = normalize_directory(project_directory, "Project directory")
        worktree_directory = normalize_directory(worktree_directory, "Worktree directory")

        # The branch has to be read before the directory disappears.
        branch = None
        if self._delete_branch_on_remove:
            branch = self._resolve_branch_quietly(worktree_directory)

        client = await self._runtime.get_client(project_directory)
        removed = bool(
            read_data_or_throw(
                await client.worktree.remove(
                    directory=project_directory,
                    worktree_directory=worktree_directory,
                ),
                "Failed to remove worktree",
            )
        )
        if not removed:
            return False

        stale = [
            task_id
            for task_id, directory in self._task_to_directory.items()
            if directory == worktree_directory
        ]
        for task_id in stale:
            del self._task_to_directory[task_id]
        logger.info("Removed worktree at %s", worktree_directory)

        if branch:
            self._delete_branch_quietly(project_directory, branch)
        return True

    async def cleanup_task_worktree(
        self,
        project_directory: str,
        task_id: str,
        policy: CleanupPolicy | str | None,
        *,
        worktree_directory: str | None = None,
    ) -> CleanupTaskWorktreeResult:
        task_id = normalize_task_id(task_id)
        policy = resolve_cleanup_policy(policy)
        project_directory = normalize_directory(project_directory, "Project directory")

        resolved = (
            normalize_directory(worktree_directory, "Worktree directory")
            if worktree_directory
            else self._task_to_directory.get(task_id)
        )
        if not resolved:
            return CleanupTaskWorktreeResult(policy=policy, task_id=task_id, removed=False)

        if not should_remove_worktree(policy):
            self._task_to_directory[task_id] = resolved
            return CleanupTaskWorktreeResult(
                policy=policy,
                task_id=task_id,
                worktree_directory=resolved,
                removed=False,
            )

        removed = await self.remove_worktree(project_directory, resolved)
        if removed:
            self._task_to_directory.pop(task_id, None)

        return CleanupTaskWorktreeResult(
            policy=policy,
            task_id=task_id,
            worktree_directory=resolved,
            removed=removed,
        )

    async def merge_task_worktree(
        self,
        project_directory: str,
        task_id: str,
        worktree_directory: str,
    ) -> WorktreeMergeResult:
        """Squash-merge the task branch into the project's current branch."""
        project_directory = normalize_directory(project_directory, "Project directory")
        task_id = normalize_task_id(task_id)
        worktree_directory = normalize_directory(worktree_directory, "Worktree directory")

        branch = self._git.current_branch(worktree_directory)
        default_branch = self._git.current_branch(project_directory)
        if branch == default_branch:
            raise InvalidInputError(
                f"Worktree {worktree_directory} is on the default branch "
                f"{default_branch}; nothing to merge."
            )

        pending = self._git.commit_all(
            worktree_directory,
            f"{self._merge_message_prefix}: save pending changes for task {task_id}",
        )

        result = WorktreeMergeResult(
            task_id=task_id,
            merged=False,
            branch=branch,
            default_branch=default_branch,
            committed_pending_changes=pending is not None,
        )

        ahead = self._git.ahead_commits(project_directory, default_branch, branch)
        if ahead == 0 or not self._git.has_effective_diff(
            project_directory, default_branch, branch,
        ):
            logger.info(
                "Task %s has no changes to merge into %s", task_id, default_branch,
            )
            return result

        commit_hash = self._git.squash_merge(
            project_directory,
            branch,
            f"{self._merge_message_prefix}: merge task {task_id} ({branch})",
        )
        if commit_hash is None:
            return result

        logger.info(
            "Squash-merged %s into %s for task %s: %s",
            branch, default_branch, task_id, commit_hash,
        )
        return result.model_copy(update={"merged": True, "commit_hash": commit_hash})

    async def get_task_worktree_diff(
        self,
        project_directory: str,
        task_id: str,
        worktree_directory: str,
    ) -> WorktreeDiff:
        project_directory = normalize_directory(project_directory, "Project directory")
        task_id = normalize_task_id(task_id)
        worktree_directory = normalize_directory(worktree_directory, "Worktree directory")

        branch = self._git.current_branch(worktree_directory)
        default_branch = self._git.current_branch(project_directory)

        if self._git.has_uncommitted_changes(worktree_directory):
            mode = DiffMode.WORKING_TREE
            diff = self._git.diff_working_tree(worktree_directory, default_branch)
        else:
            mode = DiffMode.BRANCH
            diff = self._git.diff_branches(project_directory, default_branch, branch)

        return WorktreeDiff(
            task_id=task_id,
            branch=branch,
            default_branch=default_branch,
            mode=mode,
            diff=diff,
        )

    def get_task_worktree_directory(self, task_id: str) -> str | None:
        return self._task_to_directory.get(normalize_task_id(task_id))

    def _resolve_branch_quietly(self, worktree_directory: str) -> str | None:
        try:
            branch = self._git.current_branch(worktree_directory)
        except (GitCommandError, OSError) as e:
            logger.warning(
                "Could not resolve branch for worktree %s: %s", worktree_directory, e,
            )
            return None
        return None if branch == "HEAD" else branch

    def _delete_branch_quietly(self, project_directory: str, branch: str) -> None:
        try:
            self._git.delete_branch(project_directory, branch)
            logger.info("Deleted branch %s", branch)
        except (GitCommandError, OSError) as e:
            logger.warning("Failed to delete branch %s: %s", branch, e)
