"""Task lifecycle coordination across the worktree and conversation managers.

The orchestrator owns every ``TaskRuntime``. Managers own their own
mappings; the orchestrator only records the resulting worktree directory
and session id on the task.
"""

import logging
from collections.abc import Callable

from ikanban.errors import InvalidInputError, TaskNotFoundError, TaskStateError
from ikanban.models.common import normalize_id, now_ms
from ikanban.models.conversation import ConversationMessageMeta, PromptSubmission
from ikanban.models.events import OrchestratorEvent, OrchestratorEventType
from ikanban.models.task import (
    VALID_TRANSITIONS,
    RunTaskInput,
    TaskRuntime,
    TaskState,
    is_terminal,
)
from ikanban.models.worktree import (
    CleanupPolicy,
    CleanupTaskWorktreeResult,
    WorktreeDiff,
    WorktreeMergeResult,
)
from ikanban.orchestrator.services.conversation_manager import ConversationManager
from ikanban.orchestrator.services.project_registry import ProjectRegistry
from ikanban.orchestrator.services.worktree_manager import (
    WorktreeManager,
    normalize_task_id,
    resolve_cleanup_policy,
)

logger = logging.getLogger(__name__)

OrchestratorListener = Callable[[OrchestratorEvent], None]

_CLEANABLE_STATES = frozenset({TaskState.REVIEW, TaskState.COMPLETED, TaskState.FAILED})
_MERGEABLE_STATES = frozenset({TaskState.REVIEW, TaskState.COMPLETED})
_PROMPTABLE_STATES = frozenset({TaskState.RUNNING, TaskState.REVIEW})


class TaskOrchestrator:
    def __init__(
        self,
        worktrees: WorktreeManager,
        conversations: ConversationManager,
        projects: ProjectRegistry,
        *,
        clock: Callable[[], int] = now_ms,
    ):
        self._worktrees = worktrees
        self._conversations = conversations
        self._projects = projects
        self._clock = clock
        self._tasks: dict[str, TaskRuntime] = {}
        self._start_commands: dict[str, str | None] = {}
        self._listeners: list[OrchestratorListener] = []

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------

    async def run_task(self, request: RunTaskInput) -> TaskRuntime:
        """Create a worktree and a session for a task, then hand it to the agent.

        Returns once the initial prompt is accepted, with the task in
        ``review``. Any failure marks the task ``failed`` and is re-raised;
        resources created before the failure are left in place.
        """
        task_id = normalize_task_id(request.task_id)
        project_id = normalize_id(request.project_id, "Project id")
        prompt = (request.initial_prompt or "").strip()
        if not prompt:
            raise InvalidInputError("Initial prompt is required.")

        existing = self._tasks.get(task_id)
        if existing is not None and not is_terminal(existing.state):
            raise TaskStateError(
                f"Task {task_id} is already active in state {existing.state}."
            )
        project = self._projects.get_project(project_id)
        if project is None:
            raise InvalidInputError(f"Project {project_id} is not registered.")

        created_at = self._clock()
        task = TaskRuntime(
            task_id=task_id,
            project_id=project_id,
            state=TaskState.QUEUED,
            title=(request.title or "").strip() or None,
            prompt=prompt,
            created_at=created_at,
            updated_at=created_at,
        )
        self._tasks[task_id] = task
        self._start_commands[task_id] = request.start_command
        logger.info("Task %s enqueued for project %s", task_id, project_id)
        self._emit(OrchestratorEventType.TASK_ENQUEUED, task)

        try:
            self._transition(task, TaskState.CREATING_WORKTREE)
            worktree = await self._worktrees.create_task_worktree(
                project.root_directory,
                task_id,
                start_command=request.start_command,
            )
            self._update(task, worktree_directory=worktree.directory)
            self._emit(OrchestratorEventType.TASK_WORKTREE_CREATED, task, worktree=worktree)

            self._transition(task, TaskState.RUNNING)
            session = await self._conversations.create_task_session(
                project_id,
                task_id,
                project.root_directory,
                worktree.directory,
                title=task.title,
            )
            self._update(task, session_id=session.session_id)
            self._emit(OrchestratorEventType.TASK_SESSION_CREATED, task, session=session)

            submission = await self._conversations.send_initial_prompt(
                session.session_id,
                prompt,
                worktree_directory=worktree.directory,
            )
            self._emit(OrchestratorEventType.TASK_PROMPT_SUBMITTED, task, prompt=submission)

            self._transition(task, TaskState.REVIEW)
        except Exception as e:
            self._fail(task, e)
            raise

        return task.model_copy()

    async def retry_task(self, task_id: str) -> TaskRuntime:
        """Start a fresh attempt of a failed task under a derived id."""
        task = self._require(task_id)
        if task.state != TaskState.FAILED:
            raise TaskStateError(
                f"Only failed tasks can be retried; task {task.task_id} is {task.state}."
            )
        if not task.prompt:
            raise TaskStateError(f"Task {task.task_id} has no stored prompt to retry.")

        retry_id = f"{task.task_id}-retry-{self._clock()}"
        logger.info("Retrying task %s as %s", task.task_id, retry_id)
        return await self.run_task(
            RunTaskInput(
                task_id=retry_id,
                project_id=task.project_id,
                initial_prompt=task.prompt,
                title=task.title,
                start_command=self._start_commands.get(task.task_id),
            )
        )

    def complete_task(self, task_id: str) -> TaskRuntime:
        task = self._require(task_id)
        if task.state != TaskState.REVIEW:
            raise TaskStateError(
                f"Task {task.task_id} must be in review to complete; it is {task.state}."
            )
        self._transition(task, TaskState.COMPLETED)
        return task.model_copy()

    def delete_task(self, task_id: str) -> TaskRuntime:
        task = self._require(task_id)
        if not is_terminal(task.state):
            raise TaskStateError(
                f"Task {task.task_id} is {task.state}; only completed or failed "
                "tasks can be deleted."
            )
        del self._tasks[task.task_id]
        self._start_commands.pop(task.task_id, None)
        logger.info("Deleted task %s", task.task_id)
        return task

    # --------------------------------------------------
    # Reads
    # --------------------------------------------------

    def get_task(self, task_id: str) -> TaskRuntime | None:
        task = self._tasks.get((task_id or "").strip())
        return task.model_copy() if task is not None else None

    def list_tasks(self, project_id: str | None = None) -> list[TaskRuntime]:
        tasks = self._tasks.values()
        if project_id:
            tasks = [t for t in tasks if t.project_id == project_id]
        return [t.model_copy() for t in sorted(tasks, key=lambda t: t.created_at)]

    async def list_task_messages(self, task_id: str) -> list[ConversationMessageMeta]:
        task = self._require(task_id)
        if not task.session_id:
            raise TaskStateError(f"Task {task.task_id} has no conversation session.")
        return await self._conversations.list_conversation_messages(
            task.session_id,
            worktree_directory=task.worktree_directory,
        )

    # --------------------------------------------------
    # Follow-up operations
    # --------------------------------------------------

    async def send_follow_up_prompt(self, task_id: str, prompt: str) -> PromptSubmission:
        task = self._require(task_id)
        if task.state not in _PROMPTABLE_STATES or not task.session_id:
            raise TaskStateError(
                f"Task {task.task_id} cannot take a follow-up prompt in state {task.state}."
            )
        submission = await self._conversations.send_follow_up_prompt(
            task.session_id,
            prompt,
            worktree_directory=task.worktree_directory,
        )
        self._update(task)
        self._emit(OrchestratorEventType.TASK_PROMPT_SUBMITTED, task, prompt=submission)
        return submission

    async def cleanup_task_worktree(
        self,
        task_id: str,
        policy: CleanupPolicy | str | None = CleanupPolicy.REMOVE,
    ) -> CleanupTaskWorktreeResult:
        """Tear down (or keep) the task's worktree.

        The task passes through ``cleaning`` and returns to its previous
        state; a teardown error leaves it ``failed``.
        """
        task = self._require(task_id)
        policy = resolve_cleanup_policy(policy, CleanupPolicy.REMOVE)
        if task.state not in _CLEANABLE_STATES:
            raise TaskStateError(
                f"Task {task.task_id} cannot be cleaned up in state {task.state}."
            )
        project_directory = self._project_directory(task)

        previous_state = task.state
        self._transition(task, TaskState.CLEANING)
        try:
            result = await self._worktrees.cleanup_task_worktree(
                project_directory,
                task.task_id,
                policy,
                worktree_directory=task.worktree_directory,
            )
        except Exception as e:
            self._fail(task, e)
            raise

        if result.removed:
            self._update(task, worktree_directory=None)
        self._transition(task, previous_state)
        self._emit(OrchestratorEventType.TASK_CLEANUP_COMPLETED, task, cleanup=result)
        return result

    async def merge_task_worktree(self, task_id: str) -> WorktreeMergeResult:
        task = self._require(task_id)
        if task.state not in _MERGEABLE_STATES:
            raise TaskStateError(
                f"Task {task.task_id} cannot be merged in state {task.state}."
            )
        worktree_directory = self._require_worktree(task)

        result = await self._worktrees.merge_task_worktree(
            self._project_directory(task),
            task.task_id,
            worktree_directory,
        )
        self._emit(OrchestratorEventType.TASK_WORKTREE_MERGED, task, merge=result)

        if task.state == TaskState.REVIEW:
            self._transition(task, TaskState.COMPLETED)
        return result

    async def get_task_worktree_diff(self, task_id: str) -> WorktreeDiff:
        task = self._require(task_id)
        return await self._worktrees.get_task_worktree_diff(
            self._project_directory(task),
            task.task_id,
            self._require_worktree(task),
        )

    # --------------------------------------------------
    # Events
    # --------------------------------------------------

    def subscribe(self, listener: OrchestratorListener) -> Callable[[], None]:
        self._listeners.append(listener)
        active = True

        def unsubscribe() -> None:
            nonlocal active
            if active:
                active = False
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(
        self,
        event_type: OrchestratorEventType,
        task: TaskRuntime,
        **fields,
    ) -> None:
        event = OrchestratorEvent(type=event_type, task=task.model_copy(), **fields)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Orchestrator listener failed for %s on task %s",
                    event_type, task.task_id,
                )

    # --------------------------------------------------
    # Internals
    # --------------------------------------------------

    def _require(self, task_id: str) -> TaskRuntime:
        task = self._tasks.get((task_id or "").strip())
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _require_worktree(self, task: TaskRuntime) -> str:
        if not task.worktree_directory:
            raise TaskStateError(f"Task {task.task_id} has no worktree.")
        return task.worktree_directory

    def _project_directory(self, task: TaskRuntime) -> str:
        project = self._projects.get_project(task.project_id)
        if project is None:
            raise InvalidInputError(f"Project {task.project_id} is not registered.")
        return project.root_directory

    def _update(self, task: TaskRuntime, **fields) -> None:
        for name, value in fields.items():
            setattr(task, name, value)
        task.updated_at = self._clock()

    def _transition(self, task: TaskRuntime, to_state: TaskState) -> None:
        from_state = task.state
        if to_state not in VALID_TRANSITIONS.get(from_state, []):
            raise TaskStateError(
                f"Invalid transition for task {task.task_id}: {from_state} -> {to_state}"
            )
        self._update(task, state=to_state)
        logger.info("Task %s: %s -> %s", task.task_id, from_state, to_state)
        self._emit(
            OrchestratorEventType.TASK_STATE_CHANGED,
            task,
            from_state=from_state,
            to_state=to_state,
        )

    def _fail(self, task: TaskRuntime, error: Exception) -> None:
        message = str(error) or type(error).__name__
        self._update(task, error=message)
        if task.state != TaskState.FAILED:
            self._transition(task, TaskState.FAILED)
        logger.error("Task %s failed: %s", task.task_id, message)
        self._emit(OrchestratorEventType.TASK_FAILED, task, error=message)
