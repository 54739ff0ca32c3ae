from ikanban.models.events import OrchestratorEvent, OrchestratorEventType
from ikanban.models.task import TaskRuntime, TaskState
from ikanban.models.worktree import (
    CleanupPolicy,
    CleanupTaskWorktreeResult,
    WorktreeMergeResult,
)
from ikanban.orchestrator.services.event_bus import RuntimeEventBus
from ikanban.orchestrator.services.event_relay import relay_orchestrator_event


def _task(state=TaskState.REVIEW) -> TaskRuntime:
    return TaskRuntime(
        task_id="t1", project_id="p1", state=state, created_at=1, updated_at=2,
    )


def _relay(event: OrchestratorEvent) -> list:
    bus = RuntimeEventBus()
    events = []
    bus.subscribe(events.append)
    relay_orchestrator_event(event, bus)
    return events


def test_state_change_to_completed_also_emits_task_completed():
    events = _relay(OrchestratorEvent(
        type=OrchestratorEventType.TASK_STATE_CHANGED,
        task=_task(TaskState.COMPLETED),
        from_state=TaskState.REVIEW,
        to_state=TaskState.COMPLETED,
    ))

    assert [e.type for e in events] == ["task.state.changed", "task.completed"]
    assert events[0].payload["previous_state"] == "review"
    assert events[0].payload["next_state"] == "completed"
    assert events[1].payload["task_id"] == "t1"


def test_state_change_to_other_states_emits_one_event():
    events = _relay(OrchestratorEvent(
        type=OrchestratorEventType.TASK_STATE_CHANGED,
        task=_task(TaskState.RUNNING),
        from_state=TaskState.CREATING_WORKTREE,
        to_state=TaskState.RUNNING,
    ))
    assert [e.type for e in events] == ["task.state.changed"]


def test_removed_cleanup_emits_cleanup_and_removed():
    events = _relay(OrchestratorEvent(
        type=OrchestratorEventType.TASK_CLEANUP_COMPLETED,
        task=_task(),
        cleanup=CleanupTaskWorktreeResult(
            policy=CleanupPolicy.REMOVE,
            task_id="t1",
            worktree_directory="/tmp/w",
            removed=True,
        ),
    ))

    assert [e.type for e in events] == ["worktree.cleanup", "worktree.removed"]
    assert events[1].payload == {"task_id": "t1", "project_id": "p1", "directory": "/tmp/w"}


def test_kept_cleanup_emits_only_cleanup():
    events = _relay(OrchestratorEvent(
        type=OrchestratorEventType.TASK_CLEANUP_COMPLETED,
        task=_task(),
        cleanup=CleanupTaskWorktreeResult(
            policy=CleanupPolicy.KEEP, task_id="t1", worktree_directory="/tmp/w", removed=False,
        ),
    ))
    assert [e.type for e in events] == ["worktree.cleanup"]


def test_merge_and_failure_are_relayed():
    merged = _relay(OrchestratorEvent(
        type=OrchestratorEventType.TASK_WORKTREE_MERGED,
        task=_task(),
        merge=WorktreeMergeResult(
            task_id="t1", merged=True, branch="b", default_branch="main", commit_hash="abc",
        ),
    ))
    failed = _relay(OrchestratorEvent(
        type=OrchestratorEventType.TASK_FAILED,
        task=_task(TaskState.FAILED),
        error="boom",
    ))

    assert merged[0].type == "worktree.merged"
    assert merged[0].payload["commit_hash"] == "abc"
    assert failed[0].type == "task.failed"
    assert failed[0].payload["error"] == "boom"
