import os

import pytest
from pydantic import ValidationError

from ikanban.errors import InvalidInputError
from ikanban.models import (
    ConversationMessage,
    ConversationRole,
    ConversationSessionMeta,
    IkanbanSettings,
    MessagePart,
    ProjectRef,
    TaskState,
)
from ikanban.models.common import normalize_directory, normalize_id, normalize_timestamp
from ikanban.models.conversation import to_message_meta, touch_session
from ikanban.models.project import validate_project_ref
from ikanban.models.task import VALID_TRANSITIONS, is_terminal
from ikanban.models.worktree import CleanupPolicy


def test_normalize_id_trims_and_rejects_blank():
    assert normalize_id("  task-1 ", "Task id") == "task-1"
    with pytest.raises(InvalidInputError, match="Task id is required."):
        normalize_id("   ", "Task id")


def test_normalize_directory_resolves_relative_paths(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert normalize_directory(" repo ", "Project directory") == os.path.join(
        str(tmp_path), "repo"
    )
    assert normalize_directory("/tmp/project/../project", "Dir") == "/tmp/project"


@pytest.mark.parametrize("value", [0, -1, float("inf"), float("nan"), True, "123"])
def test_normalize_timestamp_rejects_non_positive_or_non_numbers(value):
    with pytest.raises(InvalidInputError, match="must be a positive finite number"):
        normalize_timestamp(value)


def test_normalize_timestamp_truncates_to_int():
    assert normalize_timestamp(1700000000000.9) == 1700000000000


def test_project_ref_requires_absolute_root():
    with pytest.raises(ValidationError, match="absolute path"):
        ProjectRef(id="p", name="P", root_directory="relative/dir", created_at=1)


def test_project_ref_strips_whitespace_and_is_frozen():
    project = ProjectRef(id=" p ", name=" Project ", root_directory="/tmp/p", created_at=5)
    assert project.id == "p"
    assert project.name == "Project"
    assert validate_project_ref(project) == []
    with pytest.raises(ValidationError):
        project.name = "other"


def test_terminal_states():
    assert is_terminal(TaskState.COMPLETED)
    assert is_terminal(TaskState.FAILED)
    assert not is_terminal(TaskState.CLEANING)
    assert not is_terminal(TaskState.REVIEW)


def test_failed_reachable_from_every_non_terminal_working_state():
    for state in (
        TaskState.QUEUED,
        TaskState.CREATING_WORKTREE,
        TaskState.RUNNING,
        TaskState.REVIEW,
        TaskState.CLEANING,
    ):
        assert TaskState.FAILED in VALID_TRANSITIONS[state]
    assert VALID_TRANSITIONS[TaskState.COMPLETED] == [TaskState.CLEANING]


def test_to_message_meta_joins_part_text_and_maps_unknown_role():
    message = ConversationMessage(
        id="m1",
        session_id="s1",
        role="narrator",
        created_at=10,
        parts=[MessagePart(text=" Hello"), MessagePart(), MessagePart(text=" world ")],
    )
    meta = to_message_meta(message)
    assert meta.role == ConversationRole.ASSISTANT
    assert meta.preview == "Hello world"
    assert meta.part_count == 3
    assert meta.has_error is False


def test_touch_session_updates_both_timestamps():
    session = ConversationSessionMeta(
        session_id="s1",
        project_id="p",
        task_id="t",
        directory="/tmp/w",
        created_at=1,
        updated_at=1,
    )
    touched = touch_session(session, 42)
    assert touched.updated_at == 42
    assert touched.last_message_at == 42
    assert session.updated_at == 1


def test_settings_read_nested_env(monkeypatch):
    monkeypatch.setenv("IKANBAN_RUNTIME__URL", "http://runtime:5000")
    monkeypatch.setenv("IKANBAN_WORKTREE__CLEANUP_POLICY", "keep")
    monkeypatch.setenv("IKANBAN_LOG_BUFFER_SIZE", "10")

    settings = IkanbanSettings()

    assert settings.runtime.url == "http://runtime:5000"
    assert settings.worktree.cleanup_policy == CleanupPolicy.KEEP
    assert settings.log_buffer_size == 10
    assert settings.orchestrator.rest_port == 8420
