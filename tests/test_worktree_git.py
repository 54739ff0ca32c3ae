import asyncio

import pytest

from ikanban.errors import GitCommandError, InvalidInputError
from ikanban.models.worktree import DiffMode
from ikanban.orchestrator.services.git_ops import GitOps
from ikanban.orchestrator.services.worktree_manager import WorktreeManager


@pytest.fixture
def manager(fake_runtime) -> WorktreeManager:
    return WorktreeManager(fake_runtime, GitOps())


def _commit_count(git_helper, repo) -> int:
    return int(git_helper(repo, "rev-list", "--count", "HEAD"))


def test_merge_without_commits_ahead_is_not_merged(manager, git_repo, add_worktree, git_helper):
    worktree = add_worktree("task-1")

    result = asyncio.run(manager.merge_task_worktree(str(git_repo), "task-1", str(worktree)))

    assert result.merged is False
    assert result.branch == "task-1"
    assert result.default_branch == "main"
    assert result.committed_pending_changes is False
    assert _commit_count(git_helper, git_repo) == 1


def test_whitespace_only_changes_are_not_merged(manager, git_repo, add_worktree, git_helper):
    worktree = add_worktree("task-1")
    (worktree / "app.py").write_text("def  main():\n    return   1   \n")
    git_helper(worktree, "commit", "-q", "-am", "reformat")

    result = asyncio.run(manager.merge_task_worktree(str(git_repo), "task-1", str(worktree)))

    assert result.merged is False
    assert _commit_count(git_helper, git_repo) == 1


def test_merge_squashes_branch_into_one_commit(manager, git_repo, add_worktree, git_helper):
    worktree = add_worktree("task-1")
    (worktree / "app.py").write_text("def main():\n    return 2\n")
    git_helper(worktree, "commit", "-q", "-am", "change return value")
    (worktree / "util.py").write_text("VALUE = 3\n")
    git_helper(worktree, "add", "util.py")
    git_helper(worktree, "commit", "-q", "-m", "add util")

    result = asyncio.run(manager.merge_task_worktree(str(git_repo), "task-1", str(worktree)))

    assert result.merged is True
    assert result.commit_hash == git_helper(git_repo, "rev-parse", "HEAD")
    assert _commit_count(git_helper, git_repo) == 2
    assert git_helper(git_repo, "log", "-1", "--format=%s") == "ikanban: merge task task-1 (task-1)"
    assert (git_repo / "util.py").read_text() == "VALUE = 3\n"
    assert git_helper(git_repo, "status", "--porcelain") == ""


def test_merge_commits_pending_worktree_changes_first(manager, git_repo, add_worktree, git_helper):
    worktree = add_worktree("task-1")
    (worktree / "notes.md").write_text("agent output\n")

    result = asyncio.run(manager.merge_task_worktree(str(git_repo), "task-1", str(worktree)))

    assert result.committed_pending_changes is True
    assert result.merged is True
    assert (git_repo / "notes.md").exists()
    assert _commit_count(git_helper, git_repo) == 2


def test_merge_rejects_worktree_on_default_branch(manager, git_repo):
    with pytest.raises(InvalidInputError, match="default branch"):
        asyncio.run(manager.merge_task_worktree(str(git_repo), "task-1", str(git_repo)))


def test_conflicting_squash_merge_is_rolled_back(manager, git_repo, add_worktree, git_helper):
    worktree = add_worktree("task-1")
    (worktree / "app.py").write_text("def main():\n    return 'branch'\n")
    git_helper(worktree, "commit", "-q", "-am", "branch edit")
    (git_repo / "app.py").write_text("def main():\n    return 'main'\n")
    git_helper(git_repo, "commit", "-q", "-am", "main edit")

    with pytest.raises(GitCommandError):
        asyncio.run(manager.merge_task_worktree(str(git_repo), "task-1", str(worktree)))

    assert git_helper(git_repo, "status", "--porcelain") == ""
    assert (git_repo / "app.py").read_text() == "def main():\n    return 'main'\n"


def test_diff_of_uncommitted_changes_uses_working_tree(manager, git_repo, add_worktree):
    worktree = add_worktree("task-1")
    (worktree / "app.py").write_text("def main():\n    return 42\n")

    diff = asyncio.run(manager.get_task_worktree_diff(str(git_repo), "task-1", str(worktree)))

    assert diff.mode == DiffMode.WORKING_TREE
    assert "+    return 42" in diff.diff
    assert diff.branch == "task-1"
    assert diff.default_branch == "main"


def test_working_tree_diff_includes_untracked_files(manager, git_repo, add_worktree, git_helper):
    worktree = add_worktree("task-1")
    (worktree / "new_module.py").write_text("VALUE = 3\n")

    diff = asyncio.run(manager.get_task_worktree_diff(str(git_repo), "task-1", str(worktree)))

    assert diff.mode == DiffMode.WORKING_TREE
    assert "new_module.py" in diff.diff
    assert "+VALUE = 3" in diff.diff
    # The worktree index is left alone
    assert git_helper(worktree, "status", "--porcelain") == "?? new_module.py"


def test_diff_of_committed_changes_compares_branches(manager, git_repo, add_worktree, git_helper):
    worktree = add_worktree("task-1")
    (worktree / "app.py").write_text("def main():\n    return 7\n")
    git_helper(worktree, "commit", "-q", "-am", "seven")

    diff = asyncio.run(manager.get_task_worktree_diff(str(git_repo), "task-1", str(worktree)))

    assert diff.mode == DiffMode.BRANCH
    assert "-    return 1" in diff.diff
    assert "+    return 7" in diff.diff


def test_git_ops_helpers(git_repo, add_worktree, git_helper):
    git_ops = GitOps()
    worktree = add_worktree("task-1")

    assert git_ops.current_branch(str(worktree)) == "task-1"
    assert git_ops.has_uncommitted_changes(str(worktree)) is False
    assert git_ops.commit_all(str(worktree), "nothing") is None

    (worktree / "new.txt").write_text("x\n")
    assert git_ops.has_uncommitted_changes(str(worktree)) is True
    commit_hash = git_ops.commit_all(str(worktree), "add new")

    assert commit_hash == git_helper(worktree, "rev-parse", "HEAD")
    assert git_ops.ahead_commits(str(git_repo), "main", "task-1") == 1
    assert "new.txt" in git_ops.diff_stat(str(git_repo), "main", "task-1")


def test_git_command_error_carries_command_and_stderr(git_repo):
    with pytest.raises(GitCommandError) as excinfo:
        GitOps().run(str(git_repo), "rev-parse", "no-such-ref")

    assert excinfo.value.command[:3] == ["git", "-C", str(git_repo)]
    assert excinfo.value.exit_code != 0
    assert "Command failed: git -C" in str(excinfo.value)
