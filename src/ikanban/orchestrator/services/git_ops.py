import logging
import os
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ikanban.errors import GitCommandError

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    stdout: str
    stderr: str
    exit_code: int


ProcessExecutor = Callable[[Sequence[str]], ProcessResult]


def run_process(args: Sequence[str]) -> ProcessResult:
    """Run a command to completion and capture its text output."""
    completed = subprocess.run(
        list(args),
        capture_output=True,
        text=True,
        check=False,
    )
    return ProcessResult(
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        exit_code=completed.returncode,
    )


class GitOps:
    """Thin typed helpers over ``git -C <dir> ...`` invocations."""

    def __init__(self, executor: ProcessExecutor = run_process):
        self._execute = executor

    def run(
        self, directory: str, *args: str, check: bool = True,
    ) -> ProcessResult:
        command = ["git", "-C", directory, *args]
        result = self._execute(command)
        if check and result.exit_code != 0:
            raise GitCommandError(command, result.stderr, result.exit_code)
        return result

    # --------------------------------------------------
    # Inspection
    # --------------------------------------------------

    def current_branch(self, directory: str) -> str:
        """Return the branch checked out in ``directory``."""
        branch = self.run(directory, "rev-parse", "--abbrev-ref", "HEAD").stdout.strip()
        if not branch:
            raise GitCommandError(
                ["git", "-C", directory, "rev-parse", "--abbrev-ref", "HEAD"],
                "Unable to determine current git branch.",
                0,
            )
        return branch

    def status_porcelain(self, directory: str) -> str:
        return self.run(directory, "status", "--porcelain").stdout

    def has_uncommitted_changes(self, directory: str) -> bool:
        return bool(self.status_porcelain(directory).strip())

    def ahead_commits(self, directory: str, base: str, branch: str) -> int:
        """Count commits reachable from ``branch`` but not from ``base``."""
        out = self.run(
            directory, "rev-list", "--count", f"{base}..{branch}",
        ).stdout.strip()
        try:
            return int(out)
        except ValueError:
            return 0

    def has_effective_diff(self, directory: str, base: str, branch: str) -> bool:
        """True when ``branch`` differs from ``base`` beyond whitespace."""
        result = self.run(
            directory, "diff", "--quiet",
            "--ignore-all-space", "--ignore-blank-lines",
            f"{base}...{branch}",
            check=False,
        )
        if result.exit_code not in (0, 1):
            raise GitCommandError(
                ["git", "-C", directory, "diff", "--quiet", f"{base}...{branch}"],
                result.stderr,
                result.exit_code,
            )
        return result.exit_code == 1

    def has_staged_changes(self, directory: str) -> bool:
        result = self.run(directory, "diff", "--cached", "--quiet", check=False)
        return result.exit_code != 0

    def diff_stat(self, directory: str, base: str, branch: str) -> str:
        return self.run(directory, "diff", "--stat", f"{base}...{branch}").stdout

    def untracked_files(self, directory: str) -> list[str]:
        out = self.run(
            directory, "ls-files", "--others", "--exclude-standard", "-z",
        ).stdout
        return [path for path in out.split("\0") if path]

    def diff_working_tree(self, directory: str, base: str) -> str:
        """Diff the working tree of ``directory`` against ``base``.

        Untracked files are appended as new-file diffs; the index is not
        touched.
        """
        chunks = [self.run(directory, "diff", base).stdout]
        for path in self.untracked_files(directory):
            # --no-index exits 1 when the files differ
            result = self.run(
                directory, "diff", "--no-index", "--", os.devnull, path,
                check=False,
            )
            if result.exit_code not in (0, 1):
                raise GitCommandError(
                    ["git", "-C", directory, "diff", "--no-index", "--", os.devnull, path],
                    result.stderr,
                    result.exit_code,
                )
            chunks.append(result.stdout)
        return "".join(chunks)

    def diff_branches(self, directory: str, base: str, branch: str) -> str:
        return self.run(directory, "diff", f"{base}...{branch}").stdout

    # --------------------------------------------------
    # Mutations
    # --------------------------------------------------

    def commit_all(self, directory: str, message: str) -> str | None:
        """Stage all changes and commit.

        Returns the commit hash, or None if there was nothing to commit.
        """
        self.run(directory, "add", "-A")
        if not self.has_staged_changes(directory):
            logger.debug("No staged changes to commit in %s", directory)
            return None

        self.run(directory, "commit", "-m", message)
        commit_hash = self.head_commit(directory)
        logger.info("Committed in %s: %s", directory, message)
        return commit_hash

    def head_commit(self, directory: str) -> str:
        return self.run(directory, "rev-parse", "HEAD").stdout.strip()

    def squash_merge(self, directory: str, branch: str, message: str) -> str | None:
        """Squash ``branch`` into the branch checked out in ``directory``.

        Returns the new commit hash, or None when the squash staged nothing.
        A failed merge is rolled back before the error is raised.
        """
        try:
            self.run(directory, "merge", "--squash", branch)
        except GitCommandError:
            self.run(directory, "reset", "--merge", check=False)
            raise

        if not self.has_staged_changes(directory):
            logger.info("Squash of %s staged no changes", branch)
            return None

        self.run(directory, "commit", "-m", message)
        return self.head_commit(directory)

    def delete_branch(self, directory: str, branch: str) -> None:
        self.run(directory, "branch", "-D", branch)
