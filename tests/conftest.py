import subprocess
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from ikanban.runtime_client.responses import ApiResponse


class FakeRuntime:
    """Stands in for ``RuntimeClientProvider``.

    Every client call is recorded in ``calls`` as ``(name, kwargs)``.
    Responses default to plausible payloads and can be overridden per call
    name in ``responses``, either with an ``ApiResponse``, an exception to
    raise, or a callable receiving the call's kwargs.
    """

    def __init__(self):
        self.base_url = "http://runtime.test"
        self.is_connected = True
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.directories: list[str] = []
        self.responses: dict[str, Any] = {}
        self._session_counter = 0
        self.client = SimpleNamespace(
            worktree=SimpleNamespace(
                create=self._handler("worktree.create"),
                list=self._handler("worktree.list"),
                reset=self._handler("worktree.reset"),
                remove=self._handler("worktree.remove"),
            ),
            session=SimpleNamespace(
                create=self._handler("session.create"),
                prompt=self._handler("session.prompt"),
                messages=self._handler("session.messages"),
            ),
            event=SimpleNamespace(
                subscribe=self._handler("event.subscribe"),
            ),
        )

    async def get_client(self, directory: str):
        self.directories.append(directory)
        return self.client

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def _handler(self, name: str):
        async def call(**kwargs):
            self.calls.append((name, kwargs))
            response = self.responses.get(name)
            if isinstance(response, BaseException):
                raise response
            if callable(response):
                return response(**kwargs)
            if response is not None:
                return response
            return self._default(name, kwargs)

        return call

    def _default(self, name: str, kwargs: dict[str, Any]) -> ApiResponse:
        match name:
            case "worktree.create":
                worktree_name = kwargs["name"]
                return ApiResponse(data={
                    "name": worktree_name,
                    "branch": f"opencode/{worktree_name}",
                    "directory": f"{kwargs['directory']}/.worktrees/{worktree_name}",
                })
            case "worktree.list":
                return ApiResponse(data=[])
            case "worktree.reset" | "worktree.remove":
                return ApiResponse(data=True)
            case "session.create":
                self._session_counter += 1
                return ApiResponse(data={
                    "id": f"session-{self._session_counter}",
                    "title": kwargs.get("title"),
                })
            case "session.prompt":
                return ApiResponse(data={"info": {"id": "msg-1"}})
            case "session.messages":
                return ApiResponse(data=[])
            case "event.subscribe":
                return ApiResponse(data=lambda: None)
        raise AssertionError(f"unexpected call {name}")


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000, step: int = 1):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def git(directory: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", "-C", str(directory), *args],
        capture_output=True,
        text=True,
        check=True,
    )
    return completed.stdout.strip()


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A repository on ``main`` with one commit and a local identity."""
    repo = tmp_path / "project"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo, "config", "user.email", "dev@example.com")
    git(repo, "config", "user.name", "Dev")
    git(repo, "config", "commit.gpgsign", "false")
    (repo / "app.py").write_text("def main():\n    return 1\n")
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", "initial")
    return repo


@pytest.fixture
def git_helper():
    return git


@pytest.fixture
def add_worktree(git_repo: Path, tmp_path: Path):
    """Create a real worktree on a new branch, the way the runtime would."""

    def _add(name: str = "task-1") -> Path:
        directory = tmp_path / "worktrees" / name
        git(git_repo, "worktree", "add", "-q", "-b", name, str(directory))
        return directory

    return _add
