import yaml
from typer.testing import CliRunner

from ikanban.cli import client as cli_client
from ikanban.cli.app import app
from ikanban.cli.commands import logs as logs_command
from ikanban.cli.commands import run as run_command
from ikanban.cli.commands import tasks as tasks_command
from ikanban.cli.ws_client import to_ws_url

runner = CliRunner()


def test_orchestrator_url_precedence(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("IKANBAN_ORCHESTRATOR_URL", raising=False)
    assert cli_client.get_orchestrator_url() == "http://localhost:8420"

    (tmp_path / ".ikanban").mkdir()
    (tmp_path / ".ikanban" / "config.yaml").write_text(yaml.dump({
        "project": {"id": "web"},
        "orchestrator": {"url": "http://config:1"},
    }))
    assert cli_client.get_orchestrator_url() == "http://config:1"
    assert cli_client.get_project_id() == "web"

    monkeypatch.setenv("IKANBAN_ORCHESTRATOR_URL", "http://env:2")
    assert cli_client.get_orchestrator_url() == "http://env:2"


def test_to_ws_url():
    assert to_ws_url("http://localhost:8420/") == "ws://localhost:8420/ws"
    assert to_ws_url("https://kanban.example.com") == "wss://kanban.example.com/ws"


def test_init_requires_a_git_repository(tmp_path):
    result = runner.invoke(app, ["init", str(tmp_path)])
    assert result.exit_code == 1
    assert "not a git repository" in result.output


def test_init_writes_config_even_when_orchestrator_is_down(tmp_path):
    (tmp_path / ".git").mkdir()

    result = runner.invoke(app, ["init", str(tmp_path), "--id", "web", "--url", "http://127.0.0.1:9"])

    assert result.exit_code == 0
    config = yaml.safe_load((tmp_path / ".ikanban" / "config.yaml").read_text())
    assert config["project"]["id"] == "web"
    assert config["orchestrator"]["url"] == "http://127.0.0.1:9"
    assert "not reachable" in result.output


def test_run_posts_task(monkeypatch):
    sent = {}

    def fake_request(method, path, **kwargs):
        sent.update(method=method, path=path, **kwargs)
        return {
            "task_id": kwargs["json"]["task_id"],
            "state": "review",
            "session_id": "session-1",
            "worktree_directory": "/tmp/project/.worktrees/task-x",
        }

    monkeypatch.setattr(run_command, "request", fake_request)

    result = runner.invoke(app, ["run", "Fix it", "--task-id", "fix-1", "--project", "web"])

    assert result.exit_code == 0
    assert sent["method"] == "POST"
    assert sent["path"] == "/tasks/"
    assert sent["json"] == {"task_id": "fix-1", "project_id": "web", "prompt": "Fix it"}
    assert "session-1" in result.output


def test_run_without_project_fails(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["run", "Fix it"])
    assert result.exit_code == 1
    assert "ikanban init" in result.output


def test_merge_reports_commit(monkeypatch):
    monkeypatch.setattr(tasks_command, "request", lambda method, path, **kw: {
        "merged": True,
        "branch": "opencode/task-1",
        "default_branch": "main",
        "commit_hash": "0123456789abcdef",
    })

    result = runner.invoke(app, ["merge", "t1"])

    assert result.exit_code == 0
    assert "0123456789ab" in result.output
    assert "main" in result.output


def test_cleanup_keep_sends_policy(monkeypatch):
    sent = {}

    def fake_request(method, path, **kwargs):
        sent.update(path=path, json=kwargs.get("json"))
        return {"removed": False, "worktree_directory": "/w"}

    monkeypatch.setattr(tasks_command, "request", fake_request)

    result = runner.invoke(app, ["cleanup", "t1", "--keep"])

    assert result.exit_code == 0
    assert sent == {"path": "/tasks/t1/cleanup", "json": {"policy": "keep"}}
    assert "Kept worktree /w" in result.output


def test_logs_print_oldest_first(monkeypatch):
    monkeypatch.setattr(logs_command, "request", lambda method, path, **kw: [
        {"sequence": 2, "level": "info", "message": "second", "task_id": "t1"},
        {"sequence": 1, "level": "info", "message": "first", "task_id": "t1"},
    ])

    result = runner.invoke(app, ["logs"])

    assert result.exit_code == 0
    assert result.output.index("first") < result.output.index("second")
