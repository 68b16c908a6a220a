"""Test configuration and fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from hook_runner.config import Settings
from hook_runner.main import create_app
from hook_runner.schemas.execution import CommandOutcome
from hook_runner.services.command_runner import CommandRunner
from hook_runner.services.config_store import ConfigStore


class RecordingRunner(CommandRunner):
    """Command runner that records commands instead of spawning processes."""

    def __init__(
        self,
        *,
        failing: tuple[str, ...] = (),
        raising: tuple[str, ...] = (),
        on_run: Callable[[str], None] | None = None,
    ):
        self.commands: list[str] = []
        self.failing = failing
        self.raising = raising
        self.on_run = on_run

    def run(self, command: str) -> CommandOutcome:
        self.commands.append(command)
        if self.on_run is not None:
            self.on_run(command)
        if command in self.raising:
            raise RuntimeError(f"runner exploded on {command}")
        if command in self.failing:
            return CommandOutcome(
                command=command,
                status="non_zero_exit",
                exit_code=1,
                output="boom\n",
                error="exit status 1",
            )
        return CommandOutcome(command=command, status="success", exit_code=0, output="hi\n")


@pytest.fixture
def hook_config_data(tmp_path: Path) -> dict[str, Any]:
    """Hook file contents with a single org/repo rule."""
    return {
        "Logfile": str(tmp_path / "hook-runner.log"),
        "Address": "127.0.0.1",
        "Port": 8088,
        "Repositories": [
            {"Name": "org/repo", "Secret": "abc", "Commands": ["echo hi"]},
        ],
    }


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    """Write hook file contents (dict or raw text) and return the path."""

    def _write(data: dict[str, Any] | str, name: str = "config.json") -> Path:
        path = tmp_path / name
        text = data if isinstance(data, str) else json.dumps(data)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def config_path(write_config: Callable[..., Path], hook_config_data: dict[str, Any]) -> Path:
    return write_config(hook_config_data)


@pytest.fixture
def store(config_path: Path) -> ConfigStore:
    return ConfigStore.from_file(config_path)


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def make_runner() -> type[RecordingRunner]:
    return RecordingRunner


@pytest.fixture
def settings(config_path: Path) -> Settings:
    return Settings(
        config_path=str(config_path),
        log_format="text",
        log_to_stdout=False,
        enable_reload_signal=False,
        admin_token="",
    )


@pytest.fixture
def app_factory(
    settings: Settings, store: ConfigStore, runner: RecordingRunner
) -> Callable[..., TestClient]:
    def _client(**overrides: Any) -> TestClient:
        app_settings = settings.model_copy(update=overrides) if overrides else settings
        app = create_app(app_settings, store=store, runner=runner, manage_logging=False)
        return TestClient(app)

    return _client


@pytest.fixture
def client(app_factory: Callable[..., TestClient]) -> Generator[TestClient, None, None]:
    """Create test client for API tests."""
    with app_factory() as c:
        yield c


@pytest.fixture
def push_payload() -> Callable[..., dict[str, Any]]:
    """Build a Gitea push payload."""

    def _payload(full_name: str = "org/repo", secret: str = "abc") -> dict[str, Any]:
        return {
            "secret": secret,
            "ref": "refs/heads/main",
            "before": "0" * 40,
            "after": "a" * 40,
            "compare_url": "",
            "commits": [{"id": "a" * 40, "message": "Update README\n"}],
            "repository": {
                "id": 1,
                "name": full_name.split("/")[-1],
                "full_name": full_name,
                "html_url": f"https://git.example.com/{full_name}",
            },
            "pusher": {"id": 1, "login": "alice", "username": "alice"},
            "sender": {"id": 1, "login": "alice", "username": "alice"},
        }

    return _payload
