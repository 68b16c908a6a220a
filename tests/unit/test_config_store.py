from __future__ import annotations

import json
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from hook_runner.core.exceptions import ConfigError, ConfigErrorKind
from hook_runner.schemas.hook_config import HookConfig, RepositoryRule
from hook_runner.services.config_store import ConfigStore, load_config_file


def test_load_config_file_parses_rules(config_path: Path) -> None:
    config = load_config_file(config_path)

    assert config.address == "127.0.0.1"
    assert config.port == 8088
    assert config.repositories == (
        RepositoryRule(name="org/repo", secret="abc", commands=("echo hi",)),
    )


def test_load_config_file_keys_are_case_insensitive(write_config: Callable[..., Path]) -> None:
    path = write_config(
        {
            "logfile": "/tmp/hooks.log",
            "PORT": 9000,
            "repositories": [{"name": "a/b", "SECRET": "s", "commands": ["true"]}],
        }
    )

    config = load_config_file(path)

    assert config.logfile == "/tmp/hooks.log"
    assert config.port == 9000
    assert config.address == ""
    assert config.listen_host == "0.0.0.0"
    assert config.repositories[0].secret == "s"


def test_load_config_file_treats_null_lists_as_empty(write_config: Callable[..., Path]) -> None:
    path = write_config(
        {
            "Logfile": "/tmp/hooks.log",
            "Port": 9000,
            "Repositories": [{"Name": "a/b", "Secret": "s", "Commands": None}],
        }
    )

    config = load_config_file(path)

    assert config.repositories == (RepositoryRule(name="a/b", secret="s", commands=()),)


def test_load_config_file_accepts_null_repositories(write_config: Callable[..., Path]) -> None:
    path = write_config({"Logfile": "/tmp/hooks.log", "Port": 9000, "Repositories": None})

    config = load_config_file(path)

    assert config.repositories == ()
    assert config.rules_for("a/b") == []


def test_load_config_file_supports_yaml(write_config: Callable[..., Path]) -> None:
    path = write_config(
        "\n".join(
            [
                "Logfile: /tmp/hooks.log",
                "Port: 8088",
                "Repositories:",
                "  - Name: org/repo",
                "    Secret: abc",
                "    Commands:",
                "      - ./pull.sh",
                "      - ./build.sh",
            ]
        ),
        name="hooks.yaml",
    )

    config = load_config_file(path)

    assert config.repositories[0].commands == ("./pull.sh", "./build.sh")


def test_load_config_file_reads_files_larger_than_one_kilobyte(
    write_config: Callable[..., Path], tmp_path: Path
) -> None:
    repositories = [
        {"Name": f"org/repo-{i}", "Secret": f"secret-{i}", "Commands": [f"/opt/deploy/{i}.sh"]}
        for i in range(200)
    ]
    path = write_config(
        {"Logfile": str(tmp_path / "log"), "Port": 8088, "Repositories": repositories}
    )
    assert path.stat().st_size > 1024

    config = load_config_file(path)

    assert len(config.repositories) == 200
    assert config.repositories[-1].name == "org/repo-199"


def test_load_config_file_missing(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as exc_info:
        load_config_file(tmp_path / "nope.json")

    assert exc_info.value.kind == ConfigErrorKind.NOT_FOUND


def test_load_config_file_unreadable(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as exc_info:
        load_config_file(tmp_path)

    assert exc_info.value.kind == ConfigErrorKind.UNREADABLE


@pytest.mark.parametrize(
    "content",
    [
        "",
        "   \n",
        "{not json",
        "[]",
        json.dumps({"Logfile": "/tmp/log"}),
        json.dumps({"Logfile": "/tmp/log", "Port": "eighty"}),
        json.dumps({"Logfile": "", "Port": 80}),
        json.dumps({"Logfile": "/tmp/log", "Port": 70000}),
        json.dumps({"Logfile": "/tmp/log", "Port": 80, "Repositories": [{"Secret": "x"}]}),
        json.dumps(
            {
                "Logfile": "/tmp/log",
                "Port": 80,
                "Repositories": [{"Name": "a/b", "Commands": [" "]}],
            }
        ),
    ],
)
def test_load_config_file_malformed(write_config: Callable[..., Path], content: str) -> None:
    path = write_config(content)

    with pytest.raises(ConfigError) as exc_info:
        load_config_file(path)

    assert exc_info.value.kind == ConfigErrorKind.MALFORMED


def test_load_config_file_rejects_invalid_utf8(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_bytes(b'{"Logfile": "\xff\xfe", "Port": 1}')

    with pytest.raises(ConfigError) as exc_info:
        load_config_file(path)

    assert exc_info.value.kind == ConfigErrorKind.MALFORMED


def test_from_file_propagates_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        ConfigStore.from_file(tmp_path / "missing.json")


def test_reload_installs_freshly_parsed_config(
    store: ConfigStore,
    config_path: Path,
    hook_config_data: dict[str, Any],
    write_config: Callable[..., Path],
) -> None:
    hook_config_data["Repositories"].append(
        {"Name": "org/repo2", "Secret": "def", "Commands": ["./deploy.sh"]}
    )
    write_config(hook_config_data)

    result = store.reload()

    assert result.reloaded is True
    assert result.error is None
    assert result.generation == 2
    assert store.current() == load_config_file(config_path)
    assert [rule.name for rule in store.current().repositories] == ["org/repo", "org/repo2"]


def test_failed_reload_keeps_previous_config(
    store: ConfigStore, write_config: Callable[..., Path]
) -> None:
    before = store.snapshot()
    write_config("{truncated")

    result = store.reload()

    assert result.reloaded is False
    assert result.error is not None
    assert result.error.kind == ConfigErrorKind.MALFORMED
    assert result.generation == before.generation
    assert store.snapshot() is before

    # Failing again changes nothing either
    store.reload()
    assert store.snapshot() is before


def test_reload_from_missing_file_keeps_previous_config(store: ConfigStore, tmp_path: Path) -> None:
    before = store.current()

    result = store.reload(tmp_path / "gone.json")

    assert result.reloaded is False
    assert result.error is not None
    assert result.error.kind == ConfigErrorKind.NOT_FOUND
    assert store.current() is before


def test_snapshot_taken_before_reload_is_unchanged(
    store: ConfigStore, hook_config_data: dict[str, Any], write_config: Callable[..., Path]
) -> None:
    snapshot = store.snapshot()
    hook_config_data["Repositories"] = []
    write_config(hook_config_data)

    store.reload()

    assert len(snapshot.config.repositories) == 1
    assert store.current().repositories == ()


def test_replace_installs_config(store: ConfigStore) -> None:
    config = HookConfig(logfile="/tmp/other.log", port=1, repositories=())

    snapshot = store.replace(config)

    assert snapshot.generation == 2
    assert store.current() is config


def test_concurrent_readers_never_observe_a_mixed_config(
    store: ConfigStore,
    hook_config_data: dict[str, Any],
    write_config: Callable[..., Path],
    tmp_path: Path,
) -> None:
    old_config = store.current()
    new_data = dict(hook_config_data)
    new_data["Port"] = 9999
    new_data["Repositories"] = [
        {"Name": "org/other", "Secret": "zzz", "Commands": ["a", "b", "c"]},
    ]
    new_path = write_config(new_data, name="new.json")
    old_path = Path(store.path)
    new_config = load_config_file(new_path)

    stop = threading.Event()
    mixed: list[HookConfig] = []

    def _reader() -> None:
        while not stop.is_set():
            config = store.current()
            if config != old_config and config != new_config:
                mixed.append(config)

    readers = [threading.Thread(target=_reader) for _ in range(4)]
    for thread in readers:
        thread.start()
    try:
        for i in range(200):
            result = store.reload(new_path if i % 2 == 0 else old_path)
            assert result.reloaded is True
    finally:
        stop.set()
        for thread in readers:
            thread.join()

    assert mixed == []
    assert store.snapshot().generation == 201
