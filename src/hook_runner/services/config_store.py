"""Hook file loading and the live, atomically swappable configuration.

Readers call :meth:`ConfigStore.snapshot` (or :meth:`ConfigStore.current`)
once per request and keep using the object they got. A reload builds a
complete new :class:`ConfigSnapshot` and installs it with a single reference
assignment, so a reader sees either the old or the new configuration and
never a mixture. The lock only serializes reloads against each other; reads
never take it.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from hook_runner.core.exceptions import ConfigError, ConfigErrorKind
from hook_runner.observability.metrics import observe_config_installed, observe_reload
from hook_runner.schemas.hook_config import HookConfig

logger = logging.getLogger(__name__)


def load_config_file(path: str | Path) -> HookConfig:
    """Read and validate the whole hook file at ``path``.

    Raises:
        ConfigError: NOT_FOUND, UNREADABLE or MALFORMED.
    """
    config_path = Path(path)
    try:
        raw_bytes = config_path.read_bytes()
    except FileNotFoundError as e:
        raise ConfigError(ConfigErrorKind.NOT_FOUND, config_path, str(e)) from e
    except OSError as e:
        raise ConfigError(ConfigErrorKind.UNREADABLE, config_path, str(e)) from e

    try:
        raw = raw_bytes.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ConfigError(ConfigErrorKind.MALFORMED, config_path, f"not UTF-8: {e}") from e

    if not raw.strip():
        raise ConfigError(ConfigErrorKind.MALFORMED, config_path, "file is empty")

    data: Any
    try:
        if config_path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(ConfigErrorKind.MALFORMED, config_path, str(e)) from e

    if not isinstance(data, dict):
        raise ConfigError(
            ConfigErrorKind.MALFORMED,
            config_path,
            f"top-level value must be an object, got {type(data).__name__}",
        )

    try:
        return HookConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(ConfigErrorKind.MALFORMED, config_path, str(e)) from e


@dataclass(frozen=True)
class ConfigSnapshot:
    """An immutable view of the active configuration."""

    config: HookConfig
    generation: int
    loaded_at: datetime
    source_path: str


@dataclass(frozen=True)
class ReloadResult:
    reloaded: bool
    generation: int
    error: ConfigError | None = None

    @property
    def message(self) -> str:
        if self.reloaded:
            return f"configuration generation {self.generation} installed"
        return str(self.error) if self.error else "reload failed"


class ConfigStore:
    """Holds the active :class:`HookConfig` and replaces it on reload."""

    def __init__(self, config: HookConfig, path: str | Path):
        self._path = str(path)
        self._reload_lock = threading.Lock()
        self._snapshot = ConfigSnapshot(
            config=config,
            generation=1,
            loaded_at=datetime.now(UTC),
            source_path=self._path,
        )
        observe_config_installed(generation=1, rule_count=len(config.repositories))

    @classmethod
    def from_file(cls, path: str | Path) -> ConfigStore:
        """Initial load. ``ConfigError`` propagates; it is fatal at startup."""
        config = load_config_file(path)
        logger.info(
            "Configuration loaded",
            extra={"path": str(path), "repositories": len(config.repositories)},
        )
        return cls(config, path)

    @property
    def path(self) -> str:
        return self._path

    def snapshot(self) -> ConfigSnapshot:
        return self._snapshot

    def current(self) -> HookConfig:
        return self._snapshot.config

    def replace(
        self, config: HookConfig, *, source_path: str | Path | None = None
    ) -> ConfigSnapshot:
        """Install ``config`` as the active configuration."""
        with self._reload_lock:
            return self._install(config, str(source_path or self._path))

    def _install(self, config: HookConfig, source_path: str) -> ConfigSnapshot:
        snapshot = ConfigSnapshot(
            config=config,
            generation=self._snapshot.generation + 1,
            loaded_at=datetime.now(UTC),
            source_path=source_path,
        )
        self._snapshot = snapshot
        observe_config_installed(
            generation=snapshot.generation, rule_count=len(config.repositories)
        )
        return snapshot

    def reload(self, path: str | Path | None = None) -> ReloadResult:
        """Re-read the hook file and swap it in.

        On failure the active configuration is left untouched and the error is
        returned rather than raised.
        """
        source = str(path or self._path)
        with self._reload_lock:
            try:
                config = load_config_file(source)
            except ConfigError as e:
                current = self._snapshot.generation
                logger.error(
                    "Configuration reload failed, keeping previous configuration",
                    extra={
                        "path": source,
                        "error_kind": e.kind.value,
                        "error": e.detail,
                        "generation": current,
                    },
                )
                observe_reload(result="failed")
                return ReloadResult(reloaded=False, generation=current, error=e)

            snapshot = self._install(config, source)

        logger.info(
            "Configuration reloaded",
            extra={
                "path": source,
                "generation": snapshot.generation,
                "repositories": len(config.repositories),
            },
        )
        observe_reload(result="success")
        return ReloadResult(reloaded=True, generation=snapshot.generation)
