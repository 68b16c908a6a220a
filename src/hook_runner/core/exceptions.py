"""Error types raised across the hook runner."""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class HookRunnerError(Exception):
    """Base class for hook runner errors."""


class ConfigErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    UNREADABLE = "unreadable"
    MALFORMED = "malformed"


class ConfigError(HookRunnerError):
    """The hook file could not be turned into a configuration."""

    def __init__(self, kind: ConfigErrorKind, path: str | Path, detail: str):
        super().__init__(f"{kind.value}: {path}: {detail}")
        self.kind = kind
        self.path = str(path)
        self.detail = detail


class RequestErrorKind(str, Enum):
    BODY_READ_FAILED = "body_read_failed"
    PARSE_FAILED = "parse_failed"


class RequestError(HookRunnerError):
    """An inbound webhook request could not be processed."""

    def __init__(self, kind: RequestErrorKind, detail: str, *, encoded_body: str | None = None):
        super().__init__(f"{kind.value}: {detail}")
        self.kind = kind
        self.detail = detail
        self.encoded_body = encoded_body
