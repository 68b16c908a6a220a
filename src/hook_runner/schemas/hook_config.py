"""Schemas for the hook file: listener settings and repository rules."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _canonicalize_keys(data: Any, keys: tuple[str, ...]) -> Any:
    """Map case-insensitive keys onto their canonical spelling.

    ``logfile``, ``LOGFILE`` and ``Logfile`` all address the same field.
    """
    if not isinstance(data, dict):
        return data
    lookup = {key.lower(): key for key in keys}
    normalized: dict[str, Any] = {}
    for key, value in data.items():
        canonical = lookup.get(key.lower()) if isinstance(key, str) else None
        normalized[canonical or key] = value
    return normalized


class RepositoryRule(BaseModel):
    """A repository name, the secret it must present and the commands to run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(alias="Name", min_length=1)
    secret: str = Field(default="", alias="Secret")
    commands: tuple[str, ...] = Field(default=(), alias="Commands")

    @model_validator(mode="before")
    @classmethod
    def _case_insensitive_keys(cls, data: Any) -> Any:
        return _canonicalize_keys(data, ("Name", "Secret", "Commands"))

    @field_validator("commands", mode="before")
    @classmethod
    def _null_commands_are_empty(cls, value: Any) -> Any:
        return () if value is None else value

    @field_validator("commands")
    @classmethod
    def _no_blank_commands(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for command in value:
            if not command.strip():
                raise ValueError("commands must not contain blank entries")
        return value


class HookConfig(BaseModel):
    """The whole hook file. Replaced wholesale on reload, never mutated."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    logfile: str = Field(alias="Logfile", min_length=1)
    address: str = Field(default="", alias="Address")
    port: int = Field(alias="Port", ge=0, le=65535)
    repositories: tuple[RepositoryRule, ...] = Field(default=(), alias="Repositories")

    @model_validator(mode="before")
    @classmethod
    def _case_insensitive_keys(cls, data: Any) -> Any:
        return _canonicalize_keys(data, ("Logfile", "Address", "Port", "Repositories"))

    @field_validator("repositories", mode="before")
    @classmethod
    def _null_repositories_are_empty(cls, value: Any) -> Any:
        return () if value is None else value

    @property
    def listen_host(self) -> str:
        return self.address or "0.0.0.0"

    def rules_for(self, full_name: str) -> list[RepositoryRule]:
        """All rules whose name equals ``full_name``, in file order."""
        return [rule for rule in self.repositories if rule.name == full_name]
