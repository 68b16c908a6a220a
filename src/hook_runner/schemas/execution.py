"""Schemas describing command outcomes and per-request dispatch reports."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

CommandStatus = Literal["success", "launch_failed", "non_zero_exit", "timeout"]
DispatchStatus = Literal["accepted", "ignored", "rejected", "error"]


class CommandOutcome(BaseModel):
    """Result of running a single configured command."""

    command: str
    status: CommandStatus
    exit_code: int | None = None
    output: str = ""
    error: str | None = None
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


class RuleReport(BaseModel):
    """What happened to one rule whose name matched the pushed repository."""

    name: str
    secret_matched: bool
    outcomes: list[CommandOutcome] = Field(default_factory=list)
    error: str | None = None

    @property
    def failed_commands(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.succeeded)


class DispatchReport(BaseModel):
    """Summary of handling one inbound webhook request."""

    status: DispatchStatus
    message: str
    event_type: str | None = None
    repository: str | None = None
    config_generation: int | None = None
    rules: list[RuleReport] = Field(default_factory=list)


class WebhookResponse(BaseModel):
    """Standard webhook response. Carries no command output."""

    status: DispatchStatus
    message: str
    correlation_id: str | None = None
