"""Webhook request handling.

Validates the event type, parses the push payload, matches it against the
repository rules of one configuration snapshot and runs the commands of
every rule whose secret checks out.

Flow:
1. Ignore anything that is not a push event (body is not read)
2. Read the body
3. Parse the push payload (failures are logged with a base64 copy of the body)
4. Take a single configuration snapshot for the whole request
5. For each rule with the pushed repository's name, check the secret and run
   its commands in order
6. Convert every failure into a log entry; nothing escapes ``handle``
"""

from __future__ import annotations

import base64
import hmac
import logging
from collections.abc import Awaitable, Callable

import anyio
import anyio.to_thread
from pydantic import ValidationError

from hook_runner.core.exceptions import RequestError, RequestErrorKind
from hook_runner.observability.metrics import observe_command, observe_rule_match, observe_webhook
from hook_runner.schemas.execution import CommandOutcome, DispatchReport, RuleReport
from hook_runner.schemas.gitea import PushEvent
from hook_runner.schemas.hook_config import RepositoryRule
from hook_runner.services.command_runner import CommandRunner
from hook_runner.services.config_store import ConfigStore

logger = logging.getLogger(__name__)

PUSH_EVENT = "push"
DEFAULT_MAX_CONCURRENT_DISPATCHES = 8


def parse_push_event(body: bytes) -> PushEvent:
    """Parse a raw request body into a :class:`PushEvent`.

    Raises:
        RequestError: PARSE_FAILED, carrying the base64-encoded body.
    """
    try:
        return PushEvent.model_validate_json(body)
    except ValidationError as e:
        raise RequestError(
            RequestErrorKind.PARSE_FAILED,
            str(e),
            encoded_body=base64.b64encode(body).decode("ascii"),
        ) from e


def secrets_match(expected: str, supplied: str) -> bool:
    """Timing-safe comparison of the configured and the supplied secret."""
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


class WebhookDispatcher:
    """Routes push events to the commands of matching repository rules."""

    def __init__(
        self,
        store: ConfigStore,
        runner: CommandRunner,
        *,
        max_concurrent_dispatches: int = DEFAULT_MAX_CONCURRENT_DISPATCHES,
    ):
        if max_concurrent_dispatches < 1:
            raise ValueError("max_concurrent_dispatches must be at least 1")
        self._store = store
        self._runner = runner
        self._max_concurrent_dispatches = max_concurrent_dispatches
        self._limiter: anyio.CapacityLimiter | None = None

    def _dispatch_limiter(self) -> anyio.CapacityLimiter:
        # Created on first use, inside the running event loop
        if self._limiter is None:
            self._limiter = anyio.CapacityLimiter(self._max_concurrent_dispatches)
        return self._limiter

    async def handle(
        self,
        event_type: str | None,
        read_body: Callable[[], Awaitable[bytes]],
        *,
        remote_addr: str | None = None,
    ) -> DispatchReport:
        """Handle one inbound webhook request. Never raises."""
        try:
            report = await self._handle(event_type, read_body, remote_addr=remote_addr)
        except Exception as e:
            logger.error(
                "Unexpected error while handling webhook",
                extra={"error": str(e), "event_type": event_type},
                exc_info=True,
            )
            report = DispatchReport(
                status="error",
                message="Internal error while handling webhook",
                event_type=event_type,
            )
        observe_webhook(status=report.status)
        return report

    async def _handle(
        self,
        event_type: str | None,
        read_body: Callable[[], Awaitable[bytes]],
        *,
        remote_addr: str | None,
    ) -> DispatchReport:
        logger.info(
            "Webhook request received",
            extra={"remote_addr": remote_addr, "event_type": event_type},
        )

        if event_type != PUSH_EVENT:
            logger.info(
                f'Received unknown event "{event_type or ""}"',
                extra={"event_type": event_type},
            )
            return DispatchReport(
                status="ignored",
                message=f"Event type '{event_type or ''}' is not processed",
                event_type=event_type,
            )

        try:
            body = await read_body()
        except Exception as e:
            error = RequestError(RequestErrorKind.BODY_READ_FAILED, str(e) or type(e).__name__)
            logger.warning(
                "Failed to read request body",
                extra={"error_kind": error.kind.value, "error": error.detail},
            )
            return DispatchReport(
                status="rejected",
                message="Failed to read request body",
                event_type=event_type,
            )

        # Commands block; they get their own thread budget, separate from the
        # default pool the HTTP layer uses
        return await anyio.to_thread.run_sync(
            self.dispatch_push, body, limiter=self._dispatch_limiter()
        )

    def dispatch_push(self, body: bytes) -> DispatchReport:
        """Parse a push body and run the commands of every verified rule."""
        try:
            event = parse_push_event(body)
        except RequestError as e:
            logger.warning(
                "Failed to parse push payload",
                extra={
                    "error_kind": e.kind.value,
                    "error": e.detail,
                    "body_base64": e.encoded_body,
                },
            )
            return DispatchReport(
                status="rejected",
                message="Invalid push payload",
                event_type=PUSH_EVENT,
            )

        snapshot = self._store.snapshot()
        config = snapshot.config

        logger.info(
            f"Received webhook on {event.full_name}",
            extra={
                "repository": event.full_name,
                "ref": event.ref,
                "after": event.after,
                "pusher": event.pusher.display_name if event.pusher else None,
                "commits": len(event.commits),
                "config_generation": snapshot.generation,
            },
        )

        rules = config.rules_for(event.full_name)
        if not rules:
            logger.info(
                f"No rule configured for repository {event.full_name}",
                extra={"repository": event.full_name},
            )
            return DispatchReport(
                status="ignored",
                message="No rule configured for repository",
                event_type=PUSH_EVENT,
                repository=event.full_name,
                config_generation=snapshot.generation,
            )

        reports = [self.run_rule(rule, event) for rule in rules]

        verified = [report for report in reports if report.secret_matched]
        if not verified:
            return DispatchReport(
                status="rejected",
                message="Secret mismatch",
                event_type=PUSH_EVENT,
                repository=event.full_name,
                config_generation=snapshot.generation,
                rules=reports,
            )

        commands_run = sum(len(r.outcomes) for r in verified)
        commands_failed = sum(r.failed_commands for r in verified)
        return DispatchReport(
            status="accepted",
            message=(
                f"{len(verified)} rule(s) matched, {commands_run} command(s) run, "
                f"{commands_failed} failed"
            ),
            event_type=PUSH_EVENT,
            repository=event.full_name,
            config_generation=snapshot.generation,
            rules=reports,
        )

    def run_rule(self, rule: RepositoryRule, event: PushEvent) -> RuleReport:
        """Check the rule's secret and, if it matches, run its commands in order.

        Never raises: an unexpected error is recorded on the report, which keeps
        the outcomes collected before it.
        """
        report = RuleReport(name=rule.name, secret_matched=False)
        try:
            self._run_rule(rule, event, report)
        except Exception as e:
            logger.error(
                f"Unexpected error while handling rule for {rule.name}",
                extra={
                    "repository": rule.name,
                    "secret_matched": report.secret_matched,
                    "commands_run": len(report.outcomes),
                    "error": str(e),
                },
                exc_info=True,
            )
            report.error = str(e)
        return report

    def _run_rule(self, rule: RepositoryRule, event: PushEvent, report: RuleReport) -> None:
        if not secrets_match(rule.secret, event.secret):
            logger.warning(
                f"Secret mismatch for repo {rule.name}",
                extra={"repository": rule.name},
            )
            observe_rule_match(secret_matched=False)
            return

        report.secret_matched = True
        observe_rule_match(secret_matched=True)
        for command in rule.commands:
            outcome = self._run_command(command)
            report.outcomes.append(outcome)
            self._log_outcome(rule, outcome)
            observe_command(status=outcome.status, duration_seconds=outcome.duration_seconds)

    def _run_command(self, command: str) -> CommandOutcome:
        try:
            return self._runner.run(command)
        except Exception as e:
            # Runners report failures as outcomes; treat a raising one the same way
            return CommandOutcome(command=command, status="launch_failed", error=str(e))

    def _log_outcome(self, rule: RepositoryRule, outcome: CommandOutcome) -> None:
        extra = {
            "repository": rule.name,
            "command": outcome.command,
            "status": outcome.status,
            "exit_code": outcome.exit_code,
            "duration_seconds": round(outcome.duration_seconds, 3),
            "output": outcome.output,
        }
        if outcome.succeeded:
            logger.info(f"Executed: {outcome.command}", extra=extra)
        else:
            logger.error(
                f"Command failed: {outcome.command}",
                extra={**extra, "error": outcome.error},
            )
