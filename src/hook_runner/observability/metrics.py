from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
)
from prometheus_client.exposition import generate_latest


@dataclass(frozen=True)
class PrometheusMetrics:
    registry: CollectorRegistry
    http_requests_total: Counter
    http_request_duration_seconds: Histogram
    webhook_events_total: Counter
    rule_matches_total: Counter
    commands_total: Counter
    command_duration_seconds: Histogram
    config_reloads_total: Counter
    config_generation: Gauge
    configured_rules: Gauge


_REGISTRY = CollectorRegistry(auto_describe=True)

METRICS = PrometheusMetrics(
    registry=_REGISTRY,
    http_requests_total=Counter(
        "hook_runner_http_requests_total",
        "Total HTTP requests by method/route/status",
        labelnames=("method", "route", "status"),
        registry=_REGISTRY,
    ),
    http_request_duration_seconds=Histogram(
        "hook_runner_http_request_duration_seconds",
        "HTTP request duration in seconds by route/method",
        labelnames=("route", "method"),
        registry=_REGISTRY,
    ),
    webhook_events_total=Counter(
        "hook_runner_webhook_events_total",
        "Total webhook requests by dispatch status",
        labelnames=("status",),
        registry=_REGISTRY,
    ),
    rule_matches_total=Counter(
        "hook_runner_rule_matches_total",
        "Rules whose name matched a push, by secret check result",
        labelnames=("result",),
        registry=_REGISTRY,
    ),
    commands_total=Counter(
        "hook_runner_commands_total",
        "Total executed commands by outcome status",
        labelnames=("status",),
        registry=_REGISTRY,
    ),
    command_duration_seconds=Histogram(
        "hook_runner_command_duration_seconds",
        "Command duration in seconds",
        registry=_REGISTRY,
        buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0),
    ),
    config_reloads_total=Counter(
        "hook_runner_config_reloads_total",
        "Total configuration reload attempts by result",
        labelnames=("result",),
        registry=_REGISTRY,
    ),
    config_generation=Gauge(
        "hook_runner_config_generation",
        "Generation number of the active configuration",
        registry=_REGISTRY,
    ),
    configured_rules=Gauge(
        "hook_runner_configured_rules",
        "Number of repository rules in the active configuration",
        registry=_REGISTRY,
    ),
)


def render_prometheus() -> tuple[bytes, str]:
    return generate_latest(METRICS.registry), CONTENT_TYPE_LATEST


def observe_http_request(*, method: str, route: str, status: str, duration_seconds: float) -> None:
    METRICS.http_requests_total.labels(method=method, route=route, status=status).inc()
    METRICS.http_request_duration_seconds.labels(route=route, method=method).observe(
        duration_seconds
    )


def observe_webhook(*, status: str) -> None:
    METRICS.webhook_events_total.labels(status=status).inc()


def observe_rule_match(*, secret_matched: bool) -> None:
    METRICS.rule_matches_total.labels(
        result="matched" if secret_matched else "secret_mismatch"
    ).inc()


def observe_command(*, status: str, duration_seconds: float) -> None:
    METRICS.commands_total.labels(status=status).inc()
    METRICS.command_duration_seconds.observe(duration_seconds)


def observe_reload(*, result: str) -> None:
    METRICS.config_reloads_total.labels(result=result).inc()


def observe_config_installed(*, generation: int, rule_count: int) -> None:
    METRICS.config_generation.set(generation)
    METRICS.configured_rules.set(rule_count)
