"""Prometheus metrics exported on ``GET /metrics``."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

heartbeats_total = Counter(
    "boxwatch_heartbeats_total",
    "Heartbeats ingested, by reporting channel.",
    ["source"],
)

service_reports_total = Counter(
    "boxwatch_service_reports_total",
    "Service status reports ingested, by reporting channel.",
    ["source"],
)

status_transitions_total = Counter(
    "boxwatch_status_transitions_total",
    "STATUS_CHANGE events appended, by channel and new status.",
    ["source", "status"],
)

sweep_runs_total = Counter(
    "boxwatch_sweep_runs_total",
    "Completed offline sweep iterations.",
)

sweep_errors_total = Counter(
    "boxwatch_sweep_errors_total",
    "Offline sweep iterations or box checks that raised.",
)

sweep_duration_seconds = Histogram(
    "boxwatch_sweep_duration_seconds",
    "Wall-clock duration of one offline sweep iteration.",
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
)

boxes_online = Gauge(
    "boxwatch_boxes_online",
    "Boxes whose latest STATUS_CHANGE is online, as of the last sweep.",
    ["source"],
)

sweep_intervals_skipped_total = Counter(
    "boxwatch_sweep_intervals_skipped_total",
    "Scheduled sweep slots dropped because an iteration overran its interval.",
)
