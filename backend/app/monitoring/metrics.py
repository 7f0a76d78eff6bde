"""Metric definitions for the realtime hub."""

from __future__ import annotations

from .registry import registry


realtime_connections = registry.gauge(
    "huddle_active_connections",
    "Number of open websocket connections.",
)

realtime_sessions = registry.gauge(
    "huddle_active_sessions",
    "Number of connections that have joined a room.",
)

realtime_events_total = registry.counter(
    "huddle_events_total",
    "Count of websocket events processed by the hub.",
    label_names=("direction", "type"),
)

realtime_dropped_deliveries_total = registry.counter(
    "huddle_dropped_deliveries_total",
    "Outbound events that could not be queued for a connection.",
    label_names=("reason",),
)

store_errors_total = registry.counter(
    "huddle_store_errors_total",
    "Message store operations that failed.",
    label_names=("operation",),
)
