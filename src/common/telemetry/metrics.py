"""
Rule Engine Metrics.

Pre-defined metrics for relation action nodes.
"""

from __future__ import annotations

import logging

from src.common.telemetry.setup import get_meter

logger = logging.getLogger(__name__)


class RelationActionMetrics:
    """
    Metrics for relation action processing.

    Tracks:
    - Messages by outcome (success, failure, error) and entity type
    - Entity cache hits and misses
    - Entity resolution latency
    """

    def __init__(self, meter_name: str = "rule_engine"):
        self._meter = get_meter(meter_name)

        self._messages_total = self._meter.create_counter(
            name="relation_action.messages",
            description="Messages processed by relation action nodes",
            unit="1",
        )
        self._cache_lookups = self._meter.create_counter(
            name="relation_action.cache_lookups",
            description="Entity cache lookups by result",
            unit="1",
        )
        self._resolution_duration = self._meter.create_histogram(
            name="relation_action.resolution_duration_ms",
            description="Entity resolution duration, cache included",
            unit="ms",
        )

    def record_message(self, outcome: str, entity_type: str) -> None:
        """Record a routed message. ``outcome`` is success, failure or error."""
        self._messages_total.add(1, {"outcome": outcome, "entity_type": entity_type})

    def record_cache_lookup(self, hit: bool, entity_type: str) -> None:
        self._cache_lookups.add(
            1, {"result": "hit" if hit else "miss", "entity_type": entity_type}
        )

    def record_resolution(self, duration_ms: float, entity_type: str, found: bool) -> None:
        self._resolution_duration.record(
            duration_ms, {"entity_type": entity_type, "found": found}
        )


_relation_action_metrics: RelationActionMetrics | None = None


def get_relation_action_metrics() -> RelationActionMetrics:
    """Get the shared RelationActionMetrics instance."""
    global _relation_action_metrics
    if _relation_action_metrics is None:
        _relation_action_metrics = RelationActionMetrics()
    return _relation_action_metrics
