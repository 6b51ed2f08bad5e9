"""
Observability & Audit Layer

RESPONSIBILITY: Audit logging and metrics for every engine component
ALLOWED INPUTS: AuditLogEntry and metric points from any layer
OUTPUTS: Unified audit log, metric series, audit reports

WHAT THIS LAYER MUST NOT DO:
============================
- Modify engine behavior or verdicts
- Filter or interpret entries (only record them)
- Raise into the calling layer

Each component owns one LogCollector and appends to it; the engine
attaches those collectors here so the unified log can be read in one place.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Tuple
from enum import Enum
import hashlib

from ..contracts.base import Timestamp, TimeRange, Error
from ..contracts.events import AuditEventType, AuditLogEntry, MetricPoint


# =============================================================================
# LOG COLLECTORS (One per layer)
# =============================================================================

class LogCollector:
    """
    Append-only audit log for one layer.

    With `max_entries` set, the oldest entries are evicted first.
    """

    def __init__(self, layer_name: str, max_entries: Optional[int] = None):
        self._layer_name = layer_name
        self._entries: Deque[AuditLogEntry] = deque(maxlen=max_entries)
        self._sequence: int = 0

    def collect(self, entry: AuditLogEntry):
        """Collect an audit entry (append-only)."""
        self._entries.append(entry)
        self._sequence += 1

    def log(
        self,
        action: str,
        event_type: AuditEventType,
        entity_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        metadata: Iterable[Tuple[str, str]] = ()
    ) -> AuditLogEntry:
        """Build and collect an entry for this layer."""
        now = Timestamp.now()
        entry_hash = hashlib.sha256(
            f"{self._layer_name}|{action}|{self._sequence}|{now.value.timestamp()}".encode()
        ).hexdigest()[:16]
        entry = AuditLogEntry(
            entry_id=f"audit_{entry_hash}",
            event_type=event_type,
            timestamp=now,
            layer=self._layer_name,
            action=action,
            entity_id=entity_id,
            entity_type=entity_type,
            metadata=tuple((str(k), str(v)) for k, v in metadata)
        )
        self.collect(entry)
        return entry

    def log_error(self, error: Error, entity_id: Optional[str] = None) -> AuditLogEntry:
        """Record an error value as an ERROR entry."""
        return self.log(
            action=error.code.name.lower(),
            event_type=AuditEventType.ERROR,
            entity_id=entity_id,
            entity_type="error",
            metadata=(("message", error.message),) + error.context
        )

    def get_entries(
        self,
        time_range: Optional[TimeRange] = None,
        event_type: Optional[AuditEventType] = None
    ) -> List[AuditLogEntry]:
        """Get entries, optionally filtered."""
        entries = self._entries

        if time_range:
            entries = [e for e in entries if time_range.contains(e.timestamp)]

        if event_type:
            entries = [e for e in entries if e.event_type == event_type]

        return list(entries)

    def set_retention(self, max_entries: Optional[int]):
        """Bound the log, keeping the newest entries already collected."""
        self._entries = deque(self._entries, maxlen=max_entries)

    @property
    def layer_name(self) -> str:
        return self._layer_name

    @property
    def entry_count(self) -> int:
        return len(self._entries)


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

class MetricType(Enum):
    """Types of metrics collected."""
    COUNTER = "counter"
    GAUGE = "gauge"
    TIMING = "timing"


@dataclass
class MetricDefinition:
    """Definition of a metric to collect."""
    name: str
    metric_type: MetricType
    description: str
    labels: Tuple[str, ...] = field(default_factory=tuple)


class MetricsCollector:
    """
    Append-only metric time series, each capped at `max_points` when set.
    """

    def __init__(self, max_points: Optional[int] = None):
        self._max_points = max_points
        self._metrics: Dict[str, Deque[MetricPoint]] = {}
        self._definitions: Dict[str, MetricDefinition] = {}
        self._register_default_metrics()

    def _register_default_metrics(self):
        defaults = [
            MetricDefinition(
                name="index_rebuilds_total",
                metric_type=MetricType.COUNTER,
                description="Number of search index rebuilds"
            ),
            MetricDefinition(
                name="indexed_documents",
                metric_type=MetricType.GAUGE,
                description="Documents in the current index snapshot"
            ),
            MetricDefinition(
                name="moderation_duration_ms",
                metric_type=MetricType.TIMING,
                description="Screening time per call in milliseconds",
                labels=("content_kind",)
            ),
            MetricDefinition(
                name="moderation_rejections_total",
                metric_type=MetricType.COUNTER,
                description="Screening calls that were not approved",
                labels=("content_kind",)
            ),
            MetricDefinition(
                name="detector_failures_total",
                metric_type=MetricType.COUNTER,
                description="Detectors that raised and were neutralised",
                labels=("detector",)
            ),
            MetricDefinition(
                name="search_duration_ms",
                metric_type=MetricType.TIMING,
                description="Search time per call in milliseconds"
            ),
            MetricDefinition(
                name="recommendation_duration_ms",
                metric_type=MetricType.TIMING,
                description="Recommendation time per call in milliseconds"
            ),
            MetricDefinition(
                name="clusters_found",
                metric_type=MetricType.GAUGE,
                description="Clusters retained by the last clustering call"
            ),
        ]

        for definition in defaults:
            self.register_metric(definition)

    def register_metric(self, definition: MetricDefinition):
        """Register a new metric definition."""
        self._definitions[definition.name] = definition
        if definition.name not in self._metrics:
            self._metrics[definition.name] = deque(maxlen=self._max_points)

    def record(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        """Record a metric data point."""
        if metric_name not in self._metrics:
            self._metrics[metric_name] = deque(maxlen=self._max_points)

        label_tuple = tuple(sorted(labels.items())) if labels else ()

        self._metrics[metric_name].append(MetricPoint(
            metric_name=metric_name,
            value=value,
            timestamp=Timestamp.now(),
            labels=label_tuple
        ))

    def get_metric(
        self,
        metric_name: str,
        time_range: Optional[TimeRange] = None
    ) -> List[MetricPoint]:
        points = self._metrics.get(metric_name, ())
        if time_range:
            points = [p for p in points if time_range.contains(p.timestamp)]
        return list(points)

    def get_latest(self, metric_name: str) -> Optional[MetricPoint]:
        points = self._metrics.get(metric_name)
        return points[-1] if points else None

    def get_definition(self, metric_name: str) -> Optional[MetricDefinition]:
        return self._definitions.get(metric_name)

    def compute_aggregates(
        self,
        metric_name: str,
        time_range: Optional[TimeRange] = None
    ) -> Dict[str, float]:
        """Compute aggregate statistics for a metric."""
        values = [p.value for p in self.get_metric(metric_name, time_range)]

        if not values:
            return {}

        return {
            'count': len(values),
            'sum': sum(values),
            'min': min(values),
            'max': max(values),
            'avg': sum(values) / len(values),
        }


# =============================================================================
# OBSERVABILITY ENGINE
# =============================================================================

@dataclass
class ObservabilityConfig:
    """Configuration for observability engine."""
    enable_metrics: bool = True
    # None keeps everything
    max_entries_per_layer: Optional[int] = 10000
    max_points_per_metric: Optional[int] = 10000


class ObservabilityEngine:
    """
    Central observability for the content engine.

    BOUNDARY ENFORCEMENT:
    - ONLY observes, never modifies
    - Reads collectors owned by the components
    - Provides read-only access to collected data
    """

    def __init__(self, config: Optional[ObservabilityConfig] = None):
        self._config = config or ObservabilityConfig()
        self._collectors: Dict[str, LogCollector] = {}
        self._collector_for('engine')
        self._metrics = (
            MetricsCollector(max_points=self._config.max_points_per_metric)
            if self._config.enable_metrics else None
        )

    def attach(self, collector: LogCollector):
        """Attach a component's collector to the unified log and bound it."""
        collector.set_retention(self._config.max_entries_per_layer)
        self._collectors[collector.layer_name] = collector

    def _collector_for(self, layer: str) -> LogCollector:
        collector = self._collectors.get(layer)
        if collector is None:
            collector = LogCollector(layer, self._config.max_entries_per_layer)
            self._collectors[layer] = collector
        return collector

    def log_audit(
        self,
        action: str,
        entity_id: Optional[str] = None,
        outcome: str = "success",
        details: str = "",
        layer: str = "engine"
    ):
        """Helper to log a SYSTEM entry directly."""
        self._collector_for(layer).log(
            action=action,
            event_type=AuditEventType.SYSTEM,
            entity_id=entity_id,
            metadata=(("outcome", outcome), ("details", details))
        )

    def record_error(
        self,
        error: Error,
        entity_id: Optional[str] = None,
        layer: str = "engine"
    ) -> AuditLogEntry:
        """Log an error that no attached component owns."""
        return self._collector_for(layer).log_error(error, entity_id)

    def collect_metric(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        """Collect a metric data point."""
        if self._metrics:
            self._metrics.record(metric_name, value, labels)

    def get_unified_log(
        self,
        time_range: Optional[TimeRange] = None,
        layers: Optional[List[str]] = None
    ) -> List[AuditLogEntry]:
        """Get unified log from all or specified layers, oldest first."""
        target_layers = layers or list(self._collectors.keys())

        all_entries = []
        for layer_name in target_layers:
            collector = self._collectors.get(layer_name)
            if collector:
                all_entries.extend(collector.get_entries(time_range=time_range))

        all_entries.sort(key=lambda e: e.timestamp.value)
        return all_entries

    def get_layer_log(
        self,
        layer_name: str,
        time_range: Optional[TimeRange] = None
    ) -> List[AuditLogEntry]:
        collector = self._collectors.get(layer_name)
        if not collector:
            return []
        return collector.get_entries(time_range=time_range)

    def get_metrics(self) -> Optional[MetricsCollector]:
        """Get metrics collector (read-only access)."""
        return self._metrics

    def generate_audit_report(
        self,
        time_range: Optional[TimeRange] = None
    ) -> Dict:
        """Summarise the unified log by layer and event type."""
        entries = self.get_unified_log(time_range=time_range)

        by_layer: Dict[str, int] = {}
        by_type: Dict[str, int] = {}

        for entry in entries:
            by_layer[entry.layer] = by_layer.get(entry.layer, 0) + 1
            by_type[entry.event_type.value] = by_type.get(entry.event_type.value, 0) + 1

        return {
            'total_entries': len(entries),
            'by_layer': by_layer,
            'by_event_type': by_type,
            'time_range': {
                'start': entries[0].timestamp.to_iso() if entries else None,
                'end': entries[-1].timestamp.to_iso() if entries else None,
            },
            'generated_at': Timestamp.now().to_iso()
        }
