"""
Audit & Metric Contracts

Immutable records emitted by every layer for the observability layer.
Layers create these; only the observability layer aggregates them.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple
from enum import Enum

from .base import Timestamp


class AuditEventType(Enum):
    """Explicit audit event types."""
    INDEXING = "indexing"
    SEARCH = "search"
    MODERATION = "moderation"
    RECOMMENDATION = "recommendation"
    CLUSTERING = "clustering"
    ERROR = "error"
    SYSTEM = "system"


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable audit log entry."""
    entry_id: str
    event_type: AuditEventType
    timestamp: Timestamp
    layer: str  # Which layer generated this
    action: str
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def metadata_value(self, key: str) -> Optional[str]:
        return dict(self.metadata).get(key)


@dataclass(frozen=True)
class MetricPoint:
    """Immutable metric data point."""
    metric_name: str
    value: float
    timestamp: Timestamp
    labels: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
