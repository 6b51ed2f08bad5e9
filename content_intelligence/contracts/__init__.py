"""
Contracts Layer

Immutable data shared between layers. Layers import from here and never
from each other's internals.
"""

from .base import (
    ErrorCode, Error, Result, Timestamp, TimeRange,
    ContentKind, EngagementCounters, ContentRecord, normalize_tags
)
from .results import (
    NormalizedText, TermVector, SearchIndex,
    EngagementLevel, UserProfile,
    FlagKind, DetectorResult, ModerationVerdict,
    ScoredRecord, SearchResult, RecommendationResult, Cluster
)
from .events import AuditEventType, AuditLogEntry, MetricPoint

__all__ = [
    'ErrorCode', 'Error', 'Result', 'Timestamp', 'TimeRange',
    'ContentKind', 'EngagementCounters', 'ContentRecord', 'normalize_tags',
    'NormalizedText', 'TermVector', 'SearchIndex',
    'EngagementLevel', 'UserProfile',
    'FlagKind', 'DetectorResult', 'ModerationVerdict',
    'ScoredRecord', 'SearchResult', 'RecommendationResult', 'Cluster',
    'AuditEventType', 'AuditLogEntry', 'MetricPoint',
]
