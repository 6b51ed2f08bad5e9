"""
Content Intelligence Engine

A deterministic, rule- and statistics-based engine for a publishing
platform: TF-IDF search, auto-tagging, rule-based moderation,
personalised recommendation and similarity clustering.

ARCHITECTURE:
=============
- contracts/      Immutable data shared between layers
- normalization/  Tokens, stems, keywords and text analysis
- core/           Similarity primitives, term-weight index, clusterer
- moderation/     Detectors and the moderation screener
- recommendation/ User profiles and ranking
- query/          Search and auto-tagging
- observability/  Audit log and metrics
- engine.py       Facade owning the current index snapshot

Layers communicate ONLY through contracts.
"""

from .contracts import (
    ContentKind, ContentRecord, EngagementCounters, Timestamp, TimeRange,
    ModerationVerdict, SearchResult, RecommendationResult, Cluster, FlagKind
)
from .moderation import CommentContext, DetectorToggles
from .recommendation import UserHistory, RecommendOptions, RecommendationWeights
from .query import SearchFilters
from .engine import ContentIntelligenceEngine, EngineConfig

__version__ = "1.0.0"

__all__ = [
    'ContentIntelligenceEngine', 'EngineConfig',
    'ContentKind', 'ContentRecord', 'EngagementCounters', 'Timestamp', 'TimeRange',
    'ModerationVerdict', 'SearchResult', 'RecommendationResult', 'Cluster', 'FlagKind',
    'CommentContext', 'DetectorToggles',
    'UserHistory', 'RecommendOptions', 'RecommendationWeights',
    'SearchFilters',
]
