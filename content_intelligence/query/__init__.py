"""
Query Layer

RESPONSIBILITY: Search candidate records and suggest tags and queries
ALLOWED INPUTS: Query text, candidate ContentRecords, filters
OUTPUTS: SearchResult, tag tuples (immutable)

WHAT THIS LAYER MUST NOT DO:
============================
- Fetch records (candidates arrive from the caller)
- Rebuild the index (the engine decides freshness before searching)
- Modify the index snapshot it reads

Ranking per record:
    combined = 0.6 * relevance + 0.4 * semantic
where relevance is fuzzy title/body matching plus tag and category hits,
and semantic is the TF-IDF cosine between the record and the query.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from ..contracts.base import (
    ContentKind, ContentRecord, Error, ErrorCode, TimeRange, Timestamp, normalize_tags
)
from ..contracts.events import AuditEventType, AuditLogEntry
from ..contracts.results import ScoredRecord, SearchResult
from ..core.similarity import tag_overlap, text_similarity, vector_similarity
from ..core.term_index import TermWeightIndex
from ..normalization import TextNormalizer
from ..observability import LogCollector
from .tagging import AutoTagConfig, AutoTagger


DEFAULT_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    'technology': ('tech', 'software', 'programming'),
    'business': ('entrepreneur', 'startup', 'marketing'),
    'health': ('fitness', 'wellness', 'nutrition'),
    'travel': ('adventure', 'exploration', 'tourism'),
}

DEFAULT_TRENDING_TOPICS: Tuple[str, ...] = (
    'technology', 'business', 'health', 'travel', 'education'
)


@dataclass
class SearchConfig:
    """Configuration for search ranking and suggestions."""
    relevance_weight: float = 0.6
    semantic_weight: float = 0.4
    max_compare_chars: int = 1000
    similar_window_days: int = 30
    similar_limit: int = 10
    popular_tags: int = 5
    related_queries: int = 5
    max_suggestions: int = 10
    synonyms: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_SYNONYMS))
    trending_topics: Tuple[str, ...] = DEFAULT_TRENDING_TOPICS


@dataclass(frozen=True)
class SearchFilters:
    """Optional narrowing applied before ranking."""
    categories: FrozenSet[str] = frozenset()
    tags: FrozenSet[str] = frozenset()
    date_range: Optional[TimeRange] = None

    def matches(self, record: ContentRecord) -> bool:
        if self.categories:
            wanted = {c.casefold() for c in self.categories}
            if (record.category or '').casefold() not in wanted:
                return False
        if self.tags and not (record.tags & normalize_tags(self.tags)):
            return False
        if self.date_range and not self.date_range.contains(record.created_at):
            return False
        return True


@dataclass(frozen=True)
class PreparedQuery:
    original: str
    keywords: Tuple[str, ...]


class SearchEngine:
    """
    Ranks candidates against a query using the current index snapshot.

    BOUNDARY ENFORCEMENT:
    - Reads the index through TermWeightIndex.vector_for / vector_of_record
    - Returns an empty result, not an exception, for empty queries
    """

    def __init__(
        self,
        index: TermWeightIndex,
        config: Optional[SearchConfig] = None
    ):
        self._index = index
        self._normalizer: TextNormalizer = index.normalizer
        self._config = config or SearchConfig()
        self._log = LogCollector('search')

    @property
    def log_collector(self) -> LogCollector:
        return self._log

    def prepare(self, query: str) -> PreparedQuery:
        return PreparedQuery(
            original=(query or '').strip(),
            keywords=self._normalizer.keywords(query or '')
        )

    def relevance(self, record: ContentRecord, query: PreparedQuery) -> float:
        """Fuzzy field matching; profiles weigh name and bio only."""
        limit = self._config.max_compare_chars
        title_match = text_similarity(record.title[:limit], query.original)
        body_match = text_similarity(record.body[:limit], query.original) if record.body else 0.0

        if record.kind == ContentKind.PROFILE:
            return min(title_match * 0.5 + body_match * 0.3, 1.0)

        score = title_match * 0.4 + body_match * 0.3
        score += tag_overlap(record.tags, query.keywords) * 0.2
        if record.category and record.category.lower() in query.keywords:
            score += 0.1
        return min(score, 1.0)

    def rank(
        self,
        query: PreparedQuery,
        candidates: Sequence[ContentRecord]
    ) -> List[ScoredRecord]:
        query_vector = self._index.vector_for(query.original)
        scored = []
        for record in candidates:
            relevance = self.relevance(record, query)
            semantic = vector_similarity(self._index.vector_of_record(record), query_vector)
            combined = (relevance * self._config.relevance_weight
                        + semantic * self._config.semantic_weight)
            scored.append(ScoredRecord(
                record=record,
                score=combined,
                components=(("relevance", relevance), ("semantic", semantic))
            ))
        return sorted(scored, key=lambda s: -s.score)

    def similar(
        self,
        query: PreparedQuery,
        candidates: Sequence[ContentRecord],
        now: Timestamp,
        limit: int
    ) -> Tuple[ScoredRecord, ...]:
        """Recent long-form records ranked by plain text similarity to the query."""
        window_hours = self._config.similar_window_days * 24
        limit_chars = self._config.max_compare_chars
        scored = []
        for record in candidates:
            if not record.kind.is_long_form:
                continue
            age = now.hours_since(record.created_at)
            if not 0 <= age <= window_hours:
                continue
            score = text_similarity(record.text[:limit_chars], query.original)
            scored.append(ScoredRecord(record, score, (("similarity", score),)))
        return tuple(sorted(scored, key=lambda s: -s.score)[:limit])

    def suggestions(
        self,
        query: PreparedQuery,
        results: Sequence[ScoredRecord]
    ) -> Tuple[str, ...]:
        """Popular result tags, synonyms of query keywords, then trending topics."""
        cfg = self._config
        tag_counts: Dict[str, int] = {}
        for scored in results:
            for tag in sorted(scored.record.tags):
                tag_counts[tag] = tag_counts.get(tag, 0) + 1
        popular = sorted(tag_counts, key=lambda t: -tag_counts[t])[:cfg.popular_tags]

        related: List[str] = []
        for keyword in query.keywords:
            related.extend(cfg.synonyms.get(keyword, ()))
        related = related[:cfg.related_queries]

        suggestions: List[str] = []
        for item in list(popular) + related + list(cfg.trending_topics):
            if item not in suggestions:
                suggestions.append(item)
        return tuple(suggestions[:cfg.max_suggestions])

    def search(
        self,
        query: str,
        candidates: Sequence[ContentRecord],
        content_kind: Optional[ContentKind] = None,
        limit: int = 20,
        filters: Optional[SearchFilters] = None,
        include_similar: bool = True,
        now: Optional[Timestamp] = None
    ) -> SearchResult:
        now = now or Timestamp.now()
        prepared = self.prepare(query)

        if not prepared.original:
            self._log.log_error(Error.now(ErrorCode.EMPTY_INPUT, "empty search query"))
            return SearchResult(records=(), similar=(), suggestions=())

        filters = filters or SearchFilters()
        pool = [
            r for r in candidates
            if (content_kind is None or r.kind == content_kind) and filters.matches(r)
        ]

        ranked = tuple(self.rank(prepared, pool)[:limit])
        similar = ()
        if include_similar:
            similar = self.similar(prepared, candidates, now, min(limit, self._config.similar_limit))
        suggestions = self.suggestions(prepared, ranked)

        self._log.log(
            action="search",
            event_type=AuditEventType.SEARCH,
            entity_id=self._index.snapshot.snapshot_id,
            entity_type="search_index",
            metadata=(
                ("query", prepared.original),
                ("candidates", str(len(pool))),
                ("results", str(len(ranked))),
                ("similar", str(len(similar))),
            )
        )
        return SearchResult(records=ranked, similar=similar, suggestions=suggestions)

    def get_audit_log(self) -> List[AuditLogEntry]:
        return self._log.get_entries()


__all__ = [
    'SearchConfig', 'SearchFilters', 'PreparedQuery', 'SearchEngine',
    'AutoTagConfig', 'AutoTagger', 'DEFAULT_SYNONYMS', 'DEFAULT_TRENDING_TOPICS',
]
