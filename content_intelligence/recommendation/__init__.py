"""
Recommendation Layer

RESPONSIBILITY: Profile a user's history and rank candidate content for them
ALLOWED INPUTS: ContentRecords, UserHistory, term vectors from the index
OUTPUTS: UserProfile, ScoredRecord lists, RecommendationResult

WHAT THIS LAYER MUST NOT DO:
============================
- Fetch records or user history (the caller passes them in)
- Learn or update weights (all weights are fixed configuration)
- Raise on an empty history (that user simply gets generic results)

Three lists are produced per request:
- primary:  candidates in the user's preferred categories/tags, scored
            against the profile
- trending: recent candidates ranked by engagement over age^1.5
- similar:  neighbours of the user's most recent interactions
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import math

from ..contracts.base import ContentKind, ContentRecord, Error, ErrorCode, Timestamp
from ..contracts.events import AuditEventType, AuditLogEntry
from ..contracts.results import (
    EngagementLevel, RecommendationResult, ScoredRecord, TermVector, UserProfile
)
from ..core.similarity import tag_overlap, vector_similarity
from ..observability import LogCollector


Vectorizer = Callable[[ContentRecord], TermVector]
TextVectorizer = Callable[[str], TermVector]


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class RecommendationWeights:
    """Weights of the four scoring components."""
    category: float
    tag_overlap: float
    vector_similarity: float
    engagement: float


@dataclass
class RecommendationConfig:
    """Configuration for the recommendation engine."""
    primary: RecommendationWeights = field(
        default_factory=lambda: RecommendationWeights(0.3, 0.2, 0.3, 0.2)
    )
    series: RecommendationWeights = field(
        default_factory=lambda: RecommendationWeights(0.4, 0.2, 0.2, 0.2)
    )
    item_similarity: RecommendationWeights = field(
        default_factory=lambda: RecommendationWeights(0.3, 0.3, 0.4, 0.0)
    )
    trending_window_hours: float = 24.0
    trending_decay: float = 1.5
    profile_vector_terms: int = 20
    topic_terms: int = 10
    recent_interactions: int = 5
    top_categories: int = 3
    top_tags: int = 5
    high_engagement: int = 100
    medium_engagement: int = 20


@dataclass(frozen=True)
class UserHistory:
    """
    What the caller knows about a user.

    `records` are the liked/read records, most recent first.
    """
    user_id: str
    records: Tuple[ContentRecord, ...] = ()
    total_likes: int = 0
    total_comments: int = 0
    total_bookmarks: int = 0

    @staticmethod
    def empty(user_id: str) -> UserHistory:
        return UserHistory(user_id=user_id)

    @property
    def interaction_total(self) -> int:
        return self.total_likes + self.total_comments + self.total_bookmarks


@dataclass(frozen=True)
class RecommendOptions:
    limit: int = 10
    content_kind: Optional[ContentKind] = None  # None means articles and series
    include_trending: bool = True
    exclude_read: bool = True


# =============================================================================
# PURE SCORING FUNCTIONS
# =============================================================================

def _ranked_by_frequency(values: Iterable[str]) -> Tuple[str, ...]:
    """Most frequent first; ties keep first-occurrence order."""
    counts: Dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    # dicts keep insertion order and sorted() is stable
    return tuple(sorted(counts, key=lambda v: -counts[v]))


def engagement_level(
    interaction_total: int,
    high: int = 100,
    medium: int = 20
) -> EngagementLevel:
    if interaction_total > high:
        return EngagementLevel.HIGH
    if interaction_total > medium:
        return EngagementLevel.MEDIUM
    return EngagementLevel.LOW


def engagement_potential(record: ContentRecord) -> float:
    """Weighted engagement per hundred words, scaled into 0-1."""
    per_hundred_words = record.engagement.weighted / max(record.word_count / 100, 1)
    return min(per_hundred_words / 10, 1.0)


def trending_score(record: ContentRecord, now: Timestamp, decay: float = 1.5) -> float:
    """(likes + 2*bookmarks) / (age_hours + 2) ** decay"""
    age_hours = max(now.hours_since(record.created_at), 0.0)
    return record.engagement.weighted / math.pow(age_hours + 2, decay)


def build_user_profile(
    history: UserHistory,
    vectorize_text: TextVectorizer,
    config: Optional[RecommendationConfig] = None
) -> UserProfile:
    """
    Summarise a history into preferences.

    The content vector is the TF-IDF vector of all history text, kept to
    its strongest terms; topic terms are the top of that vector.
    """
    config = config or RecommendationConfig()
    records = history.records

    categories = _ranked_by_frequency(r.category for r in records if r.category)
    tags = _ranked_by_frequency(tag for r in records for tag in sorted(r.tags))

    if records:
        combined = ' '.join(r.text for r in records)
        content_vector = vectorize_text(combined).truncated(config.profile_vector_terms)
    else:
        content_vector = TermVector.empty()

    articles = sum(1 for r in records if r.kind == ContentKind.ARTICLE)
    series = sum(1 for r in records if r.kind == ContentKind.SERIES)
    if series > articles:
        preferred_kind = ContentKind.SERIES
    elif articles > series:
        preferred_kind = ContentKind.ARTICLE
    else:
        preferred_kind = None

    return UserProfile(
        user_id=history.user_id,
        preferred_categories=categories,
        preferred_tags=tags,
        topic_terms=content_vector.top_terms(config.topic_terms),
        engagement_level=engagement_level(
            history.interaction_total, config.high_engagement, config.medium_engagement
        ),
        preferred_kind=preferred_kind,
        content_vector=content_vector,
        history_size=len(records)
    )


def score_content(
    record: ContentRecord,
    record_vector: TermVector,
    profile: UserProfile,
    weights: RecommendationWeights
) -> ScoredRecord:
    """Weighted sum of category match, tag overlap, vector similarity and engagement."""
    components = (
        ("category", 1.0 if record.category and record.category in profile.preferred_categories else 0.0),
        ("tag_overlap", tag_overlap(record.tags, profile.preferred_tags)),
        ("vector_similarity", vector_similarity(record_vector, profile.content_vector)),
        ("engagement", engagement_potential(record)),
    )
    return ScoredRecord(
        record=record,
        score=min(_weighted(components, weights), 1.0),
        components=components
    )


def item_similarity(
    a: ContentRecord,
    b: ContentRecord,
    vector_a: TermVector,
    vector_b: TermVector,
    weights: RecommendationWeights
) -> float:
    """Similarity between two records; symmetric when the engagement weight is 0."""
    components = (
        ("category", 1.0 if a.category and a.category == b.category else 0.0),
        ("tag_overlap", tag_overlap(a.tags, b.tags)),
        ("vector_similarity", vector_similarity(vector_a, vector_b)),
        ("engagement", engagement_potential(b)),
    )
    return min(_weighted(components, weights), 1.0)


def _weighted(components, weights: RecommendationWeights) -> float:
    values = dict(components)
    return (
        values["category"] * weights.category
        + values["tag_overlap"] * weights.tag_overlap
        + values["vector_similarity"] * weights.vector_similarity
        + values["engagement"] * weights.engagement
    )


def _by_score(scored: Iterable[ScoredRecord]) -> List[ScoredRecord]:
    return sorted(scored, key=lambda s: -s.score)


# =============================================================================
# RECOMMENDATION ENGINE
# =============================================================================

class RecommendationEngine:
    """
    Ranks candidates for one user.

    BOUNDARY ENFORCEMENT:
    - Reads term vectors through the injected vectorizers only
    - Returns best-effort lists; a failing sub-step yields an empty list
      and an audit error, never an exception
    """

    def __init__(
        self,
        vectorize_record: Vectorizer,
        vectorize_text: TextVectorizer,
        config: Optional[RecommendationConfig] = None
    ):
        self._vectorize_record = vectorize_record
        self._vectorize_text = vectorize_text
        self._config = config or RecommendationConfig()
        self._log = LogCollector('recommendation')

    @property
    def config(self) -> RecommendationConfig:
        return self._config

    @property
    def log_collector(self) -> LogCollector:
        return self._log

    def build_profile(self, history: UserHistory) -> UserProfile:
        return build_user_profile(history, self._vectorize_text, self._config)

    def score_content(
        self,
        record: ContentRecord,
        profile: UserProfile,
        weights: Optional[RecommendationWeights] = None
    ) -> ScoredRecord:
        if weights is None:
            weights = self._config.series if record.kind == ContentKind.SERIES else self._config.primary
        return score_content(record, self._vectorize_record(record), profile, weights)

    def similarity(self, a: ContentRecord, b: ContentRecord) -> float:
        """Item-to-item similarity with the configured weights."""
        return item_similarity(
            a, b, self._vectorize_record(a), self._vectorize_record(b),
            self._config.item_similarity
        )

    def trending_score(self, record: ContentRecord, now: Optional[Timestamp] = None) -> float:
        return trending_score(record, now or Timestamp.now(), self._config.trending_decay)

    def trending(
        self,
        candidates: Sequence[ContentRecord],
        now: Optional[Timestamp] = None,
        limit: int = 10
    ) -> Tuple[ScoredRecord, ...]:
        """Candidates created within the trending window, best first."""
        now = now or Timestamp.now()
        window = self._config.trending_window_hours
        scored = []
        for record in candidates:
            age = now.hours_since(record.created_at)
            if 0 <= age <= window:
                score = self.trending_score(record, now)
                scored.append(ScoredRecord(record, score, (("trending", score),)))
        return tuple(_by_score(scored)[:limit])

    def primary(
        self,
        profile: UserProfile,
        candidates: Sequence[ContentRecord],
        exclude_ids: frozenset = frozenset(),
        limit: int = 10
    ) -> Tuple[ScoredRecord, ...]:
        """
        Candidates in the profile's top categories and carrying one of
        its top tags, scored against the profile. The user's own content
        is excluded. An empty profile filters nothing.
        """
        top_categories = set(profile.preferred_categories[:self._config.top_categories])
        top_tags = set(profile.preferred_tags[:self._config.top_tags])

        scored = []
        for record in candidates:
            if record.author_id == profile.user_id or record.record_id in exclude_ids:
                continue
            if top_categories and record.category not in top_categories:
                continue
            # series are matched on category only
            if top_tags and record.kind != ContentKind.SERIES and not (record.tags & top_tags):
                continue
            scored.append(self.score_content(record, profile))
        return tuple(_by_score(scored)[:limit])

    def similar_to_recent(
        self,
        history: UserHistory,
        candidates: Sequence[ContentRecord],
        exclude_ids: frozenset = frozenset(),
        limit: int = 10
    ) -> Tuple[ScoredRecord, ...]:
        """
        Neighbours of the most recent interactions.

        Each seed contributes up to ceil(limit / seeds) records from its
        own category by other authors; duplicates keep their best score.
        """
        seeds = history.records[:self._config.recent_interactions]
        if not seeds or limit <= 0:
            return ()

        per_seed = math.ceil(limit / len(seeds))
        best: Dict[str, ScoredRecord] = {}
        for seed in seeds:
            pool = [
                c for c in candidates
                if c.record_id != seed.record_id
                and c.author_id != seed.author_id
                and c.record_id not in exclude_ids
                and (seed.category is None or c.category == seed.category)
            ]
            neighbours = _by_score(
                ScoredRecord(c, s, (("similarity", s),))
                for c, s in ((c, self.similarity(seed, c)) for c in pool)
            )[:per_seed]
            for scored in neighbours:
                current = best.get(scored.record_id)
                if current is None or scored.score > current.score:
                    best[scored.record_id] = scored

        return tuple(_by_score(best.values())[:limit])

    def recommend(
        self,
        user_id: str,
        candidates: Sequence[ContentRecord],
        history: Optional[UserHistory] = None,
        options: Optional[RecommendOptions] = None,
        now: Optional[Timestamp] = None
    ) -> RecommendationResult:
        """Primary, trending and similar lists for one user. Never raises."""
        options = options or RecommendOptions()
        history = history or UserHistory.empty(user_id)
        now = now or Timestamp.now()

        if options.content_kind is not None:
            pool = [c for c in candidates if c.kind == options.content_kind]
        else:
            pool = [c for c in candidates if c.kind.is_long_form]

        exclude_ids = (
            frozenset(r.record_id for r in history.records) if options.exclude_read else frozenset()
        )

        profile = self._attempt(
            "build_profile", user_id,
            lambda: self.build_profile(history),
            lambda: build_user_profile(UserHistory.empty(user_id), self._vectorize_text, self._config)
        )
        primary = self._attempt(
            "primary", user_id,
            lambda: self.primary(profile, pool, exclude_ids, options.limit), tuple
        )
        trending = ()
        if options.include_trending:
            trending = self._attempt(
                "trending", user_id,
                lambda: self.trending(pool, now, options.limit), tuple
            )
        similar = self._attempt(
            "similar", user_id,
            lambda: self.similar_to_recent(history, pool, exclude_ids, options.limit), tuple
        )

        self._log.log(
            action="recommend",
            event_type=AuditEventType.RECOMMENDATION,
            entity_id=user_id,
            entity_type="user",
            metadata=(
                ("history_size", str(profile.history_size)),
                ("primary", str(len(primary))),
                ("trending", str(len(trending))),
                ("similar", str(len(similar))),
            )
        )
        return RecommendationResult(
            primary=primary, trending=trending, similar=similar, profile=profile
        )

    def _attempt(self, step: str, user_id: str, compute, fallback):
        try:
            return compute()
        except Exception as exc:
            error = Error.now(ErrorCode.SCORING_FAILED, str(exc)).with_context("step", step)
            self._log.log_error(error, entity_id=user_id)
            return fallback()

    def get_audit_log(self) -> List[AuditLogEntry]:
        return self._log.get_entries()


__all__ = [
    'RecommendationWeights', 'RecommendationConfig', 'UserHistory', 'RecommendOptions',
    'engagement_level', 'engagement_potential', 'trending_score',
    'build_user_profile', 'score_content', 'item_similarity',
    'RecommendationEngine',
]
