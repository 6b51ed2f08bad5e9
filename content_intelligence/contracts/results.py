"""
Derived Contracts

Immutable structures derived from content records: term vectors, the
search index snapshot, user profiles, moderation verdicts, clusters and
ranked result sets.

Every structure here is a pure function of its inputs plus the index
snapshot in use. None of them is persisted by the engine.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple
from enum import Enum
import hashlib

from .base import ContentKind, ContentRecord, Error, Timestamp


# =============================================================================
# TEXT & TERM WEIGHTS
# =============================================================================

@dataclass(frozen=True)
class NormalizedText:
    """Output of the text normalizer for one piece of text."""
    tokens: Tuple[str, ...]
    stems: Tuple[str, ...]
    keywords: Tuple[str, ...]


@dataclass(frozen=True)
class TermVector:
    """
    Immutable stem -> weight mapping.

    Stored as a term-sorted tuple of pairs so equal vectors compare and hash
    equal regardless of construction order. Weights are non-negative; zero
    weights are dropped.
    """
    weights: Tuple[Tuple[str, float], ...] = field(default_factory=tuple)

    def __post_init__(self):
        for term, weight in self.weights:
            if weight < 0:
                raise ValueError(f"negative weight for term {term!r}")
        object.__setattr__(
            self, 'weights',
            tuple(sorted((t, float(w)) for t, w in self.weights if w > 0))
        )

    @staticmethod
    def from_mapping(mapping: Mapping[str, float]) -> TermVector:
        return TermVector(weights=tuple(mapping.items()))

    @staticmethod
    def empty() -> TermVector:
        return TermVector()

    def as_dict(self) -> Dict[str, float]:
        return dict(self.weights)

    @property
    def terms(self) -> Tuple[str, ...]:
        return tuple(t for t, _ in self.weights)

    @property
    def is_zero(self) -> bool:
        return not self.weights

    def top_terms(self, n: int) -> Tuple[str, ...]:
        """Highest-weighted terms; ties broken alphabetically."""
        ranked = sorted(self.weights, key=lambda tw: (-tw[1], tw[0]))
        return tuple(t for t, _ in ranked[:n])

    def truncated(self, n: int) -> TermVector:
        keep = set(self.top_terms(n))
        return TermVector(weights=tuple(tw for tw in self.weights if tw[0] in keep))

    def __len__(self) -> int:
        return len(self.weights)


@dataclass(frozen=True)
class SearchIndex:
    """
    Immutable snapshot of TF-IDF vectors for every indexed record.

    LIFECYCLE:
    - created empty at process start (built_at is None)
    - replaced wholesale on rebuild, never edited
    - discarded once superseded
    """
    vectors: Mapping[str, TermVector]
    document_frequencies: Mapping[str, int]
    document_count: int
    built_at: Optional[Timestamp]
    snapshot_id: str

    @staticmethod
    def create(
        vectors: Dict[str, TermVector],
        document_frequencies: Dict[str, int],
        built_at: Optional[Timestamp]
    ) -> SearchIndex:
        """Freeze the given tables into a snapshot with a content-derived id."""
        digest = hashlib.sha256()
        for record_id in sorted(vectors):
            digest.update(record_id.encode('utf-8'))
            digest.update(repr(vectors[record_id].weights).encode('utf-8'))
        return SearchIndex(
            vectors=MappingProxyType(dict(vectors)),
            document_frequencies=MappingProxyType(dict(document_frequencies)),
            document_count=len(vectors),
            built_at=built_at,
            snapshot_id=f"idx_{digest.hexdigest()[:16]}"
        )

    @staticmethod
    def empty() -> SearchIndex:
        return SearchIndex.create({}, {}, built_at=None)

    @property
    def is_empty(self) -> bool:
        return self.document_count == 0

    def vector(self, record_id: str) -> Optional[TermVector]:
        return self.vectors.get(record_id)


# =============================================================================
# USER PROFILE
# =============================================================================

class EngagementLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class UserProfile:
    """
    Derived summary of one user's history.
    Recomputed per request; callers may cache it.
    """
    user_id: str
    preferred_categories: Tuple[str, ...]
    preferred_tags: Tuple[str, ...]
    topic_terms: Tuple[str, ...]
    engagement_level: EngagementLevel
    preferred_kind: Optional[ContentKind]  # None means mixed / no preference
    content_vector: TermVector
    history_size: int

    @property
    def is_empty(self) -> bool:
        return self.history_size == 0


# =============================================================================
# MODERATION
# =============================================================================

class FlagKind(Enum):
    """Verdict-level flags. Detector detail lives in `signals`."""
    SPAM = "spam"
    TOXIC = "toxic"
    SUSPICIOUS = "suspicious"
    USER_HISTORY_REPORTED = "user_history_reported"
    USER_HISTORY_SPAM = "user_history_spam"
    RAPID_COMMENTING = "rapid_commenting"
    DUPLICATE_CONTENT = "duplicate_content"
    ERROR = "error"


@dataclass(frozen=True)
class DetectorResult:
    """
    Output of one detector over one text.

    `raw_score` is what the detector measured; `score` is what it
    contributes to the composite (zero unless the detector fired).
    """
    detector: str
    score: float
    raw_score: float
    flag: Optional[FlagKind] = None
    signals: Tuple[str, ...] = field(default_factory=tuple)
    suggestions: Tuple[str, ...] = field(default_factory=tuple)
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    error: Optional[Error] = None

    @staticmethod
    def neutral(detector: str, error: Optional[Error] = None) -> DetectorResult:
        return DetectorResult(detector=detector, score=0.0, raw_score=0.0, error=error)

    @property
    def fired(self) -> bool:
        return self.flag is not None


@dataclass(frozen=True)
class ModerationVerdict:
    """
    One screening decision.

    `score` is composite risk, `confidence` is certainty about the verdict.
    The two are computed independently.
    """
    is_approved: bool
    score: float
    flags: Tuple[FlagKind, ...]
    confidence: float
    suggestions: Tuple[str, ...]
    signals: Tuple[str, ...] = field(default_factory=tuple)
    detector_results: Tuple[DetectorResult, ...] = field(default_factory=tuple)
    errors: Tuple[Error, ...] = field(default_factory=tuple)

    @property
    def flag_values(self) -> Tuple[str, ...]:
        return tuple(f.value for f in self.flags)


# =============================================================================
# RANKED RESULTS
# =============================================================================

@dataclass(frozen=True)
class ScoredRecord:
    """A record with its ranking score and the named parts of that score."""
    record: ContentRecord
    score: float
    components: Tuple[Tuple[str, float], ...] = field(default_factory=tuple)

    @property
    def record_id(self) -> str:
        return self.record.record_id

    def component(self, name: str) -> float:
        return dict(self.components).get(name, 0.0)


@dataclass(frozen=True)
class SearchResult:
    records: Tuple[ScoredRecord, ...]
    similar: Tuple[ScoredRecord, ...]
    suggestions: Tuple[str, ...]


@dataclass(frozen=True)
class RecommendationResult:
    primary: Tuple[ScoredRecord, ...]
    trending: Tuple[ScoredRecord, ...]
    similar: Tuple[ScoredRecord, ...]
    profile: Optional[UserProfile] = None


# =============================================================================
# CLUSTERS
# =============================================================================

@dataclass(frozen=True)
class Cluster:
    """A group of records whose pairwise similarity to the seed exceeded the threshold."""
    cluster_id: int
    member_ids: Tuple[str, ...]
    centroid: float
    keywords: Tuple[str, ...]

    @property
    def size(self) -> int:
        return len(self.member_ids)
