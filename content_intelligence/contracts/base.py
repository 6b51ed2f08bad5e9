"""
Base Contracts and Shared Types

Foundational types shared by every layer of the content engine.
All types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- Content records are owned by the external content store; the engine
  only reads them and never produces modified copies
- Errors are values, not exceptions: they travel inside results
- Validation happens in __post_init__ so malformed records fail at the
  caller's boundary, before they reach any scoring code
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple
from enum import Enum, auto


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for the engine.
    Each code maps to a degraded-but-valid result, never to a raised exception.
    """
    # Configuration errors
    EMPTY_CORPUS = auto()
    MISSING_STOP_WORDS = auto()
    EMPTY_INPUT = auto()

    # Scoring errors
    DETECTOR_FAILED = auto()
    SCORING_FAILED = auto()
    CLUSTERING_FAILED = auto()

    # Record errors
    INVALID_RECORD = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and inspected.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def now(code: ErrorCode, message: str) -> Error:
        return Error(code=code, message=message, timestamp=Timestamp.now().value)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )


@dataclass(frozen=True)
class Result:
    """
    Result type for operations that can degrade.
    Either contains a value OR an error, never both.
    """
    value: Optional[object] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @staticmethod
    def success(value: object) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)


# =============================================================================
# TEMPORAL TYPES (UTC only)
# =============================================================================

@dataclass(frozen=True)
class Timestamp:
    """
    Immutable UTC timestamp.
    Naive datetimes are interpreted as UTC.
    """
    value: datetime

    def __post_init__(self):
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    @staticmethod
    def from_iso(iso_string: str) -> Timestamp:
        dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
        return Timestamp(value=dt)

    def to_iso(self) -> str:
        return self.value.isoformat()

    def seconds_since(self, earlier: Timestamp) -> float:
        return (self.value - earlier.value).total_seconds()

    def hours_since(self, earlier: Timestamp) -> float:
        return self.seconds_since(earlier) / 3600.0


@dataclass(frozen=True)
class TimeRange:
    """Immutable inclusive time range used by search filters."""
    start: Timestamp
    end: Timestamp

    def __post_init__(self):
        if self.start.value > self.end.value:
            raise ValueError("TimeRange start must be before or equal to end")

    def contains(self, timestamp: Timestamp) -> bool:
        return self.start.value <= timestamp.value <= self.end.value


# =============================================================================
# CONTENT TYPES
# =============================================================================

class ContentKind(Enum):
    """
    Kinds of publishable content.

    COMMENT is a screening kind only: comments are moderated but never
    indexed, recommended or clustered.
    """
    ARTICLE = "article"
    SERIES = "series"
    PROFILE = "profile"
    COMMENT = "comment"

    @property
    def is_long_form(self) -> bool:
        return self in (ContentKind.ARTICLE, ContentKind.SERIES)


@dataclass(frozen=True)
class EngagementCounters:
    """Non-negative engagement counters of a record."""
    likes: int = 0
    bookmarks: int = 0
    views: int = 0

    def __post_init__(self):
        for name in ('likes', 'bookmarks', 'views'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")

    @property
    def weighted(self) -> int:
        """Likes plus double-weighted bookmarks."""
        return self.likes + 2 * self.bookmarks


def normalize_tags(tags: Iterable[str]) -> FrozenSet[str]:
    """Lower-case, strip and de-duplicate a tag collection."""
    return frozenset(t.strip().lower() for t in tags if t and t.strip())


@dataclass(frozen=True)
class ContentRecord:
    """
    Read-only view of a publishable item supplied by the content store.

    For profiles, `title` carries the display name and `body` the bio.
    """
    record_id: str
    kind: ContentKind
    title: str
    body: str
    author_id: str
    created_at: Timestamp
    tags: FrozenSet[str] = field(default_factory=frozenset)
    category: Optional[str] = None
    engagement: EngagementCounters = field(default_factory=EngagementCounters)

    def __post_init__(self):
        if not self.record_id or not isinstance(self.record_id, str):
            raise ValueError("record_id must be a non-empty string")
        if self.kind == ContentKind.COMMENT:
            raise ValueError("comments are screened, not stored as content records")
        for name in ('title', 'body'):
            if not isinstance(getattr(self, name), str):
                raise ValueError(f"{name} must be a string")
        if self.category is not None and not isinstance(self.category, str):
            raise ValueError("category must be a string or None")
        object.__setattr__(self, 'tags', normalize_tags(self.tags))

    @property
    def text(self) -> str:
        """Searchable text: title followed by body."""
        return f"{self.title} {self.body}".strip()

    @property
    def word_count(self) -> int:
        return len(self.body.split())

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> ContentRecord:
        """Build a record from a plain mapping (JSON payloads, fixtures)."""
        engagement = data.get('engagement') or {}
        created_at = data.get('created_at')
        if isinstance(created_at, str):
            created = Timestamp.from_iso(created_at)
        elif isinstance(created_at, datetime):
            created = Timestamp(value=created_at)
        else:
            created = Timestamp.now()
        return ContentRecord(
            record_id=str(data['id']),
            kind=ContentKind(data.get('kind', 'article')),
            title=data.get('title', ''),
            body=data.get('body', ''),
            author_id=str(data.get('author_id', '')),
            created_at=created,
            tags=frozenset(data.get('tags') or ()),
            category=data.get('category'),
            engagement=EngagementCounters(
                likes=int(engagement.get('likes', 0)),
                bookmarks=int(engagement.get('bookmarks', 0)),
                views=int(engagement.get('views', 0)),
            ),
        )

    @staticmethod
    def parse(data: Dict[str, Any]) -> Result:
        """from_dict that reports a malformed mapping as INVALID_RECORD instead of raising."""
        try:
            return Result.success(ContentRecord.from_dict(data))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            record_id = data.get('id') if isinstance(data, dict) else None
            error = Error.now(ErrorCode.INVALID_RECORD, str(exc)).with_context(
                "id", str(record_id)
            )
            return Result.failure(error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.record_id,
            'kind': self.kind.value,
            'title': self.title,
            'body': self.body,
            'author_id': self.author_id,
            'created_at': self.created_at.to_iso(),
            'tags': sorted(self.tags),
            'category': self.category,
            'engagement': {
                'likes': self.engagement.likes,
                'bookmarks': self.engagement.bookmarks,
                'views': self.engagement.views,
            },
        }
