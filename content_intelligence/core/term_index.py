"""
Term-Weight Index
=================

TF-IDF vectors for every indexed record, plus ad-hoc vectors for queries.

SNAPSHOT MODEL:
===============
`build_index` is pure: records in, immutable SearchIndex out.
`TermWeightIndex` owns the *current* snapshot in a single attribute and
swaps it on rebuild, so a reader holding the old snapshot keeps a
consistent view. Two callers that both find the index stale may both
rebuild; the last assignment wins and both snapshots are equivalent.

Weights:
- TF  = count(stem) / number of stems in the document
- IDF = ln(N / df) + 1
Query terms never seen in the corpus get weight 0.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Union
import math

from ..contracts.base import ContentRecord, Error, ErrorCode, Timestamp
from ..contracts.events import AuditEventType, AuditLogEntry
from ..contracts.results import SearchIndex, TermVector
from ..normalization import TextNormalizer
from ..observability import LogCollector


RecordSource = Union[Iterable[ContentRecord], Callable[[], Iterable[ContentRecord]]]


# =============================================================================
# PURE FUNCTIONS
# =============================================================================

def term_frequencies(stems) -> Dict[str, float]:
    """Stem counts normalised by document length."""
    if not stems:
        return {}
    counts: Dict[str, int] = {}
    for stem in stems:
        counts[stem] = counts.get(stem, 0) + 1
    total = len(stems)
    return {s: c / total for s, c in counts.items()}


def inverse_document_frequency(df: int, document_count: int) -> float:
    if document_count == 0 or df == 0:
        return 0.0
    return math.log(document_count / df) + 1.0


def build_index(
    records: Iterable[ContentRecord],
    normalizer: TextNormalizer,
    built_at: Optional[Timestamp] = None
) -> SearchIndex:
    """
    Compute a TF-IDF snapshot over the given records.

    Records with duplicate ids keep the last occurrence.
    """
    stems_by_id: Dict[str, tuple] = {}
    for record in records:
        stems_by_id[record.record_id] = normalizer.stem_tokens(record.text)

    document_frequencies: Dict[str, int] = {}
    for stems in stems_by_id.values():
        for stem in set(stems):
            document_frequencies[stem] = document_frequencies.get(stem, 0) + 1

    n = len(stems_by_id)
    vectors: Dict[str, TermVector] = {}
    for record_id, stems in stems_by_id.items():
        tf = term_frequencies(stems)
        vectors[record_id] = TermVector.from_mapping({
            stem: weight * inverse_document_frequency(document_frequencies[stem], n)
            for stem, weight in tf.items()
        })

    return SearchIndex.create(vectors, document_frequencies, built_at)


def vector_for(text: str, index: SearchIndex, normalizer: TextNormalizer) -> TermVector:
    """
    TF-IDF vector of arbitrary text against the index's statistics.
    Reads the snapshot only; an empty corpus yields the zero vector.
    """
    if index.is_empty:
        return TermVector.empty()
    tf = term_frequencies(normalizer.stem_tokens(text))
    return TermVector.from_mapping({
        stem: weight * inverse_document_frequency(
            index.document_frequencies.get(stem, 0), index.document_count
        )
        for stem, weight in tf.items()
    })


# =============================================================================
# INDEX SERVICE
# =============================================================================

@dataclass
class IndexConfig:
    """Configuration for the term-weight index."""
    staleness_seconds: float = 3600.0
    max_documents: int = 1000


class TermWeightIndex:
    """
    Owner of the current SearchIndex snapshot.

    BOUNDARY ENFORCEMENT:
    - Never edits a snapshot, only replaces it
    - Never fetches records itself; callers pass records or a loader
    """

    def __init__(
        self,
        normalizer: Optional[TextNormalizer] = None,
        config: Optional[IndexConfig] = None
    ):
        self._config = config or IndexConfig()
        self._normalizer = normalizer or TextNormalizer()
        self._snapshot: SearchIndex = SearchIndex.empty()
        self._log = LogCollector('indexing')

    @property
    def snapshot(self) -> SearchIndex:
        return self._snapshot

    @property
    def normalizer(self) -> TextNormalizer:
        return self._normalizer

    @property
    def log_collector(self) -> LogCollector:
        return self._log

    def is_stale(self, now: Optional[Timestamp] = None) -> bool:
        built_at = self._snapshot.built_at
        if built_at is None:
            return True
        now = now or Timestamp.now()
        return now.seconds_since(built_at) > self._config.staleness_seconds

    def rebuild(
        self,
        records: Iterable[ContentRecord],
        now: Optional[Timestamp] = None
    ) -> SearchIndex:
        """Build a fresh snapshot and swap it in."""
        now = now or Timestamp.now()
        bounded: List[ContentRecord] = []
        for record in records:
            if len(bounded) >= self._config.max_documents:
                break
            bounded.append(record)

        snapshot = build_index(bounded, self._normalizer, built_at=now)
        self._snapshot = snapshot

        self._log.log(
            action="rebuild",
            event_type=AuditEventType.INDEXING,
            entity_id=snapshot.snapshot_id,
            entity_type="search_index",
            metadata=(
                ("document_count", str(snapshot.document_count)),
                ("vocabulary_size", str(len(snapshot.document_frequencies))),
            )
        )
        if snapshot.is_empty:
            self._log.log_error(
                Error.now(ErrorCode.EMPTY_CORPUS, "index rebuilt from an empty corpus"),
                entity_id=snapshot.snapshot_id
            )
        return snapshot

    def ensure_fresh(
        self,
        source: RecordSource,
        now: Optional[Timestamp] = None
    ) -> bool:
        """
        Rebuild only when stale or never built.

        `source` may be the records themselves or a zero-argument loader;
        the loader is only called when a rebuild is needed.
        Returns True when a rebuild happened.
        """
        now = now or Timestamp.now()
        if not self.is_stale(now):
            return False
        records = source() if callable(source) else source
        self.rebuild(records, now)
        return True

    def vector_for(self, text: str) -> TermVector:
        return vector_for(text, self._snapshot, self._normalizer)

    def vector_of_record(self, record: ContentRecord) -> TermVector:
        """Indexed vector when present, otherwise computed ad hoc."""
        indexed = self._snapshot.vector(record.record_id)
        if indexed is not None:
            return indexed
        return self.vector_for(record.text)

    def get_audit_log(self) -> List[AuditLogEntry]:
        return self._log.get_entries()
