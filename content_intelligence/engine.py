"""
Engine Orchestration Module

This module provides the unified interface for the content engine while
keeping the layers separate.

DESIGN PRINCIPLES:
==================
1. Layers communicate ONLY through contracts
2. The engine owns the one piece of shared mutable state: the current
   index snapshot, held by a single TermWeightIndex
3. All operations are traceable through observability
4. Public operations return best-effort results; they never raise on
   content (invalid records are rejected by the contract constructors
   before they get here)
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple
import os
import time

from .contracts.base import ContentKind, ContentRecord, TimeRange, Timestamp
from .contracts.events import AuditLogEntry
from .contracts.results import (
    Cluster, ModerationVerdict, RecommendationResult, SearchIndex, SearchResult
)
from .normalization import NormalizerConfig, TextNormalizer, load_stop_words
from .core import (
    ClusteringConfig, ContentClusterer, IndexConfig, RecordSource, TermWeightIndex,
    build_index
)
from .moderation import CommentContext, DetectorToggles, ModerationConfig, ModerationScreener
from .recommendation import (
    RecommendationConfig, RecommendationEngine, RecommendOptions, UserHistory,
    item_similarity
)
from .query import AutoTagConfig, AutoTagger, SearchConfig, SearchEngine, SearchFilters
from .observability import MetricsCollector, ObservabilityConfig, ObservabilityEngine


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class EngineConfig:
    """Unified configuration for the entire engine."""
    normalizer: NormalizerConfig = None
    index: IndexConfig = None
    moderation: ModerationConfig = None
    recommendation: RecommendationConfig = None
    clustering: ClusteringConfig = None
    search: SearchConfig = None
    tagging: AutoTagConfig = None
    observability: ObservabilityConfig = None

    def __post_init__(self):
        self.normalizer = self.normalizer or NormalizerConfig()
        self.index = self.index or IndexConfig()
        self.moderation = self.moderation or ModerationConfig()
        self.recommendation = self.recommendation or RecommendationConfig()
        self.clustering = self.clustering or ClusteringConfig()
        self.search = self.search or SearchConfig()
        self.tagging = self.tagging or AutoTagConfig()
        self.observability = self.observability or ObservabilityConfig()

    @staticmethod
    def from_env(environ: Optional[Dict[str, str]] = None) -> EngineConfig:
        """
        Defaults overridden by CIE_* environment variables:
        CIE_INDEX_STALENESS_SECONDS, CIE_INDEX_MAX_DOCUMENTS,
        CIE_TRENDING_WINDOW_HOURS, CIE_MODERATION_FAIL_CLOSED,
        CIE_STOP_WORDS_FILE, CIE_AUDIT_MAX_ENTRIES (bounds each audit layer
        and each metric series).
        """
        env = os.environ if environ is None else environ
        config = EngineConfig()

        if 'CIE_INDEX_STALENESS_SECONDS' in env:
            config.index.staleness_seconds = float(env['CIE_INDEX_STALENESS_SECONDS'])
        if 'CIE_INDEX_MAX_DOCUMENTS' in env:
            config.index.max_documents = int(env['CIE_INDEX_MAX_DOCUMENTS'])
        if 'CIE_TRENDING_WINDOW_HOURS' in env:
            config.recommendation.trending_window_hours = float(env['CIE_TRENDING_WINDOW_HOURS'])
        if 'CIE_MODERATION_FAIL_CLOSED' in env:
            config.moderation.fail_closed = _env_bool(env['CIE_MODERATION_FAIL_CLOSED'])
        if env.get('CIE_STOP_WORDS_FILE'):
            config.normalizer.stop_words_file = env['CIE_STOP_WORDS_FILE']
        if 'CIE_AUDIT_MAX_ENTRIES' in env:
            bound = int(env['CIE_AUDIT_MAX_ENTRIES'])
            config.observability.max_entries_per_layer = bound
            config.observability.max_points_per_metric = bound
        return config


class ContentIntelligenceEngine:
    """
    Unified facade over the content engine layers.

    LAYER FLOW:
    ===========
    1. Normalization: text -> tokens, stems, keywords
    2. Index: records -> TF-IDF snapshot (rebuilt lazily when stale)
    3. Search / Recommendation / Clustering: records + snapshot -> rankings
    4. Moderation: text -> verdict
    5. Observability: records every layer's activity

    One long-lived instance per process; there is no module-level engine.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self._config = config or EngineConfig()

        normalizer_config, stop_words_error = self._resolve_stop_words(self._config.normalizer)
        self._normalizer = TextNormalizer(normalizer_config)
        self._index = TermWeightIndex(self._normalizer, self._config.index)
        self._search = SearchEngine(self._index, self._config.search)
        self._tagger = AutoTagger(self._normalizer, self._config.tagging)
        self._moderation = ModerationScreener(
            self._config.moderation, normalizer=self._normalizer
        )
        self._recommendation = RecommendationEngine(
            vectorize_record=self._index.vector_of_record,
            vectorize_text=self._index.vector_for,
            config=self._config.recommendation
        )
        self._clusterer = ContentClusterer(
            similarity=self._recommendation.similarity,
            normalizer=self._normalizer,
            config=self._config.clustering
        )
        self._observability = ObservabilityEngine(self._config.observability)

        for collector in (
            self._index.log_collector,
            self._search.log_collector,
            self._moderation.log_collector,
            self._recommendation.log_collector,
            self._clusterer.log_collector,
        ):
            self._observability.attach(collector)

        if stop_words_error is not None:
            self._observability.record_error(stop_words_error, layer="normalization")

    @staticmethod
    def _resolve_stop_words(config: NormalizerConfig):
        """Load a configured stop-word file; an unreadable file keeps the default list."""
        if not config.stop_words_file:
            return config, None
        loaded = load_stop_words(config.stop_words_file)
        if loaded.is_failure:
            return replace(config, stop_words_file=None), loaded.error
        return replace(config, stop_words=loaded.value, stop_words_file=None), None

    # =========================================================================
    # INDEX
    # =========================================================================

    @property
    def index(self) -> SearchIndex:
        """The current snapshot (read-only)."""
        return self._index.snapshot

    def rebuild_index(
        self,
        records: Sequence[ContentRecord],
        now: Optional[Timestamp] = None
    ) -> SearchIndex:
        snapshot = self._index.rebuild(records, now)
        self._record_rebuild(snapshot)
        return snapshot

    def ensure_index_fresh(
        self,
        source: RecordSource,
        now: Optional[Timestamp] = None
    ) -> bool:
        rebuilt = self._index.ensure_fresh(source, now)
        if rebuilt:
            self._record_rebuild(self._index.snapshot)
        return rebuilt

    def _record_rebuild(self, snapshot: SearchIndex):
        self._observability.collect_metric("index_rebuilds_total", 1)
        self._observability.collect_metric("indexed_documents", snapshot.document_count)

    # =========================================================================
    # SEARCH & TAGGING
    # =========================================================================

    def search(
        self,
        query: str,
        candidates: Sequence[ContentRecord],
        content_type: Optional[ContentKind] = None,
        limit: int = 20,
        filters: Optional[SearchFilters] = None,
        now: Optional[Timestamp] = None
    ) -> SearchResult:
        """Ensure the index is fresh for the candidates, then rank them."""
        started = time.perf_counter()
        candidates = list(candidates)
        self.ensure_index_fresh(candidates, now)
        result = self._search.search(
            query, candidates, content_kind=content_type,
            limit=limit, filters=filters, now=now
        )
        self._observability.collect_metric(
            "search_duration_ms", (time.perf_counter() - started) * 1000
        )
        return result

    def auto_tag(
        self,
        text: str,
        content_type: ContentKind = ContentKind.ARTICLE
    ) -> Tuple[str, ...]:
        tags = self._tagger.tag(text, content_type)
        self._observability.log_audit(
            "auto_tag", details=",".join(tags), layer="search"
        )
        return tags

    # =========================================================================
    # MODERATION
    # =========================================================================

    def screen_content(
        self,
        text: str,
        content_type: ContentKind = ContentKind.ARTICLE,
        toggles: Optional[DetectorToggles] = None
    ) -> ModerationVerdict:
        started = time.perf_counter()
        verdict = self._moderation.screen_content(text, content_type, toggles)
        self._record_verdict(verdict, content_type, started)
        return verdict

    def moderate_comment(
        self,
        text: str,
        context: Optional[CommentContext] = None
    ) -> ModerationVerdict:
        started = time.perf_counter()
        verdict = self._moderation.moderate_comment(text, context)
        self._record_verdict(verdict, ContentKind.COMMENT, started)
        return verdict

    def _record_verdict(self, verdict: ModerationVerdict, kind: ContentKind, started: float):
        labels = {"content_kind": kind.value}
        self._observability.collect_metric(
            "moderation_duration_ms", (time.perf_counter() - started) * 1000, labels
        )
        if not verdict.is_approved:
            self._observability.collect_metric("moderation_rejections_total", 1, labels)
        for error in verdict.errors:
            detector = dict(error.context).get("detector", "unknown")
            self._observability.collect_metric(
                "detector_failures_total", 1, {"detector": detector}
            )

    # =========================================================================
    # RECOMMENDATION & CLUSTERING
    # =========================================================================

    def recommend(
        self,
        user_id: str,
        candidates: Sequence[ContentRecord],
        history: Optional[UserHistory] = None,
        options: Optional[RecommendOptions] = None,
        now: Optional[Timestamp] = None
    ) -> RecommendationResult:
        started = time.perf_counter()
        candidates = list(candidates)
        self.ensure_index_fresh(candidates, now)
        result = self._recommendation.recommend(user_id, candidates, history, options, now)
        self._observability.collect_metric(
            "recommendation_duration_ms", (time.perf_counter() - started) * 1000
        )
        return result

    def cluster(
        self,
        records: Sequence[ContentRecord],
        min_cluster_size: Optional[int] = None
    ) -> Tuple[Cluster, ...]:
        """
        Cluster the given records in their given order.

        Term vectors come from a snapshot built over exactly these records,
        so the result does not depend on what the shared index holds.
        """
        records = list(records)
        local = build_index(records, self._normalizer)
        weights = self._config.recommendation.item_similarity

        def similarity(a: ContentRecord, b: ContentRecord) -> float:
            return item_similarity(a, b, local.vector(a.record_id), local.vector(b.record_id), weights)

        clusters = self._clusterer.cluster(records, min_cluster_size, similarity)
        self._observability.collect_metric("clusters_found", len(clusters))
        return clusters

    # =========================================================================
    # OBSERVABILITY
    # =========================================================================

    def get_audit_log(
        self,
        time_range: Optional[TimeRange] = None,
        layers: Optional[List[str]] = None
    ) -> List[AuditLogEntry]:
        return self._observability.get_unified_log(time_range=time_range, layers=layers)

    def get_audit_report(self, time_range: Optional[TimeRange] = None) -> Dict:
        return self._observability.generate_audit_report(time_range)

    def get_metrics(self) -> Optional[MetricsCollector]:
        return self._observability.get_metrics()

    # =========================================================================
    # LAYER ACCESS (read-only)
    # =========================================================================

    @property
    def normalizer(self) -> TextNormalizer:
        return self._normalizer

    @property
    def search_layer(self) -> SearchEngine:
        return self._search

    @property
    def moderation_layer(self) -> ModerationScreener:
        return self._moderation

    @property
    def recommendation_layer(self) -> RecommendationEngine:
        return self._recommendation

    @property
    def observability_layer(self) -> ObservabilityEngine:
        return self._observability
