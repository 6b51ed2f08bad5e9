"""
Content Clusterer
=================

Single-pass threshold clustering over a pairwise similarity matrix.

ORDER DEPENDENCE:
=================
Records are visited in input order. Each unvisited record seeds a
cluster and absorbs every *later* unvisited record whose similarity to
the seed exceeds the threshold. Membership is not transitive: if A~B and
B~C but not A~C, the input order [A, B, C] gives {A, B} and leaves C
alone, while [B, A, C] gives {B, A, C}. Callers that need stable output
must supply a stable order.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import networkx as nx
import numpy as np

from ..contracts.base import ContentRecord, Error, ErrorCode
from ..contracts.events import AuditEventType, AuditLogEntry
from ..contracts.results import Cluster
from ..normalization import TextNormalizer
from ..observability import LogCollector
from .similarity import text_similarity


PairwiseSimilarity = Callable[[ContentRecord, ContentRecord], float]


def text_pair_similarity(a: ContentRecord, b: ContentRecord) -> float:
    return text_similarity(a.text, b.text)


@dataclass
class ClusteringConfig:
    """Configuration for clustering."""
    threshold: float = 0.7
    min_cluster_size: int = 3
    keyword_count: int = 10


class ContentClusterer:
    """
    Groups records by pairwise similarity.

    The similarity function is injected; the engine passes the
    recommendation layer's item similarity, and plain text similarity is
    used when nothing is given.
    """

    def __init__(
        self,
        similarity: Optional[PairwiseSimilarity] = None,
        normalizer: Optional[TextNormalizer] = None,
        config: Optional[ClusteringConfig] = None
    ):
        self._config = config or ClusteringConfig()
        self._similarity = similarity or text_pair_similarity
        self._normalizer = normalizer or TextNormalizer()
        self._log = LogCollector('clustering')

    @property
    def log_collector(self) -> LogCollector:
        return self._log

    def similarity_matrix(
        self,
        records: Sequence[ContentRecord],
        similarity: Optional[PairwiseSimilarity] = None
    ) -> np.ndarray:
        """N x N matrix, diagonal 1, mirrored from the upper triangle."""
        similarity = similarity or self._similarity
        n = len(records)
        matrix = np.eye(n, dtype=float)
        for i in range(n):
            for j in range(i + 1, n):
                value = float(similarity(records[i], records[j]))
                matrix[i, j] = value
                matrix[j, i] = value
        return matrix

    def threshold_graph(self, matrix: np.ndarray) -> nx.Graph:
        """Graph over record positions with an edge wherever similarity > threshold."""
        graph = nx.Graph()
        n = matrix.shape[0]
        graph.add_nodes_from(range(n))
        rows, cols = np.nonzero(np.triu(matrix, k=1) > self._config.threshold)
        graph.add_edges_from(zip(rows.tolist(), cols.tolist()))
        return graph

    def group(self, graph: nx.Graph, n: int, min_cluster_size: int) -> List[List[int]]:
        """The single seed-absorption pass over positions 0..n-1."""
        groups: List[List[int]] = []
        visited = set()

        for i in range(n):
            if i in visited:
                continue
            members = [i]
            visited.add(i)
            for j in range(i + 1, n):
                if j not in visited and graph.has_edge(i, j):
                    members.append(j)
                    visited.add(j)
            if len(members) >= min_cluster_size:
                groups.append(members)

        return groups

    def cluster(
        self,
        records: Sequence[ContentRecord],
        min_cluster_size: Optional[int] = None,
        similarity: Optional[PairwiseSimilarity] = None
    ) -> Tuple[Cluster, ...]:
        """
        Cluster records in the given order.

        Groups smaller than `min_cluster_size` are dropped. A failing
        similarity function yields no clusters and an audit error.
        """
        min_size = self._config.min_cluster_size if min_cluster_size is None else min_cluster_size
        records = list(records)

        try:
            matrix = self.similarity_matrix(records, similarity)
        except Exception as exc:
            error = Error.now(ErrorCode.CLUSTERING_FAILED, str(exc)).with_context(
                "record_count", str(len(records))
            )
            self._log.log_error(error)
            return ()

        graph = self.threshold_graph(matrix)
        groups = self.group(graph, len(records), min_size)

        clusters = []
        for cluster_id, positions in enumerate(groups):
            members = [records[p] for p in positions]
            clusters.append(Cluster(
                cluster_id=cluster_id,
                member_ids=tuple(r.record_id for r in members),
                centroid=self._centroid(len(members)),
                keywords=self._normalizer.keywords(
                    ' '.join(r.text for r in members), self._config.keyword_count
                )
            ))

        self._log.log(
            action="cluster",
            event_type=AuditEventType.CLUSTERING,
            entity_type="record_set",
            metadata=(
                ("record_count", str(len(records))),
                ("edge_count", str(graph.number_of_edges())),
                ("cluster_count", str(len(clusters))),
            )
        )
        return tuple(clusters)

    @staticmethod
    def _centroid(size: int) -> float:
        """Mean relative position (i+1)/n over the members."""
        if size == 0:
            return 0.0
        return sum((i + 1) / size for i in range(size)) / size

    def get_audit_log(self) -> List[AuditLogEntry]:
        return self._log.get_entries()
