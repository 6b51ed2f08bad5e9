"""
Core Engine Layer

Similarity primitives, the term-weight index and the clusterer.
Everything here reads immutable contracts and returns new values.
"""

from .similarity import text_similarity, vector_similarity, tag_overlap
from .term_index import (
    IndexConfig, TermWeightIndex, RecordSource,
    build_index, vector_for, term_frequencies, inverse_document_frequency
)
from .clustering import (
    ClusteringConfig, ContentClusterer, PairwiseSimilarity, text_pair_similarity
)

__all__ = [
    'text_similarity', 'vector_similarity', 'tag_overlap',
    'IndexConfig', 'TermWeightIndex', 'RecordSource',
    'build_index', 'vector_for', 'term_frequencies', 'inverse_document_frequency',
    'ClusteringConfig', 'ContentClusterer', 'PairwiseSimilarity', 'text_pair_similarity',
]
