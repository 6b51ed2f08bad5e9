"""
Automatic tag generation.

Tags are drawn, in order, from keywords, named entities, topic words and
sentiment markers, then lower-cased, de-duplicated and length-filtered.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..contracts.base import ContentKind
from ..normalization import (
    TextNormalizer, EntityExtractor, TopicClassifier, SentimentLexicon
)


@dataclass
class AutoTagConfig:
    keyword_tags: int = 5
    entity_tags: int = 3
    topic_tags: int = 3
    sentiment_tags: int = 2
    min_length: int = 3   # inclusive
    max_length: int = 19  # inclusive
    max_tags: int = 10


class AutoTagger:
    """Deterministic tag suggestions for a piece of text."""

    def __init__(
        self,
        normalizer: Optional[TextNormalizer] = None,
        config: Optional[AutoTagConfig] = None,
        entity_extractor: Optional[EntityExtractor] = None,
        topic_classifier: Optional[TopicClassifier] = None,
        sentiment: Optional[SentimentLexicon] = None
    ):
        self._config = config or AutoTagConfig()
        self._normalizer = normalizer or TextNormalizer()
        self._entities = entity_extractor or EntityExtractor()
        self._topics = topic_classifier or TopicClassifier()
        self._sentiment = sentiment or SentimentLexicon()

    def candidates(self, text: str) -> Tuple[str, ...]:
        """Raw tag candidates before normalisation and filtering."""
        cfg = self._config
        found: List[str] = []
        found.extend(self._normalizer.keywords(text)[:cfg.keyword_tags])
        found.extend(self._entities.extract(text)[:cfg.entity_tags])
        found.extend(self._topics.extract_terms(text)[:cfg.topic_tags])
        found.extend(self._sentiment.tags(text)[:cfg.sentiment_tags])
        return tuple(found)

    def tag(self, text: str, kind: ContentKind = ContentKind.ARTICLE) -> Tuple[str, ...]:
        cfg = self._config
        tags: List[str] = []
        for candidate in self.candidates(text or ''):
            tag = candidate.strip().lower()
            if not cfg.min_length <= len(tag) <= cfg.max_length:
                continue
            if tag not in tags:
                tags.append(tag)
            if len(tags) >= cfg.max_tags:
                break
        return tuple(tags)
