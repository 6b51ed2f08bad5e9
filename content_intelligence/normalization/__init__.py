"""
Text Normalization Layer

RESPONSIBILITY: Turn raw text into tokens, stems and keywords
ALLOWED INPUTS: Plain strings (and an optional stop-word file at startup)
OUTPUTS: NormalizedText (immutable)

WHAT THIS LAYER MUST NOT DO:
============================
- Know about content records, indexes or users
- Score, rank or moderate anything
- Depend on corpus statistics (that is the index's job)

BOUNDARY ENFORCEMENT:
=====================
Every function here is deterministic: the same text and the same
stop-word list always produce the same output. Empty input produces
empty output; nothing in this layer raises on text content.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple
import re

from nltk.stem.porter import PorterStemmer

from ..contracts.base import Error, ErrorCode, Result
from ..contracts.results import NormalizedText
from .analysis import (
    EntityExtractor, TopicClassifier, SentimentLexicon,
    ReadabilityStats, readability, count_syllables
)


# =============================================================================
# STOP WORDS
# =============================================================================

DEFAULT_STOP_WORDS: FrozenSet[str] = frozenset({
    'a', 'about', 'above', 'after', 'again', 'against', 'all', 'am', 'an',
    'and', 'any', 'are', 'as', 'at', 'be', 'because', 'been', 'before',
    'being', 'below', 'between', 'both', 'but', 'by', 'can', 'could', 'did',
    'do', 'does', 'doing', 'down', 'during', 'each', 'few', 'for', 'from',
    'further', 'had', 'has', 'have', 'having', 'he', 'her', 'here', 'hers',
    'herself', 'him', 'himself', 'his', 'how', 'i', 'if', 'in', 'into', 'is',
    'it', 'its', 'itself', 'just', 'me', 'more', 'most', 'my', 'myself', 'no',
    'nor', 'not', 'now', 'of', 'off', 'on', 'once', 'only', 'or', 'other',
    'our', 'ours', 'ourselves', 'out', 'over', 'own', 'same', 'she', 'should',
    'so', 'some', 'such', 'than', 'that', 'the', 'their', 'theirs', 'them',
    'themselves', 'then', 'there', 'these', 'they', 'this', 'those',
    'through', 'to', 'too', 'under', 'until', 'up', 'very', 'was', 'we',
    'were', 'what', 'when', 'where', 'which', 'while', 'who', 'whom', 'why',
    'will', 'with', 'would', 'you', 'your', 'yours', 'yourself',
    'yourselves', 'also', 'may', 'might', 'must', 'shall', 'us',
})

_TOKEN_PATTERN = re.compile(r'[a-z0-9]+')


@dataclass
class NormalizerConfig:
    """
    Configuration for the text normalizer.

    `stop_words=None` means "use the built-in English list".
    """
    stop_words: Optional[FrozenSet[str]] = None
    stop_words_file: Optional[str] = None  # resolved by the engine at startup
    min_keyword_length: int = 4
    min_stem_length: int = 2
    default_top_n: int = 10

    def __post_init__(self):
        if self.stop_words is None:
            self.stop_words = DEFAULT_STOP_WORDS
        else:
            self.stop_words = frozenset(w.lower() for w in self.stop_words)


def load_stop_words(path: str) -> Result:
    """
    Read a stop-word list, one word per line ('#' starts a comment).

    Returns a failure carrying MISSING_STOP_WORDS when the file cannot be
    read or holds no words; callers fall back to DEFAULT_STOP_WORDS.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            lines = f.read().splitlines()
    except OSError as exc:
        return Result.failure(
            Error.now(ErrorCode.MISSING_STOP_WORDS, str(exc)).with_context("path", path)
        )

    words = frozenset(
        line.split('#', 1)[0].strip().lower() for line in lines
    ) - {''}
    if not words:
        return Result.failure(
            Error.now(ErrorCode.MISSING_STOP_WORDS, "stop-word file is empty").with_context(
                "path", path
            )
        )
    return Result.success(words)


# =============================================================================
# TEXT NORMALIZER
# =============================================================================

class TextNormalizer:
    """
    Tokenizer, stemmer and keyword extractor.

    Stems come from nltk's Porter stemmer; results are cached per token
    since the same vocabulary is stemmed on every index rebuild.
    """

    def __init__(self, config: Optional[NormalizerConfig] = None):
        self._config = config or NormalizerConfig()
        self._stemmer = PorterStemmer()
        self._stem_cache: Dict[str, str] = {}

    @property
    def stop_words(self) -> FrozenSet[str]:
        return self._config.stop_words

    def tokenize(self, text: str) -> Tuple[str, ...]:
        """Lower-cased alphanumeric tokens in order of appearance."""
        if not text:
            return ()
        return tuple(_TOKEN_PATTERN.findall(text.lower()))

    def stem(self, token: str) -> str:
        stem = self._stem_cache.get(token)
        if stem is None:
            stem = self._stemmer.stem(token)
            self._stem_cache[token] = stem
        return stem

    def stem_tokens(self, text: str) -> Tuple[str, ...]:
        """Stems of the non-stop-word tokens, in order."""
        return self._stems_of(self.tokenize(text))

    def keywords(self, text: str, top_n: Optional[int] = None) -> Tuple[str, ...]:
        """
        Most frequent content words.

        Alphabetic, non-stop-word tokens of at least `min_keyword_length`
        characters, ranked by count. Ties keep first-occurrence order.
        """
        return self._keywords_of(self.tokenize(text), top_n)

    def normalize(self, text: str) -> NormalizedText:
        tokens = self.tokenize(text)
        return NormalizedText(
            tokens=tokens,
            stems=self._stems_of(tokens),
            keywords=self._keywords_of(tokens, None)
        )

    def _stems_of(self, tokens: Tuple[str, ...]) -> Tuple[str, ...]:
        stop_words = self._config.stop_words
        min_len = self._config.min_stem_length
        return tuple(
            self.stem(t) for t in tokens
            if len(t) >= min_len and t not in stop_words
        )

    def _keywords_of(
        self,
        tokens: Tuple[str, ...],
        top_n: Optional[int]
    ) -> Tuple[str, ...]:
        limit = self._config.default_top_n if top_n is None else top_n
        if limit <= 0:
            return ()

        stop_words = self._config.stop_words
        counts: Dict[str, int] = {}
        first_seen: Dict[str, int] = {}
        for position, token in enumerate(tokens):
            if (len(token) < self._config.min_keyword_length
                    or not token.isalpha()
                    or token in stop_words):
                continue
            counts[token] = counts.get(token, 0) + 1
            first_seen.setdefault(token, position)

        ranked: List[str] = sorted(counts, key=lambda w: (-counts[w], first_seen[w]))
        return tuple(ranked[:limit])


__all__ = [
    'DEFAULT_STOP_WORDS', 'NormalizerConfig', 'TextNormalizer', 'load_stop_words',
    'EntityExtractor', 'TopicClassifier', 'SentimentLexicon',
    'ReadabilityStats', 'readability', 'count_syllables',
]
