"""
Moderation detectors.

Each detector is a small pure object: text and content kind in,
DetectorResult out. The screener folds over an ordered list of them, so
a detector can be tested, replaced or disabled without touching the
composite scoring.

Scores are additive increments. A flagging detector reports its full
measurement in `raw_score` and only contributes to the composite
(`score`) when it fires. The quality detector never flags and always
contributes, usually with a negative sign.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
import re

from ..contracts.base import ContentKind
from ..contracts.results import DetectorResult, FlagKind
from ..normalization import TextNormalizer, SentimentLexicon, readability


class Detector(ABC):
    """Shared interface of all moderation detectors."""

    name: str = "detector"

    @abstractmethod
    def evaluate(self, text: str, kind: ContentKind) -> DetectorResult:
        """Score one text. Implementations must not mutate state."""


def _flagging_result(
    detector: str,
    raw: float,
    threshold: float,
    flag: FlagKind,
    signals: List[str],
    metadata: Tuple[Tuple[str, str], ...] = ()
) -> DetectorResult:
    raw = min(raw, 1.0)
    fired = raw > threshold
    return DetectorResult(
        detector=detector,
        score=raw if fired else 0.0,
        raw_score=raw,
        flag=flag if fired else None,
        signals=tuple(signals),
        metadata=metadata
    )


# =============================================================================
# SPAM
# =============================================================================

SPAM_PATTERNS: Tuple[re.Pattern, ...] = tuple(re.compile(p, re.IGNORECASE) for p in (
    r'\b(buy\s+now|click\s+here|limited\s+time|act\s+now|free\s+offer)\b',
    r'\b(earn\s+money|make\s+money|work\s+from\s+home|get\s+rich)\b',
    r'\b(weight\s+loss|diet\s+pills|miracle\s+cure|lose\s+weight)\b',
    r'\b(viagra|cialis|penis|enlargement)\b',
    r'\b(casino|poker|bet|gambling|lottery)\b',
    r'\b(loan|credit|debt|refinance|mortgage)\b',
    r'\b(pharmacy|prescription|medication|drugs)\b',
))

_LINK_PATTERN = re.compile(r'https?://\S+')


class SpamDetector(Detector):
    """Promotional phrasing, link stuffing, repetition and keyword density."""

    name = "spam"

    def __init__(
        self,
        normalizer: Optional[TextNormalizer] = None,
        threshold: float = 0.5,
        pattern_weight: float = 0.2,
        max_links: int = 3,
        link_weight: float = 0.1,
        repetition_ratio: float = 0.3,
        repetition_weight: float = 0.3,
        max_keyword_hits: int = 5,
        keyword_weight: float = 0.4
    ):
        self._normalizer = normalizer or TextNormalizer()
        self._threshold = threshold
        self._pattern_weight = pattern_weight
        self._max_links = max_links
        self._link_weight = link_weight
        self._repetition_ratio = repetition_ratio
        self._repetition_weight = repetition_weight
        self._max_keyword_hits = max_keyword_hits
        self._keyword_weight = keyword_weight

    def evaluate(self, text: str, kind: ContentKind) -> DetectorResult:
        lowered = (text or '').lower()
        score = 0.0
        signals: List[str] = []

        for index, pattern in enumerate(SPAM_PATTERNS):
            if pattern.search(lowered):
                score += self._pattern_weight
                signals.append(f"spam_pattern_{index}")

        link_count = len(_LINK_PATTERN.findall(lowered))
        if link_count > self._max_links:
            score += link_count * self._link_weight
            signals.append("excessive_links")

        tokens = self._normalizer.tokenize(lowered)
        if tokens and len(set(tokens)) / len(tokens) < self._repetition_ratio:
            score += self._repetition_weight
            signals.append("repetitive_content")

        keyword_hits = sum(
            1 for token in tokens
            if any(pattern.search(token) for pattern in SPAM_PATTERNS)
        )
        if keyword_hits > self._max_keyword_hits:
            score += self._keyword_weight
            signals.append("suspicious_keywords")

        return _flagging_result(
            self.name, score, self._threshold, FlagKind.SPAM, signals,
            metadata=(("link_count", str(link_count)), ("keyword_hits", str(keyword_hits)))
        )


# =============================================================================
# TOXICITY
# =============================================================================

TOXIC_KEYWORDS = frozenset({
    'hate', 'kill', 'death', 'suicide', 'murder', 'terrorist',
    'racist', 'sexist', 'homophobic', 'transphobic', 'nazi',
    'pedophile', 'rapist', 'abuse', 'harassment', 'bully'
})

HATE_SPEECH_PATTERNS: Tuple[re.Pattern, ...] = tuple(re.compile(p, re.IGNORECASE) for p in (
    r'\b(kill\s+all\s+\w+)\b',
    r'\b(death\s+to\s+\w+)\b',
    r'\b(\w+\s+should\s+die)\b',
    r'\b(\w+\s+deserves\s+to\s+die)\b',
))

HARASSMENT_PATTERNS: Tuple[re.Pattern, ...] = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"\b(fuck\s+you|fuck\s+off)\b",
    r"\b(you\s+suck|you're\s+stupid)\b",
    r"\b(die\s+\w+|kill\s+yourself)\b",
))


class ToxicityDetector(Detector):
    """Lexicon sentiment, toxic keywords, hate-speech and harassment phrases."""

    name = "toxicity"

    def __init__(
        self,
        normalizer: Optional[TextNormalizer] = None,
        lexicon: Optional[SentimentLexicon] = None,
        threshold: float = 0.4,
        sentiment_floor: float = -3.0,
        sentiment_weight: float = 0.3,
        keyword_weight: float = 0.2,
        hate_speech_weight: float = 0.5,
        harassment_weight: float = 0.4
    ):
        self._normalizer = normalizer or TextNormalizer()
        self._lexicon = lexicon or SentimentLexicon()
        self._threshold = threshold
        self._sentiment_floor = sentiment_floor
        self._sentiment_weight = sentiment_weight
        self._keyword_weight = keyword_weight
        self._hate_speech_weight = hate_speech_weight
        self._harassment_weight = harassment_weight

    def evaluate(self, text: str, kind: ContentKind) -> DetectorResult:
        lowered = (text or '').lower()
        tokens = self._normalizer.tokenize(lowered)
        score = 0.0
        signals: List[str] = []

        sentiment = self._lexicon.score(tokens)
        if sentiment < self._sentiment_floor:
            score += self._sentiment_weight
            signals.append("negative_sentiment")

        toxic_hits = sum(1 for t in tokens if t in TOXIC_KEYWORDS)
        if toxic_hits:
            score += toxic_hits * self._keyword_weight
            signals.append("toxic_keywords")

        for pattern in HATE_SPEECH_PATTERNS:
            if pattern.search(lowered):
                score += self._hate_speech_weight
                signals.append("hate_speech")

        for pattern in HARASSMENT_PATTERNS:
            if pattern.search(lowered):
                score += self._harassment_weight
                signals.append("harassment")

        return _flagging_result(
            self.name, score, self._threshold, FlagKind.TOXIC, signals,
            metadata=(("sentiment", f"{sentiment:.4f}"), ("toxic_hits", str(toxic_hits)))
        )


# =============================================================================
# QUALITY
# =============================================================================

COMMON_MISSPELLINGS: Tuple[Tuple[re.Pattern, str], ...] = tuple(
    (re.compile(rf'\b{wrong}\b', re.IGNORECASE), right) for wrong, right in (
        ('teh', 'the'),
        ('recieve', 'receive'),
        ('seperate', 'separate'),
        ('definately', 'definitely'),
        ('occassion', 'occasion'),
    )
)

_LOWERCASE_I = re.compile(r'\bi\s+[a-z]')
_HEADING = re.compile(r'^#{1,6}\s+', re.MULTILINE)
_PARAGRAPH_BREAK = re.compile(r'\n\s*\n')
_SENTENCE_BREAK = re.compile(r'[.!?]+')


def common_errors(text: str) -> Tuple[str, ...]:
    """Human-readable notes for each detected writing error."""
    errors = []
    for pattern, correction in COMMON_MISSPELLINGS:
        if pattern.search(text):
            errors.append(f'Consider using "{correction}" instead')
    if _LOWERCASE_I.search(text):
        errors.append('Consider capitalizing "I" when referring to yourself')
    return tuple(errors)


class QualityDetector(Detector):
    """
    Writing-quality heuristics.

    Produces a signed score (never positive) and suggestions. It has no
    flag and cannot block content by itself.
    """

    name = "quality"

    def __init__(
        self,
        min_long_form_words: int = 50,
        short_long_form_penalty: float = 0.2,
        min_comment_words: int = 5,
        short_comment_penalty: float = 0.1,
        max_sentence_length: float = 25.0,
        long_sentence_penalty: float = 0.15,
        error_penalty: float = 0.05,
        structure_penalty: float = 0.1,
        min_paragraphs: int = 2
    ):
        self._min_long_form_words = min_long_form_words
        self._short_long_form_penalty = short_long_form_penalty
        self._min_comment_words = min_comment_words
        self._short_comment_penalty = short_comment_penalty
        self._max_sentence_length = max_sentence_length
        self._long_sentence_penalty = long_sentence_penalty
        self._error_penalty = error_penalty
        self._structure_penalty = structure_penalty
        self._min_paragraphs = min_paragraphs

    def evaluate(self, text: str, kind: ContentKind) -> DetectorResult:
        text = text or ''
        score = 0.0
        signals: List[str] = []
        suggestions: List[str] = []

        word_count = len(text.split())
        if kind.is_long_form and word_count < self._min_long_form_words:
            score -= self._short_long_form_penalty
            signals.append("too_short")
            suggestions.append(
                "Consider adding more content to make your post more comprehensive"
            )
        elif kind == ContentKind.COMMENT and word_count < self._min_comment_words:
            score -= self._short_comment_penalty
            signals.append("too_short")
            suggestions.append("Consider adding more detail to your comment")

        sentences = [s for s in _SENTENCE_BREAK.split(text) if s.strip()]
        if sentences and word_count / len(sentences) > self._max_sentence_length:
            score -= self._long_sentence_penalty
            signals.append("long_sentences")
            suggestions.append(
                "Consider breaking down long sentences for better readability"
            )

        errors = common_errors(text)
        if errors:
            score -= len(errors) * self._error_penalty
            signals.append("writing_errors")
            suggestions.append("Consider reviewing grammar and spelling")

        if kind.is_long_form:
            has_headings = bool(_HEADING.search(text))
            has_paragraphs = len(_PARAGRAPH_BREAK.split(text)) > self._min_paragraphs
            if not has_headings and not has_paragraphs:
                score -= self._structure_penalty
                signals.append("weak_structure")
                suggestions.append(
                    "Consider adding headings and paragraphs for better structure"
                )

        stats = readability(text)
        score = max(score, -1.0)
        return DetectorResult(
            detector=self.name,
            score=score,
            raw_score=score,
            signals=tuple(signals),
            suggestions=tuple(suggestions),
            metadata=(
                ("word_count", str(word_count)),
                ("reading_ease", f"{stats.reading_ease:.1f}"),
            )
        )


# =============================================================================
# SUSPICIOUS PATTERNS
# =============================================================================

SUSPICIOUS_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r'(.)\1{4,}'),               # repeated characters
    re.compile(r'[A-Z]{5,}'),               # all-caps run
    re.compile(r'\b\w{20,}\b'),             # very long word
    re.compile(r'(http|www\.)\S+', re.IGNORECASE),
    re.compile(r'\d{10,}'),                 # phone / card numbers
    re.compile(r'[^\w\s]{5,}'),             # special-character run
)

_PUNCTUATION_RUN = re.compile(r'[!?]{2,}')
_CAPITAL = re.compile(r'[A-Z]')


class SuspiciousPatternDetector(Detector):
    """Shouting, obfuscation and URL-like fragments."""

    name = "suspicious"

    def __init__(
        self,
        threshold: float = 0.3,
        pattern_weight: float = 0.2,
        max_punctuation_runs: int = 3,
        punctuation_weight: float = 0.15,
        max_caps_ratio: float = 0.7,
        caps_weight: float = 0.2
    ):
        self._threshold = threshold
        self._pattern_weight = pattern_weight
        self._max_punctuation_runs = max_punctuation_runs
        self._punctuation_weight = punctuation_weight
        self._max_caps_ratio = max_caps_ratio
        self._caps_weight = caps_weight

    def evaluate(self, text: str, kind: ContentKind) -> DetectorResult:
        text = text or ''
        score = 0.0
        signals: List[str] = []

        for index, pattern in enumerate(SUSPICIOUS_PATTERNS):
            if pattern.search(text):
                score += self._pattern_weight
                signals.append(f"suspicious_pattern_{index}")

        if len(_PUNCTUATION_RUN.findall(text)) > self._max_punctuation_runs:
            score += self._punctuation_weight
            signals.append("excessive_punctuation")

        if text and len(_CAPITAL.findall(text)) / len(text) > self._max_caps_ratio:
            score += self._caps_weight
            signals.append("excessive_caps")

        return _flagging_result(
            self.name, score, self._threshold, FlagKind.SUSPICIOUS, signals
        )


def default_detectors(normalizer: Optional[TextNormalizer] = None) -> Tuple[Detector, ...]:
    """The standard detector order: spam, toxicity, quality, suspicious."""
    normalizer = normalizer or TextNormalizer()
    return (
        SpamDetector(normalizer),
        ToxicityDetector(normalizer),
        QualityDetector(),
        SuspiciousPatternDetector(),
    )
