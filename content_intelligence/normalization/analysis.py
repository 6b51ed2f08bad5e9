"""
Deterministic text analysis helpers.

Entity extraction, keyword-set topic classification, lexicon sentiment
and Flesch readability. No models are loaded; the same text always
produces the same output.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
import re


# =============================================================================
# ENTITY EXTRACTION
# =============================================================================

class EntityExtractor:
    """
    Pattern-based entity extraction.

    Capitalised words are treated as candidate names, runs of two or more
    capitals as acronyms / technical terms.
    """

    def __init__(self, max_names: int = 5, max_acronyms: int = 3):
        self._entity_patterns: Dict[str, re.Pattern] = {
            'name': re.compile(r'\b[A-Z][a-z]+\b'),
            'acronym': re.compile(r'\b[A-Z]{2,}\b'),
        }
        self._limits = {'name': max_names, 'acronym': max_acronyms}

    def extract(self, content: str) -> Tuple[str, ...]:
        """Distinct entities, names first, each in order of appearance."""
        entities: List[str] = []
        for entity_type, pattern in self._entity_patterns.items():
            matches = pattern.findall(content or '')
            entities.extend(matches[:self._limits[entity_type]])

        seen = set()
        unique = []
        for entity in entities:
            if entity not in seen:
                seen.add(entity)
                unique.append(entity)
        return tuple(unique)


# =============================================================================
# TOPIC CLASSIFICATION
# =============================================================================

DEFAULT_TOPICS: Dict[str, FrozenSet[str]] = {
    'technology': frozenset({'technology', 'tech', 'software', 'programming', 'coding'}),
    'business': frozenset({'business', 'entrepreneur', 'startup', 'marketing'}),
    'health': frozenset({'health', 'fitness', 'wellness', 'nutrition'}),
    'travel': frozenset({'travel', 'adventure', 'exploration'}),
    'education': frozenset({'education', 'learning', 'teaching', 'study'}),
}


class TopicClassifier:
    """
    Classify content into topics by keyword sets.

    No ML models - same input always produces same topics.
    """

    def __init__(self, topics: Optional[Dict[str, FrozenSet[str]]] = None):
        self._topic_keywords: Dict[str, FrozenSet[str]] = dict(topics or DEFAULT_TOPICS)

    def register_topic(self, topic_id: str, keywords: Iterable[str]):
        self._topic_keywords[topic_id] = frozenset(k.lower() for k in keywords)

    def extract_terms(self, content: str) -> Tuple[str, ...]:
        """Topic keywords present in the content, in order of appearance."""
        vocabulary = frozenset().union(*self._topic_keywords.values())
        found: List[str] = []
        for token in re.findall(r'\b\w+\b', (content or '').lower()):
            if token in vocabulary and token not in found:
                found.append(token)
        return tuple(found)

    def classify(self, content: str) -> Tuple[str, ...]:
        """
        Matching topic ids, most keyword hits first.
        Ties are broken by topic id for determinism.
        """
        content_tokens = frozenset(re.findall(r'\b\w+\b', (content or '').lower()))

        matches = []
        for topic_id, keywords in self._topic_keywords.items():
            overlap = content_tokens & keywords
            if overlap:
                matches.append((len(overlap), topic_id))

        matches.sort(key=lambda x: (-x[0], x[1]))
        return tuple(topic_id for _, topic_id in matches)


# =============================================================================
# SENTIMENT
# =============================================================================

# AFINN-style valences, -5 (most negative) to +5 (most positive).
DEFAULT_LEXICON: Dict[str, int] = {
    'abuse': -3, 'abusive': -3, 'angry': -3, 'annoying': -2, 'awful': -3,
    'bad': -3, 'bastard': -5, 'boring': -3, 'broken': -1, 'cruel': -3,
    'damn': -4, 'dead': -3, 'death': -2, 'destroy': -3, 'die': -3,
    'disappointing': -2, 'disgusting': -3, 'dumb': -3, 'evil': -3,
    'fail': -2, 'fraud': -4, 'fuck': -4, 'hate': -3, 'hated': -3,
    'horrible': -3, 'idiot': -3, 'kill': -3, 'loser': -3, 'murder': -2,
    'pathetic': -2, 'racist': -3, 'scam': -2, 'shit': -4, 'stupid': -2,
    'suck': -3, 'sucks': -3, 'terrible': -3, 'terrorist': -3, 'ugly': -3,
    'useless': -2, 'worst': -3, 'worthless': -2, 'wrong': -2,
    'amazing': 4, 'awesome': 4, 'beautiful': 3, 'best': 3, 'brilliant': 4,
    'clear': 1, 'enjoy': 2, 'excellent': 3, 'fantastic': 4, 'good': 3,
    'great': 3, 'happy': 3, 'helpful': 2, 'interesting': 2, 'love': 3,
    'nice': 3, 'outstanding': 5, 'perfect': 3, 'superb': 5, 'thank': 2,
    'thanks': 2, 'useful': 2, 'win': 4, 'wonderful': 4,
}

POSITIVE_TAG_WORDS: Tuple[str, ...] = (
    'amazing', 'awesome', 'great', 'excellent', 'wonderful', 'fantastic'
)
NEGATIVE_TAG_WORDS: Tuple[str, ...] = (
    'terrible', 'awful', 'horrible', 'bad', 'worst', 'disappointing'
)


class SentimentLexicon:
    """
    Lexicon sentiment: mean valence over all tokens.

    Unknown words count as 0, so long neutral text pulls the mean
    towards zero.
    """

    def __init__(self, lexicon: Optional[Dict[str, int]] = None):
        self._lexicon = dict(lexicon or DEFAULT_LEXICON)

    def score(self, tokens: Tuple[str, ...]) -> float:
        if not tokens:
            return 0.0
        return sum(self._lexicon.get(t, 0) for t in tokens) / len(tokens)

    def tags(self, content: str) -> Tuple[str, ...]:
        """`positive` and/or `negative` when any marker word appears."""
        lowered = (content or '').lower()
        tags = []
        if any(word in lowered for word in POSITIVE_TAG_WORDS):
            tags.append('positive')
        if any(word in lowered for word in NEGATIVE_TAG_WORDS):
            tags.append('negative')
        return tuple(tags)


# =============================================================================
# READABILITY
# =============================================================================

_VOWELS = frozenset('aeiouy')


def count_syllables(word: str) -> int:
    """Vowel-group syllable estimate, minimum 1 for any alphabetic word."""
    word = re.sub(r'[^a-z]', '', word.lower())
    if not word:
        return 0

    count = 0
    prev_vowel = False
    for char in word:
        is_vowel = char in _VOWELS
        if is_vowel and not prev_vowel:
            count += 1
        prev_vowel = is_vowel

    # silent e
    if word.endswith('e') and len(word) > 2 and word[-2] not in _VOWELS:
        count -= 1

    return max(count, 1)


@dataclass(frozen=True)
class ReadabilityStats:
    words: int
    sentences: int
    syllables: int
    reading_ease: float

    @property
    def average_sentence_length(self) -> float:
        return self.words / self.sentences if self.sentences else 0.0


def readability(text: str) -> ReadabilityStats:
    """Flesch reading ease, clamped to 0-100."""
    words = (text or '').split()
    sentences = [s for s in re.split(r'[.!?]+', text or '') if s.strip()]
    syllables = sum(count_syllables(w) for w in words)

    if not words or not sentences:
        return ReadabilityStats(len(words), len(sentences), syllables, 0.0)

    asl = len(words) / len(sentences)
    asw = syllables / len(words)
    ease = 206.835 - 1.015 * asl - 84.6 * asw
    return ReadabilityStats(
        words=len(words),
        sentences=len(sentences),
        syllables=syllables,
        reading_ease=max(0.0, min(100.0, ease))
    )
