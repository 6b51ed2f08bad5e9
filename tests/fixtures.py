"""
Shared Test Fixtures

Explicit records and texts used across the test suite.

RULES:
======
1. All fixtures are EXPLICIT, not random
2. Every timestamp is relative to NOW so tests never depend on the clock
3. Texts document which detector they are meant to trigger (or avoid)
"""

from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from content_intelligence.contracts import (
    ContentKind, ContentRecord, EngagementCounters, Timestamp
)


NOW = Timestamp(value=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


def hours_before_now(hours: float) -> Timestamp:
    return Timestamp(value=NOW.value - timedelta(hours=hours))


def make_record(
    record_id: str,
    title: str = "Untitled",
    body: str = "",
    kind: ContentKind = ContentKind.ARTICLE,
    tags: Iterable[str] = (),
    category: Optional[str] = None,
    author_id: str = "author_default",
    hours_ago: float = 1.0,
    likes: int = 0,
    bookmarks: int = 0,
    views: int = 0
) -> ContentRecord:
    return ContentRecord(
        record_id=record_id,
        kind=kind,
        title=title,
        body=body,
        author_id=author_id,
        created_at=hours_before_now(hours_ago),
        tags=frozenset(tags),
        category=category,
        engagement=EngagementCounters(likes=likes, bookmarks=bookmarks, views=views),
    )


# =============================================================================
# MODERATION TEXTS
# =============================================================================

# About 200 words, headed, short sentences, no flagged vocabulary.
BENIGN_ARTICLE = "\n\n".join([
    "## Growing tomatoes on a small balcony",
    "Tomatoes are a rewarding crop for anyone with a sunny balcony. "
    "They need about six hours of direct light each day. "
    "A large pot with good drainage makes a real difference. "
    "Choose a compact variety that stays under a meter tall.",
    "Start with a rich potting mix rather than garden soil. "
    "Garden soil compacts in containers and suffocates the roots. "
    "Water deeply in the morning so the leaves dry before evening. "
    "Consistent moisture prevents cracked fruit and blossom end rot. "
    "A saucer under the pot keeps the floor clean.",
    "Feed the plants every two weeks once the first flowers appear. "
    "A balanced liquid fertilizer works well for most gardeners. "
    "Pinch off side shoots to keep the plant tidy and productive. "
    "Tie the main stem to a stake with soft garden twine.",
    "Harvest the fruit when it is fully coloured and slightly soft. "
    "Fresh tomatoes taste best at room temperature. "
    "With a little attention, a single balcony plant can supply salads for the whole summer. "
    "Neighbours will soon ask for your secrets.",
    "Keep a simple notebook of sowing dates, feeding days and harvest weights. "
    "Next spring you can compare results and adjust your routine.",
])

# Seven toxic keywords plus the "<word> should die" hate-speech phrase.
TOXIC_TEXT = (
    "I hate you. You are a racist and a bully. "
    "Your abuse and harassment must end. "
    "Racist trash like you should die. Murder is what you deserve."
)

# Four spam pattern families: promotional, money, gambling, credit.
SPAM_TEXT = (
    "Buy now and earn money fast! Click here for casino poker lottery "
    "bonuses and a cheap loan with no credit check."
)

# Caps runs, a repeated-character run and four "!!!" runs.
SHOUTING_TEXT = "HELLO EVERYONE!!! CHECK THIS OUT!!! SOOOOOO GOOD!!! AMAZING!!! wow"

FRIENDLY_COMMENT = "Thanks for the detailed write-up, it helped me a lot with my garden."


# =============================================================================
# CORPUS
# =============================================================================

def gardening_corpus():
    """Three near-duplicate gardening articles and two unrelated ones."""
    return [
        make_record(
            "garden-1", "Balcony tomato growing guide",
            "Grow tomatoes in pots on a sunny balcony with rich compost and daily watering.",
            tags=("gardening", "tomatoes"), category="gardening", author_id="alice",
            likes=12, bookmarks=3, hours_ago=2
        ),
        make_record(
            "garden-2", "Balcony tomato growing tips",
            "Grow tomatoes in pots on a sunny balcony with rich compost and regular watering.",
            tags=("gardening", "tomatoes"), category="gardening", author_id="bob",
            likes=8, bookmarks=1, hours_ago=5
        ),
        make_record(
            "garden-3", "Balcony tomato growing notes",
            "Grow tomatoes in pots on a sunny balcony with rich compost and careful watering.",
            tags=("gardening", "tomatoes"), category="gardening", author_id="carol",
            likes=20, bookmarks=4, hours_ago=30
        ),
        make_record(
            "finance-1", "Understanding index funds",
            "Index funds track a market benchmark and keep fees low for patient investors.",
            tags=("investing",), category="finance", author_id="dave",
            likes=3, hours_ago=4
        ),
        make_record(
            "travel-1", "A weekend in Lisbon",
            "Trams, custard tarts and steep hills make Lisbon a charming city break.",
            tags=("travel", "portugal"), category="travel", author_id="erin",
            likes=5, bookmarks=2, hours_ago=10
        ),
    ]
