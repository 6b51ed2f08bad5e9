"""
Recommendation Engine Tests
===========================

Verifies:
1. Profiles summarise history deterministically
2. Trending decays with age and respects its window
3. Primary and similar lists honour author and read exclusions
4. A new user (empty history) still gets results, never an error
"""

import pytest
from hypothesis import given, strategies as st

from content_intelligence.contracts import (
    AuditEventType, ContentKind, EngagementLevel, ErrorCode
)
from content_intelligence.core.term_index import TermWeightIndex
from content_intelligence.recommendation import (
    RecommendationEngine, RecommendationWeights, RecommendOptions, UserHistory,
    build_user_profile, engagement_level, engagement_potential, trending_score
)

from fixtures import NOW, gardening_corpus, make_record


def engine_over(corpus) -> RecommendationEngine:
    index = TermWeightIndex()
    index.rebuild(corpus, NOW)
    return RecommendationEngine(index.vector_of_record, index.vector_for)


def by_id(corpus, *record_ids):
    lookup = {r.record_id: r for r in corpus}
    return tuple(lookup[i] for i in record_ids)


class TestScoringFunctions:

    def test_trending_decreases_with_age(self):
        fresh = make_record("fresh", likes=10, hours_ago=1)
        stale = make_record("stale", likes=10, hours_ago=10)
        assert trending_score(fresh, NOW) > trending_score(stale, NOW)

    def test_trending_formula(self):
        record = make_record("r", likes=12, bookmarks=3, hours_ago=2)
        assert trending_score(record, NOW) == pytest.approx(18 / 4 ** 1.5)

    @given(st.floats(min_value=0, max_value=500), st.floats(min_value=0, max_value=500))
    def test_trending_monotone_in_age(self, a, b):
        younger, older = sorted((a, b))
        r_young = make_record("y", likes=5, bookmarks=1, hours_ago=younger)
        r_old = make_record("o", likes=5, bookmarks=1, hours_ago=older)
        assert trending_score(r_young, NOW) >= trending_score(r_old, NOW)

    def test_engagement_level_buckets(self):
        assert engagement_level(101) == EngagementLevel.HIGH
        assert engagement_level(100) == EngagementLevel.MEDIUM
        assert engagement_level(21) == EngagementLevel.MEDIUM
        assert engagement_level(20) == EngagementLevel.LOW
        assert engagement_level(0) == EngagementLevel.LOW

    def test_engagement_potential_per_hundred_words(self):
        short = make_record("s", body="word " * 50, likes=5)
        assert engagement_potential(short) == pytest.approx(0.5)
        long = make_record("l", body="word " * 300, likes=30)
        assert engagement_potential(long) == pytest.approx(1.0)
        assert engagement_potential(make_record("z")) == 0.0


class TestUserProfile:

    def test_profile_ranks_categories_and_tags(self):
        corpus = gardening_corpus()
        history = UserHistory(
            user_id="zoe",
            records=by_id(corpus, "garden-1", "garden-2", "finance-1"),
            total_likes=30
        )
        profile = engine_over(corpus).build_profile(history)
        assert profile.preferred_categories == ("gardening", "finance")
        assert profile.preferred_tags == ("gardening", "tomatoes", "investing")
        assert profile.preferred_kind == ContentKind.ARTICLE
        assert profile.engagement_level == EngagementLevel.MEDIUM
        assert profile.history_size == 3
        assert "tomato" in profile.topic_terms

    def test_tied_kinds_mean_no_preference(self):
        history = UserHistory(user_id="u", records=(
            make_record("a", kind=ContentKind.ARTICLE),
            make_record("s", kind=ContentKind.SERIES),
        ))
        profile = engine_over(gardening_corpus()).build_profile(history)
        assert profile.preferred_kind is None

    def test_empty_history_gives_empty_profile(self):
        profile = build_user_profile(UserHistory.empty("new"), lambda text: None)
        assert profile.is_empty
        assert profile.preferred_categories == ()
        assert profile.content_vector.is_zero
        assert profile.engagement_level == EngagementLevel.LOW


class TestLists:

    def test_trending_window_and_order(self):
        corpus = gardening_corpus()
        trending = engine_over(corpus).trending(corpus, NOW)
        ids = [s.record_id for s in trending]
        # garden-3 is 30 hours old
        assert ids == ["garden-1", "garden-2", "travel-1", "finance-1"]

    def test_future_records_are_not_trending(self):
        future = make_record("future", likes=50, hours_ago=-2)
        assert engine_over(gardening_corpus()).trending([future], NOW) == ()

    def test_primary_excludes_own_and_read_content(self):
        corpus = gardening_corpus()
        engine = engine_over(corpus)
        history = UserHistory(user_id="alice", records=by_id(corpus, "garden-2"))
        profile = engine.build_profile(history)
        primary = engine.primary(profile, corpus, exclude_ids=frozenset({"garden-2"}))
        assert [s.record_id for s in primary] == ["garden-3"]

    def test_series_match_on_category_only(self):
        corpus = gardening_corpus()
        series = make_record(
            "series-1", "Tomato season", "A weekly tomato diary",
            kind=ContentKind.SERIES, category="gardening", author_id="frank"
        )
        engine = engine_over(corpus)
        profile = engine.build_profile(UserHistory("zoe", by_id(corpus, "garden-1")))
        ids = [s.record_id for s in engine.primary(profile, corpus + [series])]
        assert "series-1" in ids

    def test_score_components(self):
        corpus = gardening_corpus()
        engine = engine_over(corpus)
        profile = engine.build_profile(UserHistory("zoe", by_id(corpus, "garden-1")))
        scored = engine.score_content(by_id(corpus, "garden-2")[0], profile)
        assert scored.component("category") == 1.0
        assert scored.component("tag_overlap") == 1.0
        assert 0.0 < scored.component("vector_similarity") <= 1.0
        assert 0.0 < scored.score <= 1.0

    def test_custom_weights(self):
        corpus = gardening_corpus()
        engine = engine_over(corpus)
        profile = engine.build_profile(UserHistory("zoe", by_id(corpus, "garden-1")))
        only_category = RecommendationWeights(1.0, 0.0, 0.0, 0.0)
        scored = engine.score_content(by_id(corpus, "travel-1")[0], profile, only_category)
        assert scored.score == 0.0

    def test_similar_deduplicates_across_seeds(self):
        corpus = gardening_corpus()
        engine = engine_over(corpus)
        history = UserHistory("zoe", by_id(corpus, "garden-1", "garden-2"))
        similar = engine.similar_to_recent(history, corpus)
        ids = [s.record_id for s in similar]
        assert len(ids) == len(set(ids))
        assert set(ids) == {"garden-1", "garden-2", "garden-3"}

    def test_similar_skips_same_author(self):
        corpus = gardening_corpus()
        engine = engine_over(corpus)
        own = make_record("alice-2", "Balcony tomatoes", category="gardening", author_id="alice")
        history = UserHistory("zoe", by_id(corpus, "garden-1"))
        ids = [s.record_id for s in engine.similar_to_recent(history, corpus + [own])]
        assert "alice-2" not in ids

    def test_item_similarity_is_symmetric(self):
        corpus = gardening_corpus()
        engine = engine_over(corpus)
        a, b = by_id(corpus, "garden-1", "finance-1")
        assert engine.similarity(a, b) == pytest.approx(engine.similarity(b, a))


class TestRecommend:

    def test_new_user_gets_trending(self):
        corpus = gardening_corpus()
        result = engine_over(corpus).recommend("newcomer", corpus, now=NOW)
        assert result.trending
        assert result.similar == ()
        assert result.profile.is_empty

    def test_read_records_are_excluded(self):
        corpus = gardening_corpus()
        history = UserHistory("zoe", by_id(corpus, "garden-1"))
        result = engine_over(corpus).recommend("zoe", corpus, history, now=NOW)
        assert "garden-1" not in [s.record_id for s in result.primary]
        assert "garden-1" not in [s.record_id for s in result.similar]

    def test_non_long_form_records_are_skipped_by_default(self):
        corpus = gardening_corpus()
        profile_page = make_record("profile-1", "Alice", kind=ContentKind.PROFILE, likes=99)
        result = engine_over(corpus).recommend("zoe", corpus + [profile_page], now=NOW)
        assert "profile-1" not in [s.record_id for s in result.trending]

    def test_options_limit_and_trending_toggle(self):
        corpus = gardening_corpus()
        options = RecommendOptions(limit=2, include_trending=False)
        result = engine_over(corpus).recommend("zoe", corpus, options=options, now=NOW)
        assert result.trending == ()
        assert len(result.primary) <= 2

    def test_failing_vectorizer_degrades_to_empty_lists(self):
        def broken(record):
            raise RuntimeError("index offline")

        corpus = gardening_corpus()
        engine = RecommendationEngine(broken, TermWeightIndex().vector_for)
        history = UserHistory("zoe", by_id(corpus, "garden-1"))
        result = engine.recommend("zoe", corpus, history, now=NOW)
        assert result.primary == ()
        assert result.similar == ()
        assert result.trending

        errors = engine.log_collector.get_entries(event_type=AuditEventType.ERROR)
        assert {e.action for e in errors} == {ErrorCode.SCORING_FAILED.name.lower()}
        assert len(errors) == 2

    def test_recommend_is_audited(self):
        corpus = gardening_corpus()
        engine = engine_over(corpus)
        engine.recommend("zoe", corpus, now=NOW)
        entry = engine.get_audit_log()[-1]
        assert entry.event_type == AuditEventType.RECOMMENDATION
        assert entry.entity_id == "zoe"
