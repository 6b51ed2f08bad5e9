"""
Moderation Screener Tests
=========================

Verifies:
1. Each detector in isolation
2. The composite approve/reject rule for content and comments
3. Confidence is computed independently of the approval decision
4. Detector failures never escape (fail-open by default, fail-closed on request)
"""

import pytest

from content_intelligence.contracts import (
    AuditEventType, ContentKind, DetectorResult, ErrorCode, FlagKind
)
from content_intelligence.moderation import (
    CommentContext, Detector, DetectorToggles, ModerationConfig, ModerationScreener,
    QualityDetector, SpamDetector, SuspiciousPatternDetector, ToxicityDetector,
    common_errors, confidence, default_detectors
)

from fixtures import (
    BENIGN_ARTICLE, FRIENDLY_COMMENT, SHOUTING_TEXT, SPAM_TEXT, TOXIC_TEXT
)


class ExplodingDetector(Detector):
    """Always raises, to exercise failure isolation."""

    name = "exploding"

    def evaluate(self, text, kind):
        raise RuntimeError("lexicon unavailable")


def screener_with_failure(fail_closed: bool = False) -> ModerationScreener:
    detectors = default_detectors() + (ExplodingDetector(),)
    return ModerationScreener(ModerationConfig(fail_closed=fail_closed), detectors=detectors)


class TestDetectors:

    def test_spam_patterns_fire(self):
        result = SpamDetector().evaluate(SPAM_TEXT, ContentKind.ARTICLE)
        assert result.flag == FlagKind.SPAM
        assert result.raw_score == pytest.approx(0.8)
        assert "spam_pattern_0" in result.signals

    def test_repetitive_content(self):
        result = SpamDetector().evaluate("great " * 20, ContentKind.COMMENT)
        assert "repetitive_content" in result.signals
        # repetition alone stays under the spam threshold
        assert result.flag is None
        assert result.score == 0.0

    def test_excessive_links(self):
        links = " ".join(f"https://example.com/{i}" for i in range(6))
        result = SpamDetector().evaluate(links, ContentKind.COMMENT)
        assert "excessive_links" in result.signals
        assert result.flag == FlagKind.SPAM

    def test_toxicity_counts_keywords_and_patterns(self):
        result = ToxicityDetector().evaluate(TOXIC_TEXT, ContentKind.ARTICLE)
        assert result.flag == FlagKind.TOXIC
        assert result.raw_score == 1.0
        assert "toxic_keywords" in result.signals
        assert "hate_speech" in result.signals

    def test_harassment_phrase(self):
        result = ToxicityDetector().evaluate("honestly you suck at this", ContentKind.COMMENT)
        assert "harassment" in result.signals
        assert result.flag is None  # 0.4 is not above the 0.4 threshold

    def test_quality_never_flags_and_is_signed(self):
        result = QualityDetector().evaluate("Too short.", ContentKind.ARTICLE)
        assert result.flag is None
        assert result.score == pytest.approx(-0.3)
        assert "too_short" in result.signals
        assert "weak_structure" in result.signals
        assert len(result.suggestions) == 2

    def test_quality_reports_readability(self):
        result = QualityDetector().evaluate(BENIGN_ARTICLE, ContentKind.ARTICLE)
        assert result.score == 0.0
        assert dict(result.metadata)["reading_ease"]

    def test_common_errors(self):
        errors = common_errors("i recieve teh letters")
        assert len(errors) == 3

    def test_suspicious_patterns(self):
        result = SuspiciousPatternDetector().evaluate(SHOUTING_TEXT, ContentKind.COMMENT)
        assert result.flag == FlagKind.SUSPICIOUS
        assert "excessive_punctuation" in result.signals
        assert "suspicious_pattern_0" in result.signals


class TestScreenContent:

    def test_benign_article_is_approved_without_flags(self):
        verdict = ModerationScreener().screen_content(BENIGN_ARTICLE, ContentKind.ARTICLE)
        assert verdict.is_approved
        assert verdict.flags == ()
        assert verdict.score == 0.0
        assert verdict.errors == ()

    def test_toxic_text_with_hate_speech_is_rejected(self):
        verdict = ModerationScreener().screen_content(TOXIC_TEXT, ContentKind.ARTICLE)
        assert not verdict.is_approved
        assert FlagKind.TOXIC in verdict.flags
        assert "hate_speech" in verdict.signals

    def test_quality_penalty_cannot_hide_a_fired_detector(self):
        # short unstructured text earns -0.3 quality, but toxicity fired at 1.0
        verdict = ModerationScreener().screen_content(TOXIC_TEXT, ContentKind.ARTICLE)
        assert verdict.score == 1.0

    def test_spam_is_rejected(self):
        verdict = ModerationScreener().screen_content(SPAM_TEXT, ContentKind.ARTICLE)
        assert not verdict.is_approved
        assert verdict.flags == (FlagKind.SPAM,)

    def test_toggles_disable_detectors(self):
        toggles = DetectorToggles(toxicity=False)
        verdict = ModerationScreener().screen_content(TOXIC_TEXT, ContentKind.ARTICLE, toggles)
        assert FlagKind.TOXIC not in verdict.flags
        assert all(r.detector != "toxicity" for r in verdict.detector_results)

    def test_two_flags_reject_even_with_low_score(self):
        class Flagging(Detector):
            def __init__(self, name, flag):
                self.name = name
                self._flag = flag

            def evaluate(self, text, kind):
                return DetectorResult(self.name, 0.1, 0.1, flag=self._flag)

        screener = ModerationScreener(detectors=(
            Flagging("first", FlagKind.SPAM), Flagging("second", FlagKind.SUSPICIOUS)
        ))
        verdict = screener.screen_content("anything", ContentKind.PROFILE)
        assert verdict.score == pytest.approx(0.2)
        assert not verdict.is_approved

    def test_screening_is_audited(self):
        screener = ModerationScreener()
        screener.screen_content(BENIGN_ARTICLE)
        entries = screener.get_audit_log()
        assert entries[-1].event_type == AuditEventType.MODERATION
        assert entries[-1].metadata_value("is_approved") == "True"


class TestConfidence:

    def test_confident_clean_verdict(self):
        assert confidence(0.0, 0, 0) == pytest.approx(0.8)

    def test_uncertain_flagged_verdict(self):
        assert confidence(0.9, 2, 4) == pytest.approx((0.5 + 0.6 + 0.5) / 3)

    def test_confidence_is_not_risk(self):
        verdict = ModerationScreener().screen_content(TOXIC_TEXT, ContentKind.ARTICLE)
        assert verdict.confidence != verdict.score
        assert 0.0 <= verdict.confidence <= 1.0


class TestDetectorFailure:

    def test_fail_open_returns_verdict(self):
        verdict = screener_with_failure().screen_content(BENIGN_ARTICLE)
        assert verdict.is_approved
        assert verdict.flags == ()
        assert len(verdict.errors) == 1
        assert verdict.errors[0].code == ErrorCode.DETECTOR_FAILED
        assert dict(verdict.errors[0].context)["detector"] == "exploding"

    def test_failure_keeps_other_detectors(self):
        verdict = screener_with_failure().screen_content(TOXIC_TEXT)
        assert FlagKind.TOXIC in verdict.flags
        assert not verdict.is_approved

    def test_failure_is_audited(self):
        screener = screener_with_failure()
        screener.screen_content(BENIGN_ARTICLE)
        errors = screener.log_collector.get_entries(event_type=AuditEventType.ERROR)
        assert len(errors) == 1
        assert errors[0].entity_id == "exploding"

    def test_fail_closed_rejects(self):
        verdict = screener_with_failure(fail_closed=True).screen_content(BENIGN_ARTICLE)
        assert not verdict.is_approved
        assert FlagKind.ERROR in verdict.flags


class TestModerateComment:

    def test_friendly_comment_is_approved(self):
        verdict = ModerationScreener().moderate_comment(FRIENDLY_COMMENT)
        assert verdict.is_approved
        assert verdict.flags == ()

    def test_bad_history_rejects_clean_text(self):
        context = CommentContext(user_id="u1", reported_comments=6, spam_comments=4)
        verdict = ModerationScreener().moderate_comment(FRIENDLY_COMMENT, context)
        assert not verdict.is_approved
        assert verdict.flags == (
            FlagKind.USER_HISTORY_REPORTED, FlagKind.USER_HISTORY_SPAM
        )

    def test_mild_history_is_tolerated(self):
        context = CommentContext(duplicate_comments=3)
        verdict = ModerationScreener().moderate_comment(FRIENDLY_COMMENT, context)
        assert verdict.is_approved
        assert verdict.flags == (FlagKind.DUPLICATE_CONTENT,)

    def test_context_score_is_capped(self):
        context = CommentContext(
            reported_comments=10, spam_comments=10, recent_comments=20, duplicate_comments=5
        )
        score, flags = ModerationScreener().context_score(context)
        assert score == 1.0
        assert len(flags) == 4

    def test_short_comment_gets_suggestion(self):
        verdict = ModerationScreener().moderate_comment("Nice")
        assert "Consider adding more detail to your comment" in verdict.suggestions
        assert verdict.is_approved
