"""
Moderation Layer

RESPONSIBILITY: Screen text and render an approve/reject verdict
ALLOWED INPUTS: Text, content kind, detector toggles, comment context
OUTPUTS: ModerationVerdict (immutable)

WHAT THIS LAYER MUST NOT DO:
============================
- Persist verdicts or user history
- Look up user history itself (the caller supplies CommentContext)
- Let a detector exception escape the call

FAILURE POLICY:
===============
A detector that raises contributes nothing to the score. The failure is
kept in `verdict.errors` and the audit log. By default the call then
proceeds as if the detector had found nothing (fail-open). With
`ModerationConfig.fail_closed` the verdict is rejected and carries the
`error` flag instead.

Score and confidence are separate: score is composite risk, confidence is
how sure the screener is about its own verdict.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from ..contracts.base import ContentKind, Error, ErrorCode
from ..contracts.events import AuditEventType, AuditLogEntry
from ..contracts.results import DetectorResult, FlagKind, ModerationVerdict
from ..normalization import TextNormalizer
from ..observability import LogCollector
from .detectors import (
    Detector, SpamDetector, ToxicityDetector, QualityDetector,
    SuspiciousPatternDetector, default_detectors, common_errors
)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class DetectorToggles:
    """Which detectors run on a given call. All run by default."""
    spam: bool = True
    toxicity: bool = True
    quality: bool = True
    suspicious: bool = True

    def enabled(self, detector_name: str) -> bool:
        # detectors without a toggle always run
        return getattr(self, detector_name, True)


@dataclass(frozen=True)
class CommentContext:
    """Caller-supplied history of the commenting user."""
    user_id: Optional[str] = None
    content_id: Optional[str] = None
    reported_comments: int = 0
    spam_comments: int = 0
    recent_comments: int = 0
    duplicate_comments: int = 0


@dataclass
class ModerationConfig:
    """Thresholds for the composite decision."""
    content_approval_threshold: float = 0.7
    content_flag_ceiling: int = 2
    comment_approval_threshold: float = 0.6
    comment_flag_ceiling: int = 3

    reported_limit: int = 5
    reported_weight: float = 0.3
    spam_limit: int = 3
    spam_weight: float = 0.4
    recent_limit: int = 10
    recent_weight: float = 0.2
    duplicate_limit: int = 2
    duplicate_weight: float = 0.3

    fail_closed: bool = False


# =============================================================================
# SCREENER
# =============================================================================

@dataclass
class _Screening:
    """Intermediate fold state before thresholds are applied."""
    raw_score: float = 0.0
    strongest_fired: float = 0.0
    flags: List[FlagKind] = field(default_factory=list)
    signals: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    results: List[DetectorResult] = field(default_factory=list)
    errors: List[Error] = field(default_factory=list)

    def add_flag(self, flag: FlagKind):
        if flag not in self.flags:
            self.flags.append(flag)


def confidence(score: float, flag_count: int, suggestion_count: int) -> float:
    """Mean of three certainty factors; independent of the approval rule."""
    factors = (
        0.9 if score < 0.3 else 0.5,
        0.8 if flag_count == 0 else 0.6,
        0.7 if suggestion_count < 3 else 0.5,
    )
    return sum(factors) / len(factors)


class ModerationScreener:
    """
    Folds an ordered detector list into one verdict.

    BOUNDARY ENFORCEMENT:
    - Stateless between calls apart from the audit log
    - Each detector is isolated: one failure never hides another's result
    """

    def __init__(
        self,
        config: Optional[ModerationConfig] = None,
        detectors: Optional[Sequence[Detector]] = None,
        normalizer: Optional[TextNormalizer] = None
    ):
        self._config = config or ModerationConfig()
        self._detectors: Tuple[Detector, ...] = (
            tuple(detectors) if detectors is not None else default_detectors(normalizer)
        )
        self._log = LogCollector('moderation')

    @property
    def detectors(self) -> Tuple[Detector, ...]:
        return self._detectors

    @property
    def log_collector(self) -> LogCollector:
        return self._log

    def screen_content(
        self,
        text: str,
        kind: ContentKind = ContentKind.ARTICLE,
        toggles: Optional[DetectorToggles] = None
    ) -> ModerationVerdict:
        """Screen one text; approve iff score < 0.7 and fewer than 2 flags."""
        screening = self._run_detectors(text, kind, toggles or DetectorToggles())
        verdict = self._decide(
            screening,
            threshold=self._config.content_approval_threshold,
            flag_ceiling=self._config.content_flag_ceiling
        )
        self._audit("screen_content", kind, verdict)
        return verdict

    def moderate_comment(
        self,
        text: str,
        context: Optional[CommentContext] = None
    ) -> ModerationVerdict:
        """
        Screen a comment and fold in the user's history.
        Approve iff score < 0.6 and fewer than 3 flags.
        """
        context = context or CommentContext()
        screening = self._run_detectors(text, ContentKind.COMMENT, DetectorToggles())

        context_score, context_flags = self.context_score(context)
        screening.raw_score += context_score
        for flag in context_flags:
            screening.add_flag(flag)
            screening.signals.append(flag.value)

        verdict = self._decide(
            screening,
            threshold=self._config.comment_approval_threshold,
            flag_ceiling=self._config.comment_flag_ceiling
        )
        self._audit("moderate_comment", ContentKind.COMMENT, verdict, context.content_id)
        return verdict

    def context_score(self, context: CommentContext) -> Tuple[float, Tuple[FlagKind, ...]]:
        """Additive history score, capped at 1.0, and its flags."""
        cfg = self._config
        rules = (
            (context.reported_comments > cfg.reported_limit, cfg.reported_weight,
             FlagKind.USER_HISTORY_REPORTED),
            (context.spam_comments > cfg.spam_limit, cfg.spam_weight,
             FlagKind.USER_HISTORY_SPAM),
            (context.recent_comments > cfg.recent_limit, cfg.recent_weight,
             FlagKind.RAPID_COMMENTING),
            (context.duplicate_comments > cfg.duplicate_limit, cfg.duplicate_weight,
             FlagKind.DUPLICATE_CONTENT),
        )
        score = 0.0
        flags = []
        for triggered, weight, flag in rules:
            if triggered:
                score += weight
                flags.append(flag)
        return min(score, 1.0), tuple(flags)

    def _run_detectors(
        self,
        text: str,
        kind: ContentKind,
        toggles: DetectorToggles
    ) -> _Screening:
        screening = _Screening()

        for detector in self._detectors:
            if not toggles.enabled(detector.name):
                continue
            try:
                result = detector.evaluate(text, kind)
            except Exception as exc:
                error = Error.now(ErrorCode.DETECTOR_FAILED, str(exc)).with_context(
                    "detector", detector.name
                )
                self._log.log_error(error, entity_id=detector.name)
                screening.errors.append(error)
                result = DetectorResult.neutral(detector.name, error=error)

            screening.results.append(result)
            screening.raw_score += result.score
            if result.flag is not None:
                screening.add_flag(result.flag)
                screening.strongest_fired = max(screening.strongest_fired, result.score)
            screening.signals.extend(result.signals)
            screening.suggestions.extend(result.suggestions)

        return screening

    def _decide(
        self,
        screening: _Screening,
        threshold: float,
        flag_ceiling: int
    ) -> ModerationVerdict:
        # quality may lower the composite, but never below a fired detector's own score
        screening.raw_score = max(screening.raw_score, screening.strongest_fired)

        if screening.errors and self._config.fail_closed:
            screening.add_flag(FlagKind.ERROR)
            approved = False
        else:
            approved = (
                screening.raw_score < threshold
                and len(screening.flags) < flag_ceiling
            )

        score = max(0.0, min(screening.raw_score, 1.0))
        return ModerationVerdict(
            is_approved=approved,
            score=score,
            flags=tuple(screening.flags),
            confidence=confidence(score, len(screening.flags), len(screening.suggestions)),
            suggestions=tuple(screening.suggestions),
            signals=tuple(screening.signals),
            detector_results=tuple(screening.results),
            errors=tuple(screening.errors)
        )

    def _audit(
        self,
        action: str,
        kind: ContentKind,
        verdict: ModerationVerdict,
        entity_id: Optional[str] = None
    ):
        self._log.log(
            action=action,
            event_type=AuditEventType.MODERATION,
            entity_id=entity_id,
            entity_type=kind.value,
            metadata=(
                ("is_approved", str(verdict.is_approved)),
                ("score", f"{verdict.score:.4f}"),
                ("flags", ",".join(verdict.flag_values)),
                ("confidence", f"{verdict.confidence:.4f}"),
                ("errors", str(len(verdict.errors))),
            )
        )

    def get_audit_log(self) -> List[AuditLogEntry]:
        return self._log.get_entries()


__all__ = [
    'Detector', 'SpamDetector', 'ToxicityDetector', 'QualityDetector',
    'SuspiciousPatternDetector', 'default_detectors', 'common_errors',
    'DetectorToggles', 'CommentContext', 'ModerationConfig',
    'ModerationScreener', 'confidence',
]
