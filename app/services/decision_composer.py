"""
Moderation decision composer.

Merges heuristic findings and the optional AI classification into a single
verdict. Precedence, highest first:

1. verified-author bypass (when the project opted in) -> APPROVED
2. auto-moderation disabled -> PENDING, left for manual review
3. score >= reject threshold, or a hard-block AI category -> REJECTED
4. score >= flag threshold, or any flag -> FLAGGED
5. otherwise -> APPROVED

The AI score can only raise the heuristic score, never lower it.
"""

from typing import List, Optional

from app.clients.ai_moderation_client import format_ai_flags
from app.core.config import settings as app_settings
from app.schemas.moderation import (
    AIModerationResult,
    HeuristicResult,
    ModerationStatus,
    ModerationVerdict,
    VerdictSource,
)
from app.schemas.settings import ModerationSettings

REJECT_THRESHOLD = app_settings.moderation_reject_threshold
FLAG_THRESHOLD = app_settings.moderation_flag_threshold
HARD_BLOCK_CATEGORIES = frozenset(app_settings.hard_block_categories)


def combined_score(heuristic: HeuristicResult, ai: Optional[AIModerationResult]) -> float:
    score = heuristic.score
    if ai is not None and ai.category_scores:
        score = max(score, max(ai.category_scores.values()))
    return min(1.0, max(0.0, score))


def merge_flags(heuristic_flags: List[str], ai_flags: List[str]) -> List[str]:
    return list(dict.fromkeys([*heuristic_flags, *ai_flags]))


def is_hard_blocked(ai: Optional[AIModerationResult]) -> bool:
    return ai is not None and any(c in HARD_BLOCK_CATEGORIES for c in ai.flagged_categories)


def _source(heuristic: HeuristicResult, ai: Optional[AIModerationResult]) -> VerdictSource:
    if ai is None:
        return VerdictSource.heuristic
    heuristic_found = bool(heuristic.flags)
    ai_found = bool(ai.flagged_categories)
    if heuristic_found and not ai_found:
        return VerdictSource.heuristic
    if ai_found and not heuristic_found:
        return VerdictSource.ai
    return VerdictSource.combined


def decide(
    heuristic: HeuristicResult,
    ai: Optional[AIModerationResult],
    settings: ModerationSettings,
    author_verified: bool,
) -> ModerationVerdict:
    """
    Compose the final moderation verdict.

    Args:
        heuristic: Rule engine result
        ai: AI classification, or None when unavailable
        settings: Project moderation settings
        author_verified: Whether the author was verified via OAuth

    Returns:
        A new immutable ModerationVerdict
    """
    if author_verified and settings.auto_approve_verified:
        return ModerationVerdict(
            status=ModerationStatus.approved,
            flags=[],
            score=0.0,
            source=VerdictSource.bypass,
            sentiment=heuristic.sentiment,
            quality_score=heuristic.quality_score,
        )

    if not settings.auto_moderation:
        return ModerationVerdict(
            status=ModerationStatus.pending,
            flags=[],
            score=0.0,
            source=VerdictSource.manual_required,
            sentiment=heuristic.sentiment,
            quality_score=heuristic.quality_score,
        )

    flags = merge_flags(heuristic.flags, format_ai_flags(ai) if ai is not None else [])
    score = combined_score(heuristic, ai)

    if score >= REJECT_THRESHOLD or is_hard_blocked(ai):
        status = ModerationStatus.rejected
    elif score >= FLAG_THRESHOLD or flags:
        status = ModerationStatus.flagged
    else:
        status = ModerationStatus.approved

    return ModerationVerdict(
        status=status,
        flags=flags,
        score=score,
        source=_source(heuristic, ai),
        sentiment=heuristic.sentiment,
        quality_score=heuristic.quality_score,
    )
