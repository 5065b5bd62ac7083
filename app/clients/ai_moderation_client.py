# app/clients/ai_moderation_client.py
"""
OpenAI Moderation API client.

The AI layer is advisory: ``check_with_ai`` returns ``None`` whenever a
classification is not available (no API key, feature disabled, timeout,
non-2xx response, transport error, malformed body) so that callers fall
through to heuristic-only moderation.
"""

import asyncio
from typing import Any, Dict, List, Optional

import openai
from pydantic import BaseModel, ValidationError

from app.core.config import settings
from app.core.logger import logger
from app.schemas.moderation import AIModerationResult

AI_FLAG_LABELS = {
    "sexual": "Sexual content",
    "hate": "Hate speech",
    "harassment": "Harassment",
    "self-harm": "Self-harm content",
    "sexual/minors": "Sexual content involving minors",
    "hate/threatening": "Threatening hate speech",
    "violence/graphic": "Graphic violence",
    "violence": "Violent content",
    "harassment/threatening": "Threatening harassment",
    "self-harm/intent": "Self-harm intent",
    "self-harm/instructions": "Self-harm instructions",
    "illicit": "Illicit content",
    "illicit/violent": "Illicit violent content",
}


# --- Wire format ---
class _RawModerationResult(BaseModel):
    flagged: bool
    categories: Dict[str, Optional[bool]]
    category_scores: Dict[str, Optional[float]]


class _RawModerationResponse(BaseModel):
    results: List[_RawModerationResult]


def parse_moderation_response(payload: Any) -> Optional[AIModerationResult]:
    """
    Parse a ``/v1/moderations`` response body.

    Args:
        payload: Decoded JSON body

    Returns:
        AIModerationResult for the first result, or None if the body is malformed
    """
    try:
        response = _RawModerationResponse.model_validate(payload)
    except ValidationError as e:
        logger.error(
            "AI moderation response was malformed",
            extra={"error": str(e)}
        )
        return None

    if not response.results:
        logger.error("AI moderation response contained no results")
        return None

    result = response.results[0]
    categories = {name: bool(flag) for name, flag in result.categories.items() if flag is not None}
    category_scores = {
        name: float(score) for name, score in result.category_scores.items() if score is not None
    }

    return AIModerationResult(
        flagged=result.flagged,
        categories=categories,
        category_scores=category_scores,
        flagged_categories=[name for name, flag in categories.items() if flag],
    )


# --- OpenAI Moderation ---
async def _request_moderation(content: str, api_key: str) -> Dict[str, Any]:
    async with openai.AsyncOpenAI(
        api_key=api_key,
        base_url=settings.openai_base_url,
        timeout=settings.ai_moderation_timeout,
        max_retries=0,
    ) as client:
        response = await client.moderations.create(
            input=content,
            model=settings.openai_moderation_model,
        )
    return response.model_dump(by_alias=True)


async def check_with_ai(content: str) -> Optional[AIModerationResult]:
    """
    Classify content with the OpenAI Moderation API.

    Never raises: every failure is logged and reported as None.

    Args:
        content: Testimonial text

    Returns:
        AIModerationResult, or None when the AI layer is unavailable
    """
    api_key = settings.openai_api_key
    if not api_key or not settings.ai_moderation_enabled:
        logger.debug("AI moderation disabled, using heuristics only")
        return None

    try:
        payload = await asyncio.wait_for(
            _request_moderation(content, api_key),
            timeout=settings.ai_moderation_timeout,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "AI moderation request timed out",
            extra={"timeout": settings.ai_moderation_timeout}
        )
        return None
    except openai.APIStatusError as e:
        logger.error(
            f"AI moderation API returned {e.status_code}",
            extra={"status_code": e.status_code}
        )
        return None
    except Exception as e:
        logger.error(
            "AI moderation request failed",
            extra={"error": str(e)},
            exc_info=True
        )
        return None

    return parse_moderation_response(payload)


def format_ai_flags(result: AIModerationResult) -> List[str]:
    """Map flagged categories to readable flags; unknown keys pass through."""
    return [
        f"AI: {AI_FLAG_LABELS.get(category, category)} detected"
        for category in result.flagged_categories
    ]
