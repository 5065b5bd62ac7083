"""
Moderation settings resolver.

Turns stored or transport payloads into ``ModerationSettings`` and back into
the comma-joined form shape edited in the dashboard. Accepted input shapes:

* the dashboard form (``allowedDomainsInput`` / ``allowed_domains_input``
  comma-separated strings),
* a stored project payload (``autoModeration`` etc. at the top level and the
  advanced fields nested under ``moderationSettings``),
* flat snake_case keys.

Missing or invalid fields fall back to defaults; only a payload that is not a
mapping at all is rejected.
"""

from typing import Any, Mapping, Optional

from app.core.exceptions import ValidationException
from app.core.logger import logger
from app.schemas.settings import (
    DEFAULT_MAX_URL_COUNT,
    DEFAULT_MIN_CONTENT_LENGTH,
    MAX_MIN_CONTENT_LENGTH,
    MAX_URL_COUNT_LIMIT,
    ModerationSettings,
    ModerationSettingsForm,
    ProfanityFilterLevel,
    clean_term_list,
)

NESTED_SETTINGS_KEYS = ("moderationSettings", "moderation_settings")

# field name -> accepted payload keys, in lookup order
_FIELD_KEYS = {
    "auto_moderation": ("auto_moderation", "autoModeration"),
    "auto_approve_verified": ("auto_approve_verified", "autoApproveVerified"),
    "profanity_filter_level": ("profanity_filter_level", "profanityFilterLevel"),
    "min_content_length": ("min_content_length", "minContentLength"),
    "max_url_count": ("max_url_count", "maxUrlCount"),
    "allowed_domains": (
        "allowed_domains", "allowedDomains", "allowed_domains_input", "allowedDomainsInput",
    ),
    "blocked_domains": (
        "blocked_domains", "blockedDomains", "blocked_domains_input", "blockedDomainsInput",
    ),
    "custom_profanity_list": (
        "custom_profanity_list", "customProfanityList",
        "custom_profanity_input", "customProfanityInput",
    ),
    "brand_keywords": (
        "brand_keywords", "brandKeywords", "brand_keywords_input", "brandKeywordsInput",
    ),
}


def _lookup(payloads, field: str) -> Any:
    for payload in payloads:
        for key in _FIELD_KEYS[field]:
            if key in payload and payload[key] is not None:
                return payload[key]
    return None


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
    return default


def _coerce_count(value: Any, default: int, maximum: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if 0 <= number <= maximum else default


def _coerce_level(value: Any) -> ProfanityFilterLevel:
    if isinstance(value, ProfanityFilterLevel):
        return value
    if isinstance(value, str):
        try:
            return ProfanityFilterLevel(value.strip().upper())
        except ValueError:
            pass
    return ProfanityFilterLevel.moderate


def resolve(raw: Optional[Any]) -> ModerationSettings:
    """
    Normalize a raw settings payload into ModerationSettings.

    Args:
        raw: Mapping (form, stored project or snake_case shape), a
            ModerationSettingsForm, an existing ModerationSettings, or None

    Returns:
        Normalized settings with defaults filled in

    Raises:
        ValidationException: If the payload is not a mapping
    """
    if isinstance(raw, ModerationSettings):
        return raw
    if raw is None:
        raw = {}
    elif isinstance(raw, ModerationSettingsForm):
        raw = raw.model_dump()
    elif not isinstance(raw, Mapping):
        raise ValidationException(
            "Moderation settings payload must be an object",
            field="moderation_settings",
            details={"received_type": type(raw).__name__},
        )

    payloads = [raw]
    for key in NESTED_SETTINGS_KEYS:
        nested = raw.get(key)
        if isinstance(nested, Mapping):
            payloads.insert(0, nested)

    settings = ModerationSettings(
        auto_moderation=_coerce_bool(_lookup(payloads, "auto_moderation"), True),
        auto_approve_verified=_coerce_bool(_lookup(payloads, "auto_approve_verified"), False),
        profanity_filter_level=_coerce_level(_lookup(payloads, "profanity_filter_level")),
        min_content_length=_coerce_count(
            _lookup(payloads, "min_content_length"), DEFAULT_MIN_CONTENT_LENGTH, MAX_MIN_CONTENT_LENGTH
        ),
        max_url_count=_coerce_count(
            _lookup(payloads, "max_url_count"), DEFAULT_MAX_URL_COUNT, MAX_URL_COUNT_LIMIT
        ),
        allowed_domains=clean_term_list(_lookup(payloads, "allowed_domains")),
        blocked_domains=clean_term_list(_lookup(payloads, "blocked_domains")),
        custom_profanity_list=clean_term_list(_lookup(payloads, "custom_profanity_list")),
        brand_keywords=clean_term_list(_lookup(payloads, "brand_keywords")),
    )

    if settings.conflicting_domains:
        logger.warning(
            "Domains listed as both allowed and blocked; blocked takes precedence",
            extra={"domains": sorted(settings.conflicting_domains)},
        )

    return settings


def to_form(settings: ModerationSettings) -> ModerationSettingsForm:
    """Convert settings into the comma-joined form representation."""
    return ModerationSettingsForm(
        auto_moderation=settings.auto_moderation,
        auto_approve_verified=settings.auto_approve_verified,
        profanity_filter_level=settings.profanity_filter_level,
        min_content_length=settings.min_content_length,
        max_url_count=settings.max_url_count,
        allowed_domains_input=", ".join(settings.allowed_domains),
        blocked_domains_input=", ".join(settings.blocked_domains),
        custom_profanity_input=", ".join(settings.custom_profanity_list),
        brand_keywords_input=", ".join(settings.brand_keywords),
    )


def to_project_payload(settings: ModerationSettings) -> dict:
    """Advanced fields in the camelCase shape stored on the project row."""
    return {
        "minContentLength": settings.min_content_length,
        "maxUrlCount": settings.max_url_count,
        "allowedDomains": list(settings.allowed_domains),
        "blockedDomains": list(settings.blocked_domains),
        "customProfanityList": list(settings.custom_profanity_list),
        "brandKeywords": list(settings.brand_keywords),
    }


def settings_from_project(project) -> ModerationSettings:
    """Resolve settings from a Project row."""
    return resolve({
        "autoModeration": project.auto_moderation,
        "autoApproveVerified": project.auto_approve_verified,
        "profanityFilterLevel": project.profanity_filter_level,
        "moderationSettings": project.moderation_settings or {},
    })
