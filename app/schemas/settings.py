"""
Per-project moderation settings.

``ModerationSettings`` is the only settings shape the rule engine accepts.
Term lists are cleaned when the model is built (trimmed, empty entries
dropped, case-insensitive duplicates removed keeping the first spelling) so
they can be shown back to users as entered. The lowercased lookup sets the
rule engine matches against are derived once per instance.
"""

import enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from pydantic import BaseModel, Field, PrivateAttr, field_validator

DEFAULT_MIN_CONTENT_LENGTH = 10
DEFAULT_MAX_URL_COUNT = 2
MAX_MIN_CONTENT_LENGTH = 1000
MAX_URL_COUNT_LIMIT = 10


class ProfanityFilterLevel(str, enum.Enum):
    strict = "STRICT"
    moderate = "MODERATE"
    lenient = "LENIENT"


def split_terms(value: Any) -> List[str]:
    """Split a comma-separated string (or an iterable of strings) into terms."""
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        return []
    return [item.strip() for item in items if isinstance(item, str) and item.strip()]


def clean_term_list(value: Any) -> List[str]:
    """Split, trim and case-insensitively dedupe terms, keeping first spelling."""
    seen = set()
    cleaned = []
    for term in split_terms(value):
        key = term.lower()
        if key in seen:
            continue
        seen.add(key)
        cleaned.append(term)
    return cleaned


def normalize_domain(domain: str) -> str:
    domain = domain.strip().lower().rstrip(".")
    if "://" in domain:
        domain = domain.split("://", 1)[1]
    domain = domain.split("/", 1)[0].split(":", 1)[0]
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


class ModerationSettings(BaseModel):
    auto_moderation: bool = True
    auto_approve_verified: bool = False
    profanity_filter_level: ProfanityFilterLevel = ProfanityFilterLevel.moderate
    min_content_length: int = Field(default=DEFAULT_MIN_CONTENT_LENGTH, ge=0, le=MAX_MIN_CONTENT_LENGTH)
    max_url_count: int = Field(default=DEFAULT_MAX_URL_COUNT, ge=0, le=MAX_URL_COUNT_LIMIT)
    allowed_domains: List[str] = Field(default_factory=list)
    blocked_domains: List[str] = Field(default_factory=list)
    custom_profanity_list: List[str] = Field(default_factory=list)
    brand_keywords: List[str] = Field(default_factory=list)

    _allowed_domain_set: FrozenSet[str] = PrivateAttr(default_factory=frozenset)
    _blocked_domain_set: FrozenSet[str] = PrivateAttr(default_factory=frozenset)
    _profanity_terms: FrozenSet[str] = PrivateAttr(default_factory=frozenset)
    _brand_terms: FrozenSet[str] = PrivateAttr(default_factory=frozenset)

    class Config:
        frozen = True

    @field_validator(
        "allowed_domains",
        "blocked_domains",
        "custom_profanity_list",
        "brand_keywords",
        mode="before",
    )
    @classmethod
    def _clean_terms(cls, value: Any) -> List[str]:
        return clean_term_list(value)

    def model_post_init(self, __context: Any) -> None:
        self._allowed_domain_set = frozenset(
            d for d in (normalize_domain(v) for v in self.allowed_domains) if d
        )
        self._blocked_domain_set = frozenset(
            d for d in (normalize_domain(v) for v in self.blocked_domains) if d
        )
        self._profanity_terms = frozenset(t.lower() for t in self.custom_profanity_list)
        self._brand_terms = frozenset(t.lower() for t in self.brand_keywords)

    @property
    def allowed_domain_set(self) -> FrozenSet[str]:
        return self._allowed_domain_set

    @property
    def blocked_domain_set(self) -> FrozenSet[str]:
        return self._blocked_domain_set

    @property
    def custom_profanity_terms(self) -> FrozenSet[str]:
        return self._profanity_terms

    @property
    def brand_terms(self) -> FrozenSet[str]:
        return self._brand_terms

    @property
    def conflicting_domains(self) -> FrozenSet[str]:
        """Domains listed as both allowed and blocked (blocked wins)."""
        return self._allowed_domain_set & self._blocked_domain_set


class ModerationSettingsForm(BaseModel):
    """Form-editable representation with comma-joined list inputs."""

    auto_moderation: bool = True
    auto_approve_verified: bool = False
    profanity_filter_level: ProfanityFilterLevel = ProfanityFilterLevel.moderate
    min_content_length: Optional[int] = Field(default=None, ge=0, le=MAX_MIN_CONTENT_LENGTH)
    max_url_count: Optional[int] = Field(default=None, ge=0, le=MAX_URL_COUNT_LIMIT)
    allowed_domains_input: str = ""
    blocked_domains_input: str = ""
    custom_profanity_input: str = ""
    brand_keywords_input: str = ""


# ---- Projects ----
class ProjectCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    moderation_settings: Optional[Dict[str, Any]] = None


class ProjectResponse(BaseModel):
    id: str
    name: str
    settings: ModerationSettingsForm
