"""
Tests for resolving moderation settings payloads.
"""

import pytest

from app.core.exceptions import ValidationException
from app.schemas.settings import ModerationSettings, ModerationSettingsForm, ProfanityFilterLevel
from app.services.settings_resolver import resolve, to_form, to_project_payload


class TestResolve:
    """Test payload normalization."""

    def test_defaults(self):
        settings = resolve(None)
        assert settings.auto_moderation is True
        assert settings.auto_approve_verified is False
        assert settings.profanity_filter_level == ProfanityFilterLevel.moderate
        assert settings.min_content_length == 10
        assert settings.max_url_count == 2
        assert settings.allowed_domains == []
        assert settings == resolve({})

    def test_form_shape_is_split_and_deduped(self):
        settings = resolve({
            "allowedDomainsInput": "Example.com, example.com , foo.org,,",
            "brandKeywordsInput": "AcmeCo,acmeco, Widget",
        })
        assert settings.allowed_domains == ["Example.com", "foo.org"]
        assert settings.allowed_domain_set == frozenset({"example.com", "foo.org"})
        assert settings.brand_keywords == ["AcmeCo", "Widget"]
        assert settings.brand_terms == frozenset({"acmeco", "widget"})

    def test_snake_case_form_shape(self):
        form = ModerationSettingsForm(blocked_domains_input="spam.com, ads.net", max_url_count=0)
        settings = resolve(form)
        assert settings.blocked_domains == ["spam.com", "ads.net"]
        assert settings.max_url_count == 0

    def test_stored_project_shape(self):
        settings = resolve({
            "autoModeration": False,
            "autoApproveVerified": "true",
            "profanityFilterLevel": "strict",
            "moderationSettings": {
                "minContentLength": 25,
                "blockedDomains": ["spam.com"],
                "customProfanityList": ["meh"],
            },
        })
        assert settings.auto_moderation is False
        assert settings.auto_approve_verified is True
        assert settings.profanity_filter_level == ProfanityFilterLevel.strict
        assert settings.min_content_length == 25
        assert settings.blocked_domains == ["spam.com"]
        assert settings.custom_profanity_terms == frozenset({"meh"})

    def test_nested_values_take_priority(self):
        settings = resolve({"maxUrlCount": 5, "moderationSettings": {"maxUrlCount": 1}})
        assert settings.max_url_count == 1

    @pytest.mark.parametrize("payload", [
        {"minContentLength": "abc", "maxUrlCount": -3, "profanityFilterLevel": "EXTREME"},
        {"minContentLength": True, "maxUrlCount": None, "autoModeration": "maybe"},
        {"allowedDomains": 42, "blockedDomainsInput": {"spam.com": True}},
    ])
    def test_invalid_values_fall_back_to_defaults(self, payload):
        assert resolve(payload) == resolve(None)

    def test_out_of_range_counts_fall_back_to_defaults(self):
        settings = resolve({"maxUrlCount": 50, "minContentLength": 5000})
        assert settings.max_url_count == 2
        assert settings.min_content_length == 10

        form = to_form(settings)
        assert form.max_url_count == 2
        assert form.min_content_length == 10

    def test_upper_bounds_are_accepted(self):
        settings = resolve({"max_url_count": 10, "min_content_length": 1000})
        assert to_form(settings).max_url_count == 10
        assert to_form(settings).min_content_length == 1000

    @pytest.mark.parametrize("payload", ["strict", 42, ["spam.com"]])
    def test_non_mapping_is_rejected(self, payload):
        with pytest.raises(ValidationException) as exc_info:
            resolve(payload)
        assert exc_info.value.error_code == "VALIDATION_ERROR"

    def test_existing_settings_pass_through(self):
        settings = ModerationSettings(max_url_count=4)
        assert resolve(settings) is settings

    def test_conflicting_domains(self):
        settings = resolve({
            "allowedDomainsInput": "spam.com, example.com",
            "blockedDomainsInput": "SPAM.com",
        })
        assert settings.conflicting_domains == frozenset({"spam.com"})


class TestSerialization:
    """Test conversion back to form and stored shapes."""

    def test_form_round_trip_keeps_casing(self):
        settings = resolve({
            "brandKeywordsInput": "AcmeCo, Widget",
            "blockedDomainsInput": "Spam.com",
            "profanityFilterLevel": "LENIENT",
        })
        form = to_form(settings)
        assert form.brand_keywords_input == "AcmeCo, Widget"
        assert form.blocked_domains_input == "Spam.com"
        assert form.profanity_filter_level == ProfanityFilterLevel.lenient
        assert resolve(form) == settings

    def test_project_payload_is_camel_case(self):
        payload = to_project_payload(resolve({"brandKeywordsInput": "Acme"}))
        assert payload == {
            "minContentLength": 10,
            "maxUrlCount": 2,
            "allowedDomains": [],
            "blockedDomains": [],
            "customProfanityList": [],
            "brandKeywords": ["Acme"],
        }
