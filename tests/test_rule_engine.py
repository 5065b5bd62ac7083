"""
Tests for the heuristic rule engine.
"""

import pytest

from app.schemas.settings import ModerationSettings, ProfanityFilterLevel
from app.schemas.moderation import Sentiment
from app.services.rule_engine import (
    analyze_sentiment,
    calculate_quality_score,
    check_duplicate_content,
    evaluate,
    extract_domain,
    find_urls,
    levenshtein_distance,
)


class TestHelpers:
    """Test URL and similarity helpers."""

    def test_find_urls(self):
        urls = find_urls("See https://example.com/a, then www.other.org. Done")
        assert urls == ["https://example.com/a", "www.other.org"]

    def test_extract_domain_normalizes(self):
        assert extract_domain("HTTP://WWW.Spam.COM:8080/path") == "spam.com"
        assert extract_domain("www.example.org/page") == "example.org"

    def test_levenshtein_distance(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("same", "same") == 0


class TestEvaluate:
    """Test individual rules and their weights."""

    def test_clean_content_has_no_findings(self):
        result = evaluate("Great product, highly recommend!", ModerationSettings())
        assert result.flags == []
        assert result.score == 0.0

    def test_is_deterministic(self):
        settings = ModerationSettings(
            blocked_domains=["spam.com"],
            custom_profanity_list=["meh"],
            brand_keywords=["Acme"],
        )
        content = "Meh. Acme Acme Acme at http://spam.com and http://other.net http://x.io"
        assert evaluate(content, settings) == evaluate(content, settings)

    def test_blocked_link_scenario(self):
        settings = ModerationSettings(
            min_content_length=10,
            max_url_count=0,
            blocked_domains=["spam.com"],
        )
        result = evaluate("Check out my site http://spam.com now!!", settings)
        assert "Too many links" in result.flags
        assert "Blocked domain: spam.com" in result.flags
        assert result.score >= 0.4

    def test_content_too_short(self):
        result = evaluate("  Nice  ", ModerationSettings(min_content_length=10))
        assert result.flags == ["Content too short"]
        assert result.score == pytest.approx(0.3)

    def test_url_overflow_weight_scales(self):
        content = "Links: https://a.com https://b.com https://c.com are all great"
        result = evaluate(content, ModerationSettings(max_url_count=2))
        assert result.flags == ["Too many links"]
        assert result.score == pytest.approx(0.1)

    def test_blocked_wins_over_allowed(self):
        settings = ModerationSettings(
            allowed_domains=["spam.com"],
            blocked_domains=["spam.com"],
        )
        result = evaluate("Visit https://www.spam.com/deal today please", settings)
        assert "Blocked domain: spam.com" in result.flags
        assert not any(flag.startswith("Unrecognized domain") for flag in result.flags)

    def test_domain_lists_are_case_insensitive(self):
        settings = ModerationSettings(blocked_domains=["SPAM.com"])
        result = evaluate("Terrific, see HTTP://Spam.COM for more", settings)
        assert "Blocked domain: spam.com" in result.flags

    def test_unrecognized_domain_with_allow_list(self):
        settings = ModerationSettings(allowed_domains=["example.com"])
        content = "See https://other.org and https://blog.example.com/page for details"
        result = evaluate(content, settings)
        assert result.flags == ["Unrecognized domain: other.org"]
        assert result.score == pytest.approx(0.1)

    def test_one_flag_per_distinct_blocked_domain(self):
        settings = ModerationSettings(blocked_domains=["spam.com"], max_url_count=5)
        result = evaluate("http://spam.com/a and http://spam.com/b are great", settings)
        assert result.flags.count("Blocked domain: spam.com") == 1
        assert result.score == pytest.approx(0.4)

    def test_profanity_builtin_term(self):
        result = evaluate("This product is shit", ModerationSettings())
        assert result.flags == ["Profanity detected: shit"]
        assert result.score == pytest.approx(0.5)

    @pytest.mark.parametrize("content, term", [
        ("This is sh1t honestly", "shit"),
        ("What a f.u.c.k.i.n.g waste", "fucking"),
        ("Total $hit service here", "shit"),
        ("Shiiiit, it broke again", "shit"),
    ])
    def test_profanity_obfuscation(self, content, term):
        result = evaluate(content, ModerationSettings())
        assert f"Profanity detected: {term}" in result.flags

    def test_profanity_filter_levels(self):
        content = "What a stupid idea this was"
        strict = evaluate(content, ModerationSettings(profanity_filter_level=ProfanityFilterLevel.strict))
        moderate = evaluate(content, ModerationSettings(profanity_filter_level=ProfanityFilterLevel.moderate))
        assert strict.flags == ["Profanity detected: stupid"]
        assert moderate.flags == []

        lenient = evaluate(
            "This product is shit",
            ModerationSettings(profanity_filter_level=ProfanityFilterLevel.lenient),
        )
        assert lenient.flags == []

    def test_custom_profanity_weight(self):
        settings = ModerationSettings(
            profanity_filter_level=ProfanityFilterLevel.lenient,
            custom_profanity_list=["Meh"],
        )
        result = evaluate("It was MEH overall, honestly", settings)
        assert result.flags == ["Profanity detected: meh"]
        assert result.score == pytest.approx(0.3)

    def test_custom_profanity_phrase(self):
        settings = ModerationSettings(custom_profanity_list=["total rip off"])
        result = evaluate("It is a total   rip off, sadly", settings)
        assert "Profanity detected: total rip off" in result.flags

    def test_profanity_flags_follow_text_order(self):
        result = evaluate("bitch please, this is shit", ModerationSettings())
        assert result.flags == ["Profanity detected: bitch", "Profanity detected: shit"]
        assert result.score == pytest.approx(1.0)

    def test_words_containing_terms_are_not_flagged(self):
        result = evaluate(
            "The class was a classic, hello to everyone",
            ModerationSettings(profanity_filter_level=ProfanityFilterLevel.strict),
        )
        assert result.flags == []

    def test_excessive_brand_mention(self):
        settings = ModerationSettings(brand_keywords=["Acme"])
        result = evaluate("Acme Acme Acme is the best, buy Acme", settings)
        assert result.flags == ["Excessive brand mention"]
        assert result.score == pytest.approx(0.2)

    def test_legitimate_brand_mention(self):
        settings = ModerationSettings(brand_keywords=["Acme"])
        content = "I love the Acme blender, it changed how I cook every single morning"
        assert evaluate(content, settings).flags == []

    def test_spam_phrases(self):
        result = evaluate("Click here to get paid, amazing offer", ModerationSettings())
        assert result.flags == ["Spam phrases: click here, get paid"]

    def test_excessive_capitalization(self):
        result = evaluate("THIS IS THE BEST PRODUCT EVER MADE", ModerationSettings())
        assert result.flags == ["Excessive capitalization"]

    def test_repeated_characters(self):
        result = evaluate("Wonderful!!!!!! service all round", ModerationSettings())
        assert result.flags == ["Repeated characters"]

    def test_author_email_domains(self):
        settings = ModerationSettings(blocked_domains=["spam.com"])
        blocked = evaluate("Lovely team to work with", settings, author_email="bob@Spam.com")
        disposable = evaluate("Lovely team to work with", settings, author_email="bob@mailinator.com")
        assert blocked.flags == ["Blocked email domain: spam.com"]
        assert disposable.flags == ["Disposable email domain: mailinator.com"]

    def test_duplicate_content(self):
        existing = ["Something else entirely", "Great service, would buy again."]
        result = evaluate(
            "great service, would buy again!",
            ModerationSettings(),
            existing_contents=existing,
        )
        assert result.flags == ["Duplicate content"]
        assert check_duplicate_content("great service, would buy again!", existing)[0] == 1
        assert check_duplicate_content("A completely different review", existing) is None

    def test_score_is_clamped(self):
        settings = ModerationSettings(max_url_count=0, blocked_domains=["spam.com"])
        content = "shit fuck bitch http://spam.com"
        result = evaluate(content, settings)
        assert result.score == 1.0


class TestSentiment:
    """Test keyword-weighted sentiment analysis."""

    def test_very_negative(self):
        analysis = analyze_sentiment("this was a scam and a fraud, total theft")
        assert analysis.sentiment == Sentiment.very_negative
        assert analysis.score == -1.0
        assert analysis.negative_keywords == ["scam", "fraud", "theft"]

    def test_negative(self):
        analysis = analyze_sentiment("the support was bad and the manual was poor")
        assert analysis.sentiment == Sentiment.negative
        assert analysis.score == pytest.approx(-0.3)

    def test_positive_keywords_balance_negative(self):
        analysis = analyze_sentiment("terrible start but excellent, amazing support")
        assert analysis.sentiment == Sentiment.positive
        assert analysis.positive_keywords == ["excellent", "amazing"]

    def test_neutral_and_very_positive(self):
        assert analyze_sentiment("it arrived on tuesday").sentiment == Sentiment.neutral
        assert analyze_sentiment(
            "excellent, amazing and fantastic service"
        ).sentiment == Sentiment.very_positive

    def test_keywords_match_whole_words(self):
        analysis = analyze_sentiment("no issue with badges or the lovely poorhouse museum")
        assert analysis.negative_keywords == []
        assert analysis.positive_keywords == []

    def test_very_negative_flag(self):
        result = evaluate("This was a scam and a fraud, total theft", ModerationSettings())
        assert result.flags == ["Very negative sentiment: scam, fraud, theft"]
        assert result.score == pytest.approx(0.2)
        assert result.sentiment == Sentiment.very_negative

    def test_negative_flag(self):
        result = evaluate("The support was bad and the manual was poor", ModerationSettings())
        assert result.flags == ["Negative sentiment: bad, poor"]
        assert result.score == pytest.approx(0.1)

    def test_positive_sentiment_raises_no_flag(self):
        result = evaluate("Excellent, amazing and fantastic service", ModerationSettings())
        assert result.flags == []
        assert result.sentiment == Sentiment.very_positive


class TestQualityScore:
    """Test the informational quality score."""

    CONTENT = "The team delivered our new kitchen on time and it looks really nice"

    def test_well_formed_testimonial(self):
        assert calculate_quality_score(self.CONTENT) == pytest.approx(0.8)

    def test_rating_and_verification(self):
        assert calculate_quality_score(self.CONTENT, rating=5, author_verified=True) == 1.0
        assert calculate_quality_score(self.CONTENT, rating=1) == pytest.approx(0.7)
        assert calculate_quality_score(self.CONTENT, rating=3) == pytest.approx(0.8)

    def test_short_content(self):
        assert calculate_quality_score("Nice", rating=1) == 0.0
        assert calculate_quality_score("Great product, highly recommend!") == pytest.approx(0.3)

    def test_evaluate_reports_quality(self):
        result = evaluate(self.CONTENT, ModerationSettings(), rating=5)
        assert result.quality_score == pytest.approx(1.0)
        assert result.flags == []
