"""
Heuristic rule engine for testimonial moderation.

``evaluate`` runs every rule independently against one piece of content and
returns the flags raised together with a risk score (sum of rule weights,
clamped to [0, 1]). It performs no I/O and depends only on its arguments,
so it is safe to call from any number of request handlers at once.
"""

import re
from typing import Iterable, List, Optional, Sequence, Set, Tuple
from urllib.parse import urlsplit

from app.core.config import settings as app_settings
from app.schemas.moderation import HeuristicResult, Sentiment, SentimentAnalysis
from app.schemas.settings import ModerationSettings, ProfanityFilterLevel, normalize_domain

# Rule weights
SHORT_CONTENT_WEIGHT = 0.3
URL_OVERFLOW_WEIGHT = 0.2
BLOCKED_DOMAIN_WEIGHT = 0.4
UNRECOGNIZED_DOMAIN_WEIGHT = 0.1
BUILTIN_PROFANITY_WEIGHT = 0.5
CUSTOM_PROFANITY_WEIGHT = 0.3
BRAND_DENSITY_WEIGHT = 0.2
SPAM_PHRASE_WEIGHT = 0.2
CAPITALIZATION_WEIGHT = 0.1
REPEATED_CHARACTERS_WEIGHT = 0.1
DISPOSABLE_EMAIL_WEIGHT = 0.2
BLOCKED_EMAIL_DOMAIN_WEIGHT = 0.4
DUPLICATE_CONTENT_WEIGHT = 0.4
VERY_NEGATIVE_SENTIMENT_WEIGHT = 0.2
NEGATIVE_SENTIMENT_WEIGHT = 0.1

CAPITALIZATION_RATIO = 0.8
CAPITALIZATION_MIN_LETTERS = 20

# ---------------------------------------------------------------------------
# Word lists
# ---------------------------------------------------------------------------

# Every level matches slurs; MODERATE adds vulgarity; STRICT adds mild insults.
PROFANITY_SLURS = (
    "nigger", "nigga", "retard", "kike", "chink", "spic", "beaner", "wetback",
    "faggot", "fag", "dyke", "tranny", "shemale", "raghead", "towelhead", "gook",
)

PROFANITY_SEVERE = (
    "fuck", "fucked", "fucking", "motherfucker", "fuckhead", "shit", "shithead",
    "bullshit", "horseshit", "dipshit", "bitch", "asshole", "bastard", "cunt",
    "dick", "pussy", "cock", "whore", "slut", "piss", "pissed", "pissing",
    "shitting", "wanker", "bollocks", "twat", "prick", "bellend", "knobhead",
    "jackass", "dumbass", "fatass",
)

PROFANITY_MILD = (
    "hell", "ass", "suck", "sucks", "stupid", "idiot", "dumb", "jerk", "crap",
    "damn", "bloody", "moron", "imbecile", "loser", "pathetic", "creep",
    "rubbish", "screwed",
)

PROFANITY_TIERS = {
    ProfanityFilterLevel.lenient: frozenset(PROFANITY_SLURS),
    ProfanityFilterLevel.moderate: frozenset(PROFANITY_SLURS + PROFANITY_SEVERE),
    ProfanityFilterLevel.strict: frozenset(PROFANITY_SLURS + PROFANITY_SEVERE + PROFANITY_MILD),
}

SPAM_PHRASES = (
    "buy now", "click here", "limited time offer", "act now", "call now",
    "order now", "visit now", "free money", "make money fast", "work from home",
    "earn extra cash", "no credit check", "viagra", "cialis", "lose weight fast",
    "get paid", "cash bonus",
)

# Sentiment keywords and their contribution to the -1..1 sentiment score.
NEGATIVE_KEYWORDS_SEVERE = (
    "scam", "fraud", "ripoff", "rip-off", "theft", "steal", "stolen",
    "illegal", "lawsuit", "sue", "lawyer",
)

NEGATIVE_KEYWORDS_STRONG = (
    "terrible", "awful", "horrible", "worst", "disgusting", "pathetic",
    "garbage", "trash", "hate", "never again", "avoid", "waste of money",
)

NEGATIVE_KEYWORDS_MODERATE = (
    "bad", "poor", "disappointing", "disappointed", "unhappy", "unsatisfied",
    "mediocre", "subpar", "inadequate", "lacking",
)

POSITIVE_KEYWORDS = (
    "excellent", "amazing", "outstanding", "fantastic", "wonderful",
    "great", "awesome", "perfect", "love", "highly recommend",
    "best", "brilliant", "superb", "exceptional", "impressed",
)

SENTIMENT_WEIGHTS = (
    (NEGATIVE_KEYWORDS_SEVERE, -0.4),
    (NEGATIVE_KEYWORDS_STRONG, -0.25),
    (NEGATIVE_KEYWORDS_MODERATE, -0.15),
    (POSITIVE_KEYWORDS, 0.2),
)

DISPOSABLE_EMAIL_DOMAINS = frozenset((
    "mailinator.com", "temp-mail.org", "guerrillamail.com", "10minutemail.com",
    "throwaway.email", "tempmail.com", "sharklasers.com", "yopmail.com", "maildrop.cc",
))

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

URL_PATTERN = re.compile(r"(?:https?://|www\.)[^\s<>\"'()\[\]{}]+", re.IGNORECASE)
WORD_PATTERN = re.compile(r"\w+")
REPEATED_CHARACTERS_PATTERN = re.compile(r"(.)\1{5,}")
RUN_PATTERN = re.compile(r"(.)\1{2,}")
EDGE_PUNCTUATION = ".,!?;:\"'()[]{}<>"

LEET_TABLE = str.maketrans({
    "@": "a", "4": "a", "3": "e", "€": "e", "1": "i", "!": "i", "|": "i",
    "0": "o", "$": "s", "5": "s", "7": "t", "+": "t", "8": "b", "9": "g",
})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def find_urls(content: str) -> List[str]:
    return [match.rstrip(".,!?;:") for match in URL_PATTERN.findall(content)]


def extract_domain(url: str) -> str:
    if not re.match(r"^https?://", url, re.IGNORECASE):
        url = "http://" + url
    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return ""
    return normalize_domain(host)


def _domain_matches(domain: str, listed: Iterable[str]) -> bool:
    return any(domain == entry or domain.endswith("." + entry) for entry in listed)


def _ordered_unique(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))


def _token_candidates(chunk: str) -> Set[str]:
    """Plain words in a whitespace-delimited chunk plus its de-obfuscated forms."""
    candidates = set(WORD_PATTERN.findall(chunk))
    stripped = chunk.strip(EDGE_PUNCTUATION)
    if not stripped:
        return candidates
    deobfuscated = re.sub(r"[^a-z0-9]", "", stripped.translate(LEET_TABLE))
    if deobfuscated:
        candidates.add(deobfuscated)
        candidates.add(RUN_PATTERN.sub(r"\1", deobfuscated))
        candidates.add(RUN_PATTERN.sub(r"\1\1", deobfuscated))
    return candidates


def _phrase_pattern(phrase: str) -> "re.Pattern[str]":
    return re.compile(r"\b" + r"\s+".join(re.escape(part) for part in phrase.split()) + r"\b")


def _find_terms(lowered: str, terms: Iterable[str]) -> List[Tuple[int, str]]:
    """Return (position, term) for every distinct term found in the text."""
    single_words = {term for term in terms if " " not in term}
    phrases = sorted(term for term in terms if " " in term)

    found = {}
    for chunk in re.finditer(r"\S+", lowered):
        for candidate in _token_candidates(chunk.group()):
            if candidate in single_words and candidate not in found:
                found[candidate] = chunk.start()
    for phrase in phrases:
        match = _phrase_pattern(phrase).search(lowered)
        if match:
            found[phrase] = match.start()
    return sorted((position, term) for term, position in found.items())


def _count_occurrences(lowered: str, words: Sequence[str], terms: Iterable[str]) -> int:
    occurrences = 0
    for term in terms:
        if " " in term:
            occurrences += len(_phrase_pattern(term).findall(lowered))
        else:
            occurrences += sum(1 for word in words if word == term)
    return occurrences


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

def check_length(content: str, settings: ModerationSettings):
    if len(content.strip()) < settings.min_content_length:
        return ["Content too short"], SHORT_CONTENT_WEIGHT
    return [], 0.0


def check_url_count(urls: Sequence[str], settings: ModerationSettings):
    overflow = len(urls) - settings.max_url_count
    if overflow <= 0:
        return [], 0.0
    ratio = min(1.0, overflow / max(settings.max_url_count, 1))
    return ["Too many links"], URL_OVERFLOW_WEIGHT * ratio


def check_domains(urls: Sequence[str], settings: ModerationSettings):
    flags = []
    score = 0.0
    domains = _ordered_unique(d for d in (extract_domain(url) for url in urls) if d)
    for domain in domains:
        # Blocked is checked first so a domain on both lists is always blocked.
        if _domain_matches(domain, settings.blocked_domain_set):
            flags.append(f"Blocked domain: {domain}")
            score += BLOCKED_DOMAIN_WEIGHT
        elif settings.allowed_domain_set and not _domain_matches(domain, settings.allowed_domain_set):
            flags.append(f"Unrecognized domain: {domain}")
            score += UNRECOGNIZED_DOMAIN_WEIGHT
    return flags, score


def check_profanity(lowered: str, settings: ModerationSettings):
    builtin = PROFANITY_TIERS[settings.profanity_filter_level]
    custom = settings.custom_profanity_terms
    flags = []
    score = 0.0
    for _, term in _find_terms(lowered, builtin | custom):
        flags.append(f"Profanity detected: {term}")
        score += BUILTIN_PROFANITY_WEIGHT if term in builtin else CUSTOM_PROFANITY_WEIGHT
    return flags, score


def check_brand_density(lowered: str, words: Sequence[str], settings: ModerationSettings):
    if not settings.brand_terms or not words:
        return [], 0.0
    density = _count_occurrences(lowered, words, settings.brand_terms) / len(words)
    if density > app_settings.brand_keyword_density_threshold:
        return ["Excessive brand mention"], BRAND_DENSITY_WEIGHT
    return [], 0.0


def check_spam_phrases(lowered: str):
    found = [phrase for _, phrase in _find_terms(lowered, SPAM_PHRASES)]
    if found:
        return [f"Spam phrases: {', '.join(found)}"], SPAM_PHRASE_WEIGHT
    return [], 0.0


def check_capitalization(content: str):
    letters = [ch for ch in content if ch.isascii() and ch.isalpha()]
    if len(letters) <= CAPITALIZATION_MIN_LETTERS:
        return [], 0.0
    upper = sum(1 for ch in letters if ch.isupper())
    if upper / len(letters) > CAPITALIZATION_RATIO:
        return ["Excessive capitalization"], CAPITALIZATION_WEIGHT
    return [], 0.0


def check_repeated_characters(content: str):
    if REPEATED_CHARACTERS_PATTERN.search(content):
        return ["Repeated characters"], REPEATED_CHARACTERS_WEIGHT
    return [], 0.0


def check_author_email(author_email: Optional[str], settings: ModerationSettings):
    if not author_email or "@" not in author_email:
        return [], 0.0
    domain = normalize_domain(author_email.rsplit("@", 1)[1])
    if not domain:
        return [], 0.0
    if _domain_matches(domain, settings.blocked_domain_set):
        return [f"Blocked email domain: {domain}"], BLOCKED_EMAIL_DOMAIN_WEIGHT
    if domain in DISPOSABLE_EMAIL_DOMAINS:
        return [f"Disposable email domain: {domain}"], DISPOSABLE_EMAIL_WEIGHT
    return [], 0.0


def _find_keywords(lowered: str, keywords: Iterable[str]) -> List[str]:
    found = []
    for keyword in keywords:
        match = _phrase_pattern(keyword).search(lowered)
        if match:
            found.append((match.start(), keyword))
    return [keyword for _, keyword in sorted(found)]


def analyze_sentiment(lowered: str) -> SentimentAnalysis:
    """
    Keyword-weighted sentiment of lowercased text.

    Each distinct keyword moves the score (severe -0.4, strong -0.25,
    moderate -0.15, positive +0.2); the sum is clamped to [-1, 1] and
    bucketed.
    """
    score = 0.0
    negative: List[str] = []
    positive: List[str] = []
    for keywords, weight in SENTIMENT_WEIGHTS:
        found = _find_keywords(lowered, keywords)
        score += weight * len(found)
        (positive if weight > 0 else negative).extend(found)
    score = round(min(1.0, max(-1.0, score)), 4)

    if score <= -0.6:
        sentiment = Sentiment.very_negative
    elif score <= -0.2:
        sentiment = Sentiment.negative
    elif score >= 0.4:
        sentiment = Sentiment.very_positive
    elif score >= 0.1:
        sentiment = Sentiment.positive
    else:
        sentiment = Sentiment.neutral

    return SentimentAnalysis(
        score=score,
        sentiment=sentiment,
        negative_keywords=negative,
        positive_keywords=positive,
    )


def check_sentiment(analysis: SentimentAnalysis):
    keywords = ", ".join(analysis.negative_keywords[:3])
    if analysis.sentiment == Sentiment.very_negative:
        return [f"Very negative sentiment: {keywords}"], VERY_NEGATIVE_SENTIMENT_WEIGHT
    if analysis.sentiment == Sentiment.negative:
        return [f"Negative sentiment: {keywords}"], NEGATIVE_SENTIMENT_WEIGHT
    return [], 0.0


def calculate_quality_score(
    content: str,
    rating: Optional[int] = None,
    author_verified: bool = False,
) -> float:
    """Quality of a testimonial in [0, 1], higher is better. Informational only."""
    score = 0.5

    length = len(content.strip())
    if 50 <= length <= 500:
        score += 0.2
    elif 500 < length <= 1000:
        score += 0.1
    elif length < 20:
        score -= 0.3

    if rating:
        if rating >= 4:
            score += 0.2
        elif rating <= 2:
            score -= 0.1

    if author_verified:
        score += 0.2

    word_count = len(content.split())
    if 10 <= word_count <= 200:
        score += 0.1
    elif word_count < 5:
        score -= 0.2

    return round(min(1.0, max(0.0, score)), 4)


def levenshtein_distance(first: str, second: str) -> int:
    if len(first) < len(second):
        first, second = second, first
    previous = list(range(len(second) + 1))
    for i, char_a in enumerate(first, start=1):
        current = [i]
        for j, char_b in enumerate(second, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(first: str, second: str) -> float:
    longer = max(len(first), len(second))
    if longer == 0:
        return 1.0
    return (longer - levenshtein_distance(first, second)) / longer


def check_duplicate_content(
    content: str,
    existing_contents: Sequence[str],
    threshold: Optional[float] = None,
) -> Optional[Tuple[int, float]]:
    """
    Find an existing testimonial that is (nearly) identical to ``content``.

    Returns:
        (index, similarity) of the first match, or None
    """
    if threshold is None:
        threshold = app_settings.duplicate_similarity_threshold
    normalized = content.strip().lower()
    for index, existing in enumerate(existing_contents):
        if not existing:
            continue
        candidate = existing.strip().lower()
        if candidate == normalized:
            return index, 1.0
        shorter, longer = sorted((len(candidate), len(normalized)))
        # Similarity can never exceed shorter/longer, skip the DP when hopeless.
        if longer == 0 or shorter / longer < threshold:
            continue
        score = similarity(normalized, candidate)
        if score >= threshold:
            return index, score
    return None


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def evaluate(
    content: str,
    settings: ModerationSettings,
    author_email: Optional[str] = None,
    existing_contents: Sequence[str] = (),
    rating: Optional[int] = None,
    author_verified: bool = False,
) -> HeuristicResult:
    """
    Evaluate one testimonial against the project's heuristic rules.

    Args:
        content: Testimonial text
        settings: Resolved project moderation settings
        author_email: Submitter email, checked against blocked and
            disposable domains when given
        existing_contents: Other testimonials of the project, used for
            duplicate detection when given
        rating: Star rating, used for the quality score
        author_verified: Whether the author was verified via OAuth, used
            for the quality score

    Returns:
        HeuristicResult with flags in rule order, the clamped risk score,
        the sentiment bucket and the quality score
    """
    lowered = content.lower()
    words = WORD_PATTERN.findall(lowered)
    urls = find_urls(content)
    sentiment = analyze_sentiment(lowered)

    results = [
        check_length(content, settings),
        check_url_count(urls, settings),
        check_domains(urls, settings),
        check_profanity(lowered, settings),
        check_brand_density(lowered, words, settings),
        check_spam_phrases(lowered),
        check_capitalization(content),
        check_repeated_characters(content),
        check_sentiment(sentiment),
        check_author_email(author_email, settings),
    ]
    if existing_contents and check_duplicate_content(content, existing_contents) is not None:
        results.append((["Duplicate content"], DUPLICATE_CONTENT_WEIGHT))

    flags: List[str] = []
    score = 0.0
    for rule_flags, rule_score in results:
        flags.extend(rule_flags)
        score += rule_score

    return HeuristicResult(
        flags=_ordered_unique(flags),
        score=round(min(1.0, max(0.0, score)), 4),
        sentiment=sentiment.sentiment,
        sentiment_score=sentiment.score,
        quality_score=calculate_quality_score(content, rating, author_verified),
    )
