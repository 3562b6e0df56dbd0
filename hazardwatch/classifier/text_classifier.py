"""Keyword-based hazard classifier for social media posts."""
import re
import time
from typing import List, Mapping, Optional, Tuple, Union
from hazardwatch.common.logger import setup_logger
from hazardwatch.common.metrics import posts_classified_total, classification_duration_seconds
from hazardwatch.common.models import (
    Coordinates,
    Engagement,
    HazardType,
    PostAssessment,
    Sentiment,
    Severity,
)

logger = setup_logger(__name__)

# Table order is significant: the first category with a matching keyword wins.
HAZARD_KEYWORDS: Tuple[Tuple[HazardType, Tuple[str, ...]], ...] = (
    (HazardType.TSUNAMI, ("tsunami", "tidal wave", "giant wave", "seismic wave", "massive wave")),
    (HazardType.STORM_SURGE, ("storm surge", "surge", "cyclone surge", "hurricane surge", "coastal flooding")),
    (HazardType.HIGH_WAVES, ("high waves", "big waves", "huge waves", "rough seas", "choppy waters")),
    (HazardType.UNUSUAL_TIDES, ("unusual tide", "abnormal tide", "strange tide", "weird tide")),
    (HazardType.COASTAL_FLOODING, ("coastal flood", "beach flood", "shore flood", "waterlogging")),
    (HazardType.SWELL_SURGE, ("swell surge", "ground swell", "ocean swell")),
    (HazardType.COASTAL_CURRENT, ("strong current", "dangerous current", "rip current", "undertow")),
)

SEVERITY_KEYWORDS: Tuple[Tuple[Severity, Tuple[str, ...]], ...] = (
    (Severity.CRITICAL, ("emergency", "urgent", "critical", "dangerous", "life-threatening", "evacuation")),
    (Severity.HIGH, ("severe", "serious", "major", "significant", "warning")),
    (Severity.MODERATE, ("moderate", "noticeable", "concerning", "unusual")),
    (Severity.LOW, ("minor", "slight", "small", "normal")),
)

SENTIMENT_KEYWORDS: Tuple[Tuple[Sentiment, Tuple[str, ...]], ...] = (
    (Sentiment.URGENT, ("help", "emergency", "urgent", "now", "immediately", "rescue")),
    (Sentiment.CONCERNED, ("worried", "scared", "concerned", "anxious", "afraid")),
    (Sentiment.NEUTRAL, ("observed", "noticed", "seen", "happening")),
    (Sentiment.POSITIVE, ("safe", "calm", "beautiful", "peaceful", "clear")),
)

# Major Indian coastal cities and regions
LOCATION_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("mumbai", ("mumbai", "bombay", "marine drive", "juhu", "versova")),
    ("chennai", ("chennai", "madras", "marina beach", "besant nagar")),
    ("kolkata", ("kolkata", "calcutta", "howrah", "diamond harbour")),
    ("kochi", ("kochi", "cochin", "ernakulam", "fort kochi")),
    ("visakhapatnam", ("visakhapatnam", "vizag", "vishakhapatnam")),
    ("goa", ("goa", "panaji", "margao", "calangute", "baga")),
)

LOCATION_COORDINATES = {
    "mumbai": Coordinates(latitude=19.0760, longitude=72.8777),
    "chennai": Coordinates(latitude=13.0827, longitude=80.2707),
    "kolkata": Coordinates(latitude=22.5726, longitude=88.3639),
    "kochi": Coordinates(latitude=9.9312, longitude=76.2673),
    "visakhapatnam": Coordinates(latitude=17.6868, longitude=83.2185),
    "goa": Coordinates(latitude=15.2993, longitude=74.1240),
}

OCEAN_CONTEXT_WORDS = ("ocean", "sea", "beach", "coast", "shore", "wave", "water", "tide")
HASHTAG_TERMS = ("tsunami", "flood", "wave", "storm")
HASHTAG_PATTERN = re.compile(r"#\w+", re.ASCII)

HAZARD_WEIGHT = 0.3
SEVERITY_WEIGHT = 0.2
SENTIMENT_WEIGHT = 0.1
LOCATION_WEIGHT = 0.2
OCEAN_CONTEXT_WEIGHT = 0.2
HASHTAG_WEIGHT = 0.1
RELEVANCE_THRESHOLD = 0.3

ENGAGEMENT_WEIGHTS = {"likes": 1, "shares": 3, "comments": 2, "retweets": 2}


def _first_match(text: str, table) -> Tuple[Optional[object], Optional[str]]:
    """Return (category, keyword) for the first table entry found in text."""
    for category, keywords in table:
        for keyword in keywords:
            if keyword in text:
                return category, keyword
    return None, None


class HazardClassifier:
    """Scores post text for hazard relevance, severity, sentiment and location.

    Stateless and deterministic: the same text always yields the same
    assessment, and no external service is called.
    """

    def classify(self, content: str) -> PostAssessment:
        """Classify raw post text into a PostAssessment."""
        start_time = time.time()
        text = (content or "").lower()
        matched_keywords: List[str] = []
        confidence = 0.0

        hazard_type, keyword = _first_match(text, HAZARD_KEYWORDS)
        if hazard_type is not None:
            matched_keywords.append(keyword)
            confidence += HAZARD_WEIGHT

        severity, keyword = _first_match(text, SEVERITY_KEYWORDS)
        if severity is not None:
            matched_keywords.append(keyword)
            confidence += SEVERITY_WEIGHT

        sentiment, keyword = _first_match(text, SENTIMENT_KEYWORDS)
        if sentiment is not None:
            matched_keywords.append(keyword)
            confidence += SENTIMENT_WEIGHT

        location, keyword = _first_match(text, LOCATION_KEYWORDS)
        if location is not None:
            matched_keywords.append(keyword)
            confidence += LOCATION_WEIGHT

        has_ocean_context = any(word in text for word in OCEAN_CONTEXT_WORDS)
        if has_ocean_context:
            confidence += OCEAN_CONTEXT_WEIGHT

        hashtags = self.relevant_hashtags(content or "")
        if hashtags:
            confidence += HASHTAG_WEIGHT * len(hashtags)
            matched_keywords.extend(hashtags)

        confidence = round(min(max(confidence, 0.0), 1.0), 2)
        is_relevant = confidence >= RELEVANCE_THRESHOLD and (
            hazard_type is not None or has_ocean_context
        )

        assessment = PostAssessment(
            is_relevant=is_relevant,
            hazard_type=hazard_type,
            severity=severity or Severity.LOW,
            sentiment=sentiment or Sentiment.NEUTRAL,
            confidence=confidence,
            location=location,
            matched_keywords=matched_keywords,
        )

        classification_duration_seconds.observe(time.time() - start_time)
        posts_classified_total.labels(relevant=str(is_relevant).lower()).inc()
        return assessment

    def relevant_hashtags(self, content: str) -> List[str]:
        """Hashtags (as written) that mention a hazard term."""
        return [
            tag for tag in HASHTAG_PATTERN.findall(content)
            if any(term in tag.lower() for term in HASHTAG_TERMS)
        ]

    def extract_coordinates(self, text: str, location: Optional[str] = None) -> Optional[Coordinates]:
        """Look up coordinates for a recognized location name.

        Only the fixed location table is consulted; ``text`` is not geocoded.
        """
        if not location:
            return None
        return LOCATION_COORDINATES.get(location)

    def calculate_engagement_score(self, engagement: Union[Engagement, Mapping, None]) -> int:
        """Weighted engagement: likes + 3*shares + 2*comments + 2*retweets."""
        if engagement is None:
            return 0
        if isinstance(engagement, Engagement):
            engagement = engagement.model_dump()

        score = 0
        for field, weight in ENGAGEMENT_WEIGHTS.items():
            score += (engagement.get(field) or 0) * weight
        return score

    def requires_immediate_attention(self, assessment: PostAssessment) -> bool:
        return (
            assessment.severity == Severity.CRITICAL
            or assessment.sentiment == Sentiment.URGENT
            or (assessment.confidence >= 0.8 and assessment.hazard_type == HazardType.TSUNAMI)
        )
