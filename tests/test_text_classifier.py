"""Tests for the keyword hazard classifier."""
import pytest

from hazardwatch.classifier.text_classifier import HazardClassifier
from hazardwatch.common.models import Engagement, HazardType, PostAssessment, Sentiment, Severity


@pytest.fixture
def classifier():
    return HazardClassifier()


@pytest.mark.parametrize("text", [
    "Tsunami emergency in Mumbai",
    "EMERGENCY: a TSUNAMI is approaching MUMBAI",
    "mumbai residents report tsunami, emergency services deployed",
])
def test_tsunami_emergency_in_mumbai(classifier, text):
    result = classifier.classify(text)

    assert result.hazard_type == HazardType.TSUNAMI
    assert result.severity == Severity.CRITICAL
    assert result.location == "mumbai"
    assert result.is_relevant is True
    assert result.confidence >= 0.7


def test_text_without_keywords_is_not_relevant(classifier):
    result = classifier.classify("Just had the best coffee of my life")

    assert result.is_relevant is False
    assert result.confidence == 0
    assert result.severity == Severity.LOW
    assert result.sentiment == Sentiment.NEUTRAL
    assert result.hazard_type is None
    assert result.location is None
    assert result.matched_keywords == []


def test_empty_text(classifier):
    result = classifier.classify("")

    assert result.is_relevant is False
    assert result.confidence == 0


def test_confidence_is_clamped(classifier):
    text = (
        "Tsunami emergency, help! Huge waves hit Mumbai beach "
        "#tsunami #flood #wave #storm #TsunamiWarning #floodalert"
    )
    result = classifier.classify(text)

    assert result.confidence == 1.0


def test_first_hazard_in_table_order_wins(classifier):
    # "surge" belongs to storm surge, which is scanned before swell surge
    result = classifier.classify("swell surge expected tonight")
    assert result.hazard_type == HazardType.STORM_SURGE

    result = classifier.classify("high waves after a tsunami")
    assert result.hazard_type == HazardType.TSUNAMI
    assert result.matched_keywords[0] == "tsunami"


def test_severity_priority(classifier):
    result = classifier.classify("minor flooding but the situation is urgent")
    assert result.severity == Severity.CRITICAL


def test_matched_keywords_in_discovery_order(classifier):
    result = classifier.classify("Rip current warning at Juhu, people are worried")

    assert result.hazard_type == HazardType.COASTAL_CURRENT
    assert result.severity == Severity.HIGH
    assert result.sentiment == Sentiment.CONCERNED
    assert result.location == "mumbai"
    assert result.matched_keywords == ["rip current", "warning", "worried", "juhu"]
    assert result.confidence == 0.8


def test_ocean_context_alone_can_be_relevant(classifier):
    result = classifier.classify("The sea looks calm")

    assert result.hazard_type is None
    assert result.sentiment == Sentiment.POSITIVE
    assert result.confidence == 0.3
    assert result.is_relevant is True


def test_high_confidence_without_hazard_or_ocean_is_not_relevant(classifier):
    result = classifier.classify("Major traffic jam in Mumbai")

    assert result.confidence == 0.4
    assert result.is_relevant is False


def test_relevant_hashtags_keep_their_text(classifier):
    result = classifier.classify("Stay away from the shore #TsunamiAlert #sunset #FloodWatch")

    assert "#TsunamiAlert" in result.matched_keywords
    assert "#FloodWatch" in result.matched_keywords
    assert "#sunset" not in result.matched_keywords
    # tsunami inside the hashtag also counts as a hazard match
    assert result.confidence == 0.7


def test_classify_is_deterministic(classifier):
    text = "Storm surge warning for Chennai, evacuation now #storm"
    assert classifier.classify(text) == classifier.classify(text)
    assert HazardClassifier().classify(text) == classifier.classify(text)


def test_extract_coordinates(classifier):
    coords = classifier.extract_coordinates("flooding near marina beach", "chennai")
    assert coords.latitude == pytest.approx(13.0827)
    assert coords.longitude == pytest.approx(80.2707)

    assert classifier.extract_coordinates("somewhere", None) is None
    assert classifier.extract_coordinates("somewhere", "atlantis") is None


def test_engagement_score(classifier):
    assert classifier.calculate_engagement_score({"likes": 10, "shares": 2, "comments": 3}) == 22
    assert classifier.calculate_engagement_score(Engagement(likes=1, shares=1, comments=1, retweets=4)) == 14
    assert classifier.calculate_engagement_score({}) == 0
    assert classifier.calculate_engagement_score(None) == 0


def test_requires_immediate_attention_for_critical_severity(classifier):
    assessment = PostAssessment(
        severity=Severity.CRITICAL,
        sentiment=Sentiment.NEUTRAL,
        confidence=0.1,
        hazard_type=None,
    )
    assert classifier.requires_immediate_attention(assessment) is True


def test_requires_immediate_attention_rules(classifier):
    assert classifier.requires_immediate_attention(PostAssessment(sentiment=Sentiment.URGENT)) is True
    assert classifier.requires_immediate_attention(
        PostAssessment(hazard_type=HazardType.TSUNAMI, confidence=0.8)
    ) is True
    assert classifier.requires_immediate_attention(
        PostAssessment(hazard_type=HazardType.TSUNAMI, confidence=0.7)
    ) is False
    assert classifier.requires_immediate_attention(
        PostAssessment(hazard_type=HazardType.HIGH_WAVES, confidence=0.9, severity=Severity.HIGH)
    ) is False
