"""
Keyword sentiment scoring for normalized feedback text.

A word counts as positive/negative when it contains one of
the keywords below. Text is expected in the normalized (English) language.
"""
from dataclasses import dataclass

from ..database.models import Sentiment

POSITIVE_KEYWORDS = (
    'love', 'great', 'excellent', 'amazing', 'awesome', 'fantastic', 'wonderful',
    'good', 'best', 'perfect', 'happy', 'satisfied', 'pleased', 'impressed',
    'helpful', 'easy', 'fast', 'quality', 'recommend', 'useful', 'nice',
    'enjoyed', 'brilliant', 'outstanding', 'superb', 'exceptional',
)

NEGATIVE_KEYWORDS = (
    'hate', 'bad', 'terrible', 'awful', 'horrible', 'poor', 'worst',
    'disappointing', 'frustrated', 'angry', 'annoyed', 'difficult', 'slow',
    'complicated', 'broken', 'useless', 'waste', 'problem', 'issue',
    'confusing', 'unclear', 'unhappy', 'dissatisfied', 'failed',
)


@dataclass(frozen=True)
class SentimentAnalysis:
    sentiment: str
    score: float       # -1 to 1
    confidence: float  # 0 to 1


def analyze_sentiment(text: str) -> SentimentAnalysis:
    """Score text as positive, neutral or negative."""
    if not text or not text.strip():
        return SentimentAnalysis(Sentiment.NEUTRAL, 0.0, 0.0)

    words = text.lower().split()
    positive = sum(1 for word in words if any(kw in word for kw in POSITIVE_KEYWORDS))
    negative = sum(1 for word in words if any(kw in word for kw in NEGATIVE_KEYWORDS))

    total = positive + negative
    score = 0.0 if total == 0 else (positive - negative) / max(total, len(words) / 10)

    sentiment = Sentiment.NEUTRAL
    if score > 0.1:
        sentiment = Sentiment.POSITIVE
    elif score < -0.1:
        sentiment = Sentiment.NEGATIVE

    confidence = 0.3 if total == 0 else min(total / 5, 1.0)
    return SentimentAnalysis(sentiment, score, confidence)
