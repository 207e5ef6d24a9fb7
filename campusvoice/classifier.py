# Grievance triage: keyword rules, an optional OpenAI classifier, and the fallback between them

import asyncio
import json
import logging
from typing import Optional, Protocol

from openai import AsyncOpenAI

from .models import Analysis, Category, Sentiment, Urgency

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 120

# ---------------------------------------------------------------------------
# Keyword rules (order is significant: first matching group wins)
# ---------------------------------------------------------------------------
CATEGORY_RULES = [
    (Category.HOSTEL, ("hostel", "room", "warden", "dorm")),
    (Category.MESS, ("mess", "food", "rice", "canteen", "meal")),
    (Category.ACADEMICS, ("exam", "attendance", "class", "teacher", "grades", "academic")),
    (Category.INFRASTRUCTURE, ("wifi", "internet", "electricity", "water", "lift",
                               "projector", "fan", "power", "library")),
    (Category.SAFETY, ("unsafe", "harassment", "theft", "security", "fight", "threat")),
    (Category.HEALTH, ("health", "doctor", "medicine", "hospital", "fever", "injury",
                       "medical", "sick")),
]

URGENCY_RULES = [
    (Urgency.HIGH, ("urgent", "immediately", "emergency", "danger", "serious", "accident",
                    "critical")),
    (Urgency.MEDIUM, ("soon", "not working", "issue", "problem", "delay", "important")),
]

ANGRY_KEYWORDS = ("frustrated", "angry", "worst", "very bad", "annoyed", "furious")
DISTRESSED_KEYWORDS = ("scared", "unsafe", "panic", "distressed", "cry", "worried", "anxious")


def _contains_any(text: str, keywords) -> bool:
    return any(k in text for k in keywords)


def summarize(text: str, max_chars: int = SUMMARY_MAX_CHARS) -> str:
    text = (text or "").strip()
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def classify(text: str) -> Analysis:
    """Label a complaint with category, urgency, sentiment and a short summary.

    Pure and total: any string (including an empty one) yields an Analysis.
    Keyword matching is plain substring membership on the lower-cased text.
    """
    text = text or ""
    lowered = text.lower()

    category = next((c for c, words in CATEGORY_RULES if _contains_any(lowered, words)),
                    Category.OTHER)
    urgency = next((u for u, words in URGENCY_RULES if _contains_any(lowered, words)),
                   Urgency.LOW)

    # Distressed is checked after Angry and replaces it when both match
    sentiment = Sentiment.NEUTRAL
    if _contains_any(lowered, ANGRY_KEYWORDS):
        sentiment = Sentiment.ANGRY
    if _contains_any(lowered, DISTRESSED_KEYWORDS):
        sentiment = Sentiment.DISTRESSED

    return Analysis(category=category, urgency=urgency, sentiment=sentiment,
                    summary=summarize(text))


# ---------------------------------------------------------------------------
# Classifier port
# ---------------------------------------------------------------------------
class Classifier(Protocol):
    async def classify(self, text: str) -> Analysis: ...


class RuleBasedClassifier:
    async def classify(self, text: str) -> Analysis:
        return classify(text)


class ClassificationError(Exception):
    """The remote classifier gave no usable answer."""


ANALYSIS_PROMPT = (
    "You are an AI assistant for a university grievance redressal system.\n"
    "Given a student complaint:\n"
    "1. Categorize the issue into Hostel, Academics, Mess, Infrastructure, Safety, Health, or Other.\n"
    "2. Determine urgency: Low, Medium, or High.\n"
    "3. Detect sentiment: Neutral, Angry, or Distressed.\n"
    "4. Summarize the issue in 2-3 concise lines for administrators.\n"
    "Return ONLY a JSON object with exactly these keys: "
    '"category", "urgency", "sentiment", "summary".'
)


def parse_remote_analysis(raw: Optional[str]) -> Analysis:
    """Validate a model reply; raise ClassificationError unless every field is usable."""
    if not raw:
        raise ClassificationError("empty response")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ClassificationError(f"response is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise ClassificationError("response is not a JSON object")
    missing = [k for k in ("category", "urgency", "sentiment", "summary") if not data.get(k)]
    if missing:
        raise ClassificationError(f"response missing fields: {', '.join(missing)}")
    try:
        return Analysis(category=Category(data["category"]), urgency=Urgency(data["urgency"]),
                        sentiment=Sentiment(data["sentiment"]),
                        summary=summarize(str(data["summary"])))
    except ValueError as e:
        raise ClassificationError(f"response has an unknown label: {e}") from e


class OpenAIClassifier:
    """Hosted-model classifier. One attempt per call, no retries."""

    def __init__(self, client, model: str):
        self.client = client
        self.model = model

    async def classify(self, text: str) -> Analysis:
        messages = [
            {"role": "system", "content": ANALYSIS_PROMPT},
            {"role": "user", "content": f'Student Complaint: "{text[:4000]}"'},
        ]
        resp = await self.client.chat.completions.create(
            model=self.model, messages=messages, response_format={"type": "json_object"})
        content = resp.choices[0].message.content
        return parse_remote_analysis(content.strip() if content else None)


class FallbackClassifier:
    """Try ``primary`` within ``timeout`` seconds; on any failure use ``fallback``."""

    def __init__(self, primary: Classifier, fallback: Classifier, timeout: float):
        self.primary = primary
        self.fallback = fallback
        self.timeout = timeout

    async def classify(self, text: str) -> Analysis:
        try:
            return await asyncio.wait_for(self.primary.classify(text), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Remote classifier timed out after %.1fs, using rule-based analysis",
                           self.timeout)
        except ClassificationError as e:
            logger.warning("Remote classifier gave an unusable response (%s), using rule-based analysis", e)
        except Exception as e:
            logger.error("Remote classifier error: %s", e)
        return await self.fallback.classify(text)


def build_classifier(api_key: Optional[str], model: str, timeout: float) -> Classifier:
    if not api_key:
        logger.info("OPENAI_API_KEY not set, using rule-based classifier only")
        return RuleBasedClassifier()
    logger.info("Using OpenAI classifier (%s) with rule-based fallback", model)
    return FallbackClassifier(OpenAIClassifier(AsyncOpenAI(api_key=api_key), model),
                              RuleBasedClassifier(), timeout)
