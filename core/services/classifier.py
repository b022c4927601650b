"""Client for the hosted sentiment/topic/relevance models.

Analytics code never talks to the inference API directly.  It depends on
the small ``TopicLabeler`` capability (``label_category(texts)``) so tests
and the dashboard client can swap in a stub or an HTTP relay.  The
concrete ``InferenceClassifier`` posts to a Hugging Face style inference
endpoint using an API token looked up by label from ``InferenceToken``.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import requests
from django.conf import settings

from core.models import InferenceToken, SurveyFeedback

logger = logging.getLogger(__name__)

# Candidate labels used for the zero-shot relevance check.
RELEVANT_LABEL = 'tourism experience feedback'
IRRELEVANT_LABEL = 'unrelated or spam'

# Model outputs seen across the sentiment checkpoints we support.
SENTIMENT_ALIASES: Dict[str, str] = {
    'positive': SurveyFeedback.Sentiment.POSITIVE,
    'pos': SurveyFeedback.Sentiment.POSITIVE,
    'label_2': SurveyFeedback.Sentiment.POSITIVE,
    '5 stars': SurveyFeedback.Sentiment.POSITIVE,
    '4 stars': SurveyFeedback.Sentiment.POSITIVE,
    'neutral': SurveyFeedback.Sentiment.NEUTRAL,
    'neu': SurveyFeedback.Sentiment.NEUTRAL,
    'label_1': SurveyFeedback.Sentiment.NEUTRAL,
    '3 stars': SurveyFeedback.Sentiment.NEUTRAL,
    'negative': SurveyFeedback.Sentiment.NEGATIVE,
    'neg': SurveyFeedback.Sentiment.NEGATIVE,
    'label_0': SurveyFeedback.Sentiment.NEGATIVE,
    '2 stars': SurveyFeedback.Sentiment.NEGATIVE,
    '1 star': SurveyFeedback.Sentiment.NEGATIVE,
}

_LABEL_STRIP = re.compile(r'[^\w\s\-/&]+', re.UNICODE)


class ClassifierError(Exception):
    """Raised when the classifier cannot produce a result."""


class TopicLabeler:
    """Capability that turns a handful of texts into a short label."""

    def label_category(self, texts: Sequence[str]) -> Optional[str]:
        raise NotImplementedError


def normalise_sentiment(label: Any) -> Optional[str]:
    """Map a raw model label onto positive/neutral/negative."""

    if label is None:
        return None
    return SENTIMENT_ALIASES.get(str(label).strip().lower())


def shorten_label(text: Any, max_words: Optional[int] = None) -> Optional[str]:
    """Reduce generated text to a compact label, or ``None`` when empty."""

    if text is None:
        return None
    limit = max_words or getattr(settings, 'TOPIC_LABEL_MAX_WORDS', 4)
    cleaned = _LABEL_STRIP.sub(' ', str(text)).split()
    if not cleaned:
        return None
    return ' '.join(cleaned[:limit]).title()


def _score(item: Dict[str, Any]) -> float:
    raw = item.get('score')
    try:
        return float(raw or 0.0)
    except (TypeError, ValueError) as exc:
        raise ClassifierError(f'Model returned a non-numeric score {raw!r}.') from exc


def _best_scored(candidates: Any) -> Optional[Dict[str, Any]]:
    """Return the highest scoring ``{label, score}`` item of a model output."""

    if isinstance(candidates, list) and candidates and isinstance(candidates[0], list):
        candidates = candidates[0]
    if not isinstance(candidates, list):
        return None
    scored = [item for item in candidates if isinstance(item, dict) and 'label' in item]
    if not scored:
        return None
    return max(scored, key=_score)


class InferenceClassifier(TopicLabeler):
    """Sentiment, topic and relevance classification over HTTP."""

    def __init__(
        self,
        token: str,
        *,
        api_base: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_base = (api_base or settings.INFERENCE_API_BASE).rstrip('/')
        self.timeout = timeout or getattr(settings, 'INFERENCE_HTTP_TIMEOUT', 30)
        self.verify = getattr(settings, 'INFERENCE_VERIFY_TLS', True)
        self.session = session or requests.Session()
        self.session.headers.update({'Authorization': f'Bearer {token}', 'Accept': 'application/json'})

    @classmethod
    def for_label(cls, label: Optional[str], **kwargs: Any) -> 'InferenceClassifier':
        """Build a classifier using the stored token called ``label``."""

        if not label:
            raise ClassifierError('A tokenLabel is required.')
        token = (
            InferenceToken.objects.filter(label=label, is_active=True)
            .values_list('token', flat=True)
            .first()
        )
        if not token:
            raise ClassifierError(f'No active inference token labelled "{label}".')
        return cls(token, **kwargs)

    def _post(self, model: str, payload: Dict[str, Any]) -> Any:
        url = f"{self.api_base}/models/{model}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout, verify=self.verify)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ClassifierError(f'Inference request to {model} failed: {exc}') from exc
        try:
            data = response.json()
        except ValueError as exc:
            raise ClassifierError(f'Inference response from {model} is not JSON.') from exc
        if isinstance(data, dict) and data.get('error'):
            raise ClassifierError(f"Inference API error from {model}: {data['error']}")
        return data

    def topic_label(self, text: str) -> Optional[str]:
        """Summarise ``text`` into a short topic label."""

        if not text or not text.strip():
            return None
        data = self._post(
            settings.TOPIC_MODEL,
            {'inputs': text, 'parameters': {'max_length': 24, 'min_length': 2}, 'options': {'wait_for_model': True}},
        )
        if isinstance(data, list) and data:
            first = data[0]
            if isinstance(first, dict):
                for key in ('summary_text', 'generated_text', 'label'):
                    label = shorten_label(first.get(key))
                    if label:
                        return label
        return None

    def label_category(self, texts: Sequence[str]) -> Optional[str]:
        cleaned = [text for text in texts if text and text.strip()]
        if not cleaned:
            return None
        return self.topic_label('\n'.join(cleaned))

    def sentiment(self, text: str) -> Optional[str]:
        """Return positive/neutral/negative for ``text``."""

        if not text or not text.strip():
            return None
        data = self._post(settings.SENTIMENT_MODEL, {'inputs': text, 'options': {'wait_for_model': True}})
        best = _best_scored(data)
        return normalise_sentiment(best['label']) if best else None

    def sentiment_scores(self, text: str) -> List[Dict[str, Any]]:
        """Raw ``[{label, score}]`` output with labels normalised."""

        data = self._post(settings.SENTIMENT_MODEL, {'inputs': text, 'options': {'wait_for_model': True}})
        if isinstance(data, list) and data and isinstance(data[0], list):
            data = data[0]
        scores: List[Dict[str, Any]] = []
        for item in data if isinstance(data, list) else []:
            if not isinstance(item, dict):
                continue
            label = normalise_sentiment(item.get('label'))
            if label:
                scores.append({'label': label, 'score': _score(item)})
        return sorted(scores, key=lambda item: item['score'], reverse=True)

    def is_relevant(self, text: str) -> Optional[bool]:
        """Zero-shot check that ``text`` is feedback about a tourism visit."""

        if not text or not text.strip():
            return False
        data = self._post(
            settings.RELEVANCE_MODEL,
            {
                'inputs': text,
                'parameters': {'candidate_labels': [RELEVANT_LABEL, IRRELEVANT_LABEL]},
                'options': {'wait_for_model': True},
            },
        )
        if not isinstance(data, dict):
            return None
        labels = data.get('labels') or []
        if not labels:
            return None
        return labels[0] == RELEVANT_LABEL


__all__ = [
    'ClassifierError',
    'InferenceClassifier',
    'TopicLabeler',
    'normalise_sentiment',
    'shorten_label',
]
