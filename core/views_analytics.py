"""Analytics endpoints for the admin dashboard.

Every endpoint accepts optional ``year`` and ``quarter`` filters and
delegates the aggregation to ``core.services.analytics``.  Invalid
filters answer HTTP 400.  The two "automate" endpoints run a labelling
batch through the external classifier.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from core.auth import admin_required
from core.services.analytics import (
    AnalyticsFilterError,
    PeriodFilter,
    entity_metrics as compute_entity_metrics,
    rating_tally,
    sentiment_breakdown,
    sentiment_breakdown_for_location,
    sentiment_table_payload,
    survey_metrics as compute_survey_metrics,
    topic_breakdown,
)
from core.services.classifier import ClassifierError, InferenceClassifier
from core.services.labelling import DEFAULT_BATCH_LIMIT, annotate_relevance, annotate_sentiment

from .views import PayloadError, _error, _load_json_body, log_activity

logger = logging.getLogger(__name__)


def _period(params: Mapping[str, Any]) -> PeriodFilter:
    return PeriodFilter.from_params(params)


@require_GET
@admin_required
def sentiment_table(request: HttpRequest) -> JsonResponse:
    try:
        period = _period(request.GET)
    except AnalyticsFilterError as exc:
        return _error(str(exc))
    return JsonResponse(sentiment_table_payload(sentiment_breakdown(period)))


@require_POST
@admin_required
def sentiment_table_for_location(request: HttpRequest) -> JsonResponse:
    """Sentiment table restricted to one city/municipality.

    The body carries ``city_mun`` plus the usual ``year``/``quarter``.
    """

    try:
        payload = _load_json_body(request)
        period = _period(payload)
    except (PayloadError, AnalyticsFilterError) as exc:
        return _error(str(exc))
    city_mun = str(payload.get('city_mun') or payload.get('location') or '').strip()
    if not city_mun:
        return _error('city_mun is required.')
    data = sentiment_table_payload(sentiment_breakdown_for_location(period, city_mun))
    data['city_mun'] = city_mun
    return JsonResponse(data)


@require_GET
@admin_required
def entity_metrics(request: HttpRequest) -> JsonResponse:
    try:
        period = _period(request.GET)
    except AnalyticsFilterError as exc:
        return _error(str(exc))
    return JsonResponse(compute_entity_metrics(period), safe=False)


@require_GET
@admin_required
def survey_metrics(request: HttpRequest) -> JsonResponse:
    try:
        period = _period(request.GET)
    except AnalyticsFilterError as exc:
        return _error(str(exc))
    return JsonResponse(compute_survey_metrics(period))


@require_GET
@admin_required
def tally(request: HttpRequest) -> JsonResponse:
    try:
        period = _period(request.GET)
    except AnalyticsFilterError as exc:
        return _error(str(exc))
    return JsonResponse(rating_tally(period))


@require_GET
@admin_required
def survey_topics(request: HttpRequest) -> JsonResponse:
    try:
        period = _period(request.GET)
    except AnalyticsFilterError as exc:
        return _error(str(exc))
    breakdown = topic_breakdown(period)
    topics = [
        {'topic': topic, 'count': count, 'samples': breakdown.samples.get(topic, [])}
        for topic, count in breakdown.counts.items()
    ]
    return JsonResponse({'period': period.as_dict(), 'total': breakdown.total, 'topics': topics})


def _batch_limit(request: HttpRequest) -> int:
    try:
        limit = int(request.GET.get('limit', DEFAULT_BATCH_LIMIT))
    except ValueError:
        return DEFAULT_BATCH_LIMIT
    return max(1, min(limit, DEFAULT_BATCH_LIMIT * 5))


def _run_labelling(request: HttpRequest, runner, action: str) -> JsonResponse:
    label = request.GET.get('tokenLabel') or settings.INFERENCE_TOKEN_LABEL
    try:
        classifier = InferenceClassifier.for_label(label)
    except ClassifierError as exc:
        return _error(str(exc))
    after = request.GET.get('after')
    if after in (None, ''):
        after = None
    else:
        try:
            after = int(after)
        except ValueError:
            return _error('after must be a feedback id.')
    result = runner(classifier, limit=_batch_limit(request), after=after)
    log_activity(request.user, action, f'updated={result.updated}; failed={result.failed}')
    return JsonResponse(result.as_dict())


@require_GET
@admin_required
def automate_sentiment(request: HttpRequest) -> JsonResponse:
    return _run_labelling(request, annotate_sentiment, 'Automated sentiment labelling')


@require_GET
@admin_required
def automate_classification(request: HttpRequest) -> JsonResponse:
    return _run_labelling(request, annotate_relevance, 'Automated relevance classification')
