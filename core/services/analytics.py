"""Aggregation helpers for the survey analytics endpoints.

Every analytics view follows the same pattern: parse an optional
``year``/``quarter`` filter from the query string, narrow the
``SurveyFeedback`` queryset with it and group the remaining rows by one
categorical dimension.  Absent filters mean "all time" and "all
quarters"; present filters are combined with AND.  A quarter without a
year selects that quarter in every year.

The functions here return plain dictionaries and dataclasses so the
views only have to serialise them.  Counts that travel over the wire as
strings (the sentiment table and the entity rating breakdown) are
converted by the ``as_payload`` helpers, not here.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from django.db.models import Avg, Count, Q, QuerySet
from django.db.models.functions import TruncMonth

from core.models import (
    LIKERT_SCALE,
    Establishment,
    SurveyFeedback,
    TourismAttraction,
)

SENTIMENT_CATEGORIES: Sequence[str] = tuple(choice for choice, _ in SurveyFeedback.Sentiment.choices)

# Number of representative texts returned per category.
SAMPLE_SIZE = 3

QUARTER_RANGE = range(1, 5)


class AnalyticsFilterError(ValueError):
    """Raised when a year/quarter filter cannot be parsed."""


def _parse_optional_int(raw: Any, name: str) -> Optional[int]:
    if raw is None:
        return None
    text = str(raw).strip()
    if not text or text.lower() in ('null', 'none', 'all'):
        return None
    try:
        return int(text)
    except (TypeError, ValueError):
        raise AnalyticsFilterError(f'{name} must be an integer.')


@dataclass(frozen=True)
class PeriodFilter:
    """Optional year and calendar quarter bounding an aggregation."""

    year: Optional[int] = None
    quarter: Optional[int] = None

    def __post_init__(self) -> None:
        if self.quarter is not None and self.quarter not in QUARTER_RANGE:
            raise AnalyticsFilterError('quarter must be between 1 and 4.')
        if self.year is not None and not 1900 <= self.year <= 9999:
            raise AnalyticsFilterError('year is out of range.')

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> 'PeriodFilter':
        """Build a filter from query parameters or a JSON body."""

        return cls(
            year=_parse_optional_int(params.get('year'), 'year'),
            quarter=_parse_optional_int(params.get('quarter'), 'quarter'),
        )

    def apply(self, qs: QuerySet, field_name: str = 'created_at') -> QuerySet:
        if self.year is not None:
            qs = qs.filter(**{f'{field_name}__year': self.year})
        if self.quarter is not None:
            qs = qs.filter(**{f'{field_name}__quarter': self.quarter})
        return qs

    def as_dict(self) -> Dict[str, Optional[int]]:
        return {'year': self.year, 'quarter': self.quarter}


def filtered_feedback(period: PeriodFilter, qs: Optional[QuerySet] = None) -> QuerySet:
    """Return feedback rows inside ``period``."""

    if qs is None:
        qs = SurveyFeedback.objects.all()
    return period.apply(qs)


def _samples_for(qs: QuerySet, limit: int = SAMPLE_SIZE) -> List[str]:
    """Most recent non-empty comments of ``qs``."""

    texts = (
        qs.exclude(response='')
        .order_by('-created_at', '-pk')
        .values_list('response', flat=True)[:limit]
    )
    return [text.strip() for text in texts if text and text.strip()]


@dataclass
class CategoryBreakdown:
    """Counts per category with representative texts for each one."""

    counts: 'OrderedDict[str, int]' = field(default_factory=OrderedDict)
    samples: Dict[str, List[str]] = field(default_factory=dict)
    # Rows matching the filter that carry none of the counted labels.
    unlabelled: int = 0

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def sentiment_breakdown(
    period: PeriodFilter,
    qs: Optional[QuerySet] = None,
    sample_size: int = SAMPLE_SIZE,
) -> CategoryBreakdown:
    """Count analysed feedback rows per sentiment label.

    Sentiment is a fixed enum so all three labels are always present, with
    zero when no row carries them.  Rows without a sentiment label yet are
    not part of the counts; they are reported as ``unlabelled`` so that
    ``total + unlabelled`` covers every row the filter matches.
    """

    matching = filtered_feedback(period, qs)
    rows = matching.filter(sentiment__in=SENTIMENT_CATEGORIES)
    grouped = {
        row['sentiment']: row['count']
        for row in rows.values('sentiment').annotate(count=Count('id')).order_by()
    }
    breakdown = CategoryBreakdown(unlabelled=matching.exclude(sentiment__in=SENTIMENT_CATEGORIES).count())
    for category in SENTIMENT_CATEGORIES:
        breakdown.counts[category] = int(grouped.get(category, 0))
        breakdown.samples[category] = (
            _samples_for(rows.filter(sentiment=category), sample_size)
            if breakdown.counts[category]
            else []
        )
    return breakdown


def sentiment_table_payload(breakdown: CategoryBreakdown) -> Dict[str, Any]:
    """Serialise a sentiment breakdown in the dashboard wire format."""

    payload: Dict[str, Any] = {
        'counts': {category: str(count) for category, count in breakdown.counts.items()},
        'total': str(breakdown.total),
        'unlabelled': str(breakdown.unlabelled),
    }
    for category in SENTIMENT_CATEGORIES:
        payload[category] = list(breakdown.samples.get(category, []))
    return payload


def entities_in_location(city_mun: str) -> List[str]:
    """Names of establishments and attractions located in ``city_mun``."""

    needle = city_mun.strip()
    names = list(
        Establishment.objects.filter(city_mun__iexact=needle).values_list('english_name', flat=True)
    )
    names.extend(
        TourismAttraction.objects.filter(city_mun__iexact=needle).values_list('name', flat=True)
    )
    return names


def sentiment_breakdown_for_location(period: PeriodFilter, city_mun: str) -> CategoryBreakdown:
    entity_names = entities_in_location(city_mun)
    qs = SurveyFeedback.objects.filter(entity__in=entity_names)
    return sentiment_breakdown(period, qs)


def topic_breakdown(period: PeriodFilter, sample_size: int = SAMPLE_SIZE) -> CategoryBreakdown:
    """Count feedback per stored topic label.

    Topics are open-ended, so only labels that occur are listed, ordered
    by descending count.
    """

    rows = filtered_feedback(period).exclude(topic__isnull=True).exclude(topic='')
    breakdown = CategoryBreakdown()
    for row in rows.values('topic').annotate(count=Count('id')).order_by('-count', 'topic'):
        topic = row['topic']
        breakdown.counts[topic] = int(row['count'])
        breakdown.samples[topic] = _samples_for(rows.filter(topic=topic), sample_size)
    return breakdown


def _zero_filled_ratings(row: Mapping[str, Any]) -> Dict[str, int]:
    return {str(value): int(row.get(f'rating_{value}', 0) or 0) for value in LIKERT_SCALE}


def _rating_annotations() -> Dict[str, Count]:
    return {
        f'rating_{value}': Count('id', filter=Q(rating=value))
        for value in LIKERT_SCALE
    }


def _entity_details(names: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Look up reference data for the rated entities by display name."""

    names = list(set(names))
    details: Dict[str, Dict[str, Any]] = {}
    for establishment in Establishment.objects.filter(english_name__in=names):
        details[establishment.english_name] = {
            'type': 'establishment',
            'establishment_type': establishment.establishment_type or None,
            'location_type': None,
            'barangay': establishment.barangay or None,
            'city_mun': establishment.city_mun or None,
            'ta_category': None,
            'ntdp_category': None,
        }
    for attraction in TourismAttraction.objects.filter(name__in=names):
        details.setdefault(attraction.name, {
            'type': 'attraction',
            'establishment_type': None,
            'location_type': attraction.location_type or None,
            'barangay': attraction.barangay or None,
            'city_mun': attraction.city_mun or None,
            'ta_category': attraction.ta_category or None,
            'ntdp_category': attraction.ntdp_category or None,
        })
    return details


def entity_metrics(period: PeriodFilter) -> List[Dict[str, Any]]:
    """Per-entity totals, rating distribution and language mix.

    Returns one item per ``(entity, touchpoint)`` pair, ordered by the
    number of responses.  Rating counts cover the whole Likert scale and
    are serialised as strings; language counts are integers.
    """

    qs = filtered_feedback(period)
    grouped = list(
        qs.values('entity', 'touchpoint')
        .annotate(total=Count('id'), **_rating_annotations())
        .order_by('-total', 'entity', 'touchpoint')
    )
    languages: Dict[tuple, Dict[str, int]] = {}
    for row in (
        qs.values('entity', 'touchpoint', 'language')
        .annotate(count=Count('id'))
        .order_by('entity', 'touchpoint', '-count', 'language')
    ):
        key = (row['entity'], row['touchpoint'])
        languages.setdefault(key, {})[row['language'] or 'unknown'] = int(row['count'])

    details = _entity_details(row['entity'] for row in grouped)
    items: List[Dict[str, Any]] = []
    for row in grouped:
        key = (row['entity'], row['touchpoint'])
        items.append({
            'entity': row['entity'],
            'touchpoint': row['touchpoint'],
            'total_responses': str(row['total']),
            'rating': {
                value: str(count) for value, count in _zero_filled_ratings(row).items()
            },
            'language': languages.get(key, {}),
            'details': details.get(row['entity'], {'type': row['touchpoint']}),
        })
    return items


def rating_tally(period: PeriodFilter) -> Dict[str, Any]:
    """Likert tally per touchpoint plus an overall row."""

    qs = filtered_feedback(period)
    touchpoints: List[Dict[str, Any]] = []
    for row in (
        qs.values('touchpoint')
        .annotate(total=Count('id'), average=Avg('rating'), **_rating_annotations())
        .order_by('touchpoint')
    ):
        touchpoints.append({
            'touchpoint': row['touchpoint'],
            'total': int(row['total']),
            'average_rating': round(float(row['average']), 2) if row['average'] is not None else None,
            'rating': _zero_filled_ratings(row),
        })
    overall = qs.aggregate(total=Count('id'), average=Avg('rating'), **_rating_annotations())
    return {
        'period': period.as_dict(),
        'overall': {
            'total': int(overall['total']),
            'average_rating': (
                round(float(overall['average']), 2) if overall['average'] is not None else None
            ),
            'rating': _zero_filled_ratings(overall),
        },
        'touchpoints': touchpoints,
    }


def survey_metrics(period: PeriodFilter) -> Dict[str, Any]:
    """Headline numbers for the admin dashboard."""

    qs = filtered_feedback(period)
    totals = qs.aggregate(
        total=Count('id'),
        average=Avg('rating'),
        analysed=Count('id', filter=Q(sentiment__isnull=False)),
        respondents=Count('respondent', distinct=True),
    )
    by_month: List[Dict[str, Any]] = []
    for row in (
        qs.annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(count=Count('id'))
        .order_by('month')
    ):
        month = row['month']
        by_month.append({
            'month': month.strftime('%Y-%m') if hasattr(month, 'strftime') else str(month),
            'count': int(row['count']),
        })
    by_touchpoint = OrderedDict(
        (row['touchpoint'], int(row['count']))
        for row in qs.values('touchpoint').annotate(count=Count('id')).order_by('-count', 'touchpoint')
    )
    by_language = OrderedDict(
        (row['language'] or 'unknown', int(row['count']))
        for row in qs.values('language').annotate(count=Count('id')).order_by('-count', 'language')
    )
    sentiment = sentiment_breakdown(period, sample_size=0)
    return {
        'period': period.as_dict(),
        'total_responses': int(totals['total']),
        'unique_respondents': int(totals['respondents']),
        'analysed_responses': int(totals['analysed']),
        'average_rating': round(float(totals['average']), 2) if totals['average'] is not None else None,
        'by_month': by_month,
        'by_touchpoint': by_touchpoint,
        'by_language': by_language,
        'by_sentiment': dict(sentiment.counts),
    }


__all__ = [
    'AnalyticsFilterError',
    'CategoryBreakdown',
    'PeriodFilter',
    'SAMPLE_SIZE',
    'SENTIMENT_CATEGORIES',
    'entities_in_location',
    'entity_metrics',
    'filtered_feedback',
    'rating_tally',
    'sentiment_breakdown',
    'sentiment_breakdown_for_location',
    'sentiment_table_payload',
    'survey_metrics',
    'topic_breakdown',
]
