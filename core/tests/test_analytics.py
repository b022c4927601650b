from datetime import datetime, timezone as dt_timezone

from django.test import TestCase

from core.models import Establishment, SurveyFeedback, TourismAttraction
from core.services.analytics import (
    AnalyticsFilterError,
    PeriodFilter,
    entity_metrics,
    rating_tally,
    sentiment_breakdown,
    sentiment_breakdown_for_location,
    sentiment_table_payload,
    survey_metrics,
    topic_breakdown,
)


def at(year: int, month: int, day: int = 15) -> datetime:
    return datetime(year, month, day, 4, 0, tzinfo=dt_timezone.utc)


def feedback(**kwargs) -> SurveyFeedback:
    defaults = {
        'entity': 'Hotel Luna',
        'touchpoint': 'establishment',
        'rating': 4,
        'language': 'en',
        'response': '',
        'created_at': at(2024, 5),
    }
    defaults.update(kwargs)
    return SurveyFeedback.objects.create(**defaults)


class PeriodFilterTest(TestCase):
    def test_blank_and_null_values_mean_no_filter(self) -> None:
        period = PeriodFilter.from_params({'year': '', 'quarter': 'null'})
        self.assertEqual(period.as_dict(), {'year': None, 'quarter': None})

    def test_numeric_strings_are_parsed(self) -> None:
        self.assertEqual(PeriodFilter.from_params({'year': '2024', 'quarter': '2'}), PeriodFilter(2024, 2))

    def test_invalid_values_raise(self) -> None:
        with self.assertRaises(AnalyticsFilterError):
            PeriodFilter.from_params({'year': 'abc'})
        with self.assertRaises(AnalyticsFilterError):
            PeriodFilter.from_params({'quarter': '5'})
        with self.assertRaises(AnalyticsFilterError):
            PeriodFilter(year=20240)


class SentimentBreakdownTest(TestCase):
    def setUp(self) -> None:
        feedback(sentiment='positive', response='great stay', created_at=at(2024, 4, 2))
        feedback(sentiment='positive', response='loved it', created_at=at(2024, 5, 3))
        feedback(sentiment='negative', response='dirty room', created_at=at(2024, 6, 4))
        feedback(sentiment='positive', response='nice staff', created_at=at(2024, 8, 1))
        feedback(sentiment='negative', response='too loud', created_at=at(2023, 5, 1))
        feedback(sentiment=None, response='not analysed yet', created_at=at(2024, 5, 9))

    def test_counts_sum_to_matching_rows(self) -> None:
        period = PeriodFilter(2024, 2)
        breakdown = sentiment_breakdown(period)
        expected = SurveyFeedback.objects.filter(
            created_at__year=2024, created_at__quarter=2, sentiment__isnull=False,
        ).count()
        self.assertEqual(breakdown.total, expected)
        self.assertEqual(dict(breakdown.counts), {'positive': 2, 'neutral': 0, 'negative': 1})

    def test_labelled_and_unlabelled_cover_every_matching_row(self) -> None:
        for period in (PeriodFilter(2024, 2), PeriodFilter(2024), PeriodFilter(quarter=2), PeriodFilter()):
            breakdown = sentiment_breakdown(period)
            self.assertEqual(
                breakdown.total + breakdown.unlabelled,
                period.apply(SurveyFeedback.objects.all()).count(),
                period,
            )
        self.assertEqual(sentiment_breakdown(PeriodFilter(2024, 2)).unlabelled, 1)

    def test_missing_categories_are_zero_filled_without_samples(self) -> None:
        breakdown = sentiment_breakdown(PeriodFilter(2024, 3))
        self.assertEqual(dict(breakdown.counts), {'positive': 1, 'neutral': 0, 'negative': 0})
        self.assertEqual(breakdown.samples['neutral'], [])
        self.assertEqual(breakdown.samples['negative'], [])

    def test_quarter_without_year_spans_all_years(self) -> None:
        breakdown = sentiment_breakdown(PeriodFilter(quarter=2))
        self.assertEqual(dict(breakdown.counts), {'positive': 2, 'neutral': 0, 'negative': 2})

    def test_no_filter_covers_everything_analysed(self) -> None:
        self.assertEqual(sentiment_breakdown(PeriodFilter()).total, 5)

    def test_samples_are_most_recent_and_capped(self) -> None:
        for day in range(10, 15):
            feedback(sentiment='positive', response=f'visit {day}', created_at=at(2024, 6, day))
        breakdown = sentiment_breakdown(PeriodFilter(2024, 2))
        self.assertEqual(breakdown.samples['positive'], ['visit 14', 'visit 13', 'visit 12'])

    def test_payload_uses_string_counts(self) -> None:
        payload = sentiment_table_payload(sentiment_breakdown(PeriodFilter(2024, 2)))
        self.assertEqual(payload['counts'], {'positive': '2', 'neutral': '0', 'negative': '1'})
        self.assertEqual(payload['total'], '3')
        self.assertEqual(payload['unlabelled'], '1')
        self.assertEqual(payload['positive'], ['loved it', 'great stay'])
        self.assertEqual(payload['neutral'], [])


class LocationBreakdownTest(TestCase):
    def test_only_entities_in_location_are_counted(self) -> None:
        Establishment.objects.create(english_name='Hotel Luna', city_mun='Vigan')
        TourismAttraction.objects.create(name='Calle Crisologo', city_mun='Vigan')
        Establishment.objects.create(english_name='Laoag Inn', city_mun='Laoag')
        feedback(entity='Hotel Luna', sentiment='positive', response='good')
        feedback(entity='Calle Crisologo', touchpoint='attraction', sentiment='neutral', response='ok')
        feedback(entity='Laoag Inn', sentiment='negative', response='bad')

        breakdown = sentiment_breakdown_for_location(PeriodFilter(), 'vigan')

        self.assertEqual(dict(breakdown.counts), {'positive': 1, 'neutral': 1, 'negative': 0})


class EntityMetricsTest(TestCase):
    def test_rating_distribution_covers_scale_as_strings(self) -> None:
        Establishment.objects.create(english_name='Hotel Luna', city_mun='Vigan', establishment_type='Hotel')
        feedback(rating=4, language='en')
        feedback(rating=4, language='ko')
        feedback(rating=2, language='en')
        feedback(entity='Other Place', rating=1, created_at=at(2023, 1))

        items = entity_metrics(PeriodFilter(2024))

        self.assertEqual(len(items), 1)
        item = items[0]
        self.assertEqual(item['entity'], 'Hotel Luna')
        self.assertEqual(item['touchpoint'], 'establishment')
        self.assertEqual(item['total_responses'], '3')
        self.assertEqual(item['rating'], {'1': '0', '2': '1', '3': '0', '4': '2'})
        self.assertEqual(item['language'], {'en': 2, 'ko': 1})
        self.assertEqual(item['details']['city_mun'], 'Vigan')
        self.assertEqual(item['details']['type'], 'establishment')

    def test_unknown_entity_has_touchpoint_details(self) -> None:
        feedback(entity='Roadside Stall', touchpoint='food')
        items = entity_metrics(PeriodFilter())
        self.assertEqual(items[0]['details'], {'type': 'food'})


class TallyAndMetricsTest(TestCase):
    def setUp(self) -> None:
        feedback(rating=4, touchpoint='establishment', sentiment='positive', created_at=at(2024, 1))
        feedback(rating=2, touchpoint='establishment', created_at=at(2024, 2))
        feedback(rating=3, touchpoint='attraction', language='tl', created_at=at(2024, 2))

    def test_rating_tally_per_touchpoint(self) -> None:
        tally = rating_tally(PeriodFilter(2024, 1))
        self.assertEqual(tally['overall']['total'], 3)
        self.assertEqual(tally['overall']['average_rating'], 3.0)
        by_touchpoint = {row['touchpoint']: row for row in tally['touchpoints']}
        self.assertEqual(by_touchpoint['establishment']['rating'], {'1': 0, '2': 1, '3': 0, '4': 1})
        self.assertEqual(by_touchpoint['attraction']['total'], 1)

    def test_survey_metrics_headline_numbers(self) -> None:
        metrics = survey_metrics(PeriodFilter(2024))
        self.assertEqual(metrics['total_responses'], 3)
        self.assertEqual(metrics['analysed_responses'], 1)
        self.assertEqual(metrics['by_touchpoint'], {'establishment': 2, 'attraction': 1})
        self.assertEqual(metrics['by_language'], {'en': 2, 'tl': 1})
        self.assertEqual(metrics['by_sentiment'], {'positive': 1, 'neutral': 0, 'negative': 0})
        self.assertEqual(sum(row['count'] for row in metrics['by_month']), 3)

    def test_empty_period(self) -> None:
        metrics = survey_metrics(PeriodFilter(2020))
        self.assertEqual(metrics['total_responses'], 0)
        self.assertIsNone(metrics['average_rating'])


class TopicBreakdownTest(TestCase):
    def test_topics_ordered_by_count(self) -> None:
        feedback(topic='Friendly Staff', response='kind people')
        feedback(topic='Friendly Staff', response='helpful')
        feedback(topic='Food', response='tasty')
        feedback(topic=None, response='untagged')
        breakdown = topic_breakdown(PeriodFilter(2024))
        self.assertEqual(list(breakdown.counts.items()), [('Friendly Staff', 2), ('Food', 1)])
        self.assertEqual(breakdown.samples['Food'], ['tasty'])
