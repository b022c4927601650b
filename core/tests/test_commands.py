from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from core.models import InferenceToken, SurveyFeedback
from core.services.classifier import InferenceClassifier
from core.services.dashboard_client import ChartSlice, SentimentChart


class ClassifyFeedbackCommandTest(TestCase):
    def setUp(self) -> None:
        InferenceToken.objects.create(label='DEV_free', token='hf_test')
        SurveyFeedback.objects.create(entity='Hotel Luna', touchpoint='establishment', rating=4, response='great')

    @mock.patch.object(InferenceClassifier, 'is_relevant', return_value=True)
    @mock.patch.object(InferenceClassifier, 'sentiment', return_value='positive')
    def test_single_pass_labels_rows(self, sentiment, is_relevant) -> None:
        out = StringIO()
        call_command('classify_feedback', '--label', 'DEV_free', '--relevance', stdout=out)
        row = SurveyFeedback.objects.get()
        self.assertEqual(row.sentiment, 'positive')
        self.assertTrue(row.is_relevant)
        self.assertIn('Sentiment: processed 1, updated 1', out.getvalue())
        self.assertIn('Relevance: processed 1, updated 1', out.getvalue())

    def test_unknown_label_fails(self) -> None:
        with self.assertRaises(CommandError):
            call_command('classify_feedback', '--label', 'nope')


class SentimentReportCommandTest(TestCase):
    @mock.patch('core.management.commands.sentiment_report.DashboardClient')
    def test_prints_labelled_slices(self, client_class) -> None:
        client = client_class.return_value
        client.sentiment_chart.return_value = SentimentChart(
            year=2024,
            quarter=2,
            slices=[ChartSlice(category='positive', label='Pleasant Stay', value=10, color='#1f78b4')],
        )
        out = StringIO()
        call_command(
            'sentiment_report', '--year', '2024', '--quarter', '2',
            '--username', 'admin', '--password', 'pass', stdout=out,
        )
        client.login.assert_called_once_with('admin', 'pass')
        client.sentiment_chart.assert_called_once_with(2024, 2)
        self.assertIn('Positive (Pleasant Stay): 10', out.getvalue())

    @mock.patch('core.management.commands.sentiment_report.DashboardClient')
    def test_fetch_error_is_a_command_error(self, client_class) -> None:
        client_class.return_value.sentiment_chart.return_value = SentimentChart(
            year=None, quarter=None, error='connection refused',
        )
        with self.assertRaises(CommandError):
            call_command('sentiment_report', '--username', 'admin', '--password', 'pass')
