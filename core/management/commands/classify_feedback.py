"""Label survey feedback through the external classifier.

This management command fills the ``sentiment`` (and optionally the
``is_relevant``) field of feedback rows that have not been processed yet.
It performs the same work as the ``automatesentiment`` and
``automateclassification`` admin endpoints, but can run unattended.

Usage::

    python manage.py classify_feedback --label DEV_free --relevance

You may schedule this command via cron or a task runner.  ``--limit``
caps the rows processed per pass, while ``--loop`` keeps the command
running, sleeping ten minutes between passes.  Each pass resumes behind
the last row of the previous one and wraps around once it reaches the end
of the queue.
"""

from __future__ import annotations

import time

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from core.services.classifier import ClassifierError, InferenceClassifier
from core.services.labelling import DEFAULT_BATCH_LIMIT, annotate_relevance, annotate_sentiment


class Command(BaseCommand):
    help = "Classify sentiment (and relevance) of unlabelled survey feedback."

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            '--label',
            default=None,
            help='InferenceToken label to authenticate with (defaults to INFERENCE_TOKEN_LABEL)',
        )
        parser.add_argument(
            '--limit',
            type=int,
            default=DEFAULT_BATCH_LIMIT,
            help='Maximum number of rows processed per pass',
        )
        parser.add_argument(
            '--relevance',
            action='store_true',
            help='Also run the relevance check on unchecked rows',
        )
        parser.add_argument(
            '--loop',
            action='store_true',
            help='Continuously loop every 10 minutes',
        )

    def handle(self, *args, **options) -> None:
        label = options.get('label') or settings.INFERENCE_TOKEN_LABEL
        limit: int = options['limit']
        if limit < 1:
            raise CommandError('--limit must be a positive integer.')
        try:
            classifier = InferenceClassifier.for_label(label)
        except ClassifierError as exc:
            raise CommandError(str(exc)) from exc

        # Resume points per queue; a pass that reaches the end starts over.
        cursors = {'Sentiment': None, 'Relevance': None}

        def run_queue(name, runner) -> None:
            result = runner(classifier, limit=limit, after=cursors[name])
            cursors[name] = result.last_pk if result.processed >= limit else None
            self.stdout.write(
                f"{name}: processed {result.processed}, updated {result.updated}, "
                f"skipped {result.skipped}, failed {result.failed}."
            )
            for error in result.errors:
                self.stderr.write(error)

        def run_pass() -> None:
            run_queue('Sentiment', annotate_sentiment)
            if options['relevance']:
                run_queue('Relevance', annotate_relevance)
            self.stdout.write(self.style.SUCCESS('Classification pass complete.'))

        if options['loop']:
            while True:
                run_pass()
                time.sleep(600)
        else:
            run_pass()
