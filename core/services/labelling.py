"""Batch labelling of survey feedback through the classifier.

These helpers back the "automate" admin endpoints and the
``classify_feedback`` management command.  Each run walks the rows that
still lack a label, asks the classifier for one and saves the result.  A
failure on one row is recorded and the batch continues.  Rows without a
comment never enter the sentiment queue.

The queue is walked in primary key order.  Each result carries the last
key it looked at; passing it back as ``after`` resumes behind it, so rows
the classifier could not label do not block the rest of the queue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.db import transaction
from django.db.models import QuerySet

from core.models import SurveyFeedback
from core.services.classifier import ClassifierError, InferenceClassifier, shorten_label

logger = logging.getLogger(__name__)

DEFAULT_BATCH_LIMIT = 200

# Empty or whitespace-only comments.
BLANK_TEXT_PATTERN = r'^\s*$'


@dataclass
class LabellingResult:
    """Outcome of a labelling run."""

    processed: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    last_pk: Optional[int] = None
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            'processed': self.processed,
            'updated': self.updated,
            'skipped': self.skipped,
            'failed': self.failed,
            'last_id': self.last_pk,
            'errors': self.errors[:20],
        }


def _after(qs: QuerySet, after: Optional[int]) -> QuerySet:
    return qs if after is None else qs.filter(pk__gt=after)


def pending_sentiment(qs: Optional[QuerySet] = None, after: Optional[int] = None) -> QuerySet:
    """Rows with a comment and no sentiment label, oldest first."""

    qs = SurveyFeedback.objects.all() if qs is None else qs
    pending = qs.filter(sentiment__isnull=True).exclude(response__regex=BLANK_TEXT_PATTERN)
    return _after(pending, after).order_by('pk')


def pending_relevance(qs: Optional[QuerySet] = None, after: Optional[int] = None) -> QuerySet:
    qs = SurveyFeedback.objects.all() if qs is None else qs
    return _after(qs.filter(is_relevant__isnull=True), after).order_by('pk')


def annotate_sentiment(
    classifier: InferenceClassifier,
    qs: Optional[QuerySet] = None,
    limit: int = DEFAULT_BATCH_LIMIT,
    after: Optional[int] = None,
) -> LabellingResult:
    """Fill ``sentiment`` for commented feedback rows that have none yet."""

    result = LabellingResult()
    for feedback in pending_sentiment(qs, after)[:limit]:
        result.processed += 1
        result.last_pk = feedback.pk
        try:
            label = classifier.sentiment(feedback.response)
        except ClassifierError as exc:
            result.failed += 1
            result.errors.append(f'Feedback {feedback.pk}: {exc}')
            logger.warning('Sentiment classification failed for feedback %s: %s', feedback.pk, exc)
            continue
        if not label:
            result.skipped += 1
            continue
        feedback.sentiment = label
        feedback.save(update_fields=['sentiment'])
        result.updated += 1
    logger.info('Sentiment labelling run: %s', result.as_dict())
    return result


def annotate_relevance(
    classifier: InferenceClassifier,
    qs: Optional[QuerySet] = None,
    limit: int = DEFAULT_BATCH_LIMIT,
    after: Optional[int] = None,
) -> LabellingResult:
    """Fill ``is_relevant`` for feedback rows that have not been checked."""

    result = LabellingResult()
    for feedback in pending_relevance(qs, after)[:limit]:
        result.processed += 1
        result.last_pk = feedback.pk
        try:
            relevant = classifier.is_relevant(feedback.response)
        except ClassifierError as exc:
            result.failed += 1
            result.errors.append(f'Feedback {feedback.pk}: {exc}')
            logger.warning('Relevance classification failed for feedback %s: %s', feedback.pk, exc)
            continue
        if relevant is None:
            result.skipped += 1
            continue
        feedback.is_relevant = relevant
        feedback.save(update_fields=['is_relevant'])
        result.updated += 1
    logger.info('Relevance labelling run: %s', result.as_dict())
    return result


def _topic_ids(item: Mapping[str, Any]) -> List[int]:
    """Integer primary keys named by ``ids`` (a list) or ``id`` (a scalar)."""

    ids = item.get('ids')
    if ids is None:
        ids = [] if item.get('id') is None else [item['id']]
    elif not isinstance(ids, (list, tuple)):
        raise TypeError('ids must be a list of integers.')
    parsed = []
    for value in ids:
        # bool is an int subclass and "1.5" would truncate silently.
        if isinstance(value, (bool, float)):
            raise ValueError(f'Invalid feedback id {value!r}.')
        parsed.append(int(value))
    return parsed


def store_topics(items: Iterable[Mapping[str, Any]]) -> int:
    """Persist topic labels given as ``[{"id": 1, "topic": "..."}]``.

    Accepts either ``id`` or a list of ``ids`` per item.  Returns the
    number of rows updated.  Items without a usable label are ignored.
    Raises ``TypeError``/``ValueError`` for ids that are not integers, in
    which case nothing is written.
    """

    updated = 0
    with transaction.atomic():
        for item in items:
            ids = _topic_ids(item)
            label = shorten_label(item.get('topic') or item.get('customLabel'), max_words=6)
            if not label or not ids:
                continue
            updated += SurveyFeedback.objects.filter(pk__in=ids).update(topic=label[:100])
    return updated


__all__ = [
    'DEFAULT_BATCH_LIMIT',
    'LabellingResult',
    'annotate_relevance',
    'annotate_sentiment',
    'pending_relevance',
    'pending_sentiment',
    'store_topics',
]
