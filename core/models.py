"""Data models for the tourism survey platform.

This module defines the database schema using Django's ORM.  The central
table is ``SurveyFeedback``: one row per submitted survey, carrying the
rated entity, the touchpoint it belongs to, the Likert rating, the
detected language and the free-text comment.  Sentiment, topic and
relevance labels are derived later by the external classifier and stored
on the same row.  Reference data (establishments, tourism attractions,
touchpoints, questions and translations) is managed from the admin API.
"""

from __future__ import annotations

from django.contrib.auth.models import User
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

# Likert scale used by every rating question.
LIKERT_MIN = 1
LIKERT_MAX = 4
LIKERT_SCALE = tuple(range(LIKERT_MIN, LIKERT_MAX + 1))


class AnonymousRespondent(models.Model):
    """A browser session that reached the public survey.

    Rows are created by ``AnonymousRespondentMiddleware`` and keyed by the
    Django session key so that every submission from the same browser is
    attributed to one respondent.
    """

    session_key = models.CharField(max_length=40, unique=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    last_seen = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:  # pragma: no cover
        return f"Respondent<{self.session_key[:8]}>"


class Establishment(models.Model):
    """A tourism establishment (hotel, restaurant, resort) that can be rated."""

    english_name = models.CharField(max_length=255, unique=True)
    local_name = models.CharField(max_length=255, blank=True)
    establishment_type = models.CharField(max_length=255, blank=True)
    city_mun = models.CharField(max_length=100, blank=True)
    barangay = models.CharField(max_length=100, blank=True)
    address = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['english_name']

    def __str__(self) -> str:  # pragma: no cover
        return self.english_name


class TourismAttraction(models.Model):
    """A tourism attraction (beach, church, viewpoint) that can be rated."""

    name = models.CharField(max_length=255, unique=True)
    ta_category = models.CharField(max_length=100, blank=True)
    ntdp_category = models.CharField(max_length=100, blank=True)
    location_type = models.CharField(max_length=100, blank=True)
    city_mun = models.CharField(max_length=100, blank=True)
    barangay = models.CharField(max_length=100, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']

    def __str__(self) -> str:  # pragma: no cover
        return self.name


class Touchpoint(models.Model):
    """Survey channel a response belongs to, e.g. ``establishment``."""

    code = models.SlugField(max_length=50, unique=True)
    label = models.CharField(max_length=100)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['display_order', 'code']

    @property
    def localization_key(self) -> str:
        return f"touchpoint.{self.code}"

    def __str__(self) -> str:  # pragma: no cover
        return self.label


class Localization(models.Model):
    """Translated text for a language code and translation key."""

    language = models.CharField(max_length=8)
    key = models.CharField(max_length=150)
    text = models.TextField()
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('language', 'key')
        ordering = ['language', 'key']

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.language}:{self.key}"


class SurveyQuestion(models.Model):
    """A question shown on the public survey form."""

    class QuestionType(models.TextChoices):
        LIKERT = 'likert', 'Likert rating'
        OPEN_ENDED = 'open_ended', 'Open ended'
        CHOICE = 'choice', 'Multiple choice'

    code = models.SlugField(max_length=50, unique=True)
    text = models.TextField()
    question_type = models.CharField(
        max_length=20,
        choices=QuestionType.choices,
        default=QuestionType.OPEN_ENDED,
    )
    display_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ['display_order', 'code']

    def __str__(self) -> str:  # pragma: no cover
        return self.code


class SurveyFeedback(models.Model):
    """One submitted survey response about a single entity.

    ``entity`` holds the display name of the establishment or attraction
    that was rated, and ``touchpoint`` the channel it was rated through.
    ``sentiment``, ``topic`` and ``is_relevant`` stay empty until the
    classifier has processed the comment.
    """

    class Sentiment(models.TextChoices):
        POSITIVE = 'positive', 'Positive'
        NEUTRAL = 'neutral', 'Neutral'
        NEGATIVE = 'negative', 'Negative'

    respondent = models.ForeignKey(
        AnonymousRespondent,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='feedback',
    )
    entity = models.CharField(max_length=255)
    touchpoint = models.CharField(max_length=50)
    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(LIKERT_MIN), MaxValueValidator(LIKERT_MAX)],
    )
    language = models.CharField(max_length=8, default='en')
    response = models.TextField(blank=True)
    sentiment = models.CharField(
        max_length=10,
        choices=Sentiment.choices,
        null=True,
        blank=True,
    )
    topic = models.CharField(max_length=100, null=True, blank=True)
    is_relevant = models.BooleanField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['created_at'], name='core_survey_created_5d0c4e_idx'),
            models.Index(fields=['touchpoint', 'entity'], name='core_survey_touchpo_8b1f2a_idx'),
            models.Index(fields=['sentiment'], name='core_survey_sentime_3e7a9c_idx'),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Feedback<{self.pk}:{self.entity}:{self.rating}>"


class SurveyResponse(models.Model):
    """A respondent's answer to one survey question."""

    respondent = models.ForeignKey(
        AnonymousRespondent,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='responses',
    )
    feedback = models.ForeignKey(
        SurveyFeedback,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='answers',
    )
    question = models.ForeignKey(SurveyQuestion, on_delete=models.PROTECT, related_name='responses')
    answer = models.TextField(blank=True)
    rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(LIKERT_MIN), MaxValueValidator(LIKERT_MAX)],
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self) -> str:  # pragma: no cover
        return f"Response<{self.question_id}:{self.pk}>"


class InferenceToken(models.Model):
    """API token for the hosted classifier, selected by ``label``."""

    label = models.CharField(max_length=50, unique=True)
    token = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:  # pragma: no cover
        return self.label


class ActivityLog(models.Model):
    """Tracks admin actions within the application.

    Each entry records the user who performed the action, a short
    description and optional details.  Entries are written for every
    mutation made through the admin API.
    """

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='activity_logs')
    action = models.CharField(max_length=255)
    details = models.TextField(blank=True, null=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.timestamp:%Y-%m-%d %H:%M:%S} - {self.user}: {self.action}"
