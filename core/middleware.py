"""Middleware tracking anonymous survey respondents.

Every visitor of the public survey endpoints gets a database-backed
Django session.  The session key identifies an ``AnonymousRespondent``
row that is created on first contact and refreshed afterwards, so all
submissions from one browser are attributed to the same respondent.  The
row is exposed to views as ``request.respondent``.

Admin, auth and health endpoints are not tracked, and neither are
authenticated staff users.

``SubmissionThrottleMiddleware`` rejects further submissions from a
respondent that already sent ``SURVEY_SPAM_THRESHOLD`` surveys within
``SURVEY_SPAM_WINDOW_SECONDS``; the same rule lists suspected spammers for
the admin API.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Optional

from django.conf import settings
from django.db.models import Count, Q, QuerySet
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.utils import timezone

from core.models import AnonymousRespondent, SurveyFeedback

logger = logging.getLogger(__name__)

TRACKED_PATH_PREFIXES = (
    '/api/survey/',
    '/api/surveytouchpoints',
    '/api/touchpointlocal',
)

THROTTLED_PATH_PREFIXES = ('/api/survey/submit',)

SESSION_RESPONDENT_KEY = 'respondent_id'


def client_ip(request: HttpRequest) -> Optional[str]:
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip() or None
    return request.META.get('REMOTE_ADDR') or None


class AnonymousRespondentMiddleware:
    """Attach an ``AnonymousRespondent`` to public survey requests."""

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        request.respondent = None
        if self._should_track(request):
            request.respondent = self._resolve(request)
        return self.get_response(request)

    @staticmethod
    def _should_track(request: HttpRequest) -> bool:
        if not request.path.startswith(TRACKED_PATH_PREFIXES):
            return False
        user = getattr(request, 'user', None)
        return not (user is not None and user.is_authenticated and user.is_staff)

    def _resolve(self, request: HttpRequest) -> AnonymousRespondent:
        session = request.session
        if not session.session_key:
            session.save()
        session_key = session.session_key
        respondent, created = AnonymousRespondent.objects.get_or_create(
            session_key=session_key,
            defaults={
                'ip_address': client_ip(request),
                'user_agent': (request.META.get('HTTP_USER_AGENT') or '')[:255],
            },
        )
        if created:
            logger.info('New anonymous respondent %s', respondent.pk)
        else:
            respondent.save(update_fields=['last_seen'])
        if session.get(SESSION_RESPONDENT_KEY) != respondent.pk:
            session[SESSION_RESPONDENT_KEY] = respondent.pk
        return respondent


def spam_window_start():
    """Start of the window in which submissions count towards the spam limit."""

    seconds = getattr(settings, 'SURVEY_SPAM_WINDOW_SECONDS', 3600)
    return timezone.now() - timedelta(seconds=seconds)


def spam_respondents() -> QuerySet:
    """Respondents that reached ``SURVEY_SPAM_THRESHOLD`` submissions in the window.

    Rows are annotated with ``recent_feedback``.
    """

    since = spam_window_start()
    return AnonymousRespondent.objects.annotate(
        recent_feedback=Count('feedback', filter=Q(feedback__created_at__gte=since)),
    ).filter(recent_feedback__gte=settings.SURVEY_SPAM_THRESHOLD)


class SubmissionThrottleMiddleware:
    """Answer 429 to survey submissions from respondents over the spam limit.

    Must run after ``AnonymousRespondentMiddleware``.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        respondent = getattr(request, 'respondent', None)
        if (
            respondent is not None
            and request.method == 'POST'
            and request.path.startswith(THROTTLED_PATH_PREFIXES)
        ):
            recent = SurveyFeedback.objects.filter(
                respondent=respondent,
                created_at__gte=spam_window_start(),
            ).count()
            if recent >= settings.SURVEY_SPAM_THRESHOLD:
                logger.warning('Throttled respondent %s after %s recent submissions', respondent.pk, recent)
                return JsonResponse(
                    {'error': 'Too many submissions. Please try again later.'},
                    status=429,
                )
        return self.get_response(request)
