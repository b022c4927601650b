"""JSON API views for the tourism survey platform.

Public endpoints cover the survey form (touchpoints, translations and the
submission itself) and the topic/sentiment helpers used by the dashboard.
Admin endpoints provide CRUD over the reference data and the collected
feedback; every mutation is recorded in ``ActivityLog``.  The analytics
endpoints live in ``views_analytics``.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type

from django.conf import settings
from django.contrib.auth import authenticate, login, logout
from django.contrib.auth.models import User
from django.core.paginator import EmptyPage, PageNotAnInteger, Paginator
from django.db import DatabaseError, transaction
from django.db.models import Count, Model, QuerySet
from django.forms import ModelForm
from django.forms.models import model_to_dict
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.middleware.csrf import get_token
from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt, ensure_csrf_cookie
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from core.auth import admin_required
from core.middleware import spam_respondents
from core.services.analytics import AnalyticsFilterError, PeriodFilter, filtered_feedback
from core.services.classifier import ClassifierError, InferenceClassifier
from core.services.feedback_workbook import export_feedback_workbook
from core.services.labelling import store_topics as store_topic_labels

from .forms import (
    EstablishmentForm,
    InferenceTokenForm,
    LocalizationForm,
    LoginForm,
    SurveyFeedbackForm,
    SurveyResponseForm,
    SurveySubmissionForm,
    TourismAttractionForm,
    user_summary,
)
from .models import (
    ActivityLog,
    AnonymousRespondent,
    Establishment,
    InferenceToken,
    Localization,
    SurveyFeedback,
    SurveyQuestion,
    SurveyResponse,
    Touchpoint,
    TourismAttraction,
)

logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


class PayloadError(ValueError):
    """Raised when a request body is not the JSON object we expect."""


def log_activity(user: Optional[User], action: str, details: str = '') -> None:
    """Create a log entry recording the specified action.

    Args:
        user: The user who performed the action.
        action: A short description of the action (e.g., "Created establishment").
        details: Optional additional information.
    """

    try:
        ActivityLog.objects.create(user=user, action=action, details=details)
    except DatabaseError:
        logger.exception('Unable to record activity "%s"', action)


def _load_json_body(request: HttpRequest, *, allow_list: bool = False) -> Any:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body.decode('utf-8'))
    except (UnicodeDecodeError, ValueError):
        raise PayloadError('Request body must be valid JSON.')
    if isinstance(payload, dict) or (allow_list and isinstance(payload, list)):
        return payload
    raise PayloadError('Request body must be a JSON object.')


def _form_errors(form) -> Dict[str, List[str]]:
    return {
        field: [error['message'] for error in errors]
        for field, errors in form.errors.get_json_data().items()
    }


def _error(message: str, status: int = 400) -> JsonResponse:
    return JsonResponse({'error': message}, status=status)


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_id(raw: Any) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _paginate(request: HttpRequest, qs: QuerySet):
    try:
        page_size = min(int(request.GET.get('page_size', DEFAULT_PAGE_SIZE)), MAX_PAGE_SIZE)
    except ValueError:
        page_size = DEFAULT_PAGE_SIZE
    paginator = Paginator(qs, max(page_size, 1))
    try:
        page = paginator.page(request.GET.get('page') or 1)
    except PageNotAnInteger:
        page = paginator.page(1)
    except EmptyPage:
        page = paginator.page(paginator.num_pages)
    return paginator, page


# ---------------------------------------------------------------------------
# Serialisers
# ---------------------------------------------------------------------------

def serialise_establishment(obj: Establishment) -> Dict[str, Any]:
    return {
        'id': obj.pk,
        'english_name': obj.english_name,
        'local_name': obj.local_name,
        'establishment_type': obj.establishment_type,
        'city_mun': obj.city_mun,
        'barangay': obj.barangay,
        'address': obj.address,
        'is_active': obj.is_active,
        'created_at': _isoformat(obj.created_at),
    }


def serialise_attraction(obj: TourismAttraction) -> Dict[str, Any]:
    return {
        'id': obj.pk,
        'name': obj.name,
        'ta_category': obj.ta_category,
        'ntdp_category': obj.ntdp_category,
        'location_type': obj.location_type,
        'city_mun': obj.city_mun,
        'barangay': obj.barangay,
        'is_active': obj.is_active,
        'created_at': _isoformat(obj.created_at),
    }


def serialise_localization(obj: Localization) -> Dict[str, Any]:
    return {
        'id': obj.pk,
        'language': obj.language,
        'key': obj.key,
        'text': obj.text,
        'updated_at': _isoformat(obj.updated_at),
    }


def serialise_response(obj: SurveyResponse) -> Dict[str, Any]:
    return {
        'id': obj.pk,
        'respondent': obj.respondent_id,
        'feedback': obj.feedback_id,
        'question': obj.question_id,
        'question_code': obj.question.code,
        'answer': obj.answer,
        'rating': obj.rating,
        'created_at': _isoformat(obj.created_at),
    }


def serialise_feedback(obj: SurveyFeedback) -> Dict[str, Any]:
    return {
        'id': obj.pk,
        'respondent': obj.respondent_id,
        'entity': obj.entity,
        'touchpoint': obj.touchpoint,
        'rating': obj.rating,
        'language': obj.language,
        'response': obj.response,
        'sentiment': obj.sentiment,
        'topic': obj.topic,
        'is_relevant': obj.is_relevant,
        'created_at': _isoformat(obj.created_at),
    }


def serialise_token(obj: InferenceToken) -> Dict[str, Any]:
    # Tokens are secrets; only the tail is echoed back.
    return {
        'id': obj.pk,
        'label': obj.label,
        'token': f"...{obj.token[-4:]}" if obj.token else '',
        'is_active': obj.is_active,
        'created_at': _isoformat(obj.created_at),
    }


# ---------------------------------------------------------------------------
# Generic CRUD
# ---------------------------------------------------------------------------

def _crud_dispatch(
    request: HttpRequest,
    *,
    queryset: QuerySet,
    form_class: Type[ModelForm],
    serialise: Callable[[Model], Dict[str, Any]],
    label: str,
    list_filters: Optional[Mapping[str, str]] = None,
) -> JsonResponse:
    """List, create, update or delete rows of one model.

    GET returns every row (narrowed by ``list_filters``, which maps query
    parameters to ORM lookups).  POST validates the JSON body with
    ``form_class``.  PUT and DELETE take the row ``id`` from the body or
    the query string; PUT only changes the fields present in the body.
    """

    if request.method == 'GET':
        qs = queryset
        for param, lookup in (list_filters or {}).items():
            value = request.GET.get(param)
            if value not in (None, ''):
                qs = qs.filter(**{lookup: value})
        return JsonResponse([serialise(obj) for obj in qs], safe=False)

    try:
        payload = _load_json_body(request)
    except PayloadError as exc:
        return _error(str(exc))

    if request.method == 'POST':
        form = form_class(data=payload)
        if not form.is_valid():
            return JsonResponse({'errors': _form_errors(form)}, status=400)
        obj = form.save()
        log_activity(request.user, f'Created {label}', f'id={obj.pk}')
        logger.info('%s created %s %s', request.user.username, label, obj.pk)
        return JsonResponse(serialise(obj), status=201)

    pk = _parse_id(payload.get('id', request.GET.get('id')))
    if pk is None:
        return _error(f'A numeric {label} id is required.')
    obj = queryset.filter(pk=pk).first()
    if obj is None:
        return _error(f'{label.capitalize()} {pk} not found.', status=404)

    if request.method == 'DELETE':
        obj.delete()
        log_activity(request.user, f'Deleted {label}', f'id={pk}')
        logger.info('%s deleted %s %s', request.user.username, label, pk)
        return JsonResponse({'ok': True, 'id': pk})

    data = model_to_dict(obj, fields=form_class._meta.fields)
    data.update({key: value for key, value in payload.items() if key != 'id'})
    form = form_class(data=data, instance=obj)
    if not form.is_valid():
        return JsonResponse({'errors': _form_errors(form)}, status=400)
    obj = form.save()
    log_activity(request.user, f'Updated {label}', f'id={pk}; fields={",".join(sorted(form.changed_data))}')
    return JsonResponse(serialise(obj))


# ---------------------------------------------------------------------------
# Health, auth and errors
# ---------------------------------------------------------------------------

@require_GET
def health(request: HttpRequest) -> JsonResponse:
    return JsonResponse({
        'status': 'ok',
        'timestamp': timezone.now().isoformat(),
        'uptime': round(time.monotonic() - _STARTED_AT, 3),
    })


def not_found(request: HttpRequest, exception: Optional[Exception] = None) -> JsonResponse:
    return _error('Not found.', status=404)


@require_GET
@ensure_csrf_cookie
def csrf(request: HttpRequest) -> JsonResponse:
    return JsonResponse({'csrfToken': get_token(request)})


@csrf_exempt
@require_POST
def login_api(request: HttpRequest) -> JsonResponse:
    try:
        payload = _load_json_body(request)
    except PayloadError as exc:
        return _error(str(exc))
    form = LoginForm(data=payload)
    if not form.is_valid():
        return JsonResponse({'errors': _form_errors(form)}, status=400)
    user = authenticate(
        request,
        username=form.cleaned_data['username'],
        password=form.cleaned_data['password'],
    )
    if user is None:
        logger.warning('Failed login for %s', form.cleaned_data['username'])
        return _error('Invalid username or password.', status=401)
    login(request, user)
    log_activity(user, 'Logged in')
    return JsonResponse({'ok': True, 'user': user_summary(user)})


@csrf_exempt
@require_POST
def logout_api(request: HttpRequest) -> JsonResponse:
    if request.user.is_authenticated:
        log_activity(request.user, 'Logged out')
    logout(request)
    return JsonResponse({'ok': True})


@require_GET
@admin_required
def session_data(request: HttpRequest) -> JsonResponse:
    return JsonResponse({
        'user': user_summary(request.user),
        'session': {
            'key': request.session.session_key,
            'expires_at': _isoformat(request.session.get_expiry_date()),
        },
    })


# ---------------------------------------------------------------------------
# Public survey
# ---------------------------------------------------------------------------

@require_GET
def survey_touchpoints(request: HttpRequest) -> JsonResponse:
    touchpoints = [
        {'code': tp.code, 'label': tp.label, 'display_order': tp.display_order}
        for tp in Touchpoint.objects.all()
    ]
    return JsonResponse(touchpoints, safe=False)


@csrf_exempt
@require_POST
def touchpoint_localized(request: HttpRequest) -> JsonResponse:
    """Touchpoints with their label translated to ``language``.

    Falls back to the English translation and then to the stored label.
    """

    try:
        payload = _load_json_body(request)
    except PayloadError as exc:
        return _error(str(exc))
    language = str(payload.get('language') or 'en').strip().lower()
    touchpoints = list(Touchpoint.objects.all())
    keys = [tp.localization_key for tp in touchpoints]
    texts: Dict[tuple, str] = {
        (row.language, row.key): row.text
        for row in Localization.objects.filter(key__in=keys, language__in={language, 'en'})
    }
    items = []
    for tp in touchpoints:
        key = tp.localization_key
        items.append({
            'code': tp.code,
            'label': texts.get((language, key)) or texts.get(('en', key)) or tp.label,
            'display_order': tp.display_order,
        })
    return JsonResponse({'language': language, 'touchpoints': items})


@csrf_exempt
@require_POST
def survey_submit(request: HttpRequest) -> JsonResponse:
    try:
        payload = _load_json_body(request)
    except PayloadError as exc:
        return _error(str(exc))
    form = SurveySubmissionForm(data=payload, answers=payload.get('answers'))
    if not form.is_valid():
        return JsonResponse({'errors': _form_errors(form)}, status=400)

    data = form.cleaned_data
    respondent = getattr(request, 'respondent', None)
    with transaction.atomic():
        feedback = SurveyFeedback.objects.create(
            respondent=respondent,
            entity=data['entity'],
            touchpoint=data['touchpoint'],
            rating=data['rating'],
            language=data['language'],
            response=data['comment'],
        )
        SurveyResponse.objects.bulk_create([
            SurveyResponse(
                respondent=respondent,
                feedback=feedback,
                question=question,
                answer=answer,
                rating=rating,
            )
            for question, answer, rating in data['answers']
        ])
    logger.info(
        'Survey feedback %s stored for %s/%s (respondent %s)',
        feedback.pk, feedback.touchpoint, feedback.entity, getattr(respondent, 'pk', None),
    )
    return JsonResponse(
        {'ok': True, 'id': feedback.pk, 'answers': len(data['answers'])},
        status=201,
    )


# ---------------------------------------------------------------------------
# Classifier helpers
# ---------------------------------------------------------------------------

def _classifier_request(request: HttpRequest):
    """Return ``(text, classifier, error_response)`` for a classifier call."""

    try:
        payload = _load_json_body(request)
    except PayloadError as exc:
        return None, None, _error(str(exc))
    text = payload.get('text')
    if not isinstance(text, str):
        return None, None, _error('text must be a string.')
    label = payload.get('tokenLabel') or settings.INFERENCE_TOKEN_LABEL
    try:
        classifier = InferenceClassifier.for_label(label)
    except ClassifierError as exc:
        return None, None, _error(str(exc))
    return text, classifier, None


@csrf_exempt
@require_POST
def analyze_topics(request: HttpRequest) -> JsonResponse:
    """Label a block of texts: ``[{"customLabel": ...}]`` or ``[]``."""

    text, classifier, error = _classifier_request(request)
    if error is not None:
        return error
    texts = [line for line in text.splitlines() if line.strip()]
    if not texts:
        return JsonResponse([], safe=False)
    try:
        label = classifier.label_category(texts)
    except ClassifierError as exc:
        logger.error('Topic labelling failed: %s', exc)
        return _error(str(exc), status=502)
    if not label:
        return JsonResponse([], safe=False)
    return JsonResponse([{'customLabel': label}], safe=False)


@csrf_exempt
@require_POST
def analyze_sentiment(request: HttpRequest) -> JsonResponse:
    text, classifier, error = _classifier_request(request)
    if error is not None:
        return error
    if not text.strip():
        return JsonResponse({'sentiment': None, 'scores': []})
    try:
        scores = classifier.sentiment_scores(text)
    except ClassifierError as exc:
        logger.error('Sentiment analysis failed: %s', exc)
        return _error(str(exc), status=502)
    return JsonResponse({'sentiment': scores[0]['label'] if scores else None, 'scores': scores})


@require_POST
@admin_required
def store_topics(request: HttpRequest) -> JsonResponse:
    """Persist topic labels: a list of ``{id|ids, topic|customLabel}``."""

    try:
        payload = _load_json_body(request, allow_list=True)
    except PayloadError as exc:
        return _error(str(exc))
    items = payload.get('topics') if isinstance(payload, dict) else payload
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        return _error('topics must be a list of objects.')
    try:
        updated = store_topic_labels(items)
    except (TypeError, ValueError):
        return _error('Topic ids must be integers.')
    log_activity(request.user, 'Stored topics', f'updated={updated}')
    return JsonResponse({'ok': True, 'updated': updated})


@require_http_methods(['GET', 'POST'])
@admin_required
def inference_tokens(request: HttpRequest) -> JsonResponse:
    if request.method == 'GET':
        return JsonResponse([serialise_token(obj) for obj in InferenceToken.objects.order_by('label')], safe=False)
    try:
        payload = _load_json_body(request)
    except PayloadError as exc:
        return _error(str(exc))
    form = InferenceTokenForm(data=payload)
    if not form.is_valid():
        return JsonResponse({'errors': _form_errors(form)}, status=400)
    token = form.save()
    log_activity(request.user, 'Created inference token', token.label)
    return JsonResponse(serialise_token(token), status=201)


# ---------------------------------------------------------------------------
# Admin CRUD
# ---------------------------------------------------------------------------

@require_http_methods(['GET', 'POST', 'PUT', 'DELETE'])
@admin_required
def establishment_api(request: HttpRequest) -> JsonResponse:
    return _crud_dispatch(
        request,
        queryset=Establishment.objects.all(),
        form_class=EstablishmentForm,
        serialise=serialise_establishment,
        label='establishment',
        list_filters={'city_mun': 'city_mun__iexact', 'type': 'establishment_type__iexact'},
    )


@require_http_methods(['GET', 'POST', 'PUT', 'DELETE'])
@admin_required
def attraction_api(request: HttpRequest) -> JsonResponse:
    return _crud_dispatch(
        request,
        queryset=TourismAttraction.objects.all(),
        form_class=TourismAttractionForm,
        serialise=serialise_attraction,
        label='attraction',
        list_filters={'city_mun': 'city_mun__iexact', 'category': 'ta_category__iexact'},
    )


@require_http_methods(['GET', 'POST', 'PUT', 'DELETE'])
@admin_required
def localization_api(request: HttpRequest) -> JsonResponse:
    return _crud_dispatch(
        request,
        queryset=Localization.objects.all(),
        form_class=LocalizationForm,
        serialise=serialise_localization,
        label='localization',
        list_filters={'language': 'language__iexact', 'key': 'key'},
    )


@require_http_methods(['GET', 'POST', 'PUT', 'DELETE'])
@admin_required
def survey_responses_api(request: HttpRequest) -> JsonResponse:
    return _crud_dispatch(
        request,
        queryset=SurveyResponse.objects.select_related('question'),
        form_class=SurveyResponseForm,
        serialise=serialise_response,
        label='survey response',
        list_filters={'feedback': 'feedback_id', 'question': 'question__code'},
    )


@require_GET
@admin_required
def survey_feedback_list(request: HttpRequest) -> JsonResponse:
    try:
        period = PeriodFilter.from_params(request.GET)
    except AnalyticsFilterError as exc:
        return _error(str(exc))
    qs = filtered_feedback(period).order_by('-created_at', '-pk')
    touchpoint = request.GET.get('touchpoint')
    if touchpoint:
        qs = qs.filter(touchpoint=touchpoint)
    paginator, page = _paginate(request, qs)
    return JsonResponse({
        'period': period.as_dict(),
        'count': paginator.count,
        'page': page.number,
        'num_pages': paginator.num_pages,
        'results': [serialise_feedback(obj) for obj in page.object_list],
    })


@require_http_methods(['PUT', 'DELETE'])
@admin_required
def survey_feedback_detail(request: HttpRequest, pk: int) -> JsonResponse:
    feedback = SurveyFeedback.objects.filter(pk=pk).first()
    if feedback is None:
        return _error(f'Survey feedback {pk} not found.', status=404)
    if request.method == 'DELETE':
        feedback.delete()
        log_activity(request.user, 'Deleted survey feedback', f'id={pk}')
        return JsonResponse({'ok': True, 'id': pk})
    try:
        payload = _load_json_body(request)
    except PayloadError as exc:
        return _error(str(exc))
    data = model_to_dict(feedback, fields=SurveyFeedbackForm._meta.fields)
    data.update({key: value for key, value in payload.items() if key != 'id'})
    form = SurveyFeedbackForm(data=data, instance=feedback)
    if not form.is_valid():
        return JsonResponse({'errors': _form_errors(form)}, status=400)
    feedback = form.save()
    log_activity(request.user, 'Updated survey feedback', f'id={pk}; fields={",".join(sorted(form.changed_data))}')
    return JsonResponse(serialise_feedback(feedback))


@require_GET
@admin_required
def survey_feedback_export(request: HttpRequest) -> HttpResponse:
    try:
        period = PeriodFilter.from_params(request.GET)
    except AnalyticsFilterError as exc:
        return _error(str(exc))
    rows = filtered_feedback(period).order_by('created_at', 'pk')
    workbook_stream = export_feedback_workbook(rows.iterator())
    filename = timezone.now().strftime('survey-feedback-%Y%m%d%H%M%S.xlsx')
    response = HttpResponse(
        workbook_stream.getvalue(),
        content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    )
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    log_activity(request.user, 'Exported survey feedback', json.dumps(period.as_dict()))
    return response


@require_GET
@admin_required
def survey_questions(request: HttpRequest) -> JsonResponse:
    questions = [
        {
            'id': q.pk,
            'code': q.code,
            'text': q.text,
            'question_type': q.question_type,
            'display_order': q.display_order,
            'is_active': q.is_active,
        }
        for q in SurveyQuestion.objects.all()
    ]
    return JsonResponse(questions, safe=False)


@require_GET
@admin_required
def establishment_names(request: HttpRequest) -> JsonResponse:
    names = list(
        Establishment.objects.filter(is_active=True)
        .order_by('english_name')
        .values_list('english_name', flat=True)
    )
    return JsonResponse(names, safe=False)


@require_GET
@admin_required
def open_ended_responses(request: HttpRequest) -> JsonResponse:
    try:
        period = PeriodFilter.from_params(request.GET)
    except AnalyticsFilterError as exc:
        return _error(str(exc))
    qs = period.apply(
        SurveyResponse.objects.select_related('question', 'feedback')
        .filter(question__question_type=SurveyQuestion.QuestionType.OPEN_ENDED)
        .exclude(answer='')
    ).order_by('-created_at', '-pk')
    items = [
        {
            'id': row.pk,
            'question': row.question.code,
            'answer': row.answer,
            'entity': row.feedback.entity if row.feedback_id else None,
            'touchpoint': row.feedback.touchpoint if row.feedback_id else None,
            'created_at': _isoformat(row.created_at),
        }
        for row in qs
    ]
    return JsonResponse(items, safe=False)


def _respondent_rows(qs: Iterable[AnonymousRespondent]) -> List[Dict[str, Any]]:
    return [
        {
            'id': respondent.pk,
            'session_key': respondent.session_key,
            'ip_address': respondent.ip_address,
            'user_agent': respondent.user_agent,
            'feedback_count': respondent.feedback_count,
            'created_at': _isoformat(respondent.created_at),
            'last_seen': _isoformat(respondent.last_seen),
        }
        for respondent in qs
    ]


@require_GET
@admin_required
def anonymous_users(request: HttpRequest) -> JsonResponse:
    qs = AnonymousRespondent.objects.annotate(feedback_count=Count('feedback')).order_by('-created_at')
    return JsonResponse(_respondent_rows(qs), safe=False)


@require_http_methods(['DELETE'])
@admin_required
def purge_anonymous_users(request: HttpRequest) -> JsonResponse:
    """Delete respondents that never submitted feedback."""

    idle = AnonymousRespondent.objects.annotate(feedback_count=Count('feedback')).filter(feedback_count=0)
    ids = list(idle.values_list('pk', flat=True))
    AnonymousRespondent.objects.filter(pk__in=ids).delete()
    log_activity(request.user, 'Purged anonymous respondents', f'deleted={len(ids)}')
    logger.info('%s purged %s anonymous respondents', request.user.username, len(ids))
    return JsonResponse({'ok': True, 'deleted': len(ids)})


@require_GET
@admin_required
def spam_anonymous_users(request: HttpRequest) -> JsonResponse:
    """Respondents that reached the submission limit in the spam window."""

    qs = spam_respondents().annotate(feedback_count=Count('feedback')).order_by('-recent_feedback', '-created_at')
    rows = []
    for respondent, row in zip(qs, _respondent_rows(qs)):
        row['recent_feedback'] = respondent.recent_feedback
        rows.append(row)
    return JsonResponse({
        'threshold': settings.SURVEY_SPAM_THRESHOLD,
        'window_seconds': settings.SURVEY_SPAM_WINDOW_SECONDS,
        'results': rows,
    })


@require_http_methods(['DELETE'])
@admin_required
def delete_survey_user(request: HttpRequest) -> JsonResponse:
    """Delete one respondent together with their feedback and answers."""

    try:
        payload = _load_json_body(request)
    except PayloadError as exc:
        return _error(str(exc))
    pk = _parse_id(payload.get('id', request.GET.get('id')))
    if pk is None:
        return _error('A numeric respondent id is required.')
    respondent = AnonymousRespondent.objects.filter(pk=pk).first()
    if respondent is None:
        return _error(f'Respondent {pk} not found.', status=404)
    with transaction.atomic():
        _, per_model = SurveyFeedback.objects.filter(respondent=respondent).delete()
        respondent.delete()
    feedback_deleted = per_model.get(SurveyFeedback._meta.label, 0)
    log_activity(request.user, 'Deleted survey respondent', f'id={pk}; feedback={feedback_deleted}')
    logger.info('%s deleted respondent %s and %s feedback rows', request.user.username, pk, feedback_deleted)
    return JsonResponse({'ok': True, 'id': pk, 'feedback_deleted': feedback_deleted})


# ---------------------------------------------------------------------------
# Reference lookups
# ---------------------------------------------------------------------------

@require_GET
@admin_required
def locations(request: HttpRequest) -> JsonResponse:
    """Cities/municipalities with their barangays.

    ``location_type`` narrows the list to attractions of that type (only
    attractions carry one); ``city_mun`` narrows it to one municipality.
    """

    location_type = (request.GET.get('location_type') or '').strip()
    city_mun = (request.GET.get('city_mun') or '').strip()
    attractions = TourismAttraction.objects.all()
    if location_type:
        sources = [attractions.filter(location_type__iexact=location_type)]
    else:
        sources = [attractions, Establishment.objects.all()]

    grouped: Dict[str, set] = {}
    for qs in sources:
        if city_mun:
            qs = qs.filter(city_mun__iexact=city_mun)
        for city, barangay in qs.exclude(city_mun='').values_list('city_mun', 'barangay'):
            barangays = grouped.setdefault(city, set())
            if barangay:
                barangays.add(barangay)
    items = [
        {'city_mun': city, 'barangays': sorted(barangays)}
        for city, barangays in sorted(grouped.items())
    ]
    return JsonResponse(items, safe=False)


@require_GET
@admin_required
def establishment_types(request: HttpRequest) -> JsonResponse:
    types = list(
        Establishment.objects.exclude(establishment_type='')
        .order_by('establishment_type')
        .values_list('establishment_type', flat=True)
        .distinct()
    )
    return JsonResponse(types, safe=False)
