"""Forms used by the core application.

The API receives JSON bodies, but validation still goes through Django
forms: the public survey submission uses ``SurveySubmissionForm`` and the
admin CRUD endpoints use one ``ModelForm`` per managed model.  Views turn
``form.errors`` into a 400 response.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List

from django import forms
from django.contrib.auth.models import User

from .models import (
    LIKERT_MAX,
    LIKERT_MIN,
    Establishment,
    InferenceToken,
    Localization,
    SurveyFeedback,
    SurveyQuestion,
    SurveyResponse,
    Touchpoint,
    TourismAttraction,
)

LANGUAGE_CODE_PATTERN = re.compile(r'^[A-Za-z]{2,3}([-_][A-Za-z0-9]{2,4})?$')

# Upper bound on answers accepted with one submission.
MAX_ANSWERS = 50


def clean_language_code(value: str) -> str:
    code = (value or '').strip()
    if not LANGUAGE_CODE_PATTERN.match(code):
        raise forms.ValidationError('Enter a valid language code, e.g. "en" or "zh-CN".')
    return code.lower()


class ActiveFlagMixin:
    """Keep ``is_active`` unchanged when the payload omits it.

    Checkbox fields read a missing key as ``False``; for JSON payloads a
    missing key means "leave as is" (``True`` for new rows).
    """

    def clean_is_active(self) -> bool:
        if 'is_active' not in self.data:
            return self.instance.is_active
        return self.cleaned_data['is_active']


class LoginForm(forms.Form):
    username = forms.CharField(max_length=150)
    password = forms.CharField(max_length=128)


class SurveySubmissionForm(forms.Form):
    """Validates the public survey payload.

    ``answers`` is a list of ``{"question": <code or id>, "answer": str,
    "rating": int?}`` objects; each must reference an active question.
    The cleaned value is a list of ``(SurveyQuestion, answer, rating)``
    tuples.
    """

    entity = forms.CharField(max_length=255)
    touchpoint = forms.CharField(max_length=50)
    rating = forms.IntegerField(min_value=LIKERT_MIN, max_value=LIKERT_MAX)
    language = forms.CharField(max_length=8, required=False)
    comment = forms.CharField(required=False, max_length=5000)

    def __init__(self, *args, answers: Any = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.raw_answers = answers

    def clean_entity(self) -> str:
        entity = self.cleaned_data['entity'].strip()
        if not entity:
            raise forms.ValidationError('This field is required.')
        return entity

    def clean_touchpoint(self) -> str:
        code = self.cleaned_data['touchpoint'].strip().lower()
        if not Touchpoint.objects.filter(code=code).exists():
            raise forms.ValidationError(f'Unknown touchpoint "{code}".')
        return code

    def clean_language(self) -> str:
        value = self.cleaned_data.get('language') or 'en'
        return clean_language_code(value)

    def clean_comment(self) -> str:
        return (self.cleaned_data.get('comment') or '').strip()

    def clean(self) -> Dict[str, Any]:
        cleaned_data = super().clean()
        cleaned_data['answers'] = self._clean_answers()
        return cleaned_data

    def _clean_answers(self) -> List[tuple]:
        raw = self.raw_answers
        if raw in (None, ''):
            return []
        if not isinstance(raw, list):
            self.add_error(None, 'answers must be a list.')
            return []
        if len(raw) > MAX_ANSWERS:
            self.add_error(None, f'At most {MAX_ANSWERS} answers may be submitted.')
            return []
        questions = {q.code: q for q in SurveyQuestion.objects.filter(is_active=True)}
        by_id = {q.pk: q for q in questions.values()}
        cleaned: List[tuple] = []
        for index, item in enumerate(raw, start=1):
            if not isinstance(item, dict):
                self.add_error(None, f'Answer {index} must be an object.')
                continue
            ref = item.get('question')
            question = questions.get(str(ref)) if ref is not None else None
            if question is None and isinstance(ref, int):
                question = by_id.get(ref)
            if question is None:
                self.add_error(None, f'Answer {index} references an unknown question.')
                continue
            rating = item.get('rating')
            if rating not in (None, ''):
                try:
                    rating = int(rating)
                except (TypeError, ValueError):
                    self.add_error(None, f'Answer {index} has an invalid rating.')
                    continue
                if not LIKERT_MIN <= rating <= LIKERT_MAX:
                    self.add_error(None, f'Answer {index} rating must be between {LIKERT_MIN} and {LIKERT_MAX}.')
                    continue
            else:
                rating = None
            if question.question_type == SurveyQuestion.QuestionType.LIKERT and rating is None:
                self.add_error(None, f'Answer {index} requires a rating.')
                continue
            answer = str(item.get('answer') or '').strip()
            cleaned.append((question, answer, rating))
        return cleaned


class EstablishmentForm(ActiveFlagMixin, forms.ModelForm):
    class Meta:
        model = Establishment
        fields = [
            'english_name', 'local_name', 'establishment_type',
            'city_mun', 'barangay', 'address', 'is_active',
        ]


class TourismAttractionForm(ActiveFlagMixin, forms.ModelForm):
    class Meta:
        model = TourismAttraction
        fields = [
            'name', 'ta_category', 'ntdp_category', 'location_type',
            'city_mun', 'barangay', 'is_active',
        ]


class LocalizationForm(forms.ModelForm):
    class Meta:
        model = Localization
        fields = ['language', 'key', 'text']

    def clean_language(self) -> str:
        return clean_language_code(self.cleaned_data['language'])


class SurveyResponseForm(forms.ModelForm):
    class Meta:
        model = SurveyResponse
        fields = ['respondent', 'feedback', 'question', 'answer', 'rating']


class SurveyFeedbackForm(forms.ModelForm):
    """Admin edit of a submitted feedback row."""

    class Meta:
        model = SurveyFeedback
        fields = [
            'entity', 'touchpoint', 'rating', 'language', 'response',
            'sentiment', 'topic', 'is_relevant',
        ]

    def clean_language(self) -> str:
        return clean_language_code(self.cleaned_data['language'])


class InferenceTokenForm(ActiveFlagMixin, forms.ModelForm):
    class Meta:
        model = InferenceToken
        fields = ['label', 'token', 'is_active']


def user_summary(user: User) -> Dict[str, Any]:
    return {
        'id': user.pk,
        'username': user.username,
        'full_name': user.get_full_name(),
        'is_staff': user.is_staff,
        'is_superuser': user.is_superuser,
    }
