import json
from datetime import datetime, timezone as dt_timezone
from io import BytesIO

from django.contrib.auth.models import User
from django.test import TestCase
from django.urls import reverse
from openpyxl import load_workbook

from core.models import (
    ActivityLog,
    AnonymousRespondent,
    Establishment,
    InferenceToken,
    Localization,
    SurveyFeedback,
    SurveyQuestion,
    SurveyResponse,
    TourismAttraction,
)


class AdminAPITestCase(TestCase):
    def setUp(self) -> None:
        self.admin = User.objects.create_user(username='admin', password='pass', is_staff=True)
        self.member = User.objects.create_user(username='member', password='pass')
        self.client.force_login(self.admin)

    def send(self, method: str, name: str, payload=None, **kwargs):
        return getattr(self.client, method)(
            reverse(name, kwargs=kwargs or None),
            data=json.dumps(payload) if payload is not None else '',
            content_type='application/json',
        )


class AuthGateTest(AdminAPITestCase):
    def test_anonymous_callers_get_401(self) -> None:
        self.client.logout()
        for name in ('establishment_api', 'sentiment_table', 'entity_metrics', 'session_data'):
            response = self.client.get(reverse(name))
            self.assertEqual(response.status_code, 401, name)
            self.assertIn('error', response.json())

    def test_non_staff_users_get_403(self) -> None:
        self.client.force_login(self.member)
        response = self.client.get(reverse('sentiment_table'))
        self.assertEqual(response.status_code, 403)

    def test_login_and_logout(self) -> None:
        self.client.logout()
        response = self.send('post', 'auth_login', {'username': 'admin', 'password': 'pass'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['user']['username'], 'admin')
        self.assertEqual(self.client.get(reverse('session_data')).status_code, 200)
        self.send('post', 'auth_logout')
        self.assertEqual(self.client.get(reverse('session_data')).status_code, 401)

    def test_wrong_password_is_rejected(self) -> None:
        self.client.logout()
        response = self.send('post', 'auth_login', {'username': 'admin', 'password': 'nope'})
        self.assertEqual(response.status_code, 401)

    def test_login_requires_both_fields(self) -> None:
        response = self.send('post', 'auth_login', {'username': 'admin'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('password', response.json()['errors'])

    def test_session_data_describes_principal(self) -> None:
        body = self.client.get(reverse('session_data')).json()
        self.assertEqual(body['user']['username'], 'admin')
        self.assertTrue(body['user']['is_staff'])
        self.assertIsNotNone(body['session']['expires_at'])


class EstablishmentCrudTest(AdminAPITestCase):
    def test_create_list_update_delete(self) -> None:
        response = self.send('post', 'establishment_api', {
            'english_name': 'Hotel Luna',
            'city_mun': 'Vigan',
            'establishment_type': 'Hotel',
        })
        self.assertEqual(response.status_code, 201)
        created = response.json()
        self.assertTrue(created['is_active'])

        listing = self.client.get(reverse('establishment_api'), {'city_mun': 'vigan'}).json()
        self.assertEqual([item['english_name'] for item in listing], ['Hotel Luna'])

        response = self.send('put', 'establishment_api', {'id': created['id'], 'barangay': 'Ayusan'})
        self.assertEqual(response.status_code, 200)
        establishment = Establishment.objects.get(pk=created['id'])
        self.assertEqual(establishment.barangay, 'Ayusan')
        self.assertEqual(establishment.city_mun, 'Vigan')
        self.assertTrue(establishment.is_active)

        response = self.send('put', 'establishment_api', {'id': created['id'], 'is_active': False})
        self.assertFalse(response.json()['is_active'])

        response = self.send('delete', 'establishment_api', {'id': created['id']})
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Establishment.objects.exists())

        actions = list(ActivityLog.objects.order_by('timestamp', 'pk').values_list('action', flat=True))
        self.assertEqual(
            actions,
            ['Created establishment', 'Updated establishment', 'Updated establishment', 'Deleted establishment'],
        )

    def test_duplicate_name_is_a_validation_error(self) -> None:
        Establishment.objects.create(english_name='Hotel Luna')
        response = self.send('post', 'establishment_api', {'english_name': 'Hotel Luna'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('english_name', response.json()['errors'])

    def test_missing_and_unknown_ids(self) -> None:
        self.assertEqual(self.send('put', 'establishment_api', {'barangay': 'x'}).status_code, 400)
        self.assertEqual(self.send('delete', 'establishment_api', {'id': 'abc'}).status_code, 400)
        self.assertEqual(self.send('delete', 'establishment_api', {'id': 999}).status_code, 404)

    def test_id_may_come_from_query_string(self) -> None:
        establishment = Establishment.objects.create(english_name='Hotel Luna')
        response = self.client.delete(f"{reverse('establishment_api')}?id={establishment.pk}")
        self.assertEqual(response.status_code, 200)

    def test_establishment_names_lists_active_only(self) -> None:
        Establishment.objects.create(english_name='B Inn')
        Establishment.objects.create(english_name='A Lodge')
        Establishment.objects.create(english_name='Closed Place', is_active=False)
        self.assertEqual(self.client.get(reverse('establishment_names')).json(), ['A Lodge', 'B Inn'])


class OtherCrudTest(AdminAPITestCase):
    def test_attraction_crud(self) -> None:
        response = self.send('post', 'attraction_api', {'name': 'Calle Crisologo', 'ta_category': 'Heritage'})
        self.assertEqual(response.status_code, 201)
        pk = response.json()['id']
        self.send('put', 'attraction_api', {'id': pk, 'city_mun': 'Vigan'})
        self.assertEqual(TourismAttraction.objects.get(pk=pk).city_mun, 'Vigan')

    def test_localization_language_is_validated(self) -> None:
        ok = self.send('post', 'localization_api', {'language': 'KO', 'key': 'touchpoint.food', 'text': '음식'})
        self.assertEqual(ok.status_code, 201)
        self.assertEqual(Localization.objects.get().language, 'ko')
        bad = self.send('post', 'localization_api', {'language': 'k', 'key': 'x', 'text': 'y'})
        self.assertEqual(bad.status_code, 400)

    def test_survey_response_crud_filters_by_question(self) -> None:
        question = SurveyQuestion.objects.create(code='suggestions', text='Suggestions?')
        other = SurveyQuestion.objects.create(code='other', text='Other?')
        SurveyResponse.objects.create(question=question, answer='More signs')
        SurveyResponse.objects.create(question=other, answer='None')
        listing = self.client.get(reverse('survey_responses_api'), {'question': 'suggestions'}).json()
        self.assertEqual([item['answer'] for item in listing], ['More signs'])

        response = self.send('put', 'survey_responses_api', {'id': listing[0]['id'], 'answer': 'More maps'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['answer'], 'More maps')

    def test_survey_questions_are_listed(self) -> None:
        SurveyQuestion.objects.create(code='b', text='B', display_order=2)
        SurveyQuestion.objects.create(code='a', text='A', display_order=1)
        codes = [item['code'] for item in self.client.get(reverse('survey_questions')).json()]
        self.assertEqual(codes, ['a', 'b'])


class SurveyFeedbackAdminTest(AdminAPITestCase):
    def setUp(self) -> None:
        super().setUp()
        self.q2 = SurveyFeedback.objects.create(
            entity='Hotel Luna', touchpoint='establishment', rating=4, response='Great',
            created_at=datetime(2024, 5, 10, 4, tzinfo=dt_timezone.utc),
        )
        self.q3 = SurveyFeedback.objects.create(
            entity='Hotel Luna', touchpoint='establishment', rating=2, response='Noisy',
            created_at=datetime(2024, 8, 10, 4, tzinfo=dt_timezone.utc),
        )

    def test_list_is_filtered_and_paginated(self) -> None:
        body = self.client.get(reverse('survey_feedback_list'), {'year': 2024, 'quarter': 2}).json()
        self.assertEqual(body['count'], 1)
        self.assertEqual(body['results'][0]['id'], self.q2.pk)
        body = self.client.get(reverse('survey_feedback_list'), {'page_size': 1, 'page': 2}).json()
        self.assertEqual(body['num_pages'], 2)
        self.assertEqual(body['results'][0]['id'], self.q2.pk)

    def test_invalid_filter_is_400(self) -> None:
        response = self.client.get(reverse('survey_feedback_list'), {'quarter': 7})
        self.assertEqual(response.status_code, 400)

    def test_update_and_delete(self) -> None:
        response = self.send('put', 'survey_feedback_detail', {'sentiment': 'negative', 'topic': 'Noise'}, pk=self.q3.pk)
        self.assertEqual(response.status_code, 200)
        self.q3.refresh_from_db()
        self.assertEqual(self.q3.sentiment, 'negative')
        self.assertEqual(self.q3.rating, 2)

        bad = self.send('put', 'survey_feedback_detail', {'sentiment': 'ecstatic'}, pk=self.q3.pk)
        self.assertEqual(bad.status_code, 400)

        self.assertEqual(self.send('delete', 'survey_feedback_detail', pk=self.q3.pk).status_code, 200)
        self.assertEqual(self.send('delete', 'survey_feedback_detail', pk=self.q3.pk).status_code, 404)

    def test_export_returns_workbook(self) -> None:
        response = self.client.get(reverse('survey_feedback_export'), {'year': 2024, 'quarter': 3})
        self.assertEqual(response.status_code, 200)
        self.assertIn('attachment;', response['Content-Disposition'])
        sheet = load_workbook(BytesIO(response.content)).active
        rows = list(sheet.iter_rows(values_only=True))
        self.assertEqual(rows[0][0], 'ID')
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][0], self.q3.pk)

    def test_open_ended_answers(self) -> None:
        question = SurveyQuestion.objects.create(code='suggestions', text='Suggestions?')
        likert = SurveyQuestion.objects.create(code='clean', text='Clean?', question_type='likert')
        SurveyResponse.objects.create(question=question, feedback=self.q2, answer='More parking')
        SurveyResponse.objects.create(question=question, feedback=self.q2, answer='')
        SurveyResponse.objects.create(question=likert, feedback=self.q2, answer='', rating=3)
        items = self.client.get(reverse('open_ended_responses')).json()
        self.assertEqual([item['answer'] for item in items], ['More parking'])
        self.assertEqual(items[0]['entity'], 'Hotel Luna')


class AnonymousRespondentAdminTest(AdminAPITestCase):
    def test_list_and_purge(self) -> None:
        idle = AnonymousRespondent.objects.create(session_key='idle-session')
        active = AnonymousRespondent.objects.create(session_key='active-session')
        SurveyFeedback.objects.create(respondent=active, entity='Hotel Luna', touchpoint='establishment', rating=3)

        listing = {item['session_key']: item for item in self.client.get(reverse('anonymous_users')).json()}
        self.assertEqual(listing['active-session']['feedback_count'], 1)
        self.assertEqual(listing['idle-session']['feedback_count'], 0)

        response = self.client.delete(reverse('purge_anonymous_users'))
        self.assertEqual(response.json()['deleted'], 1)
        self.assertFalse(AnonymousRespondent.objects.filter(pk=idle.pk).exists())
        self.assertTrue(AnonymousRespondent.objects.filter(pk=active.pk).exists())


class InferenceTokenAdminTest(AdminAPITestCase):
    def test_tokens_are_masked(self) -> None:
        response = self.send('post', 'inference_tokens', {'label': 'DEV_free', 'token': 'hf_secret1234'})
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['token'], '...1234')
        self.assertTrue(InferenceToken.objects.get().is_active)
        listing = self.client.get(reverse('inference_tokens')).json()
        self.assertEqual(listing[0]['label'], 'DEV_free')
        self.assertNotIn('hf_secret', json.dumps(listing))


class SpamRespondentTest(AdminAPITestCase):
    def setUp(self) -> None:
        super().setUp()
        self.spammer = AnonymousRespondent.objects.create(session_key='spam-session')
        self.regular = AnonymousRespondent.objects.create(session_key='regular-session')
        for _ in range(3):
            SurveyFeedback.objects.create(respondent=self.spammer, entity='Hotel Luna', touchpoint='establishment', rating=1)
        SurveyFeedback.objects.create(
            respondent=self.regular, entity='Hotel Luna', touchpoint='establishment', rating=4,
            created_at=datetime(2020, 1, 1, tzinfo=dt_timezone.utc),
        )
        SurveyFeedback.objects.create(
            respondent=self.regular, entity='Hotel Luna', touchpoint='establishment', rating=4,
            created_at=datetime(2020, 1, 2, tzinfo=dt_timezone.utc),
        )
        SurveyFeedback.objects.create(respondent=self.regular, entity='Hotel Luna', touchpoint='establishment', rating=4)

    def test_only_recent_bursts_are_listed(self) -> None:
        with self.settings(SURVEY_SPAM_THRESHOLD=3, SURVEY_SPAM_WINDOW_SECONDS=3600):
            body = self.client.get(reverse('spam_anonymous_users')).json()
        self.assertEqual(body['threshold'], 3)
        self.assertEqual([item['session_key'] for item in body['results']], ['spam-session'])
        self.assertEqual(body['results'][0]['recent_feedback'], 3)
        self.assertEqual(body['results'][0]['feedback_count'], 3)

    def test_delete_survey_user_removes_feedback(self) -> None:
        response = self.send('delete', 'delete_survey_user', {'id': self.spammer.pk})
        self.assertEqual(response.json(), {'ok': True, 'id': self.spammer.pk, 'feedback_deleted': 3})
        self.assertFalse(AnonymousRespondent.objects.filter(pk=self.spammer.pk).exists())
        self.assertEqual(SurveyFeedback.objects.count(), 3)
        self.assertTrue(ActivityLog.objects.filter(action='Deleted survey respondent').exists())

    def test_delete_survey_user_needs_a_known_id(self) -> None:
        self.assertEqual(self.send('delete', 'delete_survey_user', {}).status_code, 400)
        self.assertEqual(self.send('delete', 'delete_survey_user', {'id': 9999}).status_code, 404)


class ReferenceLookupTest(AdminAPITestCase):
    def setUp(self) -> None:
        super().setUp()
        Establishment.objects.create(english_name='Hotel Luna', establishment_type='Hotel', city_mun='Vigan', barangay='I')
        Establishment.objects.create(english_name='Cafe Leona', establishment_type='Restaurant', city_mun='Vigan')
        Establishment.objects.create(english_name='Hotel Sol', establishment_type='Hotel', city_mun='Laoag', barangay='10')
        TourismAttraction.objects.create(name='Bantay Bell Tower', location_type='Heritage', city_mun='Bantay', barangay='Tay-ac')
        TourismAttraction.objects.create(name='Mindoro Beach', location_type='Beach', city_mun='Vigan', barangay='Mindoro')

    def test_locations_group_barangays_by_city(self) -> None:
        body = self.client.get(reverse('locations')).json()
        self.assertEqual(body, [
            {'city_mun': 'Bantay', 'barangays': ['Tay-ac']},
            {'city_mun': 'Laoag', 'barangays': ['10']},
            {'city_mun': 'Vigan', 'barangays': ['I', 'Mindoro']},
        ])

    def test_locations_filter_by_type_and_city(self) -> None:
        by_type = self.client.get(reverse('locations'), {'location_type': 'beach'}).json()
        self.assertEqual(by_type, [{'city_mun': 'Vigan', 'barangays': ['Mindoro']}])
        by_city = self.client.get(reverse('locations'), {'city_mun': 'laoag'}).json()
        self.assertEqual(by_city, [{'city_mun': 'Laoag', 'barangays': ['10']}])

    def test_establishment_types_are_distinct(self) -> None:
        self.assertEqual(self.client.get(reverse('establishment_types')).json(), ['Hotel', 'Restaurant'])
