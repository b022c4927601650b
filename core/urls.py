"""URL declarations for the core application.

Every route is a JSON endpoint under ``/api/``.  Public survey routes come
first, followed by the admin CRUD routes and the analytics routes served
from ``views_analytics``.  Paths keep the names the dashboard frontend
already calls, including the mixed-case ``getEntityMetrics`` and
``getAllByTally``.
"""

from django.urls import path

from . import views
# Analytics views import helpers from ``views``, so they live in their own module
from . import views_analytics as analytics

urlpatterns = [
    # Health and authentication
    path('api/health', views.health, name='health'),
    path('api/auth/csrf', views.csrf, name='auth_csrf'),
    path('api/auth/login', views.login_api, name='auth_login'),
    path('api/auth/logout', views.logout_api, name='auth_logout'),
    path('api/admin/session-data', views.session_data, name='session_data'),
    # Public survey
    path('api/survey/submit', views.survey_submit, name='survey_submit'),
    path('api/surveytouchpoints', views.survey_touchpoints, name='survey_touchpoints'),
    path('api/touchpointlocal', views.touchpoint_localized, name='touchpoint_localized'),
    # Classifier helpers
    path('api/analyzetopics', views.analyze_topics, name='analyze_topics'),
    path('api/analyzesentiment', views.analyze_sentiment, name='analyze_sentiment'),
    path('api/storetopics', views.store_topics, name='store_topics'),
    path('api/hf-tokens', views.inference_tokens, name='inference_tokens'),
    # Admin CRUD
    path('api/admin/establishment', views.establishment_api, name='establishment_api'),
    path('api/admin/touattraction', views.attraction_api, name='attraction_api'),
    path('api/admin/localization', views.localization_api, name='localization_api'),
    path('api/admin/survey-responses', views.survey_responses_api, name='survey_responses_api'),
    path('api/admin/survey-responses/open-ended', views.open_ended_responses, name='open_ended_responses'),
    path('api/admin/survey-feedback', views.survey_feedback_list, name='survey_feedback_list'),
    path('api/admin/survey-feedback/export', views.survey_feedback_export, name='survey_feedback_export'),
    path('api/admin/survey-feedback/<int:pk>', views.survey_feedback_detail, name='survey_feedback_detail'),
    path('api/admin/survey-questions', views.survey_questions, name='survey_questions'),
    path('api/admin/establishments', views.establishment_names, name='establishment_names'),
    path('api/admin/anonymous-users', views.anonymous_users, name='anonymous_users'),
    path('api/admin/all-anonymous-users', views.purge_anonymous_users, name='purge_anonymous_users'),
    path('api/admin/spam-anonymous-users', views.spam_anonymous_users, name='spam_anonymous_users'),
    path('api/admin/deletesurveyuser', views.delete_survey_user, name='delete_survey_user'),
    path('api/admin/locations', views.locations, name='locations'),
    path('api/admin/estabtypes', views.establishment_types, name='establishment_types'),
    # Analytics
    path('api/admin/getsentimenttable', analytics.sentiment_table, name='sentiment_table'),
    path(
        'api/admin/getsentimenttableforlocation',
        analytics.sentiment_table_for_location,
        name='sentiment_table_for_location',
    ),
    path('api/admin/getEntityMetrics', analytics.entity_metrics, name='entity_metrics'),
    path('api/admin/getsurveymetrics', analytics.survey_metrics, name='survey_metrics'),
    path('api/admin/getAllByTally', analytics.tally, name='rating_tally'),
    path('api/admin/surveytopics', analytics.survey_topics, name='survey_topics'),
    path('api/admin/automatesentiment', analytics.automate_sentiment, name='automate_sentiment'),
    path('api/admin/automateclassification', analytics.automate_classification, name='automate_classification'),
]
