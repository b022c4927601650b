"""Django admin configuration for core models."""

from django.contrib import admin

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


class SurveyResponseInline(admin.TabularInline):
    """Shows the per-question answers on the feedback page."""
    model = SurveyResponse
    extra = 0
    fields = ('question', 'answer', 'rating')


@admin.register(SurveyFeedback)
class SurveyFeedbackAdmin(admin.ModelAdmin):
    list_display = ('id', 'entity', 'touchpoint', 'rating', 'language', 'sentiment', 'topic', 'created_at')
    list_filter = ('touchpoint', 'sentiment', 'language', 'is_relevant')
    search_fields = ('entity', 'response', 'topic')
    date_hierarchy = 'created_at'
    inlines = (SurveyResponseInline,)


@admin.register(Establishment)
class EstablishmentAdmin(admin.ModelAdmin):
    list_display = ('english_name', 'establishment_type', 'city_mun', 'barangay', 'is_active')
    list_filter = ('city_mun', 'is_active')
    search_fields = ('english_name', 'local_name')


@admin.register(TourismAttraction)
class TourismAttractionAdmin(admin.ModelAdmin):
    list_display = ('name', 'ta_category', 'city_mun', 'is_active')
    list_filter = ('city_mun', 'ta_category', 'is_active')
    search_fields = ('name',)


@admin.register(InferenceToken)
class InferenceTokenAdmin(admin.ModelAdmin):
    list_display = ('label', 'is_active', 'created_at')


admin.site.register(AnonymousRespondent)
admin.site.register(Touchpoint)
admin.site.register(Localization)
admin.site.register(SurveyQuestion)
admin.site.register(ActivityLog)
