"""Root URL configuration for the tourism survey project."""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('django-admin/', admin.site.urls),
    path('', include('core.urls')),
]

handler404 = 'core.views.not_found'
