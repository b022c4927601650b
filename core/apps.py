"""Application configuration for the core app.

``ready()`` stays free of database access so that migrations and
management commands start cleanly.  Classifier batches and workbook
imports live in dedicated management commands.
"""

from __future__ import annotations

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Custom AppConfig for the core application."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'
    verbose_name = 'Tourism survey'
