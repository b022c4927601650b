"""Management package for custom Django admin commands.

This package exposes ``manage.py`` commands for classifier batches
(``classify_feedback``), reference data imports
(``import_reference_workbook``) and the dashboard sentiment report
(``sentiment_report``).
"""
