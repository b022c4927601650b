"""Import establishments or tourism attractions from an Excel workbook.

The first sheet must start with the column headers listed in
:mod:`core.services.feedback_workbook`.  Existing rows are matched by name
and updated; new names are created.

Usage::

    python manage.py import_reference_workbook establishments data/establishments.xlsx
"""

from __future__ import annotations

from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from core.services.feedback_workbook import REFERENCE_SHEETS, WorkbookError, import_reference_workbook


class Command(BaseCommand):
    help = "Create or update establishments/attractions from an .xlsx workbook."

    def add_arguments(self, parser) -> None:
        parser.add_argument('kind', choices=sorted(REFERENCE_SHEETS))
        parser.add_argument('path', help='Path to the .xlsx workbook')

    def handle(self, *args, **options) -> None:
        path = Path(options['path'])
        if not path.exists():
            raise CommandError(f'Workbook not found: {path}')
        with path.open('rb') as handle:
            try:
                result = import_reference_workbook(handle, options['kind'])
            except WorkbookError as exc:
                raise CommandError(str(exc)) from exc
        for error in result.errors:
            self.stderr.write(error)
        self.stdout.write(
            self.style.SUCCESS(f"Imported {options['kind']}: {result.created} created, {result.updated} updated.")
        )
