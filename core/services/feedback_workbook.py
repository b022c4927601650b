"""Excel helpers for survey feedback exports and reference data imports."""

from __future__ import annotations

from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from django.db import transaction
from django.utils import timezone
from openpyxl import Workbook, load_workbook

from core.models import Establishment, SurveyFeedback, TourismAttraction

FEEDBACK_COLUMNS: Sequence[Tuple[str, str]] = [
    ('id', 'ID'),
    ('created_at', 'Submitted At'),
    ('entity', 'Entity'),
    ('touchpoint', 'Touchpoint'),
    ('rating', 'Rating'),
    ('language', 'Language'),
    ('response', 'Comment'),
    ('sentiment', 'Sentiment'),
    ('topic', 'Topic'),
    ('is_relevant', 'Relevant'),
]

ESTABLISHMENT_COLUMNS: Sequence[Tuple[str, str]] = [
    ('english_name', 'English Name'),
    ('local_name', 'Local Name'),
    ('establishment_type', 'Establishment Type'),
    ('city_mun', 'City/Municipality'),
    ('barangay', 'Barangay'),
    ('address', 'Address'),
]

ATTRACTION_COLUMNS: Sequence[Tuple[str, str]] = [
    ('name', 'Name'),
    ('ta_category', 'TA Category'),
    ('ntdp_category', 'NTDP Category'),
    ('location_type', 'Location Type'),
    ('city_mun', 'City/Municipality'),
    ('barangay', 'Barangay'),
]

REFERENCE_SHEETS = {
    'establishments': (Establishment, 'english_name', ESTABLISHMENT_COLUMNS),
    'attractions': (TourismAttraction, 'name', ATTRACTION_COLUMNS),
}


class WorkbookError(Exception):
    """Raised when workbook import/export fails."""


@dataclass
class ReferenceImportResult:
    created: int = 0
    updated: int = 0
    errors: List[str] = field(default_factory=list)


def _cell_value(feedback: SurveyFeedback, column: str) -> Any:
    value = getattr(feedback, column)
    if column == 'created_at' and value is not None:
        # openpyxl cannot store timezone-aware datetimes.
        return timezone.localtime(value).replace(tzinfo=None)
    return value


def export_feedback_workbook(feedback_rows: Iterable[SurveyFeedback]) -> BytesIO:
    """Return a BytesIO containing an .xlsx sheet of ``feedback_rows``."""

    wb = Workbook()
    ws = wb.active
    ws.title = 'Survey Feedback'
    ws.append([label for _, label in FEEDBACK_COLUMNS])
    for feedback in feedback_rows:
        ws.append([_cell_value(feedback, column) for column, _ in FEEDBACK_COLUMNS])
    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer


def _clean_text(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip()


def import_reference_workbook(workbook_file, kind: str) -> ReferenceImportResult:
    """Create or update establishments or attractions from a workbook.

    The first sheet must start with the headers of the chosen ``kind``.
    Rows are matched on the name column; existing rows are updated.
    """

    if kind not in REFERENCE_SHEETS:
        raise WorkbookError(f'Unknown reference data kind "{kind}".')
    model, name_field, columns = REFERENCE_SHEETS[kind]
    try:
        wb = load_workbook(workbook_file, data_only=True)
    except Exception as exc:  # pragma: no cover - pass through
        raise WorkbookError('Unable to read the workbook.') from exc

    ws = wb.active
    rows = list(ws.iter_rows(values_only=True))
    if not rows:
        raise WorkbookError('The workbook is empty.')
    header = [_clean_text(value) for value in rows[0]]
    expected_header = [label for _, label in columns]
    if header[: len(expected_header)] != expected_header:
        raise WorkbookError('The workbook headers do not match the expected template.')

    result = ReferenceImportResult()
    pending: Dict[str, Dict[str, str]] = {}
    for row_index, row in enumerate(rows[1:], start=2):
        if row is None or not any(row):
            continue
        values = {
            column: _clean_text(row[idx] if idx < len(row) else None)
            for idx, (column, _) in enumerate(columns)
        }
        name = values.pop(name_field)
        if not name:
            result.errors.append(f'Row {row_index}: {name_field} is required.')
            continue
        pending[name] = values

    if not pending:
        raise WorkbookError('The workbook does not include any rows.')

    with transaction.atomic():
        for name, values in pending.items():
            _, created = model.objects.update_or_create(**{name_field: name}, defaults=values)
            if created:
                result.created += 1
            else:
                result.updated += 1
    return result


__all__ = [
    'ATTRACTION_COLUMNS',
    'ESTABLISHMENT_COLUMNS',
    'FEEDBACK_COLUMNS',
    'ReferenceImportResult',
    'WorkbookError',
    'export_feedback_workbook',
    'import_reference_workbook',
]
