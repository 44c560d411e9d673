"""Build the Excel (.xlsx) export of a list of issues."""

from __future__ import annotations

import io
import logging
from datetime import datetime
from typing import Iterable, Optional

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from site_issues.schemas import IssueStatus
from site_issues.utils.time_utils import as_utc, format_duration, time_difference_ms

logger = logging.getLogger(__name__)

SHEET_NAME = "Issues"
CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# (header, column width in characters)
EXPORT_COLUMNS = [
    ("Issue Number", 15),
    ("Location", 25),
    ("Issue Type", 15),
    ("Status", 10),
    ("Submitted At", 20),
    ("Solved At", 20),
    ("Time to Solve", 20),
]


def _format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return as_utc(value).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _enum_value(value) -> str:
    return getattr(value, "value", value)


def _time_to_solve(issue) -> str:
    if issue.solved_at is None or issue.status != IssueStatus.SOLVED:
        return ""

    elapsed = time_difference_ms(issue.submitted_at, issue.solved_at)
    if elapsed < 0:
        logger.warning(
            "Issue solved before it was submitted, reporting zero time to solve",
            extra={"issue_id": issue.id},
        )
        elapsed = 0
    return format_duration(elapsed)


def build_export_rows(issues: Iterable) -> list[list[str]]:
    """One row of cell values per issue, in the order given."""
    return [
        [
            issue.issue_number,
            issue.location,
            _enum_value(issue.issue_type),
            _enum_value(issue.status),
            _format_timestamp(issue.submitted_at),
            _format_timestamp(issue.solved_at),
            _time_to_solve(issue),
        ]
        for issue in issues
    ]


def create_issues_workbook(issues: Iterable) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_NAME

    ws.append([header for header, _ in EXPORT_COLUMNS])
    for row in build_export_rows(issues):
        ws.append(row)

    for col, (_, width) in enumerate(EXPORT_COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(col)].width = width

    return wb


def workbook_to_bytes(wb: Workbook) -> bytes:
    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer.read()


def generate_excel(issues: Iterable) -> bytes:
    """Serialise issues to an .xlsx document with a single "Issues" sheet."""
    return workbook_to_bytes(create_issues_workbook(issues))


def export_filename(now: Optional[datetime] = None) -> str:
    """e.g. issues-export-2024-05-01-14-30-05.xlsx (server local time)."""
    local_now = (now or datetime.now()).astimezone()
    return f"issues-export-{local_now:%Y-%m-%d}-{local_now:%H-%M-%S}.xlsx"
