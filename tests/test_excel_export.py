import io
import re
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from openpyxl import load_workbook

from site_issues.schemas import IssueStatus, IssueType
from site_issues.utils.excel_export import (
    EXPORT_COLUMNS,
    build_export_rows,
    export_filename,
    generate_excel,
)

SUBMITTED = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


def make_issue(**overrides):
    fields = {
        "id": "issue-1",
        "issue_number": "A-100",
        "location": "Lobby",
        "issue_type": IssueType.ELECTRICAL,
        "status": IssueStatus.OPEN,
        "submitted_at": SUBMITTED,
        "solved_at": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_empty_export_has_header_only():
    wb = load_workbook(io.BytesIO(generate_excel([])))

    assert wb.sheetnames == ["Issues"]
    ws = wb["Issues"]
    assert ws.max_row == 1
    assert [cell.value for cell in ws[1]] == [header for header, _ in EXPORT_COLUMNS]


def test_column_widths_are_set():
    ws = load_workbook(io.BytesIO(generate_excel([make_issue()])))["Issues"]

    assert ws.column_dimensions["A"].width == 15
    assert ws.column_dimensions["B"].width == 25
    assert ws.column_dimensions["G"].width == 20


def test_open_issue_row():
    [row] = build_export_rows([make_issue()])

    assert row[:4] == ["A-100", "Lobby", "ELECTRICAL", "OPEN"]
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", row[4])
    assert row[5] == ""
    assert row[6] == ""


def test_solved_issue_row_has_time_to_solve():
    issue = make_issue(status=IssueStatus.SOLVED, solved_at=SUBMITTED + timedelta(hours=25))
    [row] = build_export_rows([issue])

    assert row[3] == "SOLVED"
    assert row[5] != ""
    assert row[6] == "1d 1h"


def test_time_to_solve_only_for_solved_status():
    issue = make_issue(status=IssueStatus.OPEN, solved_at=SUBMITTED + timedelta(hours=2))
    [row] = build_export_rows([issue])

    assert row[5] != ""
    assert row[6] == ""


def test_negative_elapsed_time_is_clamped():
    issue = make_issue(status=IssueStatus.SOLVED, solved_at=SUBMITTED - timedelta(hours=1))
    [row] = build_export_rows([issue])

    assert row[6] == "0m"


def test_rows_keep_input_order():
    issues = [make_issue(issue_number=str(n)) for n in (3, 1, 2)]
    ws = load_workbook(io.BytesIO(generate_excel(issues)))["Issues"]

    assert [ws.cell(row, 1).value for row in range(2, 5)] == ["3", "1", "2"]


def test_filename_is_filesystem_safe():
    name = export_filename(datetime(2024, 5, 1, 14, 30, 5))

    assert name == "issues-export-2024-05-01-14-30-05.xlsx"
    assert ":" not in export_filename()
