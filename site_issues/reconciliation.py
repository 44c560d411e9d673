"""
Status / timestamp reconciliation for issue updates.

Every function here is pure: it takes the current state of an issue (anything
with `status`, `submitted_at` and `solved_at` attributes) plus the requested
change, and returns a dict of column values to write. A violated rule raises
an `AppError` before anything is written, so an update is applied whole or
not at all.
"""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from site_issues.errors import AlreadySolved, ValidationFailed
from site_issues.schemas import IssueStatus
from site_issues.utils.time_utils import as_utc, utc_now

_datetime_adapter = TypeAdapter(datetime)
_NUMERIC = re.compile(r"[+-]?\d+(\.\d*)?")


def parse_timestamp(value: Any, field: str) -> datetime:
    """
    Parse a client supplied timestamp into an aware UTC datetime.

    Accepts ISO-8601 strings (a bare date means midnight, a missing offset
    means UTC) or datetime objects. Bare numbers are not read as Unix time.

    Raises:
        ValidationFailed: if the value is missing, empty or malformed
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationFailed(f"{field} is required")

    if isinstance(value, str):
        value = value.strip()
        if _NUMERIC.fullmatch(value):
            raise ValidationFailed(f"Invalid date format for {field}")
    elif not isinstance(value, datetime):
        raise ValidationFailed(f"Invalid date format for {field}")

    try:
        return as_utc(_datetime_adapter.validate_python(value))
    except (ValidationError, OverflowError):
        raise ValidationFailed(f"Invalid date format for {field}")


def _resolve_solved_at(value: Any, submitted_at: datetime, status_given: bool) -> dict[str, Any]:
    # Explicit solvedAt: null reopens, a timestamp solves
    if value is None:
        updates: dict[str, Any] = {"solved_at": None}
        if not status_given:
            updates["status"] = IssueStatus.OPEN
        return updates

    solved_at = parse_timestamp(value, "solvedAt")
    if solved_at <= submitted_at:
        raise ValidationFailed("Solved time must be after submitted time")

    updates = {"solved_at": solved_at}
    if not status_given:
        updates["status"] = IssueStatus.SOLVED
    return updates


def reconcile_update(current, changes: dict[str, Any], now: Optional[datetime] = None) -> dict[str, Any]:
    """
    Compute the column updates for a partial issue update.

    Args:
        current: The stored issue
        changes: Only the fields the client actually sent (snake_case keys)
        now: Clock override, defaults to the current UTC time

    Returns:
        Dict of column name -> new value, including passthrough fields
        such as title or location

    Raises:
        ValidationFailed: malformed timestamps or solved/submitted ordering violations
    """
    now = now or utc_now()
    updates = dict(changes)

    status_given = "status" in changes
    solved_given = "solved_at" in changes
    submitted_given = "submitted_at" in changes

    submitted_at = as_utc(current.submitted_at)
    if submitted_given:
        submitted_at = parse_timestamp(changes["submitted_at"], "submittedAt")
        updates["submitted_at"] = submitted_at

    if status_given and not solved_given:
        new_status = changes["status"]
        if new_status == IssueStatus.SOLVED:
            if current.status != IssueStatus.SOLVED or current.solved_at is None:
                updates["solved_at"] = now
        elif new_status == IssueStatus.OPEN:
            updates["solved_at"] = None

    if solved_given:
        updates.update(_resolve_solved_at(changes["solved_at"], submitted_at, status_given))

    if submitted_given:
        solved_at = updates["solved_at"] if "solved_at" in updates else as_utc(current.solved_at)
        if solved_at is not None and submitted_at >= solved_at:
            raise ValidationFailed("Submitted time must be before solved time")

    return updates


def reconcile_solved_time(current, value: Any) -> dict[str, Any]:
    """Updates for the dedicated solved-time correction; null reopens the issue."""
    return _resolve_solved_at(value, as_utc(current.submitted_at), status_given=False)


def reconcile_submitted_time(current, value: Any) -> dict[str, Any]:
    """Updates for the dedicated submitted-time correction."""
    submitted_at = parse_timestamp(value, "submittedAt")

    solved_at = as_utc(current.solved_at)
    if solved_at is not None and submitted_at >= solved_at:
        raise ValidationFailed("Submitted time must be before solved time")

    return {"submitted_at": submitted_at}


def reconcile_solve(current, now: Optional[datetime] = None) -> dict[str, Any]:
    """Updates for the one-shot solve action."""
    if current.status == IssueStatus.SOLVED:
        raise AlreadySolved("Issue is already solved")

    return {"status": IssueStatus.SOLVED, "solved_at": now or utc_now()}
