import logging
import math
import os
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from site_issues.database import models
from site_issues.database.config import get_db
from site_issues.errors import NotFound
from site_issues.reconciliation import (
    parse_timestamp,
    reconcile_solve,
    reconcile_solved_time,
    reconcile_submitted_time,
    reconcile_update,
)
from site_issues.schemas import (
    Envelope,
    IssueCreate,
    IssuePage,
    IssueResponse,
    IssueStats,
    IssueStatus,
    IssueUpdate,
    MessageEnvelope,
    Pagination,
    SolvedTimeUpdate,
    SortField,
    SortOrder,
    SubmittedTimeUpdate,
)
from site_issues.utils.excel_export import CONTENT_TYPE, export_filename, generate_excel
from site_issues.utils.time_utils import (
    as_utc,
    end_of_local_day,
    format_duration,
    round_to_minutes,
    start_of_local_day,
    time_difference_ms,
    utc_now,
)

logger = logging.getLogger(__name__)

MAX_PAGE_LIMIT = int(os.getenv("MAX_PAGE_LIMIT", "100"))
# Keeps (page - 1) * limit inside a signed 64-bit OFFSET
MAX_PAGE = (2**63 - 1) // MAX_PAGE_LIMIT

SORT_COLUMNS = {
    SortField.CREATED_AT: models.Issue.created_at,
    SortField.UPDATED_AT: models.Issue.updated_at,
    SortField.SUBMITTED_AT: models.Issue.submitted_at,
    SortField.SOLVED_AT: models.Issue.solved_at,
    SortField.ISSUE_NUMBER: models.Issue.issue_number,
    SortField.LOCATION: models.Issue.location,
    SortField.ISSUE_TYPE: models.Issue.issue_type,
    SortField.STATUS: models.Issue.status,
    SortField.TITLE: models.Issue.title,
}

router = APIRouter(prefix="/api/v1/issues", tags=["issues"])


async def _get_issue_or_404(db: AsyncSession, issue_id: str) -> models.Issue:
    result = await db.execute(select(models.Issue).where(models.Issue.id == issue_id))
    issue = result.scalars().first()

    if not issue:
        raise NotFound("Issue not found")

    return issue


async def _apply_updates(db: AsyncSession, issue: models.Issue, updates: dict) -> models.Issue:
    for field, value in updates.items():
        setattr(issue, field, value)

    await db.commit()
    await db.refresh(issue)
    return issue


def _submitted_range(start_date: Optional[str], end_date: Optional[str]) -> list:
    """WHERE clauses for startDate <= submittedAt <= endDate."""
    conditions = []
    if start_date:
        conditions.append(models.Issue.submitted_at >= parse_timestamp(start_date, "startDate"))
    if end_date:
        conditions.append(models.Issue.submitted_at <= parse_timestamp(end_date, "endDate"))
    return conditions


async def _paginate(
    db: AsyncSession,
    conditions: list,
    page: int,
    limit: int,
    sort_by: SortField,
    sort_order: SortOrder,
) -> IssuePage:
    limit = min(limit, MAX_PAGE_LIMIT)
    column = SORT_COLUMNS[sort_by]
    order = column.asc() if sort_order == SortOrder.ASC else column.desc()

    result = await db.execute(
        select(models.Issue)
        .where(*conditions)
        .order_by(order, models.Issue.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    issues = result.scalars().all()
    total = await db.scalar(select(func.count()).select_from(models.Issue).where(*conditions))

    return IssuePage(
        issues=[IssueResponse.model_validate(issue) for issue in issues],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
    )


@router.post("/", response_model=Envelope[IssueResponse], status_code=status.HTTP_201_CREATED)
async def create_issue(payload: IssueCreate, db: AsyncSession = Depends(get_db)):
    """Create new issue"""
    new_issue = models.Issue(
        id=str(uuid.uuid4()),
        issue_number=payload.issue_number,
        title=payload.title,
        description=payload.description,
        location=payload.location,
        issue_type=payload.issue_type,
        status=IssueStatus.OPEN,
    )
    if payload.submitted_at is not None:
        new_issue.submitted_at = as_utc(payload.submitted_at)

    db.add(new_issue)
    await db.commit()
    await db.refresh(new_issue)

    logger.info("Issue created", extra={"issue_id": new_issue.id, "issue_number": new_issue.issue_number})
    return Envelope(data=IssueResponse.model_validate(new_issue))


@router.get("/", response_model=Envelope[IssuePage])
async def list_issues(
    status_filter: Optional[IssueStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(10, ge=1),
    sort_by: SortField = Query(SortField.CREATED_AT, alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
):
    """List issues, optionally filtered by status"""
    conditions = [models.Issue.status == status_filter] if status_filter else []
    return Envelope(data=await _paginate(db, conditions, page, limit, sort_by, sort_order))


@router.get("/stats", response_model=Envelope[IssueStats])
async def get_stats(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
):
    """Aggregate counters, optionally restricted to a submittedAt range"""
    date_filter = _submitted_range(start_date, end_date)

    def count(*conditions):
        return db.scalar(select(func.count()).select_from(models.Issue).where(*conditions))

    total_issues = await count(*date_filter)
    open_issues = await count(*date_filter, models.Issue.status == IssueStatus.OPEN)
    solved_issues = await count(*date_filter, models.Issue.status == IssueStatus.SOLVED)
    unique_issue_numbers = await db.scalar(
        select(func.count(models.Issue.issue_number.distinct())).where(*date_filter)
    )
    # Always the server's local calendar day, whatever range was requested
    now = utc_now()
    today_issues = await count(
        models.Issue.submitted_at >= start_of_local_day(now),
        models.Issue.submitted_at < end_of_local_day(now),
    )

    result = await db.execute(
        select(models.Issue.submitted_at, models.Issue.solved_at).where(
            *date_filter,
            models.Issue.status == IssueStatus.SOLVED,
            models.Issue.solved_at.is_not(None),
        )
    )
    solve_times = result.all()

    avg_solve_time_minutes = 0
    if solve_times:
        total_ms = sum(time_difference_ms(submitted, solved) for submitted, solved in solve_times)
        avg_solve_time_minutes = max(0, round_to_minutes(total_ms / len(solve_times)))

    stats = IssueStats(
        total_issues=total_issues,
        open_issues=open_issues,
        solved_issues=solved_issues,
        unique_issue_numbers=unique_issue_numbers,
        today_issues=today_issues,
        avg_solve_time_minutes=avg_solve_time_minutes,
        avg_solve_time=format_duration(avg_solve_time_minutes * 60 * 1000),
        period={
            "start_date": start_date or "All time",
            "end_date": end_date or "All time",
        },
    )
    return Envelope(data=stats)


@router.get("/export")
async def export_issues(
    status_filter: Optional[IssueStatus] = Query(None, alias="status"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
):
    """Download matching issues as an Excel workbook"""
    conditions = _submitted_range(start_date, end_date)
    if status_filter:
        conditions.append(models.Issue.status == status_filter)

    result = await db.execute(
        select(models.Issue).where(*conditions).order_by(models.Issue.submitted_at.desc())
    )
    issues = result.scalars().all()

    content = await run_in_threadpool(generate_excel, issues)
    filename = export_filename()
    logger.info(f"Exported {len(issues)} issues to {filename}")

    return Response(
        content=content,
        media_type=CONTENT_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Content-Length": str(len(content)),
        },
    )


@router.get("/number/{issue_number}", response_model=Envelope[IssuePage])
async def list_issues_by_number(
    issue_number: str,
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(10, ge=1),
    sort_by: SortField = Query(SortField.SUBMITTED_AT, alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
):
    """List all issues sharing an issue number"""
    conditions = [models.Issue.issue_number == issue_number]
    issue_page = await _paginate(db, conditions, page, limit, sort_by, sort_order)

    if not issue_page.issues:
        raise NotFound("No issues found with this issue number")

    return Envelope(data=issue_page)


@router.get("/{issue_id}", response_model=Envelope[IssueResponse], status_code=status.HTTP_200_OK)
async def get_issue(issue_id: str, db: AsyncSession = Depends(get_db)):
    """Get issue by ID"""
    issue = await _get_issue_or_404(db, issue_id)
    return Envelope(data=IssueResponse.model_validate(issue))


@router.put("/{issue_id}", response_model=Envelope[IssueResponse], status_code=status.HTTP_200_OK)
async def update_issue(issue_id: str, payload: IssueUpdate, db: AsyncSession = Depends(get_db)):
    """Update issue by ID"""
    issue = await _get_issue_or_404(db, issue_id)

    updates = reconcile_update(issue, payload.model_dump(exclude_unset=True))
    issue = await _apply_updates(db, issue, updates)

    logger.info("Issue updated", extra={"issue_id": issue.id, "fields": sorted(updates)})
    return Envelope(data=IssueResponse.model_validate(issue))


@router.delete("/{issue_id}", response_model=MessageEnvelope)
async def delete_issue(issue_id: str, db: AsyncSession = Depends(get_db)):
    """Delete issue by ID"""
    issue = await _get_issue_or_404(db, issue_id)

    await db.delete(issue)
    await db.commit()

    logger.info("Issue deleted", extra={"issue_id": issue_id})
    return MessageEnvelope(message="Issue deleted successfully")


@router.patch("/{issue_id}/solve", response_model=Envelope[IssueResponse])
async def solve_issue(issue_id: str, db: AsyncSession = Depends(get_db)):
    """Mark an open issue as solved now"""
    issue = await _get_issue_or_404(db, issue_id)

    issue = await _apply_updates(db, issue, reconcile_solve(issue))

    logger.info("Issue solved", extra={"issue_id": issue.id})
    return Envelope(data=IssueResponse.model_validate(issue))


@router.patch("/{issue_id}/solved-time", response_model=Envelope[IssueResponse])
async def update_solved_time(issue_id: str, payload: SolvedTimeUpdate, db: AsyncSession = Depends(get_db)):
    """Correct (or clear) the solved time of an issue"""
    issue = await _get_issue_or_404(db, issue_id)

    issue = await _apply_updates(db, issue, reconcile_solved_time(issue, payload.solved_at))

    logger.info("Issue solved time updated", extra={"issue_id": issue.id, "solved_at": issue.solved_at})
    return Envelope(data=IssueResponse.model_validate(issue))


@router.patch("/{issue_id}/submitted-time", response_model=Envelope[IssueResponse])
async def update_submitted_time(issue_id: str, payload: SubmittedTimeUpdate, db: AsyncSession = Depends(get_db)):
    """Correct the submitted time of an issue"""
    issue = await _get_issue_or_404(db, issue_id)

    issue = await _apply_updates(db, issue, reconcile_submitted_time(issue, payload.submitted_at))

    logger.info("Issue submitted time updated", extra={"issue_id": issue.id, "submitted_at": issue.submitted_at})
    return Envelope(data=IssueResponse.model_validate(issue))
