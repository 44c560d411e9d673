from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from site_issues.utils.time_utils import as_utc

T = TypeVar("T")


class IssueStatus(str, Enum):
    OPEN = "OPEN"
    SOLVED = "SOLVED"

class IssueType(str, Enum):
    ELECTRICAL = "ELECTRICAL"
    PLUMBING = "PLUMBING"
    HVAC = "HVAC"
    STRUCTURAL = "STRUCTURAL"
    CLEANING = "CLEANING"
    SAFETY = "SAFETY"
    IT = "IT"
    OTHER = "OTHER"

class SortField(str, Enum):
    """Columns a listing may be ordered by."""

    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    SUBMITTED_AT = "submittedAt"
    SOLVED_AT = "solvedAt"
    ISSUE_NUMBER = "issueNumber"
    LOCATION = "location"
    ISSUE_TYPE = "issueType"
    STATUS = "status"
    TITLE = "title"

class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IssueCreate(CamelModel):
    issue_number: str = Field(min_length=1, max_length=100)
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    location: str = Field(min_length=1, max_length=200)
    issue_type: IssueType
    submitted_at: Optional[datetime] = None

class IssueUpdate(CamelModel):
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    location: Optional[str] = Field(None, min_length=1, max_length=200)
    issue_type: Optional[IssueType] = None
    status: Optional[IssueStatus] = None
    # Raw strings; parsed and ordered by the reconciliation rules
    solved_at: Optional[str] = None
    submitted_at: Optional[str] = None

    @field_validator("location", "issue_type", "status")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value

class SolvedTimeUpdate(CamelModel):
    # Required key; an explicit null reopens the issue
    solved_at: Optional[str]

class SubmittedTimeUpdate(CamelModel):
    submitted_at: str

class IssueResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issue_number: str
    title: Optional[str] = None
    description: Optional[str] = None
    location: str
    issue_type: IssueType
    status: IssueStatus
    submitted_at: datetime
    solved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("submitted_at", "solved_at", "created_at", "updated_at")
    @classmethod
    def to_utc(cls, value):
        return as_utc(value)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

class IssuePage(BaseModel):
    issues: list[IssueResponse]
    pagination: Pagination


class StatsPeriod(CamelModel):
    start_date: str
    end_date: str

class IssueStats(CamelModel):
    total_issues: int
    open_issues: int
    solved_issues: int
    unique_issue_numbers: int
    today_issues: int
    avg_solve_time_minutes: int
    avg_solve_time: str
    period: StatsPeriod


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T

class MessageEnvelope(BaseModel):
    success: bool = True
    message: str
