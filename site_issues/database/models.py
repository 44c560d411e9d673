from sqlalchemy import Column, DateTime, Enum, String

from site_issues.database.config import Base
from site_issues.schemas import IssueStatus, IssueType
from site_issues.utils.time_utils import utc_now


class Issue(Base):
    __tablename__ = "issues"

    id = Column(String, primary_key=True, index=True)
    issue_number = Column(String, nullable=False, index=True)
    title = Column(String, nullable=True)
    description = Column(String, nullable=True)
    location = Column(String, nullable=False)
    issue_type = Column(Enum(IssueType, name="issue_type"), nullable=False)
    status = Column(
        Enum(IssueStatus, name="issue_status"),
        nullable=False,
        default=IssueStatus.OPEN,
        index=True,
    )

    submitted_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    solved_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return f"<Issue(id='{self.id}', issue_number='{self.issue_number}', status='{self.status}')>"
