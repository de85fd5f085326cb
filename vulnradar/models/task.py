"""ORM models for remediation tasks and their append-only note log."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import relationship

from vulnradar.models.base import Base


class Task(Base):
    """
    Work item linking a vulnerability, a company and an assignee.

    status: pending -> in_progress -> resolved -> closed. Never hard-deleted.
    At most one non-closed task per (vulnerability, company), enforced by a partial unique index.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index(
            "uq_tasks_active_vulnerability_company",
            "vulnerability_id",
            "company_id",
            unique=True,
            postgresql_where=text("status <> 'closed'"),
            sqlite_where=text("status <> 'closed'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    vulnerability_id = Column(Integer, ForeignKey("vulnerabilities.id"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    assigned_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_to_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    priority = Column(String(16), nullable=False, default="Medium")
    status = Column(String(16), nullable=False, default="pending", index=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    notes = relationship(
        "TaskNote",
        order_by="TaskNote.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class TaskNote(Base):
    """One attributed, timestamped entry in a task's conversation log. Rows are only ever appended."""

    __tablename__ = "task_notes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    author = Column(String(512), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    body = Column(Text, nullable=False)
