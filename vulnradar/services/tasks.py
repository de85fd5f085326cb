"""Task lifecycle: admin assignment, self-claim, status updates with notes, and listing.

Statuses: pending -> in_progress -> resolved -> closed. Only admins may close; closed is terminal.
At most one non-closed task exists per (vulnerability, company).
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vulnradar.models import Task, TaskNote, User, Vulnerability
from vulnradar.schemas.auth import CurrentUser
from vulnradar.schemas.task import (
    TASK_STATUSES,
    AssignTaskRequest,
    ClaimTaskRequest,
    TaskNoteOut,
    TaskOut,
    UpdateTaskRequest,
)
from vulnradar.services.access import can_assign, derive_priority, is_admin, is_visible
from vulnradar.services.companies import (
    get_user_company_id,
    is_company_member,
    list_company_users,
)
from vulnradar.services.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServiceError,
    ValidationFailedError,
)
from vulnradar.services.task_notes import format_legacy_notes, note_author, parse_legacy_notes

logger = logging.getLogger(__name__)

CLOSED = "closed"
RESOLVED_STATUSES = frozenset({"resolved", "closed"})

VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": TASK_STATUSES,
    "in_progress": TASK_STATUSES,
    "resolved": TASK_STATUSES,
    "closed": frozenset(),
}


def _now() -> datetime:
    return datetime.now(UTC)


def _active_task_for_company(db: Session, vulnerability_id: int, company_id: int) -> Task | None:
    return (
        db.query(Task)
        .filter(
            Task.vulnerability_id == vulnerability_id,
            Task.company_id == company_id,
            Task.status != CLOSED,
        )
        .first()
    )


def _active_task_for_user(db: Session, vulnerability_id: int, user_id: int) -> Task | None:
    return (
        db.query(Task)
        .filter(
            Task.vulnerability_id == vulnerability_id,
            Task.assigned_to_user_id == user_id,
            Task.status != CLOSED,
        )
        .first()
    )


def _require_company(db: Session, user: CurrentUser) -> int:
    company_id = get_user_company_id(db, user.id)
    if company_id is None:
        raise ServiceError("You must join a company first")
    return company_id


def _get_vulnerability(db: Session, vulnerability_id: int) -> Vulnerability:
    vulnerability = db.get(Vulnerability, vulnerability_id)
    if vulnerability is None:
        raise NotFoundError("Vulnerability not found")
    return vulnerability


def _initial_notes(text: str | None, author: str, now: datetime) -> list[TaskNote]:
    """Notes given at creation. Text already in the delimited format keeps its per-block authors."""
    notes: list[TaskNote] = []
    for entry in parse_legacy_notes(text):
        if not entry.body:
            continue
        notes.append(TaskNote(author=entry.author or author, created_at=now, body=entry.body))
    return notes


def _commit_new_task(db: Session, task: Task) -> Task:
    db.add(task)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(
            "This vulnerability already has an active task in your company"
        ) from e
    db.refresh(task)
    return task


def assign_task(db: Session, admin: CurrentUser, payload: AssignTaskRequest) -> Task:
    """Admin assigns a vulnerability to a member of the admin's company. The task starts pending."""
    if not is_admin(admin.role):
        raise PermissionDeniedError("Only administrators can assign tasks")
    company_id = _require_company(db, admin)
    vulnerability = _get_vulnerability(db, payload.vulnerability_id)

    assignee = db.get(User, payload.assigned_to_user_id)
    if assignee is None or not is_company_member(db, assignee.id, company_id):
        raise NotFoundError("User not found in your company")
    if not can_assign(vulnerability.tlp_rating, assignee.role):
        raise PermissionDeniedError(
            f"A {vulnerability.tlp_rating} vulnerability cannot be assigned to a user with role '{assignee.role}'"
        )
    if _active_task_for_user(db, vulnerability.id, assignee.id) is not None:
        raise ConflictError("This user already has an active task for this vulnerability")
    if _active_task_for_company(db, vulnerability.id, company_id) is not None:
        raise ConflictError("This vulnerability already has an active task in your company")

    now = _now()
    task = Task(
        vulnerability_id=vulnerability.id,
        company_id=company_id,
        assigned_by_user_id=admin.id,
        assigned_to_user_id=assignee.id,
        priority=payload.priority or derive_priority(vulnerability.severity_level),
        status="pending",
    )
    task.notes.extend(_initial_notes(payload.notes, note_author(admin.email, admin.role), now))
    task = _commit_new_task(db, task)
    logger.info(
        "Task assigned",
        extra={
            "task_id": task.id,
            "vulnerability_id": vulnerability.id,
            "company_id": company_id,
            "assigned_to_user_id": assignee.id,
        },
    )
    return task


def claim_task(db: Session, user: CurrentUser, payload: ClaimTaskRequest) -> Task:
    """A non-admin assigns a vulnerability to themself; priority follows the vulnerability's severity."""
    if is_admin(user.role):
        raise PermissionDeniedError("Administrators assign tasks instead of claiming them")
    company_id = _require_company(db, user)
    vulnerability = _get_vulnerability(db, payload.vulnerability_id)

    if not is_visible(user.role, vulnerability.tlp_rating) or not can_assign(
        vulnerability.tlp_rating, user.role
    ):
        raise PermissionDeniedError("You do not have clearance for this vulnerability")
    if _active_task_for_company(db, vulnerability.id, company_id) is not None:
        raise ConflictError("This vulnerability has already been claimed or assigned in your company")
    if _active_task_for_user(db, vulnerability.id, user.id) is not None:
        raise ConflictError("You already have an active task for this vulnerability")

    now = _now()
    task = Task(
        vulnerability_id=vulnerability.id,
        company_id=company_id,
        assigned_by_user_id=user.id,
        assigned_to_user_id=user.id,
        priority=derive_priority(vulnerability.severity_level),
        status="pending",
    )
    task.notes.extend(_initial_notes(payload.notes, note_author(user.email, user.role), now))
    task = _commit_new_task(db, task)
    logger.info(
        "Task claimed",
        extra={"task_id": task.id, "vulnerability_id": vulnerability.id, "user_id": user.id},
    )
    return task


def update_task(db: Session, user: CurrentUser, task_id: int, payload: UpdateTaskRequest) -> Task:
    """
    Change status and/or append a note. Allowed for the assignee or an admin of the task's company.
    resolved/closed stamp resolved_at (kept when moving resolved -> closed); other statuses clear it.
    """
    task = db.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task not found")
    admin = is_admin(user.role)
    if admin:
        if not is_company_member(db, user.id, task.company_id):
            raise PermissionDeniedError("Task belongs to another company")
    elif task.assigned_to_user_id != user.id:
        raise PermissionDeniedError("You can only update tasks assigned to you")

    note_body = (payload.notes or "").strip()
    if payload.status is None and not note_body:
        raise ValidationFailedError("Provide a status or a note")
    if task.status == CLOSED:
        raise ConflictError("Closed tasks cannot be modified")
    if payload.status == CLOSED and not admin:
        raise PermissionDeniedError("Only administrators can close tasks")

    now = _now()
    previous_status = task.status
    if payload.status is not None:
        if payload.status not in VALID_TRANSITIONS.get(task.status, frozenset()):
            raise ConflictError(f"Cannot change status from {task.status} to {payload.status}")
        if payload.status in RESOLVED_STATUSES:
            if task.resolved_at is None or previous_status not in RESOLVED_STATUSES:
                task.resolved_at = now
        else:
            task.resolved_at = None
        task.status = payload.status
    if note_body:
        task.notes.append(
            TaskNote(author=note_author(user.email, user.role), created_at=now, body=note_body)
        )
    task.updated_at = now
    db.commit()
    db.refresh(task)
    logger.info(
        "Task updated",
        extra={"task_id": task.id, "from_status": previous_status, "to_status": task.status},
    )
    return task


def list_tasks(db: Session, user: CurrentUser) -> list[Task]:
    """Admins see every task of their company; others see tasks assigned to them."""
    query = db.query(Task)
    if is_admin(user.role):
        company_id = get_user_company_id(db, user.id)
        if company_id is None:
            return []
        query = query.filter(Task.company_id == company_id)
    else:
        query = query.filter(Task.assigned_to_user_id == user.id)
    return query.order_by(Task.created_at.desc(), Task.id.desc()).all()


def build_task_out(db: Session, tasks: list[Task]) -> list[TaskOut]:
    """Join tasks with their vulnerability and user emails for responses."""
    if not tasks:
        return []
    vulnerability_ids = {t.vulnerability_id for t in tasks}
    user_ids = {t.assigned_by_user_id for t in tasks} | {t.assigned_to_user_id for t in tasks}
    vulnerabilities = {
        v.id: v for v in db.query(Vulnerability).filter(Vulnerability.id.in_(vulnerability_ids)).all()
    }
    emails = {
        u.id: u.email for u in db.query(User).filter(User.id.in_(user_ids)).all()
    }

    out: list[TaskOut] = []
    for task in tasks:
        vulnerability = vulnerabilities.get(task.vulnerability_id)
        out.append(
            TaskOut(
                id=task.id,
                vulnerability_id=task.vulnerability_id,
                company_id=task.company_id,
                cve_id=vulnerability.cve_id if vulnerability else None,
                title=vulnerability.title if vulnerability else None,
                severity_level=vulnerability.severity_level if vulnerability else None,
                tlp_rating=vulnerability.tlp_rating if vulnerability else None,
                assigned_by_user_id=task.assigned_by_user_id,
                assigned_by_email=emails.get(task.assigned_by_user_id),
                assigned_to_user_id=task.assigned_to_user_id,
                assigned_to_email=emails.get(task.assigned_to_user_id),
                priority=task.priority,
                status=task.status,
                notes=[TaskNoteOut.model_validate(n) for n in task.notes],
                notes_text=format_legacy_notes(task.notes),
                created_at=task.created_at,
                updated_at=task.updated_at,
                resolved_at=task.resolved_at,
            )
        )
    return out


def eligible_assignees(db: Session, company_id: int, tlp_rating: str | None = None) -> list[User]:
    """Company members that may be assigned; narrowed by the assignment gate when a rating is given."""
    users = [u for u in list_company_users(db, company_id) if not is_admin(u.role)]
    if tlp_rating is None:
        return users
    return [u for u in users if can_assign(tlp_rating, u.role)]
