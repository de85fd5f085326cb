"""Task endpoints: list, admin assignment, self-claim, and status/note updates."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from vulnradar.api.v1.auth import get_current_user
from vulnradar.api.v1.errors import client_ip, to_http_exception
from vulnradar.core.database import get_db
from vulnradar.schemas.auth import CurrentUser
from vulnradar.schemas.task import (
    AssignTaskRequest,
    ClaimTaskRequest,
    TaskResponse,
    TasksListResponse,
    UpdateTaskRequest,
)
from vulnradar.services.audit import record_audit
from vulnradar.services.errors import ServiceError
from vulnradar.services.tasks import (
    assign_task,
    build_task_out,
    claim_task,
    list_tasks,
    update_task,
)

router = APIRouter()


@router.get("", response_model=TasksListResponse)
def get_tasks(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> TasksListResponse:
    """Admins get every task of their company; others get tasks assigned to them."""
    tasks = build_task_out(db, list_tasks(db, current_user))
    return TasksListResponse(count=len(tasks), tasks=tasks)


@router.post("", response_model=TaskResponse, status_code=201)
def post_task(
    body: AssignTaskRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> TaskResponse:
    try:
        task = assign_task(db, current_user, body)
    except ServiceError as e:
        raise to_http_exception(e) from e
    record_audit(
        db,
        current_user.id,
        "task_assigned",
        entity_type="task",
        entity_id=task.id,
        details=f"vulnerability_id={task.vulnerability_id} assigned_to={task.assigned_to_user_id}",
        ip_address=client_ip(request),
    )
    return TaskResponse(message="Task assigned", task=build_task_out(db, [task])[0])


@router.post("/claim", response_model=TaskResponse, status_code=201)
def post_claim(
    body: ClaimTaskRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> TaskResponse:
    try:
        task = claim_task(db, current_user, body)
    except ServiceError as e:
        raise to_http_exception(e) from e
    record_audit(
        db,
        current_user.id,
        "task_claimed",
        entity_type="task",
        entity_id=task.id,
        details=f"vulnerability_id={task.vulnerability_id}",
        ip_address=client_ip(request),
    )
    return TaskResponse(message="Task claimed", task=build_task_out(db, [task])[0])


@router.put("/{task_id}", response_model=TaskResponse)
def put_task(
    task_id: int,
    body: UpdateTaskRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> TaskResponse:
    """Change status and/or append a note. Only admins may close; closed tasks are final."""
    try:
        task = update_task(db, current_user, task_id, body)
    except ServiceError as e:
        raise to_http_exception(e) from e
    record_audit(
        db,
        current_user.id,
        "task_updated",
        entity_type="task",
        entity_id=task.id,
        details=f"status={task.status}",
        ip_address=client_ip(request),
    )
    return TaskResponse(message="Task updated", task=build_task_out(db, [task])[0])
