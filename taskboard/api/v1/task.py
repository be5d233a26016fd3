import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from taskboard.api.v1.auth import get_current_user
from taskboard.core.database import get_db
from taskboard.models.project import Project
from taskboard.models.task import Task
from taskboard.models.task_assignee import TaskAssignee
from taskboard.models.user import User
from taskboard.schemas.base import MessageResponse
from taskboard.schemas.task import (
    AssignUserRequest,
    DeleteTaskResponse,
    MyTaskResponse,
    TaskCreate,
    TaskResponse,
    TaskUpdate,
)
from taskboard.schemas.user import UserSummary
from taskboard.services.access import has_project_access, require_task_access
from taskboard.services.task_assignment import (
    assign_best_effort,
    assign_user,
    replace_assignees,
    unassign_user,
)
from taskboard.utils.file_handling import (
    AttachmentStorage,
    get_attachment_storage,
    remove_stored_files,
    stored_locators,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def user_summary(user: User) -> dict:
    return {"user_id": user.id, "username": user.username, "email": user.email}


def serialize_task(task: Task) -> dict:
    return {
        "id": task.id,
        "project_id": task.project_id,
        "name": task.name,
        "description": task.description,
        "start_date": task.start_date,
        "due_date": task.due_date,
        "status": task.status,
        "priority": task.priority,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
        "assignees": [user_summary(user) for user in task.assignees],
    }


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(
    body: TaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not has_project_access(db, body.project_id, current_user.id):
        logger.warning(f"User {current_user.id} not authorized to add tasks to project {body.project_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")

    task = Task(
        project_id=body.project_id,
        name=body.name,
        description=body.description or "",
        start_date=body.start_date,
        due_date=body.due_date,
        status=body.status,
        priority=body.priority,
    )
    db.add(task)
    db.flush()
    assign_best_effort(db, task, body.assignees or [])

    # task row and assignees commit together
    db.commit()
    db.refresh(task)
    logger.info(f"Task {task.id} created in project {task.project_id} by user {current_user.id}")
    return serialize_task(task)


@router.get("", response_model=List[TaskResponse])
def get_tasks(
    project_id: Optional[int] = Query(None, alias="projectId"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if project_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required query parameter: projectId",
        )
    # a deleted or unknown project fails the predicate like a foreign one
    if not has_project_access(db, project_id, current_user.id):
        logger.warning(f"User {current_user.id} not authorized to list tasks of project {project_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")

    tasks = (
        db.query(Task)
        .options(selectinload(Task.assignee_links).selectinload(TaskAssignee.user))
        .filter(Task.project_id == project_id)
        .order_by(Task.id.asc())
        .all()
    )
    logger.info(f"Retrieved {len(tasks)} tasks for project {project_id}")
    return [serialize_task(task) for task in tasks]


@router.get("/me", response_model=List[MyTaskResponse])
def get_my_tasks(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = (
        db.query(Task, Project.name)
        .join(TaskAssignee, TaskAssignee.task_id == Task.id)
        .join(Project, Project.id == Task.project_id)
        .options(selectinload(Task.assignee_links).selectinload(TaskAssignee.user))
        .filter(TaskAssignee.user_id == current_user.id)
        .order_by(Task.due_date.asc().nulls_last(), Task.priority.desc().nulls_last(), Task.id.asc())
        .all()
    )
    logger.info(f"Retrieved {len(rows)} tasks assigned to user {current_user.id}")
    return [{**serialize_task(task), "project_name": project_name} for task, project_name in rows]


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = require_task_access(db, task_id, current_user.id)
    return serialize_task(task)


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: int,
    body: TaskUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = require_task_access(db, task_id, current_user.id)

    task.name = body.name
    task.description = body.description or ""
    task.start_date = body.start_date
    task.due_date = body.due_date
    task.status = body.status
    task.priority = body.priority

    if body.assignees is not None:
        replace_assignees(db, task, body.assignees)

    db.commit()
    db.refresh(task)
    logger.info(f"Task {task_id} updated by user {current_user.id}")
    return serialize_task(task)


@router.delete("/{task_id}", response_model=DeleteTaskResponse)
def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: AttachmentStorage = Depends(get_attachment_storage),
):
    task = require_task_access(db, task_id, current_user.id)
    locators = stored_locators(task.attachments)

    db.delete(task)
    db.commit()
    remove_stored_files(locators, storage)

    logger.info(f"Task {task_id} deleted by user {current_user.id}")
    return {"message": "Task deleted"}


@router.get("/{task_id}/assignees", response_model=List[UserSummary])
def get_task_assignees(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = require_task_access(db, task_id, current_user.id)
    assignees = [user_summary(user) for user in task.assignees]
    logger.info(f"Retrieved {len(assignees)} assignees for task {task_id}")
    return assignees


@router.post(
    "/{task_id}/assignees",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_task_assignee(
    task_id: int,
    body: AssignUserRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = require_task_access(db, task_id, current_user.id)
    assign_user(db, task, body.user_id)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent request inserted the same assignment first
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is already assigned to this task",
        )
    logger.info(f"User {body.user_id} assigned to task {task_id} by user {current_user.id}")
    return {"message": "User assigned to task"}


@router.delete("/{task_id}/assignees/{user_id}", response_model=MessageResponse)
def remove_task_assignee(
    task_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    task = require_task_access(db, task_id, current_user.id)
    if unassign_user(db, task, user_id):
        db.commit()
        logger.info(f"User {user_id} unassigned from task {task_id}")
    else:
        logger.debug(f"User {user_id} was not assigned to task {task_id}")
    return {"message": "User unassigned from task"}
