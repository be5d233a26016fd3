"""
Project access control.

Every project-scoped read or write goes through the predicate below: a user
may act inside a project when they own it or hold a ``ProjectMember`` row for
it. Nothing else grants access and decisions are never cached.

Ownership-only actions (editing or deleting the project, managing members and
invitations) use ``is_project_owner``, which is a separate, stricter check.

The ``require_*`` helpers are the raising variants used by the routers. They
answer 404 when the entity does not exist and 403 when it exists but the
caller fails the check.
"""

import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from taskboard.models.attachment import Attachment
from taskboard.models.project import Project
from taskboard.models.project_member import ProjectMember
from taskboard.models.task import Task

logger = logging.getLogger(__name__)


def is_project_member(db: Session, project_id: int, user_id: int) -> bool:
    return (
        db.query(ProjectMember)
        .filter(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
        .first()
        is not None
    )


def is_project_owner(db: Session, project_id: int, user_id: int) -> bool:
    return (
        db.query(Project.id)
        .filter(Project.id == project_id, Project.owner_id == user_id)
        .first()
        is not None
    )


def has_project_access(db: Session, project_id: int, user_id: int) -> bool:
    """True iff ``user_id`` owns the project or is one of its members."""
    if is_project_owner(db, project_id, user_id):
        return True
    return is_project_member(db, project_id, user_id)


def has_task_access(db: Session, task_id: int, user_id: int) -> Optional[Task]:
    """Return the task when the user may access its project, else None.

    None covers both "no such task" and "access denied"; use
    ``require_task_access`` where the two must be told apart.
    """
    task = db.query(Task).filter(Task.id == task_id).first()
    if task is None or not has_project_access(db, task.project_id, user_id):
        return None
    return task


def require_project_access(db: Session, project_id: int, user_id: int) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if not has_project_access(db, project.id, user_id):
        logger.warning(f"User {user_id} denied access to project {project_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return project


def require_project_owner(db: Session, project_id: int, user_id: int) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if project.owner_id != user_id:
        logger.warning(f"User {user_id} is not the owner of project {project_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the project owner can perform this action",
        )
    return project


def require_task_access(db: Session, task_id: int, user_id: int) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    if not has_project_access(db, task.project_id, user_id):
        logger.warning(f"User {user_id} denied access to task {task_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to access this task",
        )
    return task


def require_attachment_access(db: Session, attachment_id: int, user_id: int) -> Attachment:
    attachment = db.query(Attachment).filter(Attachment.id == attachment_id).first()
    if not attachment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attachment not found")
    if not has_project_access(db, attachment.task.project_id, user_id):
        logger.warning(f"User {user_id} denied access to attachment {attachment_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to access this attachment",
        )
    return attachment
