import logging
from typing import Iterable, List

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from taskboard.models.project import Project
from taskboard.models.task import Task
from taskboard.models.task_assignee import TaskAssignee
from taskboard.services.access import has_project_access

logger = logging.getLogger(__name__)


def find_assignment(db: Session, task_id: int, user_id: int):
    return (
        db.query(TaskAssignee)
        .filter(TaskAssignee.task_id == task_id, TaskAssignee.user_id == user_id)
        .first()
    )


def assign_user(db: Session, task: Task, candidate_user_id: int) -> TaskAssignee:
    """Assign one user to ``task``; the caller has already passed the access check.

    Does not commit.
    """
    if not has_project_access(db, task.project_id, candidate_user_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is not a member of the project",
        )
    if find_assignment(db, task.id, candidate_user_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is already assigned to this task",
        )
    # leaves task.assignee_links unloaded; a duplicate fails on commit
    link = TaskAssignee(task_id=task.id, user_id=candidate_user_id)
    db.add(link)
    return link


def unassign_user(db: Session, task: Task, user_id: int) -> bool:
    """Remove an assignment; returns False when there was none. Does not commit."""
    link = find_assignment(db, task.id, user_id)
    if link is None:
        return False
    db.delete(link)
    return True


def assign_best_effort(db: Session, task: Task, candidate_ids: Iterable[int]) -> List[int]:
    """Assign every valid candidate, skipping (and logging) the rest.

    Used by task create/update where one bad id must not fail the request.
    Repeated ids are collapsed. Returns the ids that were assigned.
    Does not commit.
    """
    assigned = []
    for candidate_id in dict.fromkeys(candidate_ids):
        if not has_project_access(db, task.project_id, candidate_id):
            logger.warning(
                f"Skipping non-member {candidate_id} for task {task.id} "
                f"in project {task.project_id}"
            )
            continue
        task.assignee_links.append(TaskAssignee(user_id=candidate_id))
        assigned.append(candidate_id)
    return assigned


def replace_assignees(db: Session, task: Task, candidate_ids: Iterable[int]) -> List[int]:
    """Clear the task's assignees and assign the valid candidates. Does not commit."""
    task.assignee_links.clear()
    db.flush()
    return assign_best_effort(db, task, candidate_ids)


def drop_member_assignments(db: Session, project: Project, user_id: int) -> int:
    """Remove a departing member's assignments on the project's tasks. Does not commit."""
    links = (
        db.query(TaskAssignee)
        .join(Task, Task.id == TaskAssignee.task_id)
        .filter(Task.project_id == project.id, TaskAssignee.user_id == user_id)
        .all()
    )
    for link in links:
        db.delete(link)
    return len(links)
