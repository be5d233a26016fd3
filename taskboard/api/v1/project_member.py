import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskboard.api.v1.auth import get_current_user
from taskboard.core.config import settings
from taskboard.core.database import get_db
from taskboard.models.project_member import JOINED_VIA_DIRECT, ProjectMember
from taskboard.models.user import User
from taskboard.schemas.base import MessageResponse
from taskboard.schemas.member import AddMemberRequest, ProjectMemberResponse
from taskboard.services.access import (
    has_project_access,
    is_project_member,
    require_project_owner,
)
from taskboard.services.task_assignment import drop_member_assignments

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/{project_id}/members",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_project_member(
    project_id: int,
    body: AddMemberRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Add a user to the project without an invitation (owner only)."""
    project = require_project_owner(db, project_id, current_user.id)

    if not settings.allow_direct_member_add:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Direct member add is disabled, send an invitation instead",
        )

    user = db.query(User).filter(User.id == body.user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if user.id == project.owner_id or is_project_member(db, project_id, user.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is already a member of the project",
        )

    db.add(ProjectMember(project_id=project_id, user_id=user.id, joined_via=JOINED_VIA_DIRECT))
    try:
        db.commit()
    except IntegrityError:
        # joined through another request in the meantime
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is already a member of the project",
        )
    logger.info(f"User {user.id} added to project {project_id} by owner {current_user.id}")
    return {"message": "User added to project"}


@router.get("/{project_id}/members", response_model=List[ProjectMemberResponse])
def get_project_members(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not has_project_access(db, project_id, current_user.id):
        logger.warning(f"User {current_user.id} not authorized to list members of project {project_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")

    rows = (
        db.query(ProjectMember, User)
        .join(User, User.id == ProjectMember.user_id)
        .filter(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.created_at.asc(), User.id.asc())
        .all()
    )
    return [
        {
            "user_id": user.id,
            "project_id": member.project_id,
            "username": user.username,
            "email": user.email,
            "joined_via": member.joined_via,
            "joined_at": member.created_at,
        }
        for member, user in rows
    ]


@router.delete("/{project_id}/members/{user_id}", response_model=MessageResponse)
def remove_project_member(
    project_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = require_project_owner(db, project_id, current_user.id)

    if user_id == project.owner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The project owner cannot be removed",
        )

    member = (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
        .first()
    )
    if member is None:
        logger.debug(f"User {user_id} is not a member of project {project_id}, nothing to remove")
        return {"message": "User removed from project"}

    dropped = drop_member_assignments(db, project, user_id)
    db.delete(member)
    db.commit()
    logger.info(
        f"User {user_id} removed from project {project_id} "
        f"({dropped} task assignments dropped)"
    )
    return {"message": "User removed from project"}
