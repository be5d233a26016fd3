import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from taskboard.api.v1.auth import get_current_user
from taskboard.core.database import get_db
from taskboard.models.project import Project
from taskboard.models.project_member import ProjectMember
from taskboard.models.user import User
from taskboard.schemas.user import UserSummary
from taskboard.services.access import has_project_access

logger = logging.getLogger(__name__)

router = APIRouter()

SEARCH_LIMIT = 10


def like_pattern(text: str) -> str:
    """Substring pattern for LIKE with \\, % and _ matched literally."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


@router.get("/search", response_model=List[UserSummary])
def search_users(
    q: Optional[str] = Query(None),
    project_id: Optional[int] = Query(None, alias="projectId"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Find users to invite: matches username or email, excluding the caller and
    everyone already in the project (owner and members).
    """
    if not q or not q.strip():
        return []
    if project_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required query parameter: projectId",
        )
    if not has_project_access(db, project_id, current_user.id):
        logger.warning(f"User {current_user.id} not authorized to search users for project {project_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to search users for this project",
        )

    term = like_pattern(q.strip().lower())
    member_ids = select(ProjectMember.user_id).where(ProjectMember.project_id == project_id)
    owner_ids = select(Project.owner_id).where(Project.id == project_id)

    users = (
        db.query(User)
        .filter(
            or_(
                func.lower(User.username).like(term, escape="\\"),
                func.lower(User.email).like(term, escape="\\"),
            ),
            User.id != current_user.id,
            User.id.notin_(member_ids),
            User.id.notin_(owner_ids),
        )
        .order_by(User.username.asc())
        .limit(SEARCH_LIMIT)
        .all()
    )
    logger.info(f"Found {len(users)} users matching '{q}' for project {project_id}")
    return [{"user_id": u.id, "username": u.username, "email": u.email} for u in users]
