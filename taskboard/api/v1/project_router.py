import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import asc, desc, or_, select
from sqlalchemy.orm import Session

from taskboard.api.v1.auth import get_current_user
from taskboard.core.database import get_db
from taskboard.models.attachment import Attachment
from taskboard.models.project import Project
from taskboard.models.project_member import ProjectMember
from taskboard.models.task import Task
from taskboard.models.user import User
from taskboard.schemas.project import (
    DeleteProjectResponse,
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdate,
    ProjectUpdateResponse,
)
from taskboard.services.access import require_project_access, require_project_owner
from taskboard.utils.file_handling import (
    AttachmentStorage,
    get_attachment_storage,
    remove_stored_files,
    stored_locators,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    body: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    new_project = Project(
        owner_id=current_user.id,
        name=body.name,
        description=body.description or "",
        category=body.category,
    )
    db.add(new_project)
    db.commit()
    db.refresh(new_project)
    logger.info(f"Project {new_project.id} created by user {current_user.id}")
    return new_project


@router.get("", response_model=ProjectListResponse)
def get_projects(
    name: str | None = Query(None),
    category: str | None = Query(None),
    sort_field: str = Query(
        "created_at", alias="sortField", pattern="^(name|category|created_at|updated_at)$"
    ),
    sort: str = Query("DESC", pattern="^(ASC|DESC)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order_func = asc if sort.upper() == "ASC" else desc

    member_of = select(ProjectMember.project_id).where(
        ProjectMember.user_id == current_user.id
    )
    query = db.query(Project).filter(
        or_(Project.owner_id == current_user.id, Project.id.in_(member_of))
    )

    if name:
        query = query.filter(Project.name.ilike(f"%{name}%"))
    if category:
        query = query.filter(Project.category == category)

    sort_map = {
        "name": Project.name,
        "category": Project.category,
        "created_at": Project.created_at,
        "updated_at": Project.updated_at,
    }

    query = query.order_by(order_func(sort_map[sort_field]), order_func(Project.id))

    projects = query.all()
    logger.info(f"Retrieved {len(projects)} projects for user {current_user.id}")
    return {"projects": projects}


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return require_project_access(db, project_id, current_user.id)


@router.put("/{project_id}", response_model=ProjectUpdateResponse)
def update_project(
    project_id: int,
    body: ProjectUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = require_project_owner(db, project_id, current_user.id)
    project.name = body.name
    project.description = body.description or ""
    project.category = body.category
    db.commit()
    db.refresh(project)
    logger.info(f"Project {project_id} updated by user {current_user.id}")
    return {"id": project.id, "message": "Project updated successfully"}


@router.delete("/{project_id}", response_model=DeleteProjectResponse)
def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: AttachmentStorage = Depends(get_attachment_storage),
):
    project = require_project_owner(db, project_id, current_user.id)

    # tasks, assignees, attachments, members and invitations go with the project
    locators = stored_locators(
        db.query(Attachment)
        .join(Task, Task.id == Attachment.task_id)
        .filter(Task.project_id == project_id)
        .all()
    )
    db.delete(project)
    db.commit()
    remove_stored_files(locators, storage)

    logger.info(f"Project {project_id} deleted by user {current_user.id}")
    return {"message": "Project deleted successfully"}
