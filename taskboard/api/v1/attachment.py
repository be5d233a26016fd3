import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from taskboard.api.v1.auth import get_current_user
from taskboard.core.database import get_db
from taskboard.models.attachment import Attachment
from taskboard.models.project import Project
from taskboard.models.project_member import ProjectMember
from taskboard.models.task import Task
from taskboard.models.user import User
from taskboard.schemas.attachment import AttachmentResponse, UploadAttachmentResponse
from taskboard.schemas.base import MessageResponse
from taskboard.services.access import (
    has_task_access,
    require_attachment_access,
    require_task_access,
)
from taskboard.utils.file_handling import (
    AttachmentStorage,
    get_attachment_storage,
    storage_for,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[AttachmentResponse])
def get_attachments(
    task_id: Optional[int] = Query(None, alias="taskId"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if task_id is not None:
        if has_task_access(db, task_id, current_user.id) is None:
            logger.warning(f"User {current_user.id} not authorized to list attachments of task {task_id}")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
        attachments = (
            db.query(Attachment)
            .filter(Attachment.task_id == task_id)
            .order_by(Attachment.created_at.asc(), Attachment.id.asc())
            .all()
        )
        return attachments

    member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == current_user.id)
    attachments = (
        db.query(Attachment)
        .join(Task, Task.id == Attachment.task_id)
        .join(Project, Project.id == Task.project_id)
        .filter(or_(Project.owner_id == current_user.id, Project.id.in_(member_of)))
        .order_by(Attachment.created_at.asc(), Attachment.id.asc())
        .all()
    )
    logger.info(f"Retrieved {len(attachments)} attachments visible to user {current_user.id}")
    return attachments


@router.post("", response_model=UploadAttachmentResponse, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    task_id: Optional[int] = Form(None, alias="taskId"),
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: AttachmentStorage = Depends(get_attachment_storage),
):
    if task_id is None or file is None or not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="taskId and file are required",
        )

    task = require_task_access(db, task_id, current_user.id)

    stored = await storage.save(file, prefix=f"{task.project_id}/{task.id}")

    attachment = Attachment(
        task_id=task.id,
        uploaded_by=current_user.id,
        file_name=file.filename,
        file_path=stored.locator,
        storage_backend=storage.backend,
        file_type=file.content_type,
        file_size=stored.size,
    )
    try:
        db.add(attachment)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"Failed to record attachment for task {task.id}, removing stored file")
        storage.delete(stored.locator)
        raise
    db.refresh(attachment)

    logger.info(f"Attachment {attachment.id} uploaded to task {task.id} by user {current_user.id}")
    return {"message": "File uploaded successfully", "attachment": attachment}


@router.get("/{attachment_id}/download")
def download_attachment(
    attachment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: AttachmentStorage = Depends(get_attachment_storage),
):
    attachment = require_attachment_access(db, attachment_id, current_user.id)
    owner = storage_for(attachment.storage_backend, storage)
    return owner.download(attachment.file_path, attachment.file_name, attachment.file_type)


@router.delete("/{attachment_id}", response_model=MessageResponse)
def delete_attachment(
    attachment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: AttachmentStorage = Depends(get_attachment_storage),
):
    attachment = require_attachment_access(db, attachment_id, current_user.id)

    # the row goes even when the stored file could not be removed
    storage_for(attachment.storage_backend, storage).delete(attachment.file_path)

    db.delete(attachment)
    db.commit()
    logger.info(f"Attachment {attachment_id} deleted by user {current_user.id}")
    return {"message": "Attachment deleted successfully"}
