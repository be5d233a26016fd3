import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskboard.api.v1.auth import get_current_user
from taskboard.core.database import get_db
from taskboard.core.mailer import send_invitation_email
from taskboard.models.project import Project
from taskboard.models.project_invitation import ProjectInvitation
from taskboard.models.project_member import JOINED_VIA_INVITATION, ProjectMember
from taskboard.models.user import User
from taskboard.schemas.base import MessageResponse
from taskboard.schemas.invitation import (
    InvitationResponse,
    InvitationStatus,
    SendInvitationRequest,
    SendInvitationResponse,
)
from taskboard.services.access import is_project_member, require_project_owner

logger = logging.getLogger(__name__)

router = APIRouter()


def serialize_invitation(invitation: ProjectInvitation, project_name: str | None = None) -> dict:
    return {
        "id": invitation.id,
        "project_id": invitation.project_id,
        "project_name": project_name,
        "user_id": invitation.user_id,
        "invited_by": invitation.invited_by,
        "status": invitation.status,
        "created_at": invitation.created_at,
        "updated_at": invitation.updated_at,
    }


def get_invitation_for_invitee(db: Session, invitation_id: int, user_id: int) -> ProjectInvitation:
    invitation = db.query(ProjectInvitation).filter(ProjectInvitation.id == invitation_id).first()
    if not invitation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
    if invitation.user_id != user_id:
        logger.warning(f"User {user_id} tried to act on invitation {invitation_id} addressed to someone else")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This invitation is not addressed to you",
        )
    return invitation


@router.get("/me", response_model=List[InvitationResponse])
def get_my_invitations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = (
        db.query(ProjectInvitation, Project.name)
        .join(Project, Project.id == ProjectInvitation.project_id)
        .filter(
            ProjectInvitation.user_id == current_user.id,
            ProjectInvitation.status == InvitationStatus.PENDING.value,
        )
        .order_by(ProjectInvitation.created_at.desc(), ProjectInvitation.id.desc())
        .all()
    )
    logger.info(f"Retrieved {len(rows)} pending invitations for user {current_user.id}")
    return [serialize_invitation(invitation, name) for invitation, name in rows]


@router.post(
    "/{project_id}/invitations",
    response_model=SendInvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
def send_invitation(
    project_id: int,
    body: SendInvitationRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = require_project_owner(db, project_id, current_user.id)

    invitee = db.query(User).filter(User.id == body.user_id).first()
    if not invitee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if invitee.id == project.owner_id or is_project_member(db, project_id, invitee.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is already a member of the project",
        )

    pending = (
        db.query(ProjectInvitation)
        .filter(
            ProjectInvitation.project_id == project_id,
            ProjectInvitation.user_id == invitee.id,
            ProjectInvitation.status == InvitationStatus.PENDING.value,
        )
        .first()
    )
    if pending:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already has a pending invitation to this project",
        )

    invitation = ProjectInvitation(
        project_id=project_id,
        user_id=invitee.id,
        invited_by=current_user.id,
        status=InvitationStatus.PENDING.value,
    )
    db.add(invitation)
    db.commit()
    db.refresh(invitation)
    logger.info(f"Invitation {invitation.id} sent to user {invitee.id} for project {project_id}")

    send_invitation_email(invitee.email, project.name, current_user.username)

    return {"message": "Invitation sent", "invitation_id": invitation.id}


@router.get("/{project_id}/invitations", response_model=List[InvitationResponse])
def get_project_invitations(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = require_project_owner(db, project_id, current_user.id)
    invitations = (
        db.query(ProjectInvitation)
        .filter(ProjectInvitation.project_id == project_id)
        .order_by(ProjectInvitation.created_at.desc(), ProjectInvitation.id.desc())
        .all()
    )
    return [serialize_invitation(invitation, project.name) for invitation in invitations]


@router.put("/{invitation_id}/accept", response_model=MessageResponse)
def accept_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    invitation = get_invitation_for_invitee(db, invitation_id, current_user.id)
    if invitation.status != InvitationStatus.PENDING.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Invitation has already been accepted",
        )

    invitation.status = InvitationStatus.ACCEPTED.value
    if is_project_member(db, invitation.project_id, current_user.id):
        logger.info(f"User {current_user.id} already in project {invitation.project_id}, marking invitation accepted")
    else:
        db.add(
            ProjectMember(
                project_id=invitation.project_id,
                user_id=current_user.id,
                joined_via=JOINED_VIA_INVITATION,
            )
        )

    # status change and membership row commit together
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Concurrent accept of invitation {invitation_id} by user {current_user.id}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Invitation has already been accepted",
        )
    logger.info(f"User {current_user.id} accepted invitation {invitation_id}")
    return {"message": "Invitation accepted"}


@router.delete("/{invitation_id}/decline", response_model=MessageResponse)
def decline_invitation(
    invitation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    invitation = get_invitation_for_invitee(db, invitation_id, current_user.id)
    if invitation.status == InvitationStatus.ACCEPTED.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Invitation has already been accepted",
        )

    db.delete(invitation)
    db.commit()
    logger.info(f"User {current_user.id} declined invitation {invitation_id}")
    return {"message": "Invitation declined"}
