from datetime import datetime
from enum import Enum
from typing import Optional

from taskboard.schemas.base import CamelModel


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class SendInvitationRequest(CamelModel):
    user_id: int


class SendInvitationResponse(CamelModel):
    message: str
    invitation_id: int


class InvitationResponse(CamelModel):
    id: int
    project_id: int
    project_name: Optional[str] = None
    user_id: int
    invited_by: int
    status: InvitationStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
