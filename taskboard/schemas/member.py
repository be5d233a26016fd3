from datetime import datetime
from typing import Optional

from taskboard.schemas.base import CamelModel


class AddMemberRequest(CamelModel):
    user_id: int


class ProjectMemberResponse(CamelModel):
    user_id: int
    project_id: int
    username: str
    email: str
    joined_via: str
    joined_at: Optional[datetime] = None
