from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from taskboard.schemas.base import CamelModel
from taskboard.schemas.user import UserSummary


class TaskCreate(CamelModel):
    project_id: int
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    status: str = Field("pending", min_length=1, max_length=32)
    priority: Optional[int] = Field(None, ge=0, le=32767)
    assignees: Optional[List[int]] = Field(default_factory=list)


class TaskUpdate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    status: str = Field("pending", min_length=1, max_length=32)
    priority: Optional[int] = Field(None, ge=0, le=32767)
    # None leaves the current assignees alone, a list replaces them
    assignees: Optional[List[int]] = None


class TaskResponse(CamelModel):
    id: int
    project_id: int
    name: str
    description: Optional[str] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    status: str
    priority: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    assignees: List[UserSummary] = []


class MyTaskResponse(TaskResponse):
    project_name: str


class AssignUserRequest(CamelModel):
    user_id: int


class DeleteTaskResponse(CamelModel):
    message: str
