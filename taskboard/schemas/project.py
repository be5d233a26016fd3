from pydantic import Field
from typing import Optional, List
from datetime import datetime
from taskboard.schemas.base import CamelModel


class ProjectCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255, description="The name of the project")
    description: Optional[str] = Field(None, description="Project description")
    category: str = Field(..., min_length=1, max_length=100, description="Project category")


class ProjectUpdate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255, description="Updated project name")
    description: Optional[str] = Field(None, description="Updated description")
    category: str = Field(..., min_length=1, max_length=100, description="Updated category")


class ProjectResponse(CamelModel):
    id: int = Field(..., description="Project unique ID")
    owner_id: int = Field(..., description="ID of the user owning the project")
    name: str = Field(..., description="Project name")
    description: Optional[str] = Field(None, description="Project description")
    category: str = Field(..., description="Project category")
    created_at: Optional[datetime] = Field(None, description="Timestamp when the project was created")
    updated_at: Optional[datetime] = Field(None, description="Timestamp when the project was last updated")


class ProjectListResponse(CamelModel):
    projects: List[ProjectResponse] = Field(..., description="Projects the user owns or belongs to")


class ProjectUpdateResponse(CamelModel):
    id: int = Field(..., description="Project unique ID")
    message: str = Field(..., description="Status message confirming update")


class DeleteProjectResponse(CamelModel):
    message: str = Field(..., description="Status message confirming deletion")
