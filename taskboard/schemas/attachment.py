from typing import Optional
from datetime import datetime
from pydantic import Field
from taskboard.schemas.base import CamelModel


class AttachmentResponse(CamelModel):
    id: int = Field(..., description="Unique identifier of the attachment")
    task_id: int = Field(..., description="ID of the task the file belongs to")
    uploaded_by: Optional[int] = Field(None, description="ID of the uploading user")
    file_name: str = Field(..., description="Original file name")
    file_path: str = Field(..., description="Storage locator (local name or provider path)")
    storage_backend: str = Field(..., description="Where the file lives (local, supabase)")
    file_type: Optional[str] = Field(None, description="MIME type")
    file_size: Optional[int] = Field(None, description="Size in bytes")
    created_at: Optional[datetime] = Field(None, description="Upload timestamp")


class UploadAttachmentResponse(CamelModel):
    message: str
    attachment: AttachmentResponse
