from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, PrimaryKeyConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from taskboard.core.database import Base

JOINED_VIA_INVITATION = "invitation"
JOINED_VIA_DIRECT = "direct"


class ProjectMember(Base):
    __tablename__ = "project_members"

    project_id = Column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    joined_via = Column(String(32), nullable=False, default=JOINED_VIA_INVITATION)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        PrimaryKeyConstraint("project_id", "user_id"),
    )

    project = relationship("Project", back_populates="members")
    user = relationship("User")
