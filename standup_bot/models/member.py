"""Member model tracking stand-up opt-in per user."""

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship

from standup_bot.models.database import Base, utcnow


class Member(Base):
    """A user of a workspace and whether they take part in stand-ups."""

    __tablename__ = "members"
    __table_args__ = (UniqueConstraint("workspace_id", "user_id", name="uq_member_workspace_user"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
    user_id = Column(String(50), nullable=False)
    opted_in = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    workspace = relationship("Workspace", back_populates="members")

    def __repr__(self):
        state = "in" if self.opted_in else "out"
        return f"<Member {self.user_id} opted-{state}>"
