"""Workspace model for Slack teams running stand-ups."""

import uuid
from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.orm import relationship

from standup_bot.models.database import Base, utcnow


class Workspace(Base):
    """A Slack team's stand-up configuration."""

    __tablename__ = "workspaces"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    team_id = Column(String(50), unique=True, nullable=False, index=True)
    default_channel_id = Column(String(50), nullable=False)
    timezone = Column(String(64), nullable=False)
    cron = Column(String(100), nullable=False)
    summary_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    members = relationship("Member", back_populates="workspace", cascade="all, delete-orphan")
    standups = relationship("Standup", back_populates="workspace", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Workspace {self.team_id} ({self.cron} {self.timezone})>"
