"""Stand-up and entry models."""

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from standup_bot.models.database import Base, utcnow


class Standup(Base):
    """One collection cycle for a workspace on a local calendar date."""

    __tablename__ = "standups"
    __table_args__ = (UniqueConstraint("workspace_id", "date", name="uq_standup_workspace_date"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)
    channel_id = Column(String(50), nullable=False)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD, workspace-local
    started_at = Column(DateTime, default=utcnow, nullable=False)
    compiled_at = Column(DateTime, nullable=True)
    message_ts = Column(String(50), nullable=True)

    # Relationships
    workspace = relationship("Workspace", back_populates="standups")
    entries = relationship("Entry", back_populates="standup", cascade="all, delete-orphan")

    def __repr__(self):
        state = "compiled" if self.compiled_at else "open"
        return f"<Standup {self.date} {state} ({self.id[:8]})>"


class Entry(Base):
    """One member's submission for a stand-up."""

    __tablename__ = "entries"
    __table_args__ = (UniqueConstraint("standup_id", "user_id", name="uq_entry_standup_user"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    standup_id = Column(String(36), ForeignKey("standups.id"), nullable=False, index=True)
    user_id = Column(String(50), nullable=False)
    yesterday = Column(Text, nullable=False)
    today = Column(Text, nullable=False)
    blockers = Column(Text, nullable=True)
    submitted_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    standup = relationship("Standup", back_populates="entries")

    def __repr__(self):
        return f"<Entry {self.user_id} in {self.standup_id[:8]}>"
