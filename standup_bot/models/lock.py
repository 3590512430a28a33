"""Lease rows used to arbitrate scheduled jobs between instances."""

from sqlalchemy import Column, String, DateTime

from standup_bot.models.database import Base


class JobLock(Base):
    """A time-bounded claim on a key. The primary key makes it exclusive."""

    __tablename__ = "job_locks"

    key = Column(String(255), primary_key=True)
    held_by = Column(String(255), nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<JobLock {self.key} by {self.held_by} until {self.expires_at:%H:%M:%S}>"
