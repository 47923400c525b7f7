"""
Job model: the listing a recruiter posts and may feature.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db.base import Base


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    company_name = Column(String, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    is_featured = Column(Boolean, nullable=False, default=False)
    featured_until = Column(DateTime, nullable=True)
    badge = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    owner = relationship("User", backref="jobs")

    __table_args__ = (
        Index("idx_job_featured_until", "is_featured", "featured_until"),
    )

    def is_currently_featured(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        return bool(self.is_featured and self.featured_until and self.featured_until > now)

    def __repr__(self):
        return f"<Job(id={self.id}, title='{self.title}')>"
