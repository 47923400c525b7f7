from datetime import datetime

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from app.db.base import Base


class UnlockedResume(Base):
    """
    A recruiter's access grant to one candidate's resume.

    At most one row per (recruiter, candidate) pair ever exists; the unique
    constraint is what decides concurrent unlocks.
    """
    __tablename__ = "unlocked_resumes"

    id = Column(Integer, primary_key=True, index=True)
    recruiter_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    candidate_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True)
    credits_used = Column(Integer, nullable=False, default=1)
    unlocked_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=True)  # NULL = lifetime access

    candidate = relationship("User", foreign_keys=[candidate_id])
    job = relationship("Job")

    __table_args__ = (
        UniqueConstraint("recruiter_id", "candidate_id", name="uq_recruiter_candidate"),
        Index("idx_recruiter_unlocked_at", "recruiter_id", "unlocked_at"),
    )

    def is_accessible(self, now: datetime = None) -> bool:
        if self.expires_at is None:
            return True
        return self.expires_at > (now or datetime.utcnow())
