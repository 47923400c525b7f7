"""
Unit tests for metered job postings and featured job slots.
"""
import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.models import User, EmployerPlan, Subscription, Job
from app.core.errors import JobNotFoundError, JobOwnershipError
from app.services.featured_job_service import (
    ALREADY_FEATURED_REASON,
    NO_SUBSCRIPTION_REASON,
    feature_job,
    get_featured_jobs,
    get_my_featured_jobs,
    unfeature_job,
)
from app.services.job_posting_service import create_job_posting


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def recruiter(db):
    user = User(full_name="Test Recruiter", email="recruiter@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def subscribe(db, user, job_postings=2, featured_jobs=1):
    plan = EmployerPlan(
        name="Basic",
        display_name="Basic Plan",
        description="",
        limit_job_postings=job_postings,
        limit_featured_jobs=featured_jobs,
        limit_resume_credits=25,
    )
    db.add(plan)
    db.commit()
    now = datetime.utcnow()
    sub = Subscription(
        user_id=user.id,
        plan_id=plan.id,
        status="active",
        billing_cycle="monthly",
        start_date=now,
        end_date=now + timedelta(days=30),
    )
    db.add(sub)
    db.commit()
    db.refresh(sub)
    return sub


def make_job(db, user, title="Backend Engineer"):
    job = Job(title=title, company_name="Acme", created_by=user.id)
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


class TestJobPosting:
    def test_posting_consumes_quota(self, db, recruiter):
        sub = subscribe(db, recruiter, job_postings=2)

        first = create_job_posting(db, recruiter.id, "Backend Engineer", "Acme")
        second = create_job_posting(db, recruiter.id, "Data Engineer", "Acme")
        third = create_job_posting(db, recruiter.id, "SRE", "Acme")

        assert first.allowed and second.allowed
        assert third.allowed is False
        assert third.reason == "Job posting limit reached (2/2)"
        assert db.query(Job).count() == 2
        db.refresh(sub)
        assert sub.usage_job_postings == 2

    def test_posting_without_subscription(self, db, recruiter):
        result = create_job_posting(db, recruiter.id, "Backend Engineer", "Acme")

        assert result.allowed is False
        assert db.query(Job).count() == 0


class TestFeaturedJobs:
    def test_feature_job(self, db, recruiter):
        sub = subscribe(db, recruiter, featured_jobs=1)
        job = make_job(db, recruiter)
        now = datetime.utcnow()

        result = feature_job(db, recruiter.id, job.id, duration_days=7, badge="Hot", now=now)

        assert result.allowed is True
        assert result.credits_used == 1
        assert result.job.is_featured is True
        assert result.job.badge == "Hot"
        assert result.featured_until == now + timedelta(days=7)
        db.refresh(sub)
        assert sub.usage_featured_jobs == 1

    def test_already_featured_spends_nothing(self, db, recruiter):
        sub = subscribe(db, recruiter, featured_jobs=5)
        job = make_job(db, recruiter)
        feature_job(db, recruiter.id, job.id)

        result = feature_job(db, recruiter.id, job.id)

        assert result.allowed is False
        assert result.reason == ALREADY_FEATURED_REASON
        assert result.featured_until is not None
        db.refresh(sub)
        assert sub.usage_featured_jobs == 1

    def test_stale_featured_check_still_spends_nothing(self, db, recruiter, monkeypatch):
        sub = subscribe(db, recruiter, featured_jobs=5)
        job = make_job(db, recruiter)
        feature_job(db, recruiter.id, job.id)
        # Another request featured the job after this one read it.
        monkeypatch.setattr(Job, "is_currently_featured", lambda self, now=None: False)

        result = feature_job(db, recruiter.id, job.id)

        assert result.allowed is False
        assert result.reason == ALREADY_FEATURED_REASON
        assert result.featured_until is not None
        db.refresh(sub)
        assert sub.usage_featured_jobs == 1

    def test_feature_limit_reached(self, db, recruiter):
        subscribe(db, recruiter, featured_jobs=1)
        first = make_job(db, recruiter)
        second = make_job(db, recruiter, title="Data Engineer")
        feature_job(db, recruiter.id, first.id)

        result = feature_job(db, recruiter.id, second.id)

        assert result.allowed is False
        assert result.reason == "Featured job limit reached (1/1)"
        db.refresh(second)
        assert second.is_featured is False

    def test_feature_without_subscription(self, db, recruiter):
        job = make_job(db, recruiter)

        result = feature_job(db, recruiter.id, job.id)

        assert result.allowed is False
        assert result.reason == NO_SUBSCRIPTION_REASON

    def test_feature_someone_elses_job(self, db, recruiter):
        other = User(full_name="Other", email="other@example.com")
        db.add(other)
        db.commit()
        job = make_job(db, other)
        subscribe(db, recruiter)

        with pytest.raises(JobOwnershipError):
            feature_job(db, recruiter.id, job.id)
        with pytest.raises(JobNotFoundError):
            feature_job(db, recruiter.id, 999)

    def test_unfeature_and_listing(self, db, recruiter):
        subscribe(db, recruiter, featured_jobs=0)
        first = make_job(db, recruiter)
        second = make_job(db, recruiter, title="Data Engineer")
        feature_job(db, recruiter.id, first.id)
        feature_job(db, recruiter.id, second.id)

        unfeature_job(db, recruiter.id, first.id)

        assert [job.id for job in get_featured_jobs(db)] == [second.id]
        assert [job.id for job in get_my_featured_jobs(db, recruiter.id)] == [second.id]

    def test_expired_feature_not_listed(self, db, recruiter):
        job = make_job(db, recruiter)
        job.is_featured = True
        job.featured_until = datetime.utcnow() - timedelta(hours=1)
        db.commit()

        assert get_featured_jobs(db) == []
