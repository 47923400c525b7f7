"""
Integration tests for resume credit, job posting and featured job endpoints.
"""
import pytest
from datetime import datetime, timedelta
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.db.models import User, UserRole, EmployerPlan, Subscription, Job
from app.core.security import create_access_token


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function", autouse=True)
def setup_db():
    """Create and drop tables for each test."""
    Base.metadata.create_all(bind=test_engine)
    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def recruiter(db_session):
    user = User(full_name="Test Recruiter", email="recruiter@example.com")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def candidate(db_session):
    user = User(full_name="Test Candidate", email="candidate@example.com", role=UserRole.STUDENT.value)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def headers(recruiter):
    return {"Authorization": f"Bearer {create_access_token({'sub': recruiter.email})}"}


@pytest.fixture
def subscription(db_session, recruiter):
    """Active subscription with one credit of each kind."""
    plan = EmployerPlan(
        name="Starter",
        display_name="Starter Plan",
        description="",
        limit_job_postings=1,
        limit_featured_jobs=1,
        limit_resume_credits=1,
    )
    db_session.add(plan)
    db_session.commit()
    now = datetime.utcnow()
    sub = Subscription(
        user_id=recruiter.id,
        plan_id=plan.id,
        status="active",
        billing_cycle="monthly",
        start_date=now,
        end_date=now + timedelta(days=30),
    )
    db_session.add(sub)
    db_session.commit()
    db_session.refresh(sub)
    return sub


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


class TestResumeCredits:
    def test_unlock_then_already_unlocked(self, client, headers, candidate, subscription, db_session):
        first = client.post("/resume-credits/unlock", json={"candidate_id": candidate.id}, headers=headers)
        second = client.post("/resume-credits/unlock", json={"candidate_id": candidate.id}, headers=headers)

        assert first.status_code == 201
        assert first.json()["message"] == "Resume unlocked successfully"
        assert first.json()["credits_used"] == 1
        assert second.status_code == 200
        assert second.json()["message"] == "Resume already unlocked"
        db_session.refresh(subscription)
        assert subscription.usage_resume_credits == 1

    def test_unlock_denied_at_limit(self, client, headers, candidate, subscription, db_session):
        other = User(full_name="Other Candidate", email="other@example.com", role=UserRole.STUDENT.value)
        db_session.add(other)
        db_session.commit()
        client.post("/resume-credits/unlock", json={"candidate_id": candidate.id}, headers=headers)

        response = client.post("/resume-credits/unlock", json={"candidate_id": other.id}, headers=headers)

        assert response.status_code == 403
        assert response.json()["detail"] == {"success": False, "message": "Resume credit limit reached (1/1)"}

    def test_unlock_without_subscription(self, client, headers, candidate):
        response = client.post("/resume-credits/unlock", json={"candidate_id": candidate.id}, headers=headers)

        assert response.status_code == 403
        assert response.json()["detail"]["message"] == "No active subscription"

    def test_access_and_listing(self, client, headers, candidate, subscription):
        before = client.get(f"/resume-credits/access/{candidate.id}", headers=headers)
        client.post("/resume-credits/unlock", json={"candidate_id": candidate.id}, headers=headers)
        after = client.get(f"/resume-credits/access/{candidate.id}", headers=headers)
        listing = client.get("/resume-credits/unlocked", headers=headers)

        assert before.json()["has_access"] is False
        assert after.json()["has_access"] is True
        assert after.json()["unlocked_at"] is not None
        assert listing.json()["total"] == 1
        assert listing.json()["unlocked"][0]["candidate_id"] == candidate.id

    def test_balance(self, client, headers, candidate, subscription):
        client.post("/resume-credits/unlock", json={"candidate_id": candidate.id}, headers=headers)

        response = client.get("/resume-credits/balance", headers=headers)

        assert response.status_code == 200
        assert response.json()["credits"] == {"total": 1, "used": 1, "remaining": 0}


class TestJobs:
    def test_post_job_consumes_quota(self, client, headers, subscription):
        first = client.post("/jobs", json={"title": "Backend Engineer", "company_name": "Acme"}, headers=headers)
        second = client.post("/jobs", json={"title": "SRE", "company_name": "Acme"}, headers=headers)

        assert first.status_code == 201
        assert first.json()["job"]["created_by"] == subscription.user_id
        assert second.status_code == 403
        assert second.json()["detail"]["message"] == "Job posting limit reached (1/1)"

    def test_feature_and_unfeature(self, client, headers, subscription):
        job_id = client.post("/jobs", json={"title": "Backend Engineer", "company_name": "Acme"}, headers=headers).json()["job"]["id"]

        featured = client.post("/featured-jobs", json={"job_id": job_id, "duration": 14, "badge": "Urgent"}, headers=headers)
        again = client.post("/featured-jobs", json={"job_id": job_id}, headers=headers)
        public = client.get("/featured-jobs")
        removed = client.delete(f"/featured-jobs/{job_id}", headers=headers)

        assert featured.status_code == 200
        assert featured.json()["job"]["badge"] == "Urgent"
        assert featured.json()["credits_used"] == 1
        assert again.status_code == 400
        assert again.json()["detail"]["message"] == "Job is already featured"
        assert public.json()["count"] == 1
        assert removed.json()["job"]["is_featured"] is False
        assert client.get("/featured-jobs").json()["count"] == 0

    def test_feature_someone_elses_job(self, client, headers, subscription, db_session):
        owner = User(full_name="Owner", email="owner@example.com")
        db_session.add(owner)
        db_session.commit()
        job = Job(title="Designer", company_name="Other Co", created_by=owner.id)
        db_session.add(job)
        db_session.commit()

        response = client.post("/featured-jobs", json={"job_id": job.id}, headers=headers)

        assert response.status_code == 403
        assert response.json()["message"] == "You can only feature your own jobs"

    def test_feature_missing_job(self, client, headers, subscription):
        response = client.post("/featured-jobs", json={"job_id": 999}, headers=headers)

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Job not found"}
