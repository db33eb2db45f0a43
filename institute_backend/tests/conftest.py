import os
import uuid
from datetime import date

# Must be set before app.core.config is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import get_db
from app.core.identity import LocalIdentityProvider
from app.core.security import create_access_token, hash_password
from app.main import create_app
from app.models.base import Base
from app.models.course import Batch, Course
from app.models.user import Profile, User

TEST_PASSWORD = "Secret123"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db_session):
    return TestingSessionLocal


@pytest.fixture
def app(session_factory):
    application = create_app(identity_provider=LocalIdentityProvider(session_factory))

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(db_session):
    def _make(role="STUDENT", status="ACTIVE", email=None, password=TEST_PASSWORD):
        user = User(
            email=email or f"{role.lower()}-{uuid.uuid4().hex[:8]}@academy.io",
            password_hash=hash_password(password),
            role=role,
            status=status,
        )
        user.profile = Profile(name=f"{role.title()} User")
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token(user.id, email=user.email, role=user.role, status=user.status)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def course(db_session):
    course = Course(code="WEB-101", title="Web Development", fee=15000, duration_weeks=12)
    db_session.add(course)
    db_session.commit()
    db_session.refresh(course)
    return course


@pytest.fixture
def batch(db_session, course):
    batch = Batch(course_id=course.id, name="Morning Batch", start_date=date(2030, 1, 10), capacity=30)
    db_session.add(batch)
    db_session.commit()
    db_session.refresh(batch)
    return batch
