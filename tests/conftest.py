import os

# settings are read at import time, so the environment goes first
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ATTACHMENT_STORAGE"] = "local"

import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from taskboard.main import app
from taskboard.core.database import Base, get_db
from taskboard.core.security import create_user_token, get_password_hash
from taskboard.models.project import Project
from taskboard.models.project_member import JOINED_VIA_INVITATION, ProjectMember
from taskboard.models.task import Task
from taskboard.models.task_assignee import TaskAssignee
from taskboard.models.user import User
from taskboard.utils.file_handling import LocalAttachmentStorage, get_attachment_storage

# In-memory SQLite shared across the connections of one test
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_UPLOAD_LIMIT = 1024 * 1024


@pytest.fixture(scope="function")
def db_session():
    """Fresh database for every test"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def attachment_storage(upload_dir):
    return LocalAttachmentStorage(upload_dir, max_bytes=TEST_UPLOAD_LIMIT)


@pytest.fixture
def mock_invitation_email():
    with patch("taskboard.api.v1.project_invitation.send_invitation_email") as mock_send:
        mock_send.return_value = None
        yield mock_send


@pytest.fixture(scope="function")
def client(db_session, attachment_storage, mock_invitation_email):
    """Test client bound to the test session and a temporary upload directory"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_attachment_storage] = lambda: attachment_storage

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def test_user_data():
    return {
        "username": "testuser",
        "email": "testuser@example.com",
        "password": "TestPassword123!",
    }


@pytest.fixture
def create_test_user(db_session):
    """Factory fixture for users"""
    def _create_user(username="testuser", email="testuser@example.com", password="TestPassword123!"):
        user = User(
            username=username,
            email=email,
            passwordhash=get_password_hash(password),
            role="user",
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_user_token(user)}"}

    return _headers


@pytest.fixture
def authenticated_client(client, create_test_user, auth_headers):
    """Client that sends a valid bearer token for a fresh user"""
    user = create_test_user()
    client.headers.update(auth_headers(user))
    return client, user


@pytest.fixture
def create_test_project(db_session):
    def _create_project(owner, name="Website redesign", category="work", description=""):
        project = Project(owner_id=owner.id, name=name, category=category, description=description)
        db_session.add(project)
        db_session.commit()
        db_session.refresh(project)
        return project

    return _create_project


@pytest.fixture
def add_member(db_session):
    def _add_member(project, user, joined_via=JOINED_VIA_INVITATION):
        db_session.add(ProjectMember(project_id=project.id, user_id=user.id, joined_via=joined_via))
        db_session.commit()

    return _add_member


@pytest.fixture
def create_test_task(db_session):
    def _create_task(project, name="Write copy", assignees=()):
        task = Task(project_id=project.id, name=name, description="", status="pending")
        db_session.add(task)
        db_session.flush()
        for user in assignees:
            db_session.add(TaskAssignee(task_id=task.id, user_id=user.id))
        db_session.commit()
        db_session.refresh(task)
        return task

    return _create_task
