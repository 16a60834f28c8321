import os

os.environ.setdefault("DATABASE_PATH", ":memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from main import app
from database import Base, get_db
from models import User, Group, GroupMember
from auth import create_access_token

# Setup in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def client(db_session):
    """Create a FastAPI TestClient with overridden database dependency."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_db, None)

@pytest.fixture
def make_user(db_session):
    """Factory creating users; names double as unique emails."""
    def _make_user(name, currency="USD"):
        user = User(
            name=name,
            email=f"{name.lower().replace(' ', '.')}@example.com",
            default_currency=currency,
            status="active"
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user

@pytest.fixture
def test_user(make_user):
    """Create a test user and return the user object."""
    return make_user("Test User")

def headers_for(user):
    access_token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {access_token}"}

@pytest.fixture
def auth_headers(test_user):
    """Return authorization headers for the test user."""
    return headers_for(test_user)

@pytest.fixture
def make_group(db_session):
    """Factory creating a group whose members have all joined; the first user is admin."""
    def _make_group(name, users, currency="USD"):
        group = Group(name=name, created_by_id=users[0].id, default_currency=currency)
        db_session.add(group)
        db_session.commit()
        for i, user in enumerate(users):
            db_session.add(GroupMember(
                group_id=group.id,
                user_id=user.id,
                role="admin" if i == 0 else "member",
                status="joined",
                invited_by_id=users[0].id
            ))
        db_session.commit()
        db_session.refresh(group)
        return group
    return _make_group
