import os
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set testing environment before the application reads its settings
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

from clinic_scheduler.main import app
from clinic_scheduler.core.database import get_db, Base
from clinic_scheduler.core.security import UserRole, create_access_token
from clinic_scheduler.models.doctor import Doctor
from clinic_scheduler.models.schedule import ScheduleEntry  # noqa: F401
from clinic_scheduler.services import calendar

# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

def next_monday() -> date:
    """The first Monday strictly after today."""
    today = calendar.today()
    return today + timedelta(days=7 - today.weekday())

@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db_session(test_db):
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def client(test_db):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

@pytest.fixture
def make_doctors(db_session):
    """Create doctors with ids 1..n (available unless told otherwise)."""
    def _make(count, **overrides):
        doctors = []
        for index in range(count):
            doctor = Doctor(
                first_name=f"Doctor{index + 1}",
                last_name="Test",
                specialization="General Medicine",
                certifications=["BLS"],
                is_available=overrides.get("is_available", True),
            )
            db_session.add(doctor)
            doctors.append(doctor)
        db_session.commit()
        for doctor in doctors:
            db_session.refresh(doctor)
        return doctors
    return _make

@pytest.fixture
def monday():
    return next_monday()

def auth_headers(role: UserRole, user_id: int = 1) -> dict:
    token = create_access_token({"sub": user_id, "role": role.value})
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def admin_headers():
    return auth_headers(UserRole.ADMIN, user_id=100)

@pytest.fixture
def doctor_headers():
    return auth_headers(UserRole.DOCTOR, user_id=200)
