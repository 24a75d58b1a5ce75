"""
Internship grading - test configuration and fixtures
"""
import os

# Set testing environment before the app reads its settings
os.environ["DB_URL"] = "sqlite://"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("NOTIFICATION_WEBHOOK_URL", None)

import pytest
from faker import Faker
from fastapi import BackgroundTasks
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.api.dependencies.notifications import get_notifier
from src.database import Base, build_engine, get_db, init_db
from src.main import app
from src.models.directory import CommitteeSubject, StudentAssignment
from src.services.grading.store import GradeRecordStore
from src.services.notifications import NotificationDispatcher

fake = Faker()

SUPERVISOR_ID = "GV001"
OTHER_SUPERVISOR_ID = "GV002"
STUDENT_ID = "SV0001"
CLASSMATE_ID = "SV0002"
OTHER_STUDENT_ID = "SV0003"
SUBJECT_ID = "TT2024"
OTHER_SUBJECT_ID = "KL2024"
COMMITTEE_ID = "BCN001"
OTHER_COMMITTEE_ID = "BCN002"
TRAINING_OFFICE_ID = "PDT001"

# One in-memory database shared by every session of a test
test_engine = build_engine("sqlite://", poolclass=StaticPool)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def headers(actor_id: str, role: str) -> dict:
    return {"X-Actor-Id": actor_id, "X-Actor-Role": role}


def supervisor_headers(supervisor_id: str = SUPERVISOR_ID) -> dict:
    return headers(supervisor_id, "faculty")


def committee_headers(committee_id: str = COMMITTEE_ID) -> dict:
    return headers(committee_id, "committee")


def student_headers(student_id: str = STUDENT_ID) -> dict:
    return headers(student_id, "student")


def training_office_headers() -> dict:
    return headers(TRAINING_OFFICE_ID, "training-office")


def file_ref(**overrides) -> dict:
    name = fake.file_name(extension="pdf")
    data = {
        "file_name": name,
        "file_url": f"https://files.example.edu/uploads/{name}",
        "file_size": fake.random_int(min=1_000, max=5_000_000),
    }
    data.update(overrides)
    return data


class RecordingPort:
    """Notification port that keeps events in memory"""

    def __init__(self):
        self.events = []
        self.fail = False

    def send(self, event):
        if self.fail:
            raise RuntimeError("notification backend unavailable")
        self.events.append(event)

    def for_recipient(self, recipient: str):
        return [event for event in self.events if event.recipient == recipient]

    def of_type(self, type_value: str):
        return [event for event in self.events if event.type.value == type_value]


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    init_db(bind=test_engine)
    session = TestSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def roster(db):
    """
    GV001 supervises SV0001 and SV0002, GV002 supervises SV0003, all on
    TT2024. BCN001 manages TT2024, BCN002 only KL2024.
    """
    assignments = [
        (STUDENT_ID, SUPERVISOR_ID, SUBJECT_ID),
        (CLASSMATE_ID, SUPERVISOR_ID, SUBJECT_ID),
        (OTHER_STUDENT_ID, OTHER_SUPERVISOR_ID, SUBJECT_ID),
    ]
    for student_id, supervisor_id, subject_id in assignments:
        db.add(
            StudentAssignment(
                student_id=student_id,
                student_name=fake.name(),
                student_email=fake.email(),
                supervisor_id=supervisor_id,
                supervisor_name=fake.name(),
                subject_id=subject_id,
                subject_title="Graduation internship",
                work_type="internship",
            )
        )
    db.add(CommitteeSubject(committee_id=COMMITTEE_ID, committee_name=fake.name(), subject_id=SUBJECT_ID))
    db.add(CommitteeSubject(committee_id=OTHER_COMMITTEE_ID, committee_name=fake.name(), subject_id=OTHER_SUBJECT_ID))
    db.commit()
    return db


@pytest.fixture
def notifications() -> RecordingPort:
    return RecordingPort()


@pytest.fixture
def client(db, notifications):
    """Create test client with database and notifier overrides"""
    def override_get_db():
        session = TestSessionLocal()
        try:
            yield session
        finally:
            session.close()

    def override_get_notifier(background_tasks: BackgroundTasks) -> NotificationDispatcher:
        return NotificationDispatcher(notifications, schedule=background_tasks.add_task)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = override_get_notifier

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def new_record():
    """Transient grade record with default milestones and components"""
    return GradeRecordStore(db=None).build(STUDENT_ID, SUPERVISOR_ID, SUBJECT_ID)
