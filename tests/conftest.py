import os
from datetime import datetime, timezone

TEST_DB_FILE = "test_coursework.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"

# the app's own engine (startup init_db) must not touch the dev database
os.environ.setdefault("COURSEWORK_DATABASE_URL", TEST_DB_URL)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from coursework.core.clock import get_clock  # noqa: E402
from coursework.core.deps import get_blob_store, get_db  # noqa: E402
from coursework.db.base import Base  # noqa: E402
from coursework.main import app  # noqa: E402
from coursework.models.blob import ContentBlob  # noqa: E402
from coursework.models.submission import Submission  # noqa: E402
from coursework.models.task import Task, TaskAssignee  # noqa: E402
from coursework.models.user import User  # noqa: E402
from coursework.services.content_store import BlobStore  # noqa: E402

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Wednesday; ISO week 2025-W11
NOW = datetime(2025, 3, 12, 12, 0, tzinfo=timezone.utc)

PDF = b"%PDF-1.4 test document"
PNG = b"\x89PNG\r\n\x1a\n fake image"


class FrozenClock:
    """Settable now() source shared by the app and the service tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)


@pytest.fixture(autouse=True)
def users():
    """Seed a clean minimal dataset for each test and return the user ids."""
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        db.query(Submission).delete()
        db.query(TaskAssignee).delete()
        db.query(Task).delete()
        db.query(ContentBlob).delete()
        db.query(User).delete()
        db.commit()

        teacher = User(email="teacher1@example.com", full_name="Teacher One", role="teacher")
        other_teacher = User(email="teacher2@example.com", full_name="Teacher Two", role="teacher")
        admin = User(email="admin@example.com", full_name="Admin", role="administrator")
        db.add_all([teacher, other_teacher, admin])
        db.commit()

        alice = User(email="alice@example.com", full_name="Alice", role="student", teacher_id=teacher.id)
        bob = User(email="bob@example.com", full_name="Bob", role="student", teacher_id=teacher.id)
        carol = User(email="carol@example.com", full_name="Carol", role="student", teacher_id=other_teacher.id)
        db.add_all([alice, bob, carol])
        db.commit()

        yield {
            "teacher": teacher.id,
            "other_teacher": other_teacher.id,
            "admin": admin.id,
            "alice": alice.id,
            "bob": bob.id,
            "carol": carol.id,
        }
    finally:
        db.close()


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def blobs():
    return BlobStore(TestingSessionLocal)


@pytest.fixture()
def clock():
    return FrozenClock(NOW)


@pytest.fixture()
def client(clock):
    """Test client wired to the test DB, blob store and a frozen clock."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: BlobStore(TestingSessionLocal)
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def as_user(user_id: int, role: str) -> dict:
    return {"X-User-Id": str(user_id), "X-User-Role": role}
