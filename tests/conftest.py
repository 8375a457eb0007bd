import io
import itertools
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from PIL import Image

import models
import utils
from config import Settings
from main import create_app
from storage import ObjectStorage, StorageError

TEST_SECRET = "test-secret-key"
TEST_BUCKET = "campus-test-bucket"


class FakeStorage(ObjectStorage):
    """In-memory bucket with the ObjectStorage interface."""

    def __init__(self, bucket_name: str = TEST_BUCKET):
        self.bucket_name = bucket_name
        self.objects = {}
        self.deleted = []
        self.fail_puts = False
        self.fail_deletes = False
        self.closed = False

    async def put_object(self, key, data, content_type):
        if self.fail_puts:
            raise StorageError("bucket unavailable")
        self.objects[key] = (data, content_type)
        return self.public_url(key)

    async def delete_object(self, key):
        self.deleted.append(key)
        if self.fail_deletes:
            raise StorageError("bucket unavailable")
        self.objects.pop(key, None)

    def close(self):
        self.closed = True


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test_events.db'}",
        jwt_secret_key=TEST_SECRET,
        log_file=None,
        rate_limit_enabled=False,
    )


@pytest.fixture()
def storage():
    return FakeStorage()


@pytest.fixture()
def app(settings, storage):
    return create_app(settings, storage=storage)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def db_session(app):
    session = app.state.database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


def auth_headers(user: models.User) -> dict:
    identity = utils.Identity(id=user.id, email=user.email, role=user.role)
    return {"Authorization": f"Bearer {utils.create_access_token(identity, TEST_SECRET)}"}


_counter = itertools.count(1)


@pytest.fixture()
def make_user(db_session):
    def _make(role=models.UserRole.STUDENT, email=None, name=None, password="password123"):
        n = next(_counter)
        user = models.User(
            name=name or f"User {n}",
            email=email or f"user{n}@university.edu",
            password_hash=utils.hash_password(password),
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_club(db_session, make_user):
    def _make(owner=None, approved=True, name=None, logo_url=None):
        owner = owner or make_user(models.UserRole.CLUB_REPRESENTATIVE)
        club = models.Club(
            user_id=owner.id,
            name=name or f"Club {next(_counter)}",
            description="A club",
            logo_url=logo_url,
            is_approved=approved,
        )
        db_session.add(club)
        db_session.commit()
        db_session.refresh(club)
        return club

    return _make


@pytest.fixture()
def make_event(db_session):
    def _make(club, days=1, title=None, banner_image_url=None):
        event = models.Event(
            club_id=club.id,
            title=title or f"Event {next(_counter)}",
            description="Something happens",
            date_time=utils.utcnow() + timedelta(days=days),
            location="Main Hall",
            banner_image_url=banner_image_url,
        )
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)
        return event

    return _make


@pytest.fixture()
def admin(make_user):
    return make_user(models.UserRole.ADMIN, name="Admin")


@pytest.fixture()
def student(make_user):
    return make_user(models.UserRole.STUDENT, name="Student")


@pytest.fixture()
def representative(make_user):
    return make_user(models.UserRole.CLUB_REPRESENTATIVE, name="Representative")


def png_file(name="logo.png", color="red"):
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color=color).save(buf, format="PNG")
    return (name, buf.getvalue(), "image/png")
