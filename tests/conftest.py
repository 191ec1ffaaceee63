import os
import tempfile
import uuid
from unittest.mock import patch

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("TOKEN_KEY", "test-secret-key")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="docman-uploads-"))
os.environ.setdefault("AVATAR_UPLOAD_DIR", tempfile.mkdtemp(prefix="docman-avatars-"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import app.models  # noqa: E402,F401
from app.api.auth import RATE_LIMITERS  # noqa: E402
from app.db import Base, get_db, get_engine  # noqa: E402
from app.models.docman import Category, CategoryType, Document  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.services import auth as auth_service  # noqa: E402
from app.services.auth import create_access_token, hash_password  # noqa: E402
from app.services.cache import cache  # noqa: E402

TEST_PASSWORD = "Secret123!"


@pytest.fixture()
def engine():
    engine = get_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _fast_hashing(monkeypatch):
    monkeypatch.setattr(auth_service, "BCRYPT_ROUNDS", 4)


@pytest.fixture(autouse=True)
def published_events():
    """Events never reach a broker in tests; the mock records them."""
    with patch("app.tasks.events.process_event.delay") as delay:
        yield delay


@pytest.fixture(autouse=True)
def _reset_shared_state():
    cache.clear()
    for limiter in RATE_LIMITERS:
        limiter.store.reset()
    yield
    cache.clear()


@pytest.fixture()
def make_user(db_session):
    def _make(role: UserRole = UserRole.viewer, **overrides) -> User:
        suffix = uuid.uuid4().hex[:8]
        values = dict(
            firstname="Test",
            lastname=role.value.capitalize(),
            email=f"{role.value}-{suffix}@example.com",
            username=f"{role.value}{suffix}",
            password_hash=hash_password(TEST_PASSWORD),
            role=role,
        )
        values.update(overrides)
        user = User(**values)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def viewer(make_user):
    return make_user(UserRole.viewer, firstname="Vera")


@pytest.fixture()
def editor(make_user):
    return make_user(UserRole.editor, firstname="Eddie")


@pytest.fixture()
def admin(make_user):
    return make_user(UserRole.admin, firstname="Ada")


@pytest.fixture()
def superadmin(make_user):
    return make_user(UserRole.superadmin, firstname="Sam")


@pytest.fixture()
def category(db_session):
    c = Category(name="Policies", category_type=CategoryType.document)
    db_session.add(c)
    db_session.commit()
    db_session.refresh(c)
    return c


@pytest.fixture()
def book_category(db_session):
    c = Category(name="Handbooks", category_type=CategoryType.book)
    db_session.add(c)
    db_session.commit()
    db_session.refresh(c)
    return c


@pytest.fixture()
def document(db_session, editor, category):
    d = Document(
        title="Security Policy",
        description="How we handle secrets",
        author_id=editor.id,
        category_id=category.id,
    )
    db_session.add(d)
    db_session.commit()
    db_session.refresh(d)
    return d


def _headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture()
def auth_headers(editor):
    return _headers(editor)


@pytest.fixture()
def viewer_headers(viewer):
    return _headers(viewer)


@pytest.fixture()
def admin_headers(admin):
    return _headers(admin)


@pytest.fixture()
def superadmin_headers(superadmin):
    return _headers(superadmin)


@pytest.fixture()
def client(db_session):
    from app.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
