"""
Pytest configuration and shared fixtures for the PowerUp API tests.
"""

import os
import sys
from pathlib import Path

import bcrypt
import pytest
from dotenv import load_dotenv

test_env_path = Path(__file__).parent / ".env.test"
if test_env_path.exists():
    load_dotenv(test_env_path, override=True)

os.environ["TESTING"] = "True"
os.environ.setdefault("DATABASE_TEST_URL", "sqlite://")
os.environ.setdefault("JWT_KEY", "test-signing-key-for-powerup-tests-only-0123456789")
os.environ.setdefault("JWT_ISSUER", "powerup-tests")
os.environ.setdefault("JWT_AUDIENCE", "powerup-tests-client")

from main import create_app  # noqa: E402
from powerup.config import is_production_database  # noqa: E402
from powerup.extensions import db as database  # noqa: E402
from powerup.models import Base, Instructor, Member, User, UserRole  # noqa: E402
from powerup.services.token_service import generate_token  # noqa: E402

TEST_PASSWORD = "password123"
# low cost factor, fixture users only
TEST_PASSWORD_HASH = bcrypt.hashpw(
    TEST_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)
).decode("utf-8")


@pytest.fixture
def app():
    """Fresh app and in-memory schema for every test."""
    test_db_url = os.environ.get("DATABASE_TEST_URL", "sqlite://")
    if is_production_database(test_db_url):
        print(f" DANGER: Database URL appears to be production: {test_db_url}")
        sys.exit(1)

    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": test_db_url,
            "JWT_KEY": os.environ["JWT_KEY"],
            "JWT_ISSUER": os.environ["JWT_ISSUER"],
            "JWT_AUDIENCE": os.environ["JWT_AUDIENCE"],
        }
    )

    with app.app_context():
        Base.metadata.create_all(bind=database.engine)
        yield app
        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    return database.session


@pytest.fixture
def make_user(db_session):
    """Factory for users with the shared test password."""

    def _make_user(name="Test User", email=None, role=UserRole.Member, is_admin=False):
        user = User(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.com",
            phone_number="555-0100",
            password_hash=TEST_PASSWORD_HASH,
            role=role,
            is_admin=is_admin,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def admin_user(make_user):
    return make_user("Ada Admin", "admin@powerup.test", UserRole.Admin, is_admin=True)


@pytest.fixture
def member(make_user, db_session):
    """A Member row together with its user account."""
    user = make_user("Mia Member", "mia@powerup.test", UserRole.Member)
    row = Member(user_id=user.id, is_active=True)
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture
def instructor(make_user, db_session):
    """An Instructor row together with its user account."""
    user = make_user("Ivan Instructor", "ivan@powerup.test", UserRole.Instructor)
    row = Instructor(user_id=user.id)
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture
def headers_for(app):
    def _headers_for(user):
        return {"Authorization": f"Bearer {generate_token(user)}"}

    return _headers_for


@pytest.fixture
def admin_headers(admin_user, headers_for):
    return headers_for(admin_user)


@pytest.fixture
def member_headers(member, headers_for):
    return headers_for(member.user)


@pytest.fixture
def instructor_headers(instructor, headers_for):
    return headers_for(instructor.user)


@pytest.fixture
def test_user_data():
    """Registration payload."""
    return {
        "name": "Rita Runner",
        "email": "rita@example.com",
        "password": TEST_PASSWORD,
        "phone_number": "555-0199",
    }


@pytest.fixture
def test_password():
    return TEST_PASSWORD
