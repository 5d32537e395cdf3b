"""Fixtures for user model."""

import jwt
import pytest

from inbox.config import get_settings
from inbox.models.user import User


def make_token(user_id) -> str:
    """Bearer token for ``user_id`` signed with the test secret."""
    settings = get_settings()
    return jwt.encode(
        {"sub": str(user_id)}, settings.jwt_secret, algorithm=settings.jwt_algorithm
    )


def _make_user(db, faker) -> User:
    user = User(
        username=faker.unique.user_name(),
        full_name=faker.name(),
        profile_picture=faker.image_url(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def setup_user(db, faker):
    """The authenticated caller in router tests."""
    return _make_user(db, faker)


@pytest.fixture(scope="function")
def setup_other_user(db, faker):
    """A counterpart of ``setup_user``."""
    return _make_user(db, faker)


@pytest.fixture(scope="function")
def setup_third_user(db, faker):
    return _make_user(db, faker)
