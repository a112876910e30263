import pytest

from app.models.user import UserCreate, UserUpdate
from app.services.users import UserService, hash_password, verify_password


@pytest.fixture
def users(db_manager):
    session = db_manager.SessionLocal()
    yield UserService(session)
    session.close()


def test_password_hashing():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed) is True
    assert verify_password("wrong", hashed) is False
    assert verify_password("secret123", "not-a-bcrypt-hash") is False


def test_lookup_by_email_ignores_case(users):
    user = users.create(UserCreate(email="Priya@Example.com", password="secret123"))

    assert user.email == "priya@example.com"
    assert users.get_by_email("PRIYA@example.COM").id == user.id
    assert users.get_by_id(user.id).email == "priya@example.com"


def test_update_only_given_fields(users):
    user = users.create(UserCreate(email="ravi@example.com", password="secret123", first_name="Ravi"))

    updated = users.update(user.id, UserUpdate(last_name="Kumar", password="new-secret"))

    assert updated.first_name == "Ravi"
    assert updated.last_name == "Kumar"
    assert verify_password("new-secret", updated.password)
    assert users.update(9999, UserUpdate(first_name="x")) is None


def test_delete(users):
    user = users.create(UserCreate(email="gone@example.com", password="secret123"))
    assert users.delete(user.id) is True
    assert users.delete(user.id) is False
    assert users.get_by_email("gone@example.com") is None


def test_update_rejects_password_over_72_bytes():
    from pydantic import ValidationError

    with pytest.raises(ValidationError):
        UserUpdate(password="密" * 30)
