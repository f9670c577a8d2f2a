from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from datastore.database import build_engine, build_session_factory, create_tables
from services.auth import AuthService, hash_password, verify_password
from services.errors import InvalidCredentialsError


def _service(tmp_path: Path, expiration: timedelta = timedelta(hours=1), secret: str = "test-secret") -> AuthService:
    engine = build_engine(f"sqlite:///{tmp_path / 'auth.db'}")
    create_tables(engine)
    return AuthService(
        session_factory=build_session_factory(engine),
        secret=secret,
        issuer="test-issuer",
        expiration=expiration,
    )


@pytest.fixture
def auth(tmp_path: Path) -> AuthService:
    service = _service(tmp_path)
    service.seed_default_users()
    return service


def test_password_hashing_round_trip() -> None:
    hashed = hash_password("s3cret")

    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed) is True
    assert verify_password("wrong", hashed) is False


def test_seeding_is_idempotent(tmp_path: Path) -> None:
    service = _service(tmp_path)

    assert service.seed_default_users() == 2
    assert service.seed_default_users() == 0


def test_login_by_email_or_username(auth: AuthService) -> None:
    by_email = auth.login("admin@example.com", "password")
    by_username = auth.login("testuser", "testuser123")

    assert by_email.user.role == "admin"
    assert by_username.user.email == "user@example.com"
    assert by_username.user.role == "user"
    assert by_email.token


@pytest.mark.parametrize(
    ("identifier", "password"),
    [("admin@example.com", "nope"), ("ghost@example.com", "password"), ("", "")],
)
def test_login_rejects_bad_credentials(auth: AuthService, identifier: str, password: str) -> None:
    with pytest.raises(InvalidCredentialsError):
        auth.login(identifier, password)


def test_issued_token_verifies(auth: AuthService) -> None:
    grant = auth.login("admin@example.com", "password")

    claims = auth.verify_token(grant.token)

    assert claims.user_id == grant.user.id
    assert claims.email == "admin@example.com"
    assert claims.role == "admin"
    assert grant.expires_at > grant.user.created_at


def test_token_signed_with_other_secret_is_rejected(auth: AuthService, tmp_path: Path) -> None:
    other = _service(tmp_path / "other", secret="other-secret")
    other.seed_default_users()
    token = other.login("admin@example.com", "password").token

    with pytest.raises(InvalidCredentialsError):
        auth.verify_token(token)


def test_expired_token_is_rejected(tmp_path: Path) -> None:
    service = _service(tmp_path, expiration=timedelta(seconds=-5))
    service.seed_default_users()
    token = service.login("admin@example.com", "password").token

    with pytest.raises(InvalidCredentialsError):
        service.verify_token(token)


def test_garbage_token_is_rejected(auth: AuthService) -> None:
    with pytest.raises(InvalidCredentialsError):
        auth.verify_token("not-a-jwt")


def test_create_user_rejects_duplicates(auth: AuthService) -> None:
    created = auth.create_user("operator", "ops@example.com", "hunter22")

    assert created.role == "user"
    with pytest.raises(ValueError):
        auth.create_user("operator", "other@example.com", "hunter22")
