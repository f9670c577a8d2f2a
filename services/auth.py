"""Password hashing, JWT issuance and default user seeding."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import or_, select
from sqlalchemy.orm import sessionmaker

from datastore.sensor_repository import build_default_session_factory
from datastore.tables import UserRow
from services.errors import InvalidCredentialsError
from settings import get_settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

DEFAULT_USERS = (
    ("admin", "admin@example.com", "password", "admin"),
    ("testuser", "user@example.com", "testuser123", "user"),
)


@dataclass(frozen=True)
class UserInfo:
    id: int
    username: str
    email: str
    role: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TokenGrant:
    token: str
    expires_at: datetime
    user: UserInfo


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str
    role: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _user_info(row: UserRow) -> UserInfo:
    return UserInfo(
        id=row.id,
        username=row.username,
        email=row.email,
        role=row.role,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class AuthService:
    """Authenticates users stored in the ``users`` table and signs access tokens."""

    def __init__(
        self,
        session_factory: sessionmaker,
        secret: str,
        issuer: str,
        expiration: timedelta,
    ) -> None:
        self._session_factory = session_factory
        self._secret = secret
        self.issuer = issuer
        self.expiration = expiration

    def login(self, identifier: str, password: str) -> TokenGrant:
        """Match ``identifier`` against username or email and issue a token."""
        with self._session_factory() as session:
            row = session.scalar(
                select(UserRow).where(
                    or_(UserRow.username == identifier, UserRow.email == identifier)
                )
            )
        if row is None or not verify_password(password, row.password_hash):
            raise InvalidCredentialsError("invalid credentials")
        user = _user_info(row)
        token, expires_at = self.issue_token(user)
        logger.info("User %s logged in", user.username)
        return TokenGrant(token=token, expires_at=expires_at, user=user)

    def issue_token(self, user: UserInfo) -> tuple[str, datetime]:
        now = datetime.now(timezone.utc)
        expires_at = now + self.expiration
        claims: Dict[str, Any] = {
            "sub": user.email,
            "user_id": user.id,
            "role": user.role,
            "iss": self.issuer,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM), expires_at

    def verify_token(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token, self._secret, algorithms=[ALGORITHM], issuer=self.issuer
            )
        except JWTError as exc:
            raise InvalidCredentialsError("invalid or expired token") from exc
        user_id = payload.get("user_id")
        if not isinstance(user_id, int):
            raise InvalidCredentialsError("invalid or expired token")
        return TokenClaims(
            user_id=user_id,
            email=str(payload.get("sub", "")),
            role=str(payload.get("role", "user")),
        )

    def create_user(self, username: str, email: str, password: str, role: str = "user") -> UserInfo:
        with self._session_factory.begin() as session:
            existing = session.scalar(
                select(UserRow).where(or_(UserRow.username == username, UserRow.email == email))
            )
            if existing is not None:
                raise ValueError("user already exists")
            row = UserRow(
                username=username,
                email=email,
                password_hash=hash_password(password),
                role=role,
            )
            session.add(row)
            session.flush()
            return _user_info(row)

    def seed_default_users(self) -> int:
        """Create the built-in accounts that are missing; returns how many were added."""
        created = 0
        for username, email, password, role in DEFAULT_USERS:
            try:
                self.create_user(username, email, password, role)
            except ValueError:
                logger.debug("User %s already exists, skipping", username)
                continue
            created += 1
            logger.info("Created default user %s with role %s", username, role)
        return created


@lru_cache
def build_default_auth_service() -> AuthService:
    settings = get_settings()
    return AuthService(
        session_factory=build_default_session_factory(),
        secret=settings.jwt_secret,
        issuer=settings.jwt_issuer,
        expiration=timedelta(seconds=settings.jwt_expiration_seconds),
    )
