"""Email/password accounts, sign-in throttling and session tokens."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Final

import redis
from sqlalchemy.orm import Session

from duet_chat.core.errors import AuthError
from duet_chat.core.security import (
    Persistence,
    create_access_token,
    hash_password,
    verify_password,
)
from duet_chat.core.settings import settings
from duet_chat.models import User
from duet_chat.models.user import AUTH_PROVIDER_PASSWORD, USER_STATUS_OFFLINE
from duet_chat.services.users import (
    create_user,
    ensure_profile,
    get_user_by_email,
    normalize_email,
    set_presence,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthSession:
    """A signed-in user and the token that identifies the session."""

    user: User
    access_token: str
    persistence: Persistence


def persistence_for(remember: bool) -> Persistence:
    return "local" if remember else "session"


def issue_session(user: User, remember: bool) -> AuthSession:
    persistence = persistence_for(remember)
    token = create_access_token(user.id, persistence=persistence)
    return AuthSession(user=user, access_token=token, persistence=persistence)


class LoginThrottle:
    """Counts failed sign-ins per email and locks the email out past a limit.

    Counters live in Redis when ``REDIS_URL`` is set and in process memory
    otherwise.
    """

    def __init__(
        self,
        max_attempts: int | None = None,
        lockout_seconds: int | None = None,
        redis_url: str | None = None,
    ) -> None:
        self.max_attempts = max_attempts or settings.login_max_attempts
        self.lockout_seconds = lockout_seconds or settings.login_lockout_seconds
        url = redis_url if redis_url is not None else settings.redis_url
        self._redis: redis.Redis | None = redis.from_url(url) if url else None

    @staticmethod
    def _key(email: str) -> str:
        return f"login-fail:{normalize_email(email)}"

    def is_locked(self, email: str) -> bool:
        key = self._key(email)
        if self._redis is not None:
            try:
                count = self._redis.get(key)
                return count is not None and int(count) >= self.max_attempts
            except redis.RedisError as exc:
                logger.warning("Redis unavailable for login throttle: %s", exc)
                self._redis = None

        now = time.monotonic()
        with _CACHE_LOCK:
            count, expiry = _FAILURES.get(key, (0, 0.0))
            if expiry < now:
                _FAILURES.pop(key, None)
                return False
            return count >= self.max_attempts

    def register_failure(self, email: str) -> None:
        key = self._key(email)
        if self._redis is not None:
            try:
                pipe = self._redis.pipeline()
                pipe.incr(key)
                pipe.expire(key, self.lockout_seconds)
                pipe.execute()
                return
            except redis.RedisError as exc:
                logger.warning("Redis unavailable for login throttle: %s", exc)
                self._redis = None

        now = time.monotonic()
        with _CACHE_LOCK:
            count, expiry = _FAILURES.get(key, (0, 0.0))
            if expiry < now:
                count = 0
            _FAILURES[key] = (count + 1, now + self.lockout_seconds)

    def reset(self, email: str) -> None:
        key = self._key(email)
        if self._redis is not None:
            try:
                self._redis.delete(key)
                return
            except redis.RedisError as exc:
                logger.warning("Redis unavailable for login throttle: %s", exc)
                self._redis = None
        with _CACHE_LOCK:
            _FAILURES.pop(key, None)


_FAILURES: dict[str, tuple[int, float]] = {}
_CACHE_LOCK: Final = Lock()


def clear_login_failures() -> None:
    """Forget every in-process failure counter."""
    with _CACHE_LOCK:
        _FAILURES.clear()


_throttle: LoginThrottle | None = None


def get_login_throttle() -> LoginThrottle:
    global _throttle
    if _throttle is None:
        _throttle = LoginThrottle()
    return _throttle


def sign_up(
    db: Session,
    *,
    email: str,
    password: str,
    name: str | None = None,
    remember: bool = True,
) -> AuthSession:
    """Create an email/password account and sign it in."""
    email = normalize_email(email)
    if "@" not in email:
        raise AuthError("auth/invalid-email", status_code=400)
    if len(password) < settings.min_password_length:
        raise AuthError("auth/weak-password", status_code=400)
    if get_user_by_email(db, email) is not None:
        raise AuthError("auth/email-already-in-use", status_code=409)

    user = create_user(
        db,
        email=email,
        name=name,
        provider=AUTH_PROVIDER_PASSWORD,
        password_hash=hash_password(password),
    )
    return issue_session(user, remember)


def sign_in(
    db: Session,
    *,
    email: str,
    password: str,
    remember: bool = True,
    throttle: LoginThrottle | None = None,
) -> AuthSession:
    """Check email/password credentials and open a session."""
    throttle = throttle or get_login_throttle()
    if throttle.is_locked(email):
        raise AuthError("auth/too-many-requests", status_code=429)

    user = get_user_by_email(db, email)
    if user is None:
        throttle.register_failure(email)
        raise AuthError("auth/user-not-found")
    if user.password_hash is None:
        raise AuthError("auth/account-exists-with-different-credential")
    if not verify_password(password, user.password_hash):
        throttle.register_failure(email)
        logger.info("Rejected password for %s", user.id)
        raise AuthError("auth/wrong-password")

    throttle.reset(email)
    user = ensure_profile(db, email=user.email)
    return issue_session(user, remember)


def sign_out(db: Session, user: User) -> User:
    """Mark the user offline."""
    return set_presence(db, user, USER_STATUS_OFFLINE)
