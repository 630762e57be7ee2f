"""
Auth service — identity resolution, registration and login.

``resolve_caller`` is the only place a bearer token is turned into a
``Caller``; the FastAPI dependencies in ``blogapi.dependencies`` wrap it in
required and optional variants.
"""
import logging
import re

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blogapi.exceptions import (
    AccountDisabled,
    EmailExists,
    InvalidCredentials,
    PasswordMismatch,
    Unauthenticated,
    UsernameExists,
    ValidationError,
    WeakPassword,
)
from blogapi.models import User
from blogapi.schemas import UserLogin, UserRegister
from blogapi.security import (
    Caller,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from blogapi.services.common import integrity_error_mentions, user_to_dict

logger = logging.getLogger(__name__)

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_\u4e00-\u9fa5]{2,50}$")


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def validate_username(username: str) -> None:
    if not _USERNAME_RE.match(username):
        raise ValidationError(
            "Username must be 2-50 characters of letters, digits, underscores or CJK"
        )


def password_problems(password: str) -> list[str]:
    """Return the strength rules *password* breaks (empty when acceptable)."""
    problems = []
    if len(password) < 8:
        problems.append("at least 8 characters")
    if len(password) > 128:
        problems.append("at most 128 characters")
    if not re.search(r"[a-z]", password):
        problems.append("a lowercase letter")
    if not re.search(r"[A-Z]", password):
        problems.append("an uppercase letter")
    if not re.search(r"[0-9]", password):
        problems.append("a digit")
    return problems


def ensure_strong_password(password: str) -> None:
    problems = password_problems(password)
    if problems:
        raise WeakPassword(details=problems)


def _issue_token(user: User) -> str:
    return create_access_token(user.id, user.email, user.username, user.role)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

async def resolve_caller(db: AsyncSession, token: str) -> Caller:
    """
    Verify *token* and load the account it refers to.

    Raises ``InvalidToken`` / ``TokenExpired`` for a bad token,
    ``Unauthenticated`` when the account no longer exists and
    ``AccountDisabled`` when it has been deactivated.
    """
    payload = decode_access_token(token)
    user = await db.get(User, payload.user_id)
    if user is None:
        raise Unauthenticated("User no longer exists")
    if not user.is_active:
        raise AccountDisabled()
    return Caller(user_id=user.id, email=user.email, username=user.username, role=user.role)


# ---------------------------------------------------------------------------
# Registration / login
# ---------------------------------------------------------------------------

async def register(db: AsyncSession, data: UserRegister) -> dict:
    """
    Create an account and return ``{"user": ..., "token": ...}``.

    Every check runs before the insert; a unique-constraint violation at
    flush time (concurrent registration) maps to the same conflict errors.
    """
    email = data.email.lower()
    validate_username(data.username)
    ensure_strong_password(data.password)
    if data.password != data.confirm_password:
        raise PasswordMismatch()

    if (await db.execute(select(User.id).where(User.email == email))).first():
        raise EmailExists()
    if (await db.execute(select(User.id).where(User.username == data.username))).first():
        raise UsernameExists()

    user = User(email=email, username=data.username, password_hash=hash_password(data.password))
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        if integrity_error_mentions(exc, "email"):
            raise EmailExists() from exc
        raise UsernameExists() from exc

    logger.info("Registered user id=%d username=%s", user.id, user.username)
    return {"user": user_to_dict(user), "token": _issue_token(user)}


async def login(db: AsyncSession, data: UserLogin) -> dict:
    result = await db.execute(select(User).where(User.email == data.email.lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(data.password, user.password_hash):
        raise InvalidCredentials()
    if not user.is_active:
        raise AccountDisabled()
    return {"user": user_to_dict(user), "token": _issue_token(user)}
