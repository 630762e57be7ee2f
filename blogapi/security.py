"""
Credential primitives: password hashing, access tokens, and the resolved
caller identity that the rest of the application reasons about.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from blogapi.config import settings
from blogapi.exceptions import InvalidToken, TokenExpired
from blogapi.models import Role

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


@dataclass(frozen=True)
class Caller:
    """An authenticated actor.  Anonymous callers are represented by ``None``."""

    user_id: int
    email: str
    username: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class TokenPayload:
    user_id: int
    email: str
    username: str
    role: Role
    issued_at: datetime
    expires_at: datetime


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    user_id: int,
    email: str,
    username: str,
    role: Role,
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {
        "sub": str(user_id),
        "email": email,
        "username": username,
        "role": Role(role).value,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    """
    Verify *token* and return its payload.

    Raises ``TokenExpired`` for a well-formed token past its expiry and
    ``InvalidToken`` for anything else that fails verification.
    """
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpired()
    except JWTError:
        raise InvalidToken()

    try:
        return TokenPayload(
            user_id=int(claims["sub"]),
            email=claims["email"],
            username=claims["username"],
            role=Role(claims["role"]),
            issued_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )
    except (KeyError, ValueError, TypeError):
        raise InvalidToken()
