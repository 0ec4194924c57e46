import re
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Union, cast

from jose import jwt
from passlib.context import CryptContext

from eventbook.core.settings import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.security.BCRYPT_ROUNDS,
)

ALGORITHM = settings.security.JWT_ALGORITHM


def create_access_token(
    subject: Union[str, Any],
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict[str, Any]] = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.security.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode: dict[str, Any] = {
        "exp": expire,
        "iat": now.timestamp(),
        "sub": str(subject),
    }

    if additional_claims:
        to_encode.update(additional_claims)

    encoded_jwt = jwt.encode(
        to_encode, settings.security.JWT_SECRET_KEY, algorithm=ALGORITHM
    )
    return cast(str, encoded_jwt)


def decode_access_token(token: str) -> dict[str, Any]:
    """Raises ``jose.JWTError`` for a bad signature or an expired token."""
    return cast(
        dict[str, Any],
        jwt.decode(token, settings.security.JWT_SECRET_KEY, algorithms=[ALGORITHM]),
    )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return cast(bool, pwd_context.verify(plain_password, hashed_password))


def get_password_hash(password: str) -> str:
    return cast(str, pwd_context.hash(password))


def password_policy_errors(password: str) -> List[str]:
    errors = []
    if len(password) < settings.security.PASSWORD_MIN_LENGTH:
        errors.append(
            f"Password must be at least {settings.security.PASSWORD_MIN_LENGTH} characters long"
        )
    if settings.security.PASSWORD_REQUIRE_UPPERCASE and not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if settings.security.PASSWORD_REQUIRE_NUMBERS and not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    return errors
