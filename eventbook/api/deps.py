from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose.exceptions import JWTError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core import security
from eventbook.core.database_manager import db_manager
from eventbook.core.db_utils import PaginationParams
from eventbook.crud import user as user_crud
from eventbook.models.user import User
from eventbook.schemas.user import TokenPayload
from eventbook.utils.dates import as_utc

bearer_scheme = HTTPBearer(auto_error=False)

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with db_manager.get_session() as session:
        yield session


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> User:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = security.decode_access_token(credentials.credentials)
        token_data = TokenPayload(**payload)
    except (JWTError, ValidationError):
        raise _CREDENTIALS_EXCEPTION

    user = await user_crud.get(db, token_data.sub)
    if not user:
        raise _CREDENTIALS_EXCEPTION

    # tokens issued before the last password change are no longer valid
    if user.password_changed_at is not None and token_data.iat is not None:
        if token_data.iat < as_utc(user.password_changed_at).timestamp():
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Password was changed recently, please log in again",
                headers={"WWW-Authenticate": "Bearer"},
            )
    return user


def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    if not user_crud.is_active(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated"
        )
    return current_user


def get_current_admin_user(
    current_user: User = Depends(get_current_active_user),
) -> User:
    if not user_crud.is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required"
        )
    return current_user


def get_pagination(page: int = 1, limit: int = 10) -> PaginationParams:
    return PaginationParams(page=page, limit=limit)
