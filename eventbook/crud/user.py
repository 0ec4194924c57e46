import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.models.user import User, UserRole
from eventbook.schemas.user import UserCreate

from ..core.security import get_password_hash, verify_password


async def get(db: AsyncSession, id: uuid.UUID) -> Optional[User]:
    return await db.get(User, id)


async def get_by_email(db: AsyncSession, *, email: str) -> Optional[User]:
    result = await db.execute(select(User).filter(User.email == email.lower()))
    first: Optional[User] = result.scalars().first()
    return first


async def create(
    db: AsyncSession, *, obj_in: UserCreate, role: UserRole = UserRole.USER
) -> User:
    db_obj = User(
        first_name=obj_in.first_name,
        last_name=obj_in.last_name,
        email=obj_in.email.lower(),
        hashed_password=get_password_hash(obj_in.password),
        role=role,
        is_active=True,
    )
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def update_password(db: AsyncSession, *, db_obj: User, new_password: str) -> User:
    db_obj.hashed_password = get_password_hash(new_password)
    db_obj.password_changed_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def authenticate(
    db: AsyncSession, *, email: str, password: str
) -> Optional[User]:
    user = await get_by_email(db, email=email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


async def record_login(db: AsyncSession, *, db_obj: User) -> User:
    db_obj.last_login = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


def is_active(user: User) -> bool:
    return bool(user.is_active)


def is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN


async def ensure_admin(db: AsyncSession, *, email: str, password: str) -> User:
    """Create the bootstrap admin account, or promote an existing one."""
    user = await get_by_email(db, email=email)
    if user is None:
        user = User(
            first_name="Admin",
            last_name="User",
            email=email.lower(),
            hashed_password=get_password_hash(password),
            role=UserRole.ADMIN,
            is_active=True,
        )
        db.add(user)
    elif user.role != UserRole.ADMIN:
        user.role = UserRole.ADMIN
    else:
        return user
    await db.commit()
    await db.refresh(user)
    return user
