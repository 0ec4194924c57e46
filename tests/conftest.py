"""Shared fixtures: a throwaway SQLite file per test, fake Redis and an API client."""
import os
import sys
from datetime import timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, AsyncGenerator, Callable, Coroutine, Dict, Optional

os.environ.setdefault("TESTING", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-eventbook")

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import fakeredis  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from eventbook.api import deps  # noqa: E402
from eventbook.core.database_manager import DatabaseManager  # noqa: E402
from eventbook.core.security import create_access_token, get_password_hash  # noqa: E402
from eventbook.main import app  # noqa: E402
from eventbook.models import Event, User, UserRole  # noqa: E402
from eventbook.utils import cache  # noqa: E402
from eventbook.utils.dates import utcnow  # noqa: E402

PASSWORD = "Password123"


@pytest.fixture  # type: ignore[misc]
async def database(tmp_path: Path) -> AsyncGenerator[DatabaseManager, None]:
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'eventbook.db'}")
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture  # type: ignore[misc]
def session_factory(database: DatabaseManager) -> async_sessionmaker[AsyncSession]:
    assert database.session_factory is not None
    return database.session_factory


@pytest.fixture  # type: ignore[misc]
async def db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)  # type: ignore[misc]
async def redis_client(monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[Any, None]:
    fake = fakeredis.FakeAsyncRedis(decode_responses=True)
    monkeypatch.setattr(cache, "_redis_client", fake)
    yield fake
    await fake.flushall()
    await fake.aclose()


@pytest.fixture  # type: ignore[misc]
async def client(database: DatabaseManager) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with database.get_session() as session:
            yield session

    app.dependency_overrides[deps.get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


UserMaker = Callable[..., Coroutine[Any, Any, User]]
EventMaker = Callable[..., Coroutine[Any, Any, Event]]


@pytest.fixture  # type: ignore[misc]
def make_user(session_factory: async_sessionmaker[AsyncSession]) -> UserMaker:
    counter = {"n": 0}

    async def _make(role: UserRole = UserRole.USER, **overrides: Any) -> User:
        counter["n"] += 1
        data: Dict[str, Any] = {
            "first_name": "Test",
            "last_name": f"User{counter['n']}",
            "email": f"user{counter['n']}@example.com",
            "hashed_password": get_password_hash(PASSWORD),
            "role": role,
            "is_active": True,
        }
        data.update(overrides)
        async with session_factory() as session:
            user = User(**data)
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _make


@pytest.fixture  # type: ignore[misc]
def make_event(session_factory: async_sessionmaker[AsyncSession]) -> EventMaker:
    async def _make(
        total_seats: int = 10,
        available_seats: Optional[int] = None,
        starts_in: timedelta = timedelta(days=7),
        **overrides: Any,
    ) -> Event:
        data: Dict[str, Any] = {
            "title": "Concert",
            "description": "An evening of live music",
            "date_time": utcnow() + starts_in,
            "location": "Main Hall",
            "total_seats": total_seats,
            "available_seats": (
                total_seats if available_seats is None else available_seats
            ),
            "price": Decimal("25.00"),
            "is_active": True,
        }
        data.update(overrides)
        async with session_factory() as session:
            event = Event(**data)
            session.add(event)
            await session.commit()
            await session.refresh(event)
            return event

    return _make


@pytest.fixture  # type: ignore[misc]
def headers_for() -> Callable[[User], Dict[str, str]]:
    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token(
            user.id, additional_claims={"role": user.role.value}
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture  # type: ignore[misc]
def seats_left(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[Any], Coroutine[Any, Any, int]]:
    """Read ``available_seats`` on a fresh session so no stale state leaks in."""

    async def _seats(event_id: Any) -> int:
        async with session_factory() as session:
            result = await session.execute(
                select(Event.available_seats).filter(Event.id == event_id)
            )
            return int(result.scalar_one())

    return _seats
