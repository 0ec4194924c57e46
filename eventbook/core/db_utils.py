import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Awaitable, Callable, Generic, List, TypeVar

from pydantic import BaseModel
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (
    "database is locked",
    "lock timeout",
    "lock not available",
    "could not obtain lock",
    "canceling statement due to lock timeout",
    "deadlock",
    "serialization failure",
    "could not serialize access",
)


class PaginationParams(BaseModel):
    page: int = 1
    limit: int = 10
    max_limit: int = 100

    def model_post_init(self, __context: Any) -> None:
        if self.page < 1:
            self.page = 1
        if self.limit > self.max_limit:
            self.limit = self.max_limit
        if self.limit < 1:
            self.limit = 1

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PaginatedResponse(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def create(
        cls, items: List[Any], total: int, pagination: PaginationParams
    ) -> "PaginatedResponse[T]":
        pages = (total + pagination.limit - 1) // pagination.limit
        return cls(
            items=items,
            total=total,
            page=pagination.page,
            limit=pagination.limit,
            pages=pages,
        )


@asynccontextmanager
async def db_transaction(db: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise


def is_retryable_error(exc: BaseException) -> bool:
    """Lock waits, deadlocks and serialization failures are safe to retry."""
    if not isinstance(exc, DBAPIError):
        return False
    error_msg = str(exc.orig if exc.orig is not None else exc).lower()
    return any(err in error_msg for err in RETRYABLE_ERRORS)


async def execute_with_retry(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    backoff: float = 0.05,
) -> T:
    """Run ``func`` until it stops failing with a retryable database error.

    ``func`` must own its transaction so every attempt starts clean. The last
    retryable error is re-raised once ``max_attempts`` is used up.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except DBAPIError as e:
            if not is_retryable_error(e) or attempt == max_attempts:
                raise
            logger.warning(
                "Retryable database error on attempt %d/%d: %s",
                attempt,
                max_attempts,
                e.orig if e.orig is not None else e,
            )
            await asyncio.sleep(backoff * attempt)

    raise RuntimeError("max_attempts must be at least 1")
