import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import NullPool, StaticPool

from .config import TRANSACTION_MAX_ATTEMPTS
from .db_errors import is_serialization_failure
from .exceptions import ConcurrentUpdate

logger = logging.getLogger(__name__)

engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[sessionmaker] = None
Base = declarative_base()

T = TypeVar("T")


def get_engine() -> AsyncEngine:
    """Return a lazily created SQLAlchemy engine.

    The engine is created on first use using the ``DATABASE_URL`` environment
    variable. Importing this module has no side effects so tests can set the
    environment variable at runtime. A ``RuntimeError`` is raised only if the
    function is called without ``DATABASE_URL`` being configured.
    """

    global engine, AsyncSessionLocal

    if engine is None:
        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL environment variable is required")

        if database_url.startswith("postgresql://"):
            database_url = database_url.replace(
                "postgresql://", "postgresql+asyncpg://", 1
            )

        engine_kwargs: dict[str, Any] = {"echo": False}

        if database_url.startswith("sqlite+aiosqlite://"):
            # In-memory SQLite must reuse the same connection to persist schema/data.
            if ":memory:" in database_url:
                engine_kwargs["poolclass"] = StaticPool
                engine_kwargs["connect_args"] = {"check_same_thread": False}
            else:
                engine_kwargs["poolclass"] = NullPool
        else:
            engine_kwargs["pool_pre_ping"] = True

        engine = create_async_engine(database_url, **engine_kwargs)
        AsyncSessionLocal = sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    return engine


async def get_session() -> AsyncIterator[AsyncSession]:
    """Provide a database session for FastAPI dependencies."""

    if AsyncSessionLocal is None:
        get_engine()

    assert AsyncSessionLocal is not None  # for type checkers
    async with AsyncSessionLocal() as session:
        yield session


async def init_models() -> None:
    """Create every table registered on ``Base`` that does not exist yet."""

    from . import models  # noqa: F401  # register models on Base.metadata

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit everything done in the block, or roll all of it back.

    Lost optimistic-locking races and database serialization failures are
    reported as :class:`~app.exceptions.ConcurrentUpdate` so the caller's
    transaction boundary can decide whether to re-run the operation.
    """

    try:
        yield session
        await session.commit()
    except StaleDataError as exc:
        await session.rollback()
        raise ConcurrentUpdate() from exc
    except DBAPIError as exc:
        await session.rollback()
        if is_serialization_failure(exc):
            raise ConcurrentUpdate() from exc
        raise
    except Exception:
        await session.rollback()
        raise


async def run_in_transaction(
    operation: Callable[[AsyncSession], Awaitable[T]],
    *,
    attempts: int | None = None,
) -> T:
    """Run ``operation`` with a fresh session, retrying lost concurrency races.

    Only :class:`~app.exceptions.ConcurrentUpdate` triggers a retry; every
    other error propagates on the first attempt.
    """

    if AsyncSessionLocal is None:
        get_engine()
    assert AsyncSessionLocal is not None

    max_attempts = attempts or TRANSACTION_MAX_ATTEMPTS
    attempt = 1
    while True:
        async with AsyncSessionLocal() as session:
            try:
                return await operation(session)
            except ConcurrentUpdate:
                if attempt >= max_attempts:
                    raise
                logger.warning(
                    "Concurrent update detected; retrying (attempt %d of %d)",
                    attempt + 1,
                    max_attempts,
                )
        attempt += 1


async def insert_ignoring_conflicts(
    session: AsyncSession,
    model: Any,
    rows: Iterable[dict[str, Any]],
    index_elements: list[str],
) -> None:
    """Insert ``rows`` into ``model``'s table, skipping rows that hit ``index_elements``.

    Uses the dialect's ``INSERT ... ON CONFLICT DO NOTHING`` so concurrent
    creators of the same unique row never fail each other's transaction.
    """

    values = list(rows)
    if not values:
        return

    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:  # pragma: no cover - only sqlite and postgres are deployed
        raise RuntimeError(f"unsupported database dialect: {dialect}")

    stmt = insert(model).values(values).on_conflict_do_nothing(
        index_elements=index_elements
    )
    await session.execute(stmt)
