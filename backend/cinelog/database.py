"""Async database engine, session management and insert-if-absent helpers."""

from typing import Any, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from cinelog.config import settings


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


ModelT = TypeVar("ModelT", bound=Base)


async def init_db():
    """Create all tables. In production, use Alembic migrations instead."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncSession:
    """FastAPI dependency — yields one async DB session per request."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Insert-if-absent ─────────────────────────────────────────────

def _dialect_insert(db: AsyncSession, model: type[Base]):
    """Dialect-specific INSERT that supports ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"insert-if-absent is not supported on {dialect}")


async def insert_if_absent(
    db: AsyncSession,
    model: type[ModelT],
    key: dict[str, Any],
    values: dict[str, Any],
) -> tuple[ModelT, bool]:
    """Atomically create a row unless one already exists for the unique key.

    Concurrent callers racing on the same key all end up with the same row:
    the losing INSERT is a no-op and the row is re-read.

    Returns:
        (row, created)
    """
    stmt = (
        _dialect_insert(db, model)
        .values(**key, **values)
        .on_conflict_do_nothing(index_elements=list(key))
    )
    result = await db.execute(stmt)
    created = bool(result.rowcount)

    row = (await db.execute(select(model).filter_by(**key))).scalar_one()
    return row, created


async def insert_many_if_absent(
    db: AsyncSession,
    model: type[Base],
    key_columns: Sequence[str],
    rows: list[dict[str, Any]],
) -> int:
    """Batch variant of insert_if_absent. Returns the number of rows inserted."""
    if not rows:
        return 0
    stmt = (
        _dialect_insert(db, model)
        .values(rows)
        .on_conflict_do_nothing(index_elements=list(key_columns))
    )
    result = await db.execute(stmt)
    return max(result.rowcount or 0, 0)
