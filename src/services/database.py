"""Database connection and session management."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..orm import Base


class DuplicateRecordError(Exception):
    """A write collided with a unique constraint (cast hash, handle, tag name)."""


class DatabaseService:
    """Manages database connection and session lifecycle."""

    def __init__(self, database_path: str | Path, timeout_seconds: float = 15.0):
        self.database_path = Path(database_path).expanduser()
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        # Create async SQLite engine; the driver timeout bounds lock waits
        db_url = f"sqlite+aiosqlite:///{self.database_path}"
        self.engine: AsyncEngine = create_async_engine(
            db_url,
            echo=False,
            pool_pre_ping=True,
            connect_args={"timeout": timeout_seconds},
        )

        self.async_session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    async def initialize(self):
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for database operations.

        Unique-constraint violations surface as DuplicateRecordError.
        """
        async with self.async_session_factory() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateRecordError(str(e.orig)) from e
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close database engine."""
        await self.engine.dispose()


# Global database service instance (owned by the entry point)
db_service: DatabaseService | None = None


def get_db_service() -> DatabaseService:
    """Get the global database service instance."""
    if db_service is None:
        raise RuntimeError("Database service not initialized")
    return db_service


async def init_db_service(database_path: str | Path, timeout_seconds: float = 15.0) -> DatabaseService:
    """Initialize the global database service."""
    global db_service
    db_service = DatabaseService(database_path, timeout_seconds=timeout_seconds)
    await db_service.initialize()
    return db_service
