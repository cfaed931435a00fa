from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from category_tree.core.config import settings
from category_tree.db.base import Base

connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_async_engine(settings.database_url, future=True, echo=False, connect_args=connect_args)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False, class_=AsyncSession)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency providing the session factory; the service opens one transaction per call."""
    return SessionLocal


async def init_models(bind: AsyncEngine | None = None) -> None:
    # Registers the mapped tables on Base.metadata.
    from category_tree import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
