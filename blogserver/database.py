from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from blogserver.cache import discard_invalidations, run_invalidations
from blogserver.config import settings
from blogserver.middleware import install_query_counter

# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# Register the per-request SQL query counter on the production engine.
install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def commit(session: AsyncSession) -> None:
    """Commit *session*, then drop the cache entries its changes made stale."""
    await session.commit()
    await run_invalidations(session)


async def get_db():
    """
    Yield one session per request.

    The session is committed when the handler returns, rolled back when it
    raises, and closed on every path by the ``async with`` block.
    """
    async with async_session() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await session.rollback()
            discard_invalidations(session)
            raise
