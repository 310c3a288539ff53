"""Database access for worker tasks."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from reconciler.config.database import create_engine, create_session_factory
from reconciler.config.settings import get_settings


def create_task_engine() -> AsyncEngine:
    """Engine without pooling; worker threads each run their own loop."""
    settings = get_settings()
    return create_engine(
        settings.database_url,
        echo=settings.database_echo,
        use_null_pool=True,
    )


def create_task_session_maker(
    engine: AsyncEngine | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Session factory for tasks."""
    if engine is None:
        engine = create_task_engine()
    return create_session_factory(engine)


task_engine = create_task_engine()
task_session_maker = create_task_session_maker(task_engine)
