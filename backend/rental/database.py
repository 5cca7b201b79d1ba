from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings, get_settings


def build_engine(settings: Settings, **engine_kwargs: object) -> AsyncEngine:
    """Create the async engine for ``settings.database_url``.

    Extra keyword arguments are passed straight to ``create_async_engine`` so
    tests can swap in an in-memory SQLite pool.
    """
    options: dict[str, object] = {"echo": settings.echo_sql, "pool_pre_ping": True}
    if not settings.database_url.startswith("sqlite"):
        options["pool_recycle"] = settings.pool_recycle
    options.update(engine_kwargs)
    return create_async_engine(settings.database_url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, expire_on_commit=False, class_=AsyncSession)


settings = get_settings()

engine = build_engine(settings)

async_session = build_session_factory(engine)
