from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def normalize_url(raw_url: str) -> str:
    """Force the asyncpg driver onto plain postgres URLs (as handed out by most hosts)."""
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return raw_url


def make_sessionmaker(raw_url: str) -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine(normalize_url(raw_url), pool_pre_ping=True)
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
