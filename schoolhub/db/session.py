from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def create_engine_for(database_url: str) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        # Concurrent writers wait on the file lock instead of failing right away
        return create_async_engine(
            database_url,
            echo=False,
            future=True,
            connect_args={"timeout": 30},
        )
    # pool_pre_ping: check connection is alive before use.
    # pool_recycle: discard connections after this many seconds to avoid stale connections.
    return create_async_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        pool_recycle=300,
    )


def create_session_factory(database_url: str) -> Tuple[AsyncEngine, async_sessionmaker]:
    engine = create_engine_for(database_url)
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return engine, session_factory
