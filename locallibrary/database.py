import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from fastapi import Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """
    Data-access handle: owns the engine and the session factory.

    Every call made through run() gets its own session, so independent
    queries can be awaited together with gather().
    """

    def __init__(self, url: str, pool_size: int = 20, max_overflow: int = 40, echo: bool = False):
        self.url = url
        engine_kwargs = {"pool_pre_ping": True, "echo": echo}
        if url.startswith("sqlite"):
            # Sessions are opened from the threadpool, not the creating thread
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["pool_size"] = pool_size
            engine_kwargs["max_overflow"] = max_overflow
        self.engine = create_engine(url, **engine_kwargs)
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.database_url,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            echo=settings.DB_ECHO,
        )

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def create_all(self) -> None:
        import locallibrary.models  # noqa: F401  registers the tables on Base

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def check_connection(self) -> bool:
        """Run SELECT 1, logging (not raising) a connection failure"""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection error: {e}")
            return False

    def dispose(self) -> None:
        self.engine.dispose()

    def call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        with self.session() as db:
            return fn(db, *args, **kwargs)

    async def run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run fn(session, *args) on a fresh session without blocking the loop"""
        return await run_in_threadpool(self.call, fn, *args, **kwargs)

    async def gather(self, *calls):
        """
        Await several independent calls concurrently.

        Each call is a (fn, *args) tuple. Results come back in call order;
        the first failure propagates.
        """
        return await asyncio.gather(*(self.run(fn, *args) for fn, *args in calls))


def get_db(request: Request) -> Database:
    """
    Dependency returning the handle attached to the application
    """
    return request.app.state.db
