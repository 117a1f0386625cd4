"""
Database configuration and session management

The provider builds its engine lazily. Production reuses one pooled engine for
the life of the process; other environments get a fresh engine per session,
disposed when the session closes.
"""

from contextlib import contextmanager
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlmodel import Session
import structlog

from retail_api.core.config import Settings

logger = structlog.get_logger(__name__)


class DatabaseProvider:
    """Lazily constructed, pooled database connection provider"""

    def __init__(self, settings: Settings, engine: Optional[Engine] = None):
        self.settings = settings
        self._engine = engine
        self._owns_engine = engine is None

    def _build_engine(self) -> Engine:
        url = self.settings.DATABASE_URL
        kwargs = {"echo": self.settings.DEBUG, "pool_pre_ping": True}
        if not url.startswith("sqlite"):
            kwargs.update(
                pool_size=self.settings.DB_POOL_SIZE,
                max_overflow=self.settings.DB_MAX_OVERFLOW,
                pool_timeout=self.settings.DB_POOL_TIMEOUT,
            )
        logger.debug("Creating database engine", environment=self.settings.ENVIRONMENT)
        return create_engine(url, **kwargs)

    @property
    def reuses_engine(self) -> bool:
        return not self._owns_engine or self.settings.is_production

    def get_engine(self) -> Engine:
        """Return the shared engine, or a new one outside production"""
        if self.reuses_engine:
            if self._engine is None:
                self._engine = self._build_engine()
            return self._engine
        return self._build_engine()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        engine = self.get_engine()
        try:
            with Session(engine) as session:
                yield session
        finally:
            if not self.reuses_engine:
                engine.dispose()

    def dispose(self) -> None:
        if self._engine is not None and self._owns_engine:
            self._engine.dispose()
            self._engine = None


def get_session(request: Request) -> Generator[Session, None, None]:
    """Dependency to get database session"""
    provider: DatabaseProvider = request.app.state.db
    with provider.session() as session:
        yield session
