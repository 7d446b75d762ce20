"""Engine and session handling for the entity store."""

import logging
import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)

DATABASE_URL_ENV = "ODP_IMPORT_DATABASE_URL"

_POSTGRES_DEFAULTS = {
    "POSTGRES_HOST": "localhost",
    "POSTGRES_PORT": "5432",
    "POSTGRES_DB": "odp",
    "POSTGRES_USER": "postgres",
    "POSTGRES_PASSWORD": "postgres",
}


def _env(name: str) -> str:
    return os.environ.get(name, _POSTGRES_DEFAULTS[name])


def get_database_url(
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
) -> str:
    """
    Resolve the store URL.

    ``ODP_IMPORT_DATABASE_URL`` is used as-is unless one of the connection
    parameters is passed. Otherwise a PostgreSQL URL is assembled from the
    parameters, falling back to the ``POSTGRES_*`` variables.
    """
    explicit = os.environ.get(DATABASE_URL_ENV)
    if explicit and not any((host, port, database, user, password)):
        return explicit

    url = URL.create(
        "postgresql",
        username=user or _env("POSTGRES_USER"),
        password=password or _env("POSTGRES_PASSWORD"),
        host=host or _env("POSTGRES_HOST"),
        port=port or int(_env("POSTGRES_PORT")),
        database=database or _env("POSTGRES_DB"),
    )
    return url.render_as_string(hide_password=False)


class DatabaseManager:
    """
    Owns the engine of one store and hands out transactional sessions.

    The engine is created on first use. SQLite URLs get an engine usable
    from the seed worker threads; an in-memory SQLite database lives on a
    single shared connection so every thread sees the same tables. Other
    backends get a pre-pinged connection pool.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ):
        self._database_url = database_url or get_database_url()
        self._engine_options: Dict[str, Any] = self._options_for(
            self._database_url, pool_size, max_overflow, echo
        )
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @staticmethod
    def _options_for(database_url: str, pool_size: int, max_overflow: int, echo: bool) -> Dict[str, Any]:
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite":
            options = {"echo": echo, "connect_args": {"check_same_thread": False}}
            if url.database in (None, "", ":memory:"):
                options["poolclass"] = StaticPool
            return options
        return {
            "echo": echo,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_pre_ping": True,
        }

    @property
    def database_url(self) -> str:
        return self._database_url

    @property
    def is_in_memory(self) -> bool:
        return self._engine_options.get("poolclass") is StaticPool

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(self._database_url, **self._engine_options)
            logger.debug(f"Created engine for {make_url(self._database_url).get_backend_name()}")
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        return self._session_factory

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """
        Open a session inside one transaction.

        The transaction commits when the block exits normally and rolls
        back when it raises.

        Example:
            with db_manager.get_session() as session:
                session.add(model)
        """
        with self.session_factory.begin() as session:
            yield session

    def init_database(self) -> None:
        """Create the store tables if they do not exist."""
        Base.metadata.create_all(self.engine)
        logger.info(f"Entity store ready ({', '.join(Base.metadata.tables)})")

    def drop_all_tables(self) -> None:
        Base.metadata.drop_all(self.engine)
        logger.warning("Entity store tables dropped")

    def close(self) -> None:
        """Dispose of the pool; the next use creates a fresh engine."""
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None

    def health_check(self) -> bool:
        try:
            with self.engine.connect() as conn:
                return conn.scalar(text("SELECT 1")) == 1
        except SQLAlchemyError as e:
            logger.warning(f"Entity store unreachable: {e}")
            return False
