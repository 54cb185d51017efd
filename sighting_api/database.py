import logging
import os
from typing import Iterator, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import ConfigurationError

load_dotenv()

logger = logging.getLogger("sighting-api.db")

Base = declarative_base()


def resolve_database_url() -> Optional[str]:
    """Build the connection string from the environment.

    Prefer discrete DB_* variables when present (Docker local). Fallback to DATABASE_URL.
    """
    db_user = os.getenv("DB_USER")
    db_password = os.getenv("DB_PASSWORD")
    db_host = os.getenv("DB_HOST")
    db_port = os.getenv("DB_PORT", "5432")
    db_name = os.getenv("DB_NAME")
    db_sslmode = os.getenv("DB_SSLMODE")  # e.g., require

    if db_user and db_password and db_host and db_name:
        url = f"postgresql+psycopg2://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
        if db_sslmode:
            url += f"?sslmode={db_sslmode}"
        return url
    return os.getenv("DATABASE_URL")


class Database:
    """Process-wide engine holder.

    The engine (and its connection pool) is created on the first call to
    connect() and reused until dispose() runs at shutdown.
    """

    def __init__(self, url: Optional[str] = None, connect_timeout: Optional[int] = None):
        self._url = url
        self._connect_timeout = connect_timeout
        self._engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        return self.connect()

    def connect(self) -> Engine:
        if self._engine is not None:
            return self._engine

        url = self._url or resolve_database_url()
        if not url:
            raise ConfigurationError(
                "Missing database configuration. "
                "Set DB_USER/DB_PASSWORD/DB_HOST/DB_NAME (optional DB_PORT, DB_SSLMODE) or provide DATABASE_URL."
            )

        timeout = self._connect_timeout or int(os.getenv("DB_CONNECT_TIMEOUT", 10))
        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # Single shared connection, otherwise every checkout sees an empty database
                kwargs["poolclass"] = StaticPool
        else:
            kwargs = {"connect_args": {"connect_timeout": timeout}, "pool_pre_ping": True}

        engine = create_engine(url, **kwargs)

        # Create tables if they don't exist
        from . import models  # noqa: F401  registers the tables on Base

        Base.metadata.create_all(bind=engine)

        self._engine = engine
        self._sessionmaker = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        logger.info("Database connected (%s)", engine.url.render_as_string(hide_password=True))
        return engine

    def session(self) -> Session:
        self.connect()
        return self._sessionmaker()

    def dispose(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database connection closed")


database = Database()


def get_db() -> Iterator[Session]:
    db = database.session()
    try:
        yield db
    finally:
        db.close()
