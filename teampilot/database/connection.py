"""
Database connection and session management.
"""

from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import logging
import os
import time

from ..config import DatabaseConfig
from ..models.base import Base
from ..models import kv_record  # noqa: F401  registers the kv_records table

logger = logging.getLogger(__name__)


def get_database_url(config: DatabaseConfig) -> str:
    """Get database URL from configuration."""
    return config.url


def create_engine(config: DatabaseConfig) -> Engine:
    """Create SQLAlchemy engine."""
    database_url = get_database_url(config)

    connection_timeout = int(os.getenv("DATABASE_CONNECTION_TIMEOUT", "30"))

    logger.debug(f"Creating database engine with URL: {database_url}")

    if database_url.startswith("sqlite"):
        return sa_create_engine(
            database_url,
            echo=config.echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False}
        )

    connect_args = {}
    if database_url.startswith("postgresql"):
        connect_args.update({
            "connect_timeout": connection_timeout,
            "application_name": "teampilot",
            "sslmode": "prefer",
        })

    pool_timeout = int(os.getenv("DATABASE_POOL_TIMEOUT", "30"))
    pool_recycle = int(os.getenv("DATABASE_POOL_RECYCLE", "3600"))

    return sa_create_engine(
        database_url,
        echo=config.echo,
        connect_args=connect_args,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=True
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_database(engine: Engine) -> None:
    """Create tables, retrying with progressive backoff while the database comes up."""
    max_attempts = int(os.getenv("DATABASE_INIT_MAX_ATTEMPTS", "5"))
    retry_delay = int(os.getenv("DATABASE_INIT_RETRY_DELAY", "10"))

    logger.info(f"Database initialization: max_attempts={max_attempts}, retry_delay={retry_delay}s")

    for attempt in range(1, max_attempts + 1):
        try:
            logger.info(f"Database initialization attempt {attempt}/{max_attempts}")
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables created successfully")
            return
        except Exception as e:
            logger.error(f"Database initialization attempt {attempt}/{max_attempts} failed: {e}")

            if attempt < max_attempts:
                delay = (attempt ** 2) * retry_delay
                logger.info(f"Retrying in {delay} seconds...")
                time.sleep(delay)
            else:
                logger.error(f"Database initialization failed after {max_attempts} attempts")
                raise RuntimeError(f"Database initialization failed after {max_attempts} attempts. Last error: {e}")
