"""
SQLAlchemy tables and engine helpers for the catalog and feed record stores.

Both tables keep the full document in a JSON `payload` column and promote
only the columns that queries filter on.
"""

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine, func
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from feedgen.utils.logger import get_logger

logger = get_logger(__name__)

Base = declarative_base()


class CatalogProductRow(Base):
    """One catalog product, stored in catalog (insertion) order."""

    __tablename__ = "catalog_products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(String(64), nullable=False, index=True)
    business_id = Column(String(64), nullable=False, index=True)
    status = Column(String(16), nullable=False, default="active")
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = ({"sqlite_autoincrement": True},)


class FeedRunRow(Base):
    """Lifecycle record of one feed, keyed by file key."""

    __tablename__ = "feed_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(64), nullable=False, index=True)
    file_key = Column(String(255), nullable=False, unique=True)
    status = Column(String(16), nullable=False, default="pending", index=True)  # pending/processing/completed/failed
    version = Column(Integer, nullable=False, default=0)
    payload = Column(JSON, nullable=False)


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the configured database.

    In-memory SQLite URLs get a single shared connection so every session
    (and worker thread) sees the same database.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create any missing tables."""
    Base.metadata.create_all(engine)
    logger.info("Database initialized", url=engine.url.render_as_string(hide_password=True))
