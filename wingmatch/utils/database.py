"""Database connection utilities and table definitions for the WingMatch engine."""

import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from wingmatch.utils.errors import ConfigurationError, DatabaseError, TransientError, WingMatchError
from wingmatch.utils.logging import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    """Get current UTC time (naive), the convention for every timestamp column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    """Generate a new primary key."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class ProfileDB(Base):
    """Base account profile. One per user, daters and wingers alike."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    chosen_name: Mapped[str] = mapped_column(String(100))
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default="dater")
    phone_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class DatingProfileDB(Base):
    """Dating profile, present only for users who date."""

    __tablename__ = "dating_profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), unique=True)
    city: Mapped[str] = mapped_column(String(100))
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    age_from: Mapped[int] = mapped_column(Integer, default=18)
    age_to: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    interested_gender: Mapped[List[str]] = mapped_column(JSON, default=list)
    religion: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    religious_preference: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    interests: Mapped[List[str]] = mapped_column(JSON, default=list)
    dating_status: Mapped[str] = mapped_column(String(20), default="open", index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class ProfilePhotoDB(Base):
    """Profile photo. Only approved photos are shown on cards."""

    __tablename__ = "profile_photos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    dating_profile_id: Mapped[str] = mapped_column(String(36), ForeignKey("dating_profiles.id"), index=True)
    storage_url: Mapped[str] = mapped_column(String(500))
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class ContactDB(Base):
    """Directed dater -> winger relationship."""

    __tablename__ = "contacts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), index=True)
    winger_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=True, index=True)
    phone_number: Mapped[str] = mapped_column(String(20), index=True)
    wingperson_status: Mapped[str] = mapped_column(String(20), default="invited")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class DecisionDB(Base):
    """Directional swipe outcome, optionally attributed to a suggesting winger."""

    __tablename__ = "decisions"
    __table_args__ = (Index("ix_decisions_actor_recipient", "actor_id", "recipient_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    actor_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"))
    recipient_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), index=True)
    decision: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    suggested_by: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class MatchDB(Base):
    """Mutual approval, stored once per canonical (user_a_id < user_b_id) pair."""

    __tablename__ = "matches"
    __table_args__ = (UniqueConstraint("user_a_id", "user_b_id", name="uq_matches_pair"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_a_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"))
    user_b_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class Database:
    """Singleton database connection manager."""

    _engine = None
    _session_factory = None

    @classmethod
    def get_engine(cls) -> Any:
        """Get or create the database engine."""
        if cls._engine is None:
            from wingmatch.config import get_settings

            settings = get_settings()
            database_url = settings.DATABASE_URL

            if not database_url:
                raise ConfigurationError("DATABASE_URL is not configured", details={"setting": "DATABASE_URL"})

            # SQLAlchemy 1.4+ requires postgresql:// instead of postgres://
            if database_url.startswith("postgres://"):
                database_url = database_url.replace("postgres://", "postgresql://", 1)

            engine_kwargs: Dict[str, Any] = {"echo": settings.DEBUG}
            if database_url.startswith("sqlite"):
                # Sessions are used from worker threads by the async session controller
                engine_kwargs["connect_args"] = {"check_same_thread": False}
                if database_url in ("sqlite://", "sqlite:///:memory:"):
                    engine_kwargs["poolclass"] = StaticPool
            else:
                engine_kwargs["pool_recycle"] = 300
                engine_kwargs["pool_pre_ping"] = True

            try:
                cls._engine = create_engine(database_url, **engine_kwargs)
                logger.info("Database engine created", dialect=cls._engine.dialect.name)
            except Exception as e:
                safe_url = database_url
                if "@" in safe_url:
                    part1, part2 = safe_url.rsplit("@", 1)
                    if ":" in part1:
                        scheme_user, _ = part1.rsplit(":", 1)
                        safe_url = f"{scheme_user}:***@{part2}"

                logger.error("Failed to create database engine", error=str(e), url=safe_url)
                raise DatabaseError("Failed to connect to database", details={"error": str(e), "url": safe_url}) from e
        return cls._engine

    @classmethod
    def get_session_factory(cls) -> Any:
        """Get or create the session factory."""
        if cls._session_factory is None:
            cls._session_factory = sessionmaker(bind=cls.get_engine(), expire_on_commit=False)
        return cls._session_factory

    @classmethod
    def get_session(cls) -> Session:
        """Get a new database session."""
        return cls.get_session_factory()()  # type: ignore

    @classmethod
    def create_tables(cls) -> None:
        """Create all database tables."""
        Base.metadata.create_all(cls.get_engine())
        logger.info("Database tables created")

    @classmethod
    def reset(cls) -> None:
        """Dispose of the engine so the next call reconnects with current settings."""
        if cls._engine is not None:
            cls._engine.dispose()
        cls._engine = None
        cls._session_factory = None


def get_session() -> Session:
    """Get a database session."""
    return Database.get_session()


def init_database() -> None:
    """Initialize the database and create tables."""
    Database.create_tables()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    Commits when the block exits cleanly and rolls back on any error, so a
    failed guard never leaves a partial update behind. Storage exceptions are
    translated into the engine's error taxonomy; domain errors pass through.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except WingMatchError:
        session.rollback()
        raise
    except (OperationalError, InterfaceError, PoolTimeoutError) as e:
        session.rollback()
        logger.warning("Transient storage failure", error=str(e))
        raise TransientError("Storage temporarily unavailable", details={"error": str(e)}) from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Database operation failed", error=str(e))
        raise DatabaseError("Database operation failed", details={"error": str(e)}) from e
    finally:
        session.close()
