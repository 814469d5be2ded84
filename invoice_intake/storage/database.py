"""
Database Handler Module.

This module owns the SQLAlchemy engine and session factory for the
record store. SQLite is the default; any SQLAlchemy URL works, and
dialects with row locks (PostgreSQL, MySQL, Oracle) get lock-and-skip
job claims.

Features:
    - Automatic schema creation
    - Transactional session scope with rollback on failure
    - Dialect capability checks used by the job queue
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config import PROJECT_ROOT, get_config
from invoice_intake.utils.exceptions import DatabaseError
from invoice_intake.utils.helpers import ensure_directory
from invoice_intake.utils.logger import get_logger

from .models import Base

# Initialize module logger
logger = get_logger(__name__)

SKIP_LOCKED_DIALECTS = ('postgresql', 'mysql', 'mariadb', 'oracle')


class DatabaseHandler:
    """
    Handles the database connection for invoices, jobs and vendors.

    Attributes:
        db_url: SQLAlchemy database URL
        engine: SQLAlchemy engine instance
        SessionLocal: Session factory

    Example:
        >>> db = DatabaseHandler("sqlite:///outputs/invoice_intake.db")
        >>> with db.session_scope() as session:
        ...     session.query(Invoice).count()
        0
    """

    def __init__(self, db_url: Optional[str] = None) -> None:
        """
        Initialize the database handler.

        Args:
            db_url: SQLAlchemy URL. If None, uses ``database.url``.
                Relative SQLite paths resolve against the project root.

        Raises:
            DatabaseError: If the schema cannot be created.
        """
        self.db_url = self._resolve_url(db_url or get_config(
            "database.url", "sqlite:///outputs/invoice_intake.db"
        ))
        self.echo = get_config("database.echo", False)

        connect_args = {}
        if self.dialect == "sqlite":
            connect_args = {
                "check_same_thread": False,
                "timeout": get_config("database.sqlite_timeout", 30),
            }

        self.engine = create_engine(self.db_url, echo=self.echo, connect_args=connect_args)
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )

        if get_config("database.create_if_not_exists", True):
            self.create_tables()

        logger.info(f"DatabaseHandler initialized (db: {self.engine.url.render_as_string(hide_password=True)})")

    @staticmethod
    def _resolve_url(db_url: str) -> str:
        """Make relative SQLite file paths absolute and create their directory."""
        if db_url.startswith("postgres://"):
            db_url = db_url.replace("postgres://", "postgresql://", 1)

        url = make_url(db_url)
        if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
            return db_url

        db_path = Path(url.database)
        if not db_path.is_absolute():
            db_path = PROJECT_ROOT / db_path
        ensure_directory(db_path.parent)
        return url.set(database=str(db_path)).render_as_string(hide_password=False)

    @property
    def dialect(self) -> str:
        return make_url(self.db_url).get_backend_name()

    @property
    def supports_skip_locked(self) -> bool:
        """True if the dialect implements SELECT ... FOR UPDATE SKIP LOCKED."""
        return self.dialect in SKIP_LOCKED_DIALECTS

    def create_tables(self) -> None:
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise DatabaseError("create_tables", str(e))
        logger.debug("Database tables verified/created")

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional scope around a series of operations.

        Commits on success, rolls back on any exception. SQLAlchemy
        errors are re-raised as DatabaseError; other exceptions propagate
        unchanged after the rollback.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database transaction failed: {e}")
            raise DatabaseError("transaction", str(e))
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()
