from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from .errors import StorageConflict, StorageUnavailable
from .logging_config import get_logger
from .settings import config_settings

logger = get_logger(__name__)

DATABASE_URL = config_settings.DATABASE_URL

# The engine manages the connection pool and dialect.
engine = create_engine(
    DATABASE_URL,
    echo=config_settings.DATABASE_ECHO,
    # Only needed for SQLite to handle concurrent requests
    connect_args={"check_same_thread": False} if "sqlite" in DATABASE_URL else {},
)

# Each request gets its own session (a unit of work).
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Dependency that yields a database session for a single request,
    and ensures the session is closed afterward.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session):
    """
    Runs the enclosed block as one transaction: commit on success, roll back
    on any error. Driver errors are translated into the service error kinds.
    """
    try:
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        reason = str(e.orig).partition("\n")[0]
        raise StorageConflict(f"Uniqueness constraint violated: {reason}") from e
    except OperationalError as e:
        db.rollback()
        logger.error("database_unavailable", error=str(e.orig))
        raise StorageUnavailable("Database connection failed. Please try again shortly.") from e
    except Exception:
        db.rollback()
        raise
