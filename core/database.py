from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError, InterfaceError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from core.config import settings
from core.exceptions import StoreUnavailableError
from utils.logger import get_logger

logger = get_logger(__name__)


def build_engine_kwargs(database_url: str) -> dict:
    """
    Engine options that keep every store call bounded in time.

    SQLite: `timeout` caps how long a writer waits on the database lock.
    Other backends: pooled connections with a checkout timeout, a connect
    timeout and a server-side statement timeout (PostgreSQL).
    """
    engine_kwargs = {
        "echo": False,
        "pool_pre_ping": True,
    }

    if database_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": settings.DB_STATEMENT_TIMEOUT_SECONDS,
        }
    else:
        engine_kwargs.update(
            {
                "pool_size": settings.DB_POOL_SIZE,
                "max_overflow": settings.DB_MAX_OVERFLOW,
                "pool_timeout": settings.DB_POOL_TIMEOUT_SECONDS,
                "pool_recycle": 3600,
            }
        )
        if database_url.startswith("postgresql"):
            engine_kwargs["connect_args"] = {
                "connect_timeout": settings.DB_POOL_TIMEOUT_SECONDS,
                "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_SECONDS * 1000}",
            }

    return engine_kwargs


engine = create_engine(settings.DATABASE_URL, **build_engine_kwargs(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

logger.debug(
    "Database engine configured",
    extra={"dialect": engine.dialect.name, "pool_timeout_s": settings.DB_POOL_TIMEOUT_SECONDS}
)


INFRASTRUCTURE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


@contextmanager
def store_call(db: Session, operation: str):
    """
    Roll back and surface connectivity/timeout failures as retryable
    StoreUnavailableError. Integrity and programming errors pass through.
    """
    try:
        yield
    except INFRASTRUCTURE_ERRORS as exc:
        db.rollback()
        logger.error(
            f"Database unavailable during {operation}",
            extra={"operation": operation, "error_type": type(exc).__name__},
            exc_info=True
        )
        raise StoreUnavailableError() from exc
