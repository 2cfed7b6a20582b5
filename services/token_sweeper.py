"""
Expired refresh token sweep.

Relational stores have no TTL index, so an APScheduler interval job deletes
records whose expires_at has passed. Removal is eventual: a record lives at
most one interval past its expiry. Rotation treats expired records as
inactive regardless of whether the sweep has run.
"""
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session
from core.config import settings
from core.context import SYSTEM_CONTEXT
from core.database import SessionLocal
from core.exceptions import StoreUnavailableError
from services.token_store import RefreshTokenStore
from utils.logger import get_logger, log_audit_event

logger = get_logger(__name__)

SWEEP_JOB_ID = "refresh_token_sweep"

scheduler: BackgroundScheduler | None = None


def sweep_expired_tokens(db: Session, batch_size: int | None = None) -> int:
    deleted_count = RefreshTokenStore(db).delete_expired(batch_size=batch_size)
    if deleted_count:
        logger.info(
            "Expired refresh tokens swept",
            extra={"deleted_count": deleted_count, "request_id": SYSTEM_CONTEXT.request_id}
        )
        log_audit_event("expired_swept", SYSTEM_CONTEXT, deleted_count=deleted_count)
    return deleted_count


def sweep_expired_tokens_job(session_factory=SessionLocal):
    """
    Scheduler entry point. Runs on the scheduler thread with its own session;
    a failed run is logged and retried on the next interval.
    """
    db: Session = session_factory()
    try:
        sweep_expired_tokens(db)
    except StoreUnavailableError:
        logger.warning("Refresh token sweep skipped: store unavailable")
    finally:
        db.close()


def start_scheduler(interval_minutes: int | None = None) -> BackgroundScheduler:
    """
    Start the background scheduler running the sweep every
    TOKEN_SWEEP_INTERVAL_MINUTES.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler is already running")
        return scheduler

    interval = interval_minutes or settings.TOKEN_SWEEP_INTERVAL_MINUTES

    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        sweep_expired_tokens_job,
        trigger=IntervalTrigger(minutes=interval),
        id=SWEEP_JOB_ID,
        name="Delete expired refresh tokens",
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )
    scheduler.start()

    logger.info(
        "Background scheduler started",
        extra={"job_id": SWEEP_JOB_ID, "interval_minutes": interval}
    )
    return scheduler


def shutdown_scheduler():
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Background scheduler stopped")
