from sqlalchemy.exc import ProgrammingError
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.services.notification_service import deliver, process_failed_notifications


def deliver_notification(payload: dict) -> dict:
    """Send one notification and log it. The booking change that triggered it is already committed."""
    db: Session = SessionLocal()
    try:
        n = deliver(db, payload)
        return {"notification_id": n.notification_id, "status": n.status}
    finally:
        db.close()


def process_notification_queue(limit: int = 50) -> dict:
    """Retry failed notifications. Run periodically via Celery beat."""
    db: Session = SessionLocal()
    try:
        try:
            return process_failed_notifications(db, limit=limit)
        except ProgrammingError:
            # DB not migrated yet; don't crash the worker.
            db.rollback()
            return {"skipped": True, "reason": "missing_tables"}
    finally:
        db.close()
