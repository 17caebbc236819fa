from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from celery import Celery
from app.core.config import settings


def broker_url(url: str) -> str:
    """TLS Redis (rediss://) needs an explicit ssl_cert_reqs or Celery refuses to start."""
    parts = urlsplit(url or "")
    if parts.scheme != "rediss":
        return url
    query = dict(parse_qsl(parts.query))
    query.setdefault("ssl_cert_reqs", "CERT_REQUIRED")
    return urlunsplit(parts._replace(query=urlencode(query)))


celery = Celery(
    "reefline",
    broker=broker_url(settings.REDIS_URL),
    include=["app.tasks.jobs"],
)

celery.conf.update(
    timezone="UTC",
    task_ignore_result=True,
    task_acks_late=True,
    broker_connection_retry_on_startup=True,
    # Holds expire lazily at read time; the only periodic work is notification retries.
    beat_schedule={
        "retry-failed-notifications": {
            "task": "app.tasks.jobs.process_notification_queue",
            "schedule": 120.0,
            "kwargs": {"limit": 50},
        },
    },
)
