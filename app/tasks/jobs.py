from app.tasks.celery_app import celery
from app.tasks import worker_jobs


@celery.task(name="app.tasks.jobs.deliver_notification")
def deliver_notification(payload: dict):
    return worker_jobs.deliver_notification(payload)


@celery.task(name="app.tasks.jobs.process_notification_queue")
def process_notification_queue(limit: int = 50):
    return worker_jobs.process_notification_queue(limit=limit)
