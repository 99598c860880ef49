# store_pos/extensions/celery_tasks.py

import os

from celery import Celery
from celery.schedules import crontab

celery = Celery(
    "store_pos",
    broker=os.getenv("CELERY_BROKER_URL", os.getenv("REDIS_URL", "redis://localhost:6379/0")),
)


@celery.task(name="store_pos.expire_subscriptions")
def process_expired_subscriptions_task():
    # Imported lazily: the task needs an app context for the database binding
    from .. import create_app
    from ..jobs.subscription_expiry_job import process_expired_subscriptions

    app = create_app()
    with app.app_context():
        return process_expired_subscriptions(app.extensions["subscription_manager"])


# Schedule
celery.conf.beat_schedule = {
    "expire-subscriptions-hourly": {
        "task": "store_pos.expire_subscriptions",
        "schedule": crontab(minute=0),  # Every hour
    },
}
