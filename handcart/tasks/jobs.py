from sqlalchemy.exc import OperationalError

from handcart.core.config import settings
from handcart.tasks.celery_app import celery
from handcart.tasks import worker_jobs

@celery.task(
    name="handcart.tasks.jobs.process_cart_return",
    autoretry_for=(OperationalError,),
    retry_backoff=True,
    retry_backoff_max=300,
    max_retries=settings.RETURN_TASK_MAX_RETRIES,
)
def process_cart_return(merchant_no: str, original_data: dict):
    return worker_jobs.process_cart_return(merchant_no, original_data)

@celery.task(name="handcart.tasks.jobs.report_stuck_unlocking")
def report_stuck_unlocking(older_than_minutes: int | None = None):
    return worker_jobs.report_stuck_unlocking(older_than_minutes=older_than_minutes)
