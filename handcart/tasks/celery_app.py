from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

from celery import Celery
from celery.signals import after_setup_logger
from handcart.core.config import settings
from handcart.core.logging import configure_logging


def _redis_url_for_celery(url: str) -> str:
    """Celery requires ssl_cert_reqs for rediss:// (e.g. Upstash TLS)."""
    if not url or not url.strip().lower().startswith("rediss://"):
        return url
    parsed = urlparse(url)
    qs = parse_qs(parsed.query)
    if "ssl_cert_reqs" not in qs:
        qs["ssl_cert_reqs"] = ["CERT_NONE"]
        new_query = urlencode(qs, doseq=True)
        return urlunparse(parsed._replace(query=new_query))
    return url


_redis_url = _redis_url_for_celery(settings.REDIS_URL)

celery = Celery(
    "handcart",
    broker=_redis_url,
    backend=_redis_url,
    include=["handcart.tasks.jobs"],
)

celery.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Return callbacks must survive a worker crash: ack only after the handler ran.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    timezone="Asia/Riyadh",
)


@after_setup_logger.connect
def _json_logs(logger=None, **kwargs):
    configure_logging()


celery.conf.beat_schedule = {
    "report-stuck-unlocking-every-5-minutes": {
        "task": "handcart.tasks.jobs.report_stuck_unlocking",
        "schedule": 300.0,
    },
}
