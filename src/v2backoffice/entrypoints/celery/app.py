from datetime import timedelta

from celery import Celery

from v2backoffice import config

INVOICE_QUEUE = "invoices"


def get_celery_app(redis_host: str = "", redis_port: int = 0) -> Celery:  # type: ignore[no-any-unimported]
    # Configure Celery (using Redis as both broker and result backend)
    redis_cfg = config.RedisCfg.from_env()
    if redis_host:
        redis_cfg.host = redis_host
    if redis_port:
        redis_cfg.port = redis_port
    redis_cfg.db = "0"
    invoice_cfg = config.InvoiceCfg.from_env()
    app = Celery(
        "v2backoffice",
        broker=redis_cfg.to_url(),
        backend=redis_cfg.to_url(),
        include=["v2backoffice.entrypoints.celery.tasks"],
    )
    app.conf.task_serializer = "json"
    app.conf.result_serializer = "json"
    app.conf.accept_content = ["application/json"]
    # invoice batches are long running, so each worker process takes one at a time
    # and the pool size is the number of batches that can run at once
    app.conf.task_routes = {"v2backoffice.entrypoints.celery.tasks.generate_invoices": {"queue": INVOICE_QUEUE}}
    app.conf.worker_concurrency = invoice_cfg.worker_concurrency
    app.conf.worker_prefetch_multiplier = 1
    app.conf.task_acks_late = True
    app.conf.beat_schedule = {
        "sweep-stale-invoice-jobs": {
            "task": "v2backoffice.entrypoints.celery.tasks.sweep_stale_invoice_jobs",
            "schedule": timedelta(minutes=5),
        },
    }
    return app


app = get_celery_app()
