from celery import Celery
from dealer_portal.core.config import settings
from dealer_portal.services.kintone import RecordStoreError

celery_app = Celery(
    "worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_BACKEND,
)
celery_app.conf.task_routes = {"dealer_portal.services.tasks.reconcile_order": {"queue": "reconcile"}}

@celery_app.task(bind=True, max_retries=3)
def reconcile_order(self, order_id: str):
    import asyncio
    from dealer_portal.services.tasks_internal import reconcile_order_async
    
    try:
        transitions = asyncio.run(reconcile_order_async(order_id))
        return [t.model_dump(mode="json") for t in transitions]
    except RecordStoreError as e:
        # 4xx from the store is not transient
        if e.status_code < 500:
            raise
        raise self.retry(exc=e, countdown=2 ** self.request.retries)
    except Exception as e:
        retry_kwargs = {"countdown": 2 ** self.request.retries}
        raise self.retry(exc=e, **retry_kwargs)
