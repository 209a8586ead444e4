"""Background reconciliation on Celery workers."""
