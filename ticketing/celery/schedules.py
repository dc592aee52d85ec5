"""Celery Beat periodic task schedules.

Scheduled tasks:
- reconcile_payment_orders: Every 5 minutes - settle open orders whose
  payment was captured at the gateway but never recorded
"""

from celery.schedules import schedule

from ticketing.celery.app import celery_app

RECONCILE_INTERVAL = 300.0  # 5 minutes

celery_app.conf.beat_schedule = {
    "reconcile-payment-orders": {
        "task": "ticketing.celery.tasks.reconcile_payment_orders",
        "schedule": schedule(run_every=RECONCILE_INTERVAL),
        "options": {
            "expires": 240,  # Skip if not picked up before the next run is due
        },
    },
}
