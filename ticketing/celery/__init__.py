"""Celery worker and Beat schedule for background payment reconciliation."""
