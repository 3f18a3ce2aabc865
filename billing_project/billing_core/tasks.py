import logging

from celery import shared_task
from django.utils.dateparse import parse_date

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def generate_recurring_invoices(today=None):
    # import services lazily to avoid circular imports at module import time
    from .services.recurring import generate_due_invoices

    # beat passes nothing; manual runs may pass an ISO date string
    run_date = parse_date(today) if isinstance(today, str) else today
    invoices = generate_due_invoices(today=run_date)
    logger.info("Recurring run generated %d invoice(s)", len(invoices))
    # Celery results must be serializable, return the ids only
    return [invoice.pk for invoice in invoices]
