import logging
from typing import Optional

from ..models import AuditLog, Company

logger = logging.getLogger(__name__)


def log_action(
    *,
    action: str,
    instance,
    user=None,
    actor: str = "",
    company: Optional[Company] = None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Safe to call multiple times (caller ensures idempotency).
    """

    if not company:
        company = getattr(instance, "company", None)
    if user is not None and not getattr(user, "is_authenticated", False):
        user = None
    if not actor:
        actor = user.get_username() if user else "system"

    logger.info(
        "%s %s(%s) by %s %s",
        action, instance.__class__.__name__, instance.pk, actor, changes or {},
    )
    return AuditLog.objects.create(
        company=company,
        user=user,
        actor=actor,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes=changes,
    )
