"""Domain event recording (the ``audit_logs`` table)."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from idreg.core.models import AuditLog


def record_event(
    db: Session,
    actor: str,
    action: str,
    resource_type: str,
    resource_id: int | str,
    details: dict[str, Any] | None = None,
) -> AuditLog:
    """Stage an audit entry in the caller's transaction.

    The entry is only added to the session.  It becomes visible when the
    surrounding operation commits, so an event is never recorded for a
    mutation that was rolled back.

    Parameters
    ----------
    db:
        Active database session.
    actor:
        The principal that performed the action.
    action:
        The event name (e.g. ``"identity-registered"``,
        ``"recovery-approved"``).
    resource_type:
        The type of resource affected (``"identity"`` or ``"registry"``).
    resource_id:
        Identifier of the affected resource.
    details:
        Optional JSON-serialisable dict with extra context about the event.
    """
    entry = AuditLog(
        actor=actor,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id),
        details=details,
    )
    db.add(entry)
    return entry


def list_events(
    db: Session,
    resource_type: str,
    resource_id: int | str,
    limit: int = 100,
    offset: int = 0,
) -> list[AuditLog]:
    """Return the events recorded for one resource, oldest first."""
    return (
        db.query(AuditLog)
        .filter(
            AuditLog.resource_type == resource_type,
            AuditLog.resource_id == str(resource_id),
        )
        .order_by(AuditLog.id)
        .offset(offset)
        .limit(limit)
        .all()
    )
