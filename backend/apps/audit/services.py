"""
Audit service - creates immutable audit log entries.

Entries are written inside the caller's transaction, so an audit row exists
exactly when the state change it describes was committed.
"""

from apps.audit.models import AuditLog
from core.middleware import get_current_request_id


def create_audit_entry(
    event_type, actor_id, entity_type, entity_id, previous_state=None, new_state=None
):
    """
    Create an audit log entry.

    Args:
        event_type: Event classification (e.g. 'REQUEST_APPROVED')
        actor_id: User identifier (None for system events)
        entity_type: Type of affected entity (e.g. 'PaymentRequest')
        entity_id: Identifier of affected entity
        previous_state: Serialized state before change (optional)
        new_state: Serialized state after change (optional)

    Returns:
        AuditLog: Created audit log entry
    """
    return AuditLog.objects.create(
        event_type=event_type,
        actor_id=actor_id,
        entity_type=entity_type,
        entity_id=entity_id,
        request_id=get_current_request_id(),
        previous_state=previous_state,
        new_state=new_state,
    )


def entries_for(entity_type, entity_id):
    """Chronological audit trail of one entity."""
    return AuditLog.objects.filter(entity_type=entity_type, entity_id=entity_id).order_by(
        "occurred_at"
    )
