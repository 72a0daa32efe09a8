"""
Version locking helper for PaymentRequest writes.
Prevents concurrent modification corruption.
"""
from django.db.models import F
from django.utils import timezone


def version_locked_update(queryset, current_version, **updates):
    """
    Perform version-locked update on queryset.

    Args:
        queryset: Django QuerySet to update
        current_version: Expected current version number
        **updates: Fields to update

    Returns:
        int: Number of rows updated; 0 means another writer got there first
            (version or status no longer match)
    """
    # QuerySet.update() bypasses auto_now
    updates.setdefault("updated_at", timezone.now())
    return queryset.filter(version=current_version).update(
        **updates,
        version=F("version") + 1,
    )
