"""
Translate payment request transitions into user notifications.

Called after the transition has committed. Each transition carries a
dedupe key so a replayed transition never notifies the same party twice.
"""

from apps.notifications.models import NotificationType
from apps.notifications.services import create_notification
from apps.payments.models import RequestStatus


def format_amount(amount):
    return f"${amount:.2f}"


def _subject(payment_request):
    return payment_request.description or payment_request.category


def request_created(payment_request):
    """Ask every designated approver to review a new request."""
    message = (
        f"New {format_amount(payment_request.amount)} request for "
        f"{_subject(payment_request)}"
    )
    for entry in payment_request.approvers.all():
        create_notification(
            entry.approver_id,
            NotificationType.APPROVAL_REQUEST,
            "New Approval Request",
            message,
            related_request_id=payment_request.id,
            dedupe_key=f"{payment_request.id}:created",
        )


def request_reviewed(payment_request):
    """Tell the requester their request reached a terminal state."""
    if payment_request.status == RequestStatus.APPROVED:
        title, outcome = "Request Approved", "approved"
    elif payment_request.status == RequestStatus.REJECTED:
        title, outcome = "Request Rejected", "rejected"
    else:
        return None

    return create_notification(
        payment_request.sender_id,
        NotificationType.REQUEST_REVIEWED,
        title,
        (
            f"Your {format_amount(payment_request.amount)} request for "
            f"{_subject(payment_request)} was {outcome}"
        ),
        related_request_id=payment_request.id,
        dedupe_key=f"{payment_request.id}:reviewed",
    )
