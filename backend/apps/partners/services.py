"""
Partner queries consumed by the approval engine.

The approval engine asks a single question of the relationship graph, and
only when a payment request is created.
"""

from apps.partners.models import AccountabilityPartner, PartnerStatus


def is_authorized_approver(requester_id, candidate_approver_id):
    """Return True when candidate is an accepted accountability partner of requester."""
    if str(requester_id) == str(candidate_approver_id):
        return False
    return AccountabilityPartner.objects.filter(
        owner_id=requester_id,
        partner_id=candidate_approver_id,
        status=PartnerStatus.ACCEPTED,
    ).exists()


def unauthorized_approvers(requester_id, candidate_approver_ids):
    """Return the subset of candidates that may not approve requester's spending."""
    accepted = set(
        str(partner_id)
        for partner_id in AccountabilityPartner.objects.filter(
            owner_id=requester_id,
            partner_id__in=candidate_approver_ids,
            status=PartnerStatus.ACCEPTED,
        ).values_list("partner_id", flat=True)
    )
    return [
        str(candidate)
        for candidate in candidate_approver_ids
        if str(candidate) not in accepted
    ]


def list_accepted_partners(owner_id):
    """Accepted partners of owner, ordered by display name."""
    return (
        AccountabilityPartner.objects.select_related("partner")
        .filter(owner_id=owner_id, status=PartnerStatus.ACCEPTED)
        .order_by("partner__display_name")
    )
