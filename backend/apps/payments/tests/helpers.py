"""Shared fixtures for payment request tests."""

from apps.partners.models import AccountabilityPartner, PartnerStatus
from apps.users.models import User


def make_user(username, role="MEMBER", funding_account_ref=None):
    return User.objects.create_user(
        username=username,
        password="testpass123",
        display_name=username.replace("_", " ").title(),
        role=role,
        funding_account_ref=funding_account_ref,
    )


def make_partners(owner, *partners, status=PartnerStatus.ACCEPTED):
    for partner in partners:
        AccountabilityPartner.objects.create(owner=owner, partner=partner, status=status)
