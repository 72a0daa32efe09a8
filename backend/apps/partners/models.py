"""
AccountabilityPartner model - directed edge "partner may approve owner's spending".

The invitation/accept lifecycle is owned elsewhere; this table only holds
its outcome.
"""

import uuid
from django.db import models


class PartnerStatus(models.TextChoices):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"


class AccountabilityPartner(models.Model):
    """One accountability relationship from owner to partner."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        "users.User", on_delete=models.CASCADE, related_name="partnerships"
    )
    partner = models.ForeignKey(
        "users.User", on_delete=models.CASCADE, related_name="partner_of"
    )
    status = models.CharField(
        max_length=20, choices=PartnerStatus.choices, default=PartnerStatus.PENDING
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "accountability_partners"
        constraints = [
            models.UniqueConstraint(
                fields=["owner", "partner"], name="unique_owner_partner"
            ),
            models.CheckConstraint(
                condition=~models.Q(owner=models.F("partner")),
                name="partner_not_self",
            ),
            models.CheckConstraint(
                condition=models.Q(status__in=["PENDING", "ACCEPTED", "DECLINED"]),
                name="valid_partner_status",
            ),
        ]
        indexes = [
            models.Index(fields=["owner", "status"], name="idx_partner_owner_status"),
        ]

    def __str__(self):
        return f"{self.owner} -> {self.partner} ({self.status})"
