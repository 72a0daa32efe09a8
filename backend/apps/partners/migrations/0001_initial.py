# AccountabilityPartner: owner -> partner edge consulted at request creation.

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("users", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AccountabilityPartner",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PENDING", "Pending"),
                            ("ACCEPTED", "Accepted"),
                            ("DECLINED", "Declined"),
                        ],
                        default="PENDING",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="partnerships",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "partner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="partner_of",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "accountability_partners",
                "indexes": [
                    models.Index(
                        fields=["owner", "status"], name="idx_partner_owner_status"
                    )
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("owner", "partner"), name="unique_owner_partner"
                    ),
                    models.CheckConstraint(
                        condition=~models.Q(owner=models.F("partner")),
                        name="partner_not_self",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            status__in=["PENDING", "ACCEPTED", "DECLINED"]
                        ),
                        name="valid_partner_status",
                    ),
                ],
            },
        ),
    ]
