"""
Reconciliation management command.

Verifies approval invariants and lists approved requests whose funding
needs out-of-band attention.
Run: python manage.py reconcile_funding [--stale-minutes N] [--strict]
"""

from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.db.models import Count, Q
from django.utils import timezone

from apps.payments.models import FundingStatus, PaymentRequest, RequestStatus
from apps.audit.models import AuditLog


class Command(BaseCommand):
    help = "Verify quorum invariants and report unfunded approved payment requests"

    def add_arguments(self, parser):
        parser.add_argument(
            "--stale-minutes",
            type=int,
            default=15,
            help="Report IN_FLIGHT funding older than this many minutes",
        )
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Exit non-zero when funding needs attention",
        )

    def handle(self, *args, **options):
        self.stdout.write("Starting funding reconciliation...")

        errors = []
        warnings = []

        annotated = PaymentRequest.objects.annotate(
            approver_count=Count("approvers", distinct=True),
            pending_count=Count(
                "approvers", filter=Q(approvers__status="PENDING"), distinct=True
            ),
            rejection_count=Count(
                "decisions", filter=Q(decisions__decision="REJECTED"), distinct=True
            ),
        )

        # Check 1: APPROVED iff every approver approved
        self.stdout.write("\n[1] Checking quorum consistency...")
        approved_without_quorum = annotated.filter(
            status=RequestStatus.APPROVED, pending_count__gt=0
        )
        pending_with_quorum = annotated.filter(
            status=RequestStatus.PENDING, approver_count__gt=0, pending_count=0
        )
        for req in approved_without_quorum[:10]:
            errors.append(
                f"Request {req.id} is APPROVED with {req.pending_count} pending approvers"
            )
        for req in pending_with_quorum[:10]:
            errors.append(f"Request {req.id} is PENDING but every approver approved")
        if not (approved_without_quorum.exists() or pending_with_quorum.exists()):
            self.stdout.write(self.style.SUCCESS("  ✓ Quorum state consistent"))

        # Check 2: REJECTED iff a rejection is recorded
        self.stdout.write("\n[2] Checking rejection records...")
        bad_rejections = annotated.filter(
            Q(status=RequestStatus.REJECTED, rejection_count=0)
            | (~Q(status=RequestStatus.REJECTED) & Q(rejection_count__gt=0))
        )
        for req in bad_rejections[:10]:
            errors.append(
                f"Request {req.id} (status={req.status}) has "
                f"{req.rejection_count} rejection records"
            )
        if not bad_rejections.exists():
            self.stdout.write(self.style.SUCCESS("  ✓ Rejection records consistent"))

        # Check 3: Funding outcomes
        self.stdout.write("\n[3] Checking funding outcomes...")
        cutoff = timezone.now() - timedelta(minutes=options["stale_minutes"])
        failed = PaymentRequest.objects.filter(
            status=RequestStatus.APPROVED, funding_status=FundingStatus.FAILED
        ).order_by("approved_at")
        stuck = PaymentRequest.objects.filter(
            status=RequestStatus.APPROVED,
            funding_status=FundingStatus.IN_FLIGHT,
            approved_at__lt=cutoff,
        ).order_by("approved_at")
        for req in failed:
            warnings.append(
                f"Request {req.id}: funding FAILED ({req.funding_error}) "
                f"amount={req.amount} {req.currency}"
            )
        for req in stuck:
            warnings.append(
                f"Request {req.id}: funding IN_FLIGHT since {req.approved_at.isoformat()}"
            )
        if not warnings:
            self.stdout.write(self.style.SUCCESS("  ✓ All approved requests funded"))

        # Check 4: Missing audit entries
        self.stdout.write("\n[4] Checking audit log completeness...")
        missing_audit = 0
        for req in PaymentRequest.objects.only("id")[:100]:  # Sample check
            if not AuditLog.objects.filter(
                entity_type="PaymentRequest", entity_id=req.id
            ).exists():
                missing_audit += 1
                warnings.append(f"Request {req.id} has no audit entries")
        if not missing_audit:
            self.stdout.write(self.style.SUCCESS("  ✓ Audit logs present"))

        # Summary
        self.stdout.write("\n" + "=" * 50)
        if warnings:
            self.stdout.write(self.style.WARNING(f"\n⚠️  NEEDS ATTENTION: {len(warnings)}"))
            for warning in warnings:
                self.stdout.write(self.style.WARNING(f"  - {warning}"))
        if errors:
            self.stdout.write(self.style.ERROR(f"\n❌ ERRORS FOUND: {len(errors)}"))
            for error in errors:
                self.stdout.write(self.style.ERROR(f"  - {error}"))
            raise CommandError(f"{len(errors)} invariant violations found")
        if warnings and options["strict"]:
            raise CommandError(f"{len(warnings)} payment requests need attention")
        if not warnings:
            self.stdout.write(self.style.SUCCESS("\n✅ RECONCILIATION PASSED"))
            self.stdout.write("All approval invariants verified.")
