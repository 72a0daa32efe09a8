from django.apps import apps
from django.conf import settings
from django.core.cache import caches
from django.db import connection
from django.db.migrations.executor import MigrationExecutor
from django.utils.module_loading import import_string
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView


class LiveView(APIView):
    """Liveness probe: process is running. No DB or external deps."""

    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        return Response({"status": "alive"})


class ReadyView(APIView):
    """Readiness probe: DB, migrations, cache, workflow tables, funding backend."""

    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        checks = self._run_checks()
        overall = "ready" if all(v == "ok" for v in checks.values()) else "not_ready"
        return Response(
            {"status": overall, "checks": checks},
            status=200 if overall == "ready" else 503,
        )

    def _run_checks(self):
        checks = {}

        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1;")
            checks["database"] = "ok"
        except Exception:
            checks["database"] = "error"

        try:
            executor = MigrationExecutor(connection)
            plan = executor.migration_plan(executor.loader.graph.leaf_nodes())
            checks["migrations"] = "ok" if not plan else "pending"
        except Exception:
            checks["migrations"] = "error"

        try:
            cache = caches["default"]
            cache.set("health_check", "ok", timeout=5)
            checks["cache"] = "ok" if cache.get("health_check") == "ok" else "error"
        except Exception:
            checks["cache"] = "error"

        for label, model in (
            ("payment_requests_table", "PaymentRequest"),
            ("idempotency_table", "IdempotencyKey"),
        ):
            try:
                apps.get_model("payments", model).objects.exists()
                checks[label] = "ok"
            except Exception:
                checks[label] = "error"

        # Only checks the backend is importable; no call to the provider.
        try:
            import_string(settings.FUNDING_GATEWAY["BACKEND"])
            checks["funding_gateway"] = "ok"
        except Exception:
            checks["funding_gateway"] = "error"

        return checks
