"""
Funding gateway adapter.

Credits the requester's wallet once a payment request reaches quorum.
The backend class is configured in settings.FUNDING_GATEWAY and must expose
fund(account_ref, amount, memo) returning a dict with "transactionRef", or
raise FundingError.
"""

import logging
from decimal import Decimal

import requests
from django.conf import settings
from django.utils.module_loading import import_string

from core.exceptions import FundingError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0  # seconds


class FundingGateway:
    """Base class for funding backends."""

    def __init__(self, **options):
        self.options = options

    def fund(self, account_ref, amount, memo):
        raise NotImplementedError


class MarqetaFundingGateway(FundingGateway):
    """Loads a user's general purpose account through POST /gpaorders."""

    def __init__(
        self,
        base_url="https://sandbox-api.marqeta.com/v3",
        application_token="",
        admin_access_token="",
        funding_source_token="sandbox_program_funding",
        currency_code="USD",
        timeout=DEFAULT_TIMEOUT,
        **options,
    ):
        super().__init__(**options)
        self.base_url = (base_url or "").rstrip("/")
        self.auth = (application_token, admin_access_token)
        self.funding_source_token = funding_source_token
        self.currency_code = currency_code
        self.timeout = timeout

    def _error_message(self, resp):
        try:
            data = resp.json()
        except ValueError:
            return resp.text[:200] or f"HTTP {resp.status_code}"
        if isinstance(data, dict) and data.get("error_message"):
            return str(data["error_message"])
        return f"HTTP {resp.status_code}"

    def fund(self, account_ref, amount, memo):
        if not account_ref:
            raise FundingError("Requester has no funding account")

        payload = {
            "user_token": account_ref,
            # Marqeta takes amounts as JSON numbers
            "amount": float(Decimal(amount)),
            "currency_code": self.currency_code,
            "memo": memo,
            "funding_source_token": self.funding_source_token,
        }
        url = f"{self.base_url}/gpaorders"
        try:
            resp = requests.post(url, json=payload, auth=self.auth, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FundingError(
                f"Funding provider unreachable: {exc}", {"provider": "marqeta"}
            ) from exc

        if not resp.ok:
            raise FundingError(
                self._error_message(resp),
                {"provider": "marqeta", "status_code": resp.status_code},
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise FundingError(
                "Invalid response from funding provider", {"provider": "marqeta"}
            ) from exc
        if not isinstance(data, dict) or not data.get("token"):
            raise FundingError(
                "Funding provider response missing transaction token",
                {"provider": "marqeta"},
            )

        logger.info(
            "gpa_order_created",
            extra={"transaction_ref": data["token"], "state": data.get("state")},
        )
        return {
            "transactionRef": data["token"],
            "state": data.get("state"),
            "amount": str(amount),
            "currencyCode": data.get("currency_code", self.currency_code),
        }


def get_funding_gateway():
    """Instantiate the configured funding backend."""
    config = getattr(settings, "FUNDING_GATEWAY", {})
    backend = config.get("BACKEND", "apps.payments.funding.MarqetaFundingGateway")
    return import_string(backend)(**config.get("OPTIONS", {}))
