"""Best-effort currency conversion backed by the exchangerate-api service."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

import requests

from .exceptions import ExternalServiceError
from .logging_config import get_logger

DEFAULT_EXCHANGE_API_URL = "https://api.exchangerate-api.com/v4/latest/{base}"

logger = get_logger("currency")


class CurrencyConverter:
    """Convert amounts between currencies, falling back to the input on failure."""

    def __init__(
        self,
        api_url: str = DEFAULT_EXCHANGE_API_URL,
        *,
        timeout: float = 10.0,
        session: Any = None,
    ) -> None:
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_rate(self, source_currency: str, target_currency: str) -> Decimal:
        """Return the rate from ``source_currency`` to ``target_currency``.

        Raises ``ExternalServiceError`` when the lookup fails or the target
        currency is missing from the response.
        """

        source = source_currency.upper()
        target = target_currency.upper()
        try:
            response = self.session.get(self.api_url.format(base=source), timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ExternalServiceError(
                f"Exchange rate lookup for {source} failed: {exc}"
            ) from exc

        rates = payload.get("rates") if isinstance(payload, dict) else None
        if not isinstance(rates, dict):
            raise ExternalServiceError(f"Unexpected exchange rate response for {source}")
        rate = rates.get(target)
        if not rate:
            raise ExternalServiceError(
                f"Conversion rate from {source} to {target} not found"
            )
        try:
            return Decimal(str(rate))
        except InvalidOperation as exc:
            raise ExternalServiceError(f"Invalid rate {rate!r} for {source}->{target}") from exc

    def convert(
        self, amount: Decimal, source_currency: str, target_currency: str
    ) -> Decimal:
        """Convert ``amount``; any lookup failure returns ``amount`` unchanged."""

        if source_currency.upper() == target_currency.upper():
            return amount

        try:
            rate = self.fetch_rate(source_currency, target_currency)
        except ExternalServiceError as exc:
            logger.warning(
                "currency_conversion_failed",
                extra={
                    "source_currency": source_currency,
                    "target_currency": target_currency,
                    "reason": exc.message,
                },
            )
            return amount
        return (amount * rate).quantize(Decimal("0.01"))
