"""Abstract price provider interface.

Defines the fetch contract for all external price sources. The fallback
chain depends only on this interface, keeping provider-specific request
parameters and response layouts isolated in the concrete implementations.

Contract: fetch() returns either a canonical RateRecord or an Unavailable
result. It never raises (cancellation excepted): credential, transport and
schema problems as well as unexpected errors are all converted to
Unavailable here.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any

import httpx

from metaltracker.clock import Clock, SystemClock
from metaltracker.exceptions import (
    CredentialMissing,
    ProviderError,
    SchemaInvalid,
    TransportFailure,
)
from metaltracker.logging import get_logger
from metaltracker.models import RateRecord, Unavailable
from metaltracker.rates.units import derive_purity_variant, round_price, to_decimal

logger = get_logger(__name__)


class RateProvider(ABC):
    """Base class for external precious-metal price providers.

    Args:
        api_key: Provider API key. Empty or placeholder keys disable the
            provider without a network call.
        url: Endpoint for the latest-rates request.
        client: Shared httpx.AsyncClient. When omitted a short-lived client
            is created for each fetch.
        timeout: Per-request timeout in seconds.
        clock: Time source for record timestamps.
    """

    #: Human-readable provider name, used as RateRecord.source.
    name: str = ""

    #: Key value shipped in sample configuration; treated as missing.
    placeholder_key: str = ""

    def __init__(
        self,
        api_key: str,
        url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        clock: Clock | None = None,
    ) -> None:
        self._api_key = api_key
        self._url = url
        self._client = client
        self._timeout = timeout
        self._clock = clock or SystemClock()

    @property
    def is_configured(self) -> bool:
        key = self._api_key.strip()
        return bool(key) and key != self.placeholder_key

    async def fetch(self) -> RateRecord | Unavailable:
        """Fetch the latest rates, converted to canonical per-gram prices."""
        try:
            if not self.is_configured:
                raise CredentialMissing(f"{self.name} API key not configured")
            payload = await self._get_json(self._query_params())
            record = self._parse(payload)
        except ProviderError as e:
            logger.info(
                "provider_unavailable",
                provider=self.name,
                error_type=type(e).__name__,
                reason=str(e),
            )
            return Unavailable(source=self.name, reason=str(e), error_type=type(e).__name__)
        except Exception as e:
            logger.warning(
                "provider_unexpected_error",
                provider=self.name,
                exc_info=True,
            )
            return Unavailable(source=self.name, reason=str(e), error_type=type(e).__name__)

        logger.info(
            "provider_rates_fetched",
            provider=self.name,
            gold_24k=record.gold_24k_per_gram,
            silver=record.silver_per_gram,
        )
        return record

    @abstractmethod
    def _query_params(self) -> dict[str, str]:
        """Query string for the latest-rates request, including the API key."""
        ...

    @abstractmethod
    def _parse(self, payload: Any) -> RateRecord:
        """Convert a decoded response body into a RateRecord.

        Raises:
            SchemaInvalid: If required fields are missing or malformed.
        """
        ...

    async def _get_json(self, params: dict[str, str]) -> Any:
        """Issue a single GET request and decode the JSON body.

        Error messages carry the status code or exception class only, never
        the request URL, because the API key travels in the query string.
        """
        try:
            if self._client is not None:
                response = await self._client.get(self._url, params=params, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._url, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportFailure(
                f"{self.name} request failed: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportFailure(f"{self.name} request failed: {type(e).__name__}") from e

        try:
            return response.json()
        except ValueError as e:
            raise SchemaInvalid(f"{self.name} returned a non-JSON body") from e

    def _success_section(self, payload: Any, section: str) -> dict[str, Any]:
        """Return payload[section] after checking the success flag."""
        if not isinstance(payload, dict):
            raise SchemaInvalid(f"{self.name} response is not a JSON object")
        if payload.get("success") is not True:
            raise SchemaInvalid(f"{self.name} response reports success={payload.get('success')!r}")
        body = payload.get(section)
        if not isinstance(body, dict):
            raise SchemaInvalid(f"{self.name} response has no '{section}' object")
        return body

    def _number(self, body: dict[str, Any], field: str) -> Decimal:
        try:
            return to_decimal(body.get(field))
        except ValueError as e:
            raise SchemaInvalid(f"{self.name} field '{field}': {e}") from e

    def _build_record(self, gold_per_gram: Decimal, silver_per_gram: Decimal) -> RateRecord:
        """Round per-gram prices and derive the 22k price."""
        if gold_per_gram < 0 or silver_per_gram < 0:
            raise SchemaInvalid(f"{self.name} returned a negative price")
        gold_24k = round_price(gold_per_gram)
        return RateRecord(
            gold_24k_per_gram=gold_24k,
            gold_22k_per_gram=derive_purity_variant(gold_24k),
            silver_per_gram=round_price(silver_per_gram),
            timestamp_ms=self._clock.now_ms(),
            source=self.name,
        )
