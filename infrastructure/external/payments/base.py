"""
Shared plumbing for gateway webhook adapters.

Subclasses authenticate the notification and normalise it into a
``GatewayEvent``; this base owns the HTTP client used for status lookups,
transient-failure retries and the provider status vocabulary.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from application.dtos.payments import GatewayEvent
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from infrastructure.external.payments.exceptions import PaymentProviderError, PaymentRecoverableError
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL


logger = get_logger(__name__)

_TRANSIENT = (httpx.TimeoutException, httpx.TransportError)


class BasePaymentClient(PaymentGateway):
    provider: str = "base"

    def __init__(self, config: Optional[PaymentSettings] = None) -> None:
        self.config = config or payment_settings
        self._client: Optional[httpx.AsyncClient] = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            t = self.config.timeouts
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(t.total, connect=t.connect, read=t.read, write=t.write),
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    async def get_json(self, url: str, *, headers: Mapping[str, str], context: Optional[dict] = None) -> dict[str, Any]:
        """GET with retries on transport errors.

        429/5xx become ``PaymentRecoverableError`` (the webhook is answered
        with 5xx and redelivered); other non-200 answers are permanent.
        """
        retry_cfg = self.config.retry
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(retry_cfg.max + 1),
                wait=wait_exponential(multiplier=retry_cfg.base_backoff, min=0.1, max=2.0),
                retry=retry_if_exception_type(_TRANSIENT),
                reraise=True,
            ):
                with attempt:
                    response = await self._http().get(url, headers=dict(headers))
        except _TRANSIENT as exc:
            raise PaymentRecoverableError(str(exc), provider=self.provider) from exc

        status = response.status_code
        if status == 429 or status >= 500:
            raise PaymentRecoverableError(
                f"Gateway returned {status}", provider=self.provider, provider_code=str(status)
            )
        if status != 200:
            raise PaymentProviderError(
                f"Gateway returned {status}",
                provider=self.provider,
                provider_code=str(status),
                details=context,
            )
        return response.json()

    async def parse_webhook(self, headers: dict[str, Any], body: bytes) -> GatewayEvent:  # type: ignore[override]
        raise NotImplementedError

    def _map_status(self, provider_status: Optional[str]) -> Optional[str]:
        if provider_status is None:
            return None
        return PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {}).get(provider_status, provider_status)

    @staticmethod
    def _header(headers: Mapping[str, Any], name: str) -> Optional[str]:
        # plain dicts keep the sender's casing
        wanted = name.lower()
        return next((v for k, v in headers.items() if k.lower() == wanted), None)

    @staticmethod
    def _from_timestamp(value: Any) -> Optional[datetime]:
        if value in (None, ""):
            return None
        return datetime.fromtimestamp(int(value), tz=timezone.utc)

    def _log(self, event: str, **fields) -> None:
        logger.info(event, provider=self.provider, **fields)
