"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
Adapters only authenticate and read; charging and refunding money stays
with the gateway dashboards.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from application.dtos.payments import GatewayEvent


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for third-party payment providers."""

    provider: str

    async def parse_webhook(self, headers: dict[str, Any], body: bytes) -> GatewayEvent: ...

    async def aclose(self) -> None: ...
