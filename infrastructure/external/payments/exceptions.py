"""
Gateway adapter failures.

All of them answer the webhook with a 5xx so the provider redelivers:
signature problems are treated like transient failures on purpose, a
misconfigured secret must not silently drop notifications.
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class GatewayError(BusinessException):
    http_code = BusinessCode.NETWORK_ERROR
    payment_code = PaymentCode.PROVIDER_ERROR

    def __init__(self, message: str, *, provider: str, provider_code: Optional[str] = None, details: Optional[dict] = None):
        self.provider = provider
        super().__init__(
            code=self.payment_code,
            message=message,
            error_type=type(self).__name__,
            details={"provider": provider, "provider_code": provider_code, **(details or {})},
        )


class PaymentProviderError(GatewayError):
    """Permanent gateway answer (4xx, missing credentials)."""


class PaymentRecoverableError(PaymentProviderError):
    """Timeout, transport error, 429 or 5xx from the gateway."""

    payment_code = PaymentCode.PROVIDER_RECOVERABLE


class PaymentSignatureError(GatewayError):
    http_code = BusinessCode.SYSTEM_ERROR
    payment_code = PaymentCode.SIGNATURE_ERROR
