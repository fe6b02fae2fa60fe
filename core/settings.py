"""
支付网关配置（pydantic-settings，前缀 ``PAYMENT__``）

    PAYMENT__DEFAULT_PROVIDER=mercadopago
    PAYMENT__STRIPE__WEBHOOK_SECRET=whsec_...
    PAYMENT__MERCADOPAGO__ACCESS_TOKEN=APP_USR-...
    PAYMENT__WEBHOOK__IP_ALLOWLIST=["34.195.82.184","54.88.218.97/32"]
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewayTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class GatewayRetry(BaseModel):
    # extra attempts for transport errors on status lookups
    max: int = Field(default=2, ge=0)
    base_backoff: float = 0.2


class WebhookSettings(BaseModel):
    # Stripe-Signature timestamp tolerance
    tolerance_seconds: int = 300
    # empty: accept from anywhere (signature check still applies)
    ip_allowlist: list[str] = Field(default_factory=list)


class StripeSettings(BaseModel):
    secret_key: Optional[str] = None
    webhook_secret: Optional[str] = None


class MercadoPagoSettings(BaseModel):
    access_token: Optional[str] = None
    webhook_secret: Optional[str] = None
    api_base: str = "https://api.mercadopago.com"


class PaymentSettings(BaseSettings):
    default_provider: str = "mercadopago"
    timeouts: GatewayTimeouts = Field(default_factory=GatewayTimeouts)
    retry: GatewayRetry = Field(default_factory=GatewayRetry)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    stripe: StripeSettings = Field(default_factory=StripeSettings)
    mercadopago: MercadoPagoSettings = Field(default_factory=MercadoPagoSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("default_provider")
    @classmethod
    def _lowercase_provider(cls, v: str) -> str:
        return v.strip().lower()


payment_settings = PaymentSettings()
