"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Optional

from core.settings import payment_settings
from application.ports.payment_gateway import PaymentGateway


SUPPORTED_PROVIDERS = ("stripe", "mercadopago")


def normalize_provider(provider: Optional[str] = None) -> str:
    name = (provider or payment_settings.default_provider).lower()
    if name in {"mp", "mercado_pago", "mercadopago"}:
        return "mercadopago"
    return name


def get_payment_gateway(provider: Optional[str] = None) -> PaymentGateway:
    name = normalize_provider(provider)
    if name == "stripe":
        from .stripe_client import StripeClient
        return StripeClient()
    if name == "mercadopago":
        from .mercadopago_client import MercadoPagoClient
        return MercadoPagoClient()
    raise ValueError(f"Unsupported payment provider: {name}")
