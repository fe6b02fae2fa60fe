from .calculator import (
    FeeBreakdown,
    FeeCalculator,
    GatewayFee,
    PaymentMethod,
    PaymentOption,
    UnknownMethodPolicy,
    compute_breakdown,
    cheapest_option,
    payment_options,
)

__all__ = [
    "FeeBreakdown",
    "FeeCalculator",
    "GatewayFee",
    "PaymentMethod",
    "PaymentOption",
    "UnknownMethodPolicy",
    "compute_breakdown",
    "cheapest_option",
    "payment_options",
]
