"""
费用计算 - 网关手续费、平台分成、讲师所得

纯函数，无 I/O。金额全部使用 Decimal，每一步按分（0.01）四舍五入，
保证 gateway_fee.total + platform_fee + instructor_amount == final_amount。
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Union

import structlog

from domain.common.exceptions import DomainValidationException
from domain.common.values import to_money

logger = structlog.get_logger(__name__)

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


class PaymentMethod(str, Enum):
    PIX = "PIX"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    BOLETO = "BOLETO"


class UnknownMethodPolicy(str, Enum):
    """How to treat a payment method missing from the gateway fee table."""
    FALLBACK_CHEAPEST = "fallback_cheapest"
    REJECT = "reject"


@dataclass(frozen=True)
class GatewayFeeRule:
    percentage: Decimal
    fixed_fee: Decimal
    description: str

    @property
    def label(self) -> str:
        label = f"{self.percentage.normalize():f}%"
        if self.fixed_fee > 0:
            label += f" + {self.fixed_fee:.2f}"
        return label


# Mercado Pago published pricing; gateway policy, not runtime configuration.
GATEWAY_FEES: Dict[PaymentMethod, GatewayFeeRule] = {
    PaymentMethod.PIX: GatewayFeeRule(Decimal("0.99"), Decimal("0.00"), "PIX - lowest fee"),
    PaymentMethod.CREDIT_CARD: GatewayFeeRule(Decimal("2.99"), Decimal("0.39"), "Credit card - single installment"),
    PaymentMethod.DEBIT_CARD: GatewayFeeRule(Decimal("1.99"), Decimal("0.39"), "Debit card"),
    PaymentMethod.BOLETO: GatewayFeeRule(Decimal("0.00"), Decimal("3.49"), "Boleto - fixed fee"),
}


@dataclass(frozen=True)
class GatewayFee:
    method: PaymentMethod
    percentage: Decimal
    fixed_fee: Decimal
    percentage_fee: Decimal
    total: Decimal
    description: str


@dataclass(frozen=True)
class FeeBreakdown:
    price: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    requested_method: str
    payment_method: PaymentMethod
    gateway_fee: GatewayFee
    net_amount: Decimal
    platform_fee_percentage: Decimal
    platform_fee: Decimal
    instructor_amount: Decimal

    @property
    def total_fees(self) -> Decimal:
        return self.gateway_fee.total + self.platform_fee

    @property
    def instructor_percentage(self) -> Decimal:
        if self.final_amount == 0:
            return ZERO
        return to_money(self.instructor_amount * HUNDRED / self.final_amount)

    @property
    def fell_back(self) -> bool:
        return self.requested_method != self.payment_method.value


@dataclass(frozen=True)
class PaymentOption:
    method: PaymentMethod
    description: str
    fee: Decimal
    fee_label: str
    net_amount: Decimal
    recommended: bool = False


Amount = Union[Decimal, int, float, str]


def gateway_fee(amount: Amount, method: PaymentMethod) -> GatewayFee:
    """Gateway fee for ``amount``; never more than the amount itself."""
    final_amount = to_money(amount)
    rule = GATEWAY_FEES[method]
    raw_percentage = final_amount * rule.percentage / HUNDRED
    total = min(to_money(raw_percentage + rule.fixed_fee), final_amount)
    return GatewayFee(
        method=method,
        percentage=rule.percentage,
        fixed_fee=rule.fixed_fee,
        percentage_fee=to_money(raw_percentage),
        total=total,
        description=rule.description,
    )


def payment_options(amount: Amount) -> List[PaymentOption]:
    """支付方式对比表：每种方式的手续费与净额，最便宜的标记为 recommended"""
    final_amount = to_money(amount)
    fees = [gateway_fee(final_amount, method) for method in GATEWAY_FEES]
    cheapest = min(fees, key=lambda f: f.total)
    return [
        PaymentOption(
            method=fee.method,
            description=fee.description,
            fee=fee.total,
            fee_label=GATEWAY_FEES[fee.method].label,
            net_amount=final_amount - fee.total,
            recommended=fee.method == cheapest.method,
        )
        for fee in fees
    ]


def cheapest_option(amount: Amount) -> PaymentOption:
    # min keeps the first on ties, so table order decides (PIX first)
    return min(payment_options(amount), key=lambda option: option.fee)


def resolve_method(
    payment_method: Optional[str],
    amount: Amount,
    policy: UnknownMethodPolicy = UnknownMethodPolicy.FALLBACK_CHEAPEST,
) -> PaymentMethod:
    normalized = (payment_method or "").strip().upper()
    try:
        return PaymentMethod(normalized)
    except ValueError:
        if policy == UnknownMethodPolicy.REJECT:
            raise DomainValidationException(
                f"Unsupported payment method: {payment_method}",
                field="payment_method",
                details={"supported": [m.value for m in PaymentMethod]},
            )
    fallback = cheapest_option(amount).method
    logger.warning(
        "fee_unknown_payment_method_fallback",
        requested=payment_method,
        fallback=fallback.value,
    )
    return fallback


def compute_breakdown(
    price: Amount,
    discount_amount: Amount,
    payment_method: Optional[str],
    platform_fee_percentage: Amount,
    *,
    unknown_method_policy: UnknownMethodPolicy = UnknownMethodPolicy.FALLBACK_CHEAPEST,
) -> FeeBreakdown:
    """
    计算完整的费用拆分

    final = max(0, price - discount)
    net = final - gateway_fee.total
    platform_fee = round2(net * pct / 100)
    instructor = net - platform_fee
    """
    price = to_money(price)
    discount = to_money(discount_amount or 0)
    percentage = Decimal(str(platform_fee_percentage))

    if price < 0:
        raise DomainValidationException("Price must be >= 0", field="price")
    if discount < 0:
        raise DomainValidationException("Discount must be >= 0", field="discount_amount")
    if percentage < 0 or percentage > HUNDRED:
        raise DomainValidationException(
            "Platform fee percentage must be within [0, 100]",
            field="platform_fee_percentage",
        )

    final_amount = max(ZERO, price - discount)
    method = resolve_method(payment_method, final_amount, unknown_method_policy)
    fee = gateway_fee(final_amount, method)
    net_amount = final_amount - fee.total
    platform_fee = to_money(net_amount * percentage / HUNDRED)
    instructor_amount = net_amount - platform_fee

    return FeeBreakdown(
        price=price,
        discount_amount=discount,
        final_amount=final_amount,
        requested_method=(payment_method or "").strip().upper(),
        payment_method=method,
        gateway_fee=fee,
        net_amount=net_amount,
        platform_fee_percentage=percentage,
        platform_fee=platform_fee,
        instructor_amount=instructor_amount,
    )


class FeeCalculator:
    """Binds the unknown-method policy chosen by configuration."""

    def __init__(self, unknown_method_policy: UnknownMethodPolicy = UnknownMethodPolicy.FALLBACK_CHEAPEST):
        self.unknown_method_policy = unknown_method_policy

    def compute_breakdown(
        self,
        price: Amount,
        discount_amount: Amount,
        payment_method: Optional[str],
        platform_fee_percentage: Amount,
    ) -> FeeBreakdown:
        return compute_breakdown(
            price,
            discount_amount,
            payment_method,
            platform_fee_percentage,
            unknown_method_policy=self.unknown_method_policy,
        )

    def payment_options(self, amount: Amount) -> List[PaymentOption]:
        return payment_options(amount)

    def cheapest_option(self, amount: Amount) -> PaymentOption:
        return cheapest_option(amount)
