from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException
from domain.fees import FeeCalculator, PaymentMethod, UnknownMethodPolicy, compute_breakdown, cheapest_option, payment_options


def test_pix_breakdown_splits_the_final_amount():
    b = compute_breakdown(Decimal("100.00"), Decimal("0"), "PIX", Decimal("10"))
    assert b.final_amount == Decimal("100.00")
    assert b.gateway_fee.total == Decimal("0.99")
    assert b.net_amount == Decimal("99.01")
    assert b.platform_fee == Decimal("9.90")
    assert b.instructor_amount == Decimal("89.11")
    assert b.gateway_fee.total + b.platform_fee + b.instructor_amount == b.final_amount


@pytest.mark.parametrize(
    "method, fee, platform, instructor",
    [
        ("CREDIT_CARD", "3.38", "9.66", "86.96"),
        ("DEBIT_CARD", "2.38", "9.76", "87.86"),
        ("BOLETO", "3.49", "9.65", "86.86"),
    ],
)
def test_card_and_boleto_fees(method, fee, platform, instructor):
    b = compute_breakdown("100", "0", method, "10")
    assert b.gateway_fee.total == Decimal(fee)
    assert b.platform_fee == Decimal(platform)
    assert b.instructor_amount == Decimal(instructor)
    assert b.total_fees == Decimal(fee) + Decimal(platform)


@pytest.mark.parametrize(
    "price, discount, method, pct",
    [
        ("49.90", "4.99", "CREDIT_CARD", "12.5"),
        ("19.99", "0", "PIX", "10"),
        ("0.50", "0", "DEBIT_CARD", "33.3"),
        ("1234.56", "234.56", "BOLETO", "7"),
    ],
)
def test_fees_always_add_up_to_final_amount(price, discount, method, pct):
    b = compute_breakdown(price, discount, method, pct)
    assert b.gateway_fee.total + b.platform_fee + b.instructor_amount == b.final_amount
    assert b.instructor_amount >= 0


def test_gateway_fee_never_exceeds_amount():
    b = compute_breakdown("2.00", "0", "BOLETO", "10")
    assert b.gateway_fee.total == Decimal("2.00")
    assert b.net_amount == Decimal("0.00")
    assert b.platform_fee == Decimal("0.00")
    assert b.instructor_amount == Decimal("0.00")


def test_discount_larger_than_price_gives_zero():
    b = compute_breakdown("50", "80", "PIX", "10")
    assert b.final_amount == Decimal("0.00")
    assert b.gateway_fee.total == Decimal("0.00")
    assert b.instructor_percentage == Decimal("0.00")


def test_method_is_case_insensitive():
    b = compute_breakdown("100", "0", " pix ", "10")
    assert b.payment_method == PaymentMethod.PIX
    assert not b.fell_back


def test_unknown_method_falls_back_to_cheapest():
    b = compute_breakdown("100", "0", "BITCOIN", "10")
    assert b.payment_method == PaymentMethod.PIX
    assert b.requested_method == "BITCOIN"
    assert b.fell_back


def test_unknown_method_rejected_when_configured():
    calc = FeeCalculator(UnknownMethodPolicy.REJECT)
    with pytest.raises(DomainValidationException) as exc:
        calc.compute_breakdown("100", "0", "BITCOIN", "10")
    assert exc.value.field == "payment_method"


def test_platform_percentage_out_of_range():
    with pytest.raises(DomainValidationException):
        compute_breakdown("100", "0", "PIX", "101")
    with pytest.raises(DomainValidationException):
        compute_breakdown("-1", "0", "PIX", "10")


def test_payment_options_marks_cheapest_as_recommended():
    options = payment_options("100")
    assert [o.method for o in options] == [
        PaymentMethod.PIX, PaymentMethod.CREDIT_CARD, PaymentMethod.DEBIT_CARD, PaymentMethod.BOLETO,
    ]
    recommended = [o for o in options if o.recommended]
    assert len(recommended) == 1 and recommended[0].method == PaymentMethod.PIX
    assert options[0].net_amount == Decimal("99.01")
    assert options[1].fee_label == "2.99% + 0.39"


def test_boleto_becomes_cheapest_for_large_amounts():
    assert cheapest_option("1000").method == PaymentMethod.BOLETO
    assert [o.method for o in payment_options("1000") if o.recommended] == [PaymentMethod.BOLETO]


def test_zero_amount_ties_resolve_to_pix():
    assert cheapest_option("0").method == PaymentMethod.PIX
