"""
结算应用服务（application/services）- 报价、下单、记录网关返回

checkout 在一个事务内完成：课程价格 -> 优惠券校验 -> 费用拆分 -> 创建 PENDING 支付 -> 兑换优惠券。
任一步失败整体回滚，优惠券名额不会被占用。
"""
from __future__ import annotations

from decimal import Decimal
from typing import Callable, List, Optional

from application.dtos.checkout import (
    CheckoutRequestDTO,
    CheckoutResultDTO,
    FeeBreakdownDTO,
    FeeQuoteDTO,
    FeeQuoteRequestDTO,
    GatewayReferenceDTO,
    GatewayReferenceResultDTO,
    PaymentOptionDTO,
)
from application.dtos.payments import PaymentDTO, SubscriptionDTO
from core.logging_config import get_logger
from domain.common.exceptions import (
    CouponRejectedException,
    CourseNotFoundException,
    DomainValidationException,
    PaymentNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.coupon.service import CouponEngine
from domain.fees import FeeCalculator
from domain.payment.entity import PaymentType
from domain.payment.service import PaymentLedger
from domain.settings.service import PlatformSettingsReader
from domain.subscription.service import SubscriptionLedger


logger = get_logger(__name__)


class CheckoutService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        fee_calculator: Optional[FeeCalculator] = None,
        default_provider: Optional[str] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._fees = fee_calculator or FeeCalculator()
        self._default_provider = default_provider

    async def quote(self, request: FeeQuoteRequestDTO) -> FeeQuoteDTO:
        """费用预览：拆分 + 各支付方式对比 + 最便宜的方式"""
        async with self._uow_factory(readonly=True) as uow:
            percentage = await PlatformSettingsReader(uow.setting_repository).platform_fee_percentage()

        breakdown = self._fees.compute_breakdown(
            request.course_price,
            request.discount_amount,
            request.payment_method,
            percentage,
        )
        return FeeQuoteDTO(
            breakdown=FeeBreakdownDTO.from_breakdown(breakdown),
            options=self.payment_options(breakdown.final_amount),
            cheapest_method=self._fees.cheapest_option(breakdown.final_amount).method.value,
        )

    def payment_options(self, amount: Decimal) -> List[PaymentOptionDTO]:
        return [PaymentOptionDTO.from_option(o) for o in self._fees.payment_options(amount)]

    async def checkout(self, user_id: str, request: CheckoutRequestDTO) -> CheckoutResultDTO:
        async with self._uow_factory() as uow:
            course = await uow.course_catalog.get_course(request.course_id)
            if course is None:
                raise CourseNotFoundException(request.course_id)
            if not course.is_published:
                raise DomainValidationException(
                    "Course is not available for purchase",
                    field="course_id",
                    details={"course_id": course.id},
                )

            coupons = CouponEngine(uow.coupon_repository, uow.coupon_usage_repository)
            validation = None
            discount = Decimal("0")
            if request.coupon_code:
                validation = await coupons.validate(
                    request.coupon_code, user_id, course.price, course_id=course.id
                )
                if not validation.is_valid:
                    logger.info(
                        "checkout_coupon_rejected",
                        user_id=user_id,
                        course_id=course.id,
                        error_kind=validation.error_kind.value,
                    )
                    raise CouponRejectedException(validation.error_kind.value)
                discount = validation.discount_amount

            percentage = await PlatformSettingsReader(uow.setting_repository).platform_fee_percentage()
            breakdown = self._fees.compute_breakdown(course.price, discount, request.payment_method, percentage)

            payment = await PaymentLedger(uow.payment_repository).create(
                user_id=user_id,
                course_id=course.id,
                amount=breakdown.final_amount,
                currency=course.currency,
                payment_type=request.payment_type,
                payment_method=breakdown.payment_method.value,
                gateway_provider=request.gateway_provider or self._default_provider,
                platform_fee_amount=breakdown.platform_fee,
                instructor_amount=breakdown.instructor_amount,
                metadata={
                    "original_price": str(breakdown.price),
                    "discount_amount": str(breakdown.discount_amount),
                    "gateway_fee": str(breakdown.gateway_fee.total),
                    "coupon_code": validation.coupon.code if validation else None,
                },
            )

            if validation is not None:
                # a lost race on the last slot raises CouponExhaustedException (retryable)
                await coupons.apply(validation.coupon.id, user_id, payment.id, discount)

        logger.info(
            "checkout_created",
            payment_id=payment.id,
            user_id=user_id,
            course_id=course.id,
            amount=str(payment.amount),
            payment_method=payment.payment_method,
            coupon=validation.coupon.code if validation else None,
        )
        return CheckoutResultDTO(
            payment=PaymentDTO.from_entity(payment),
            breakdown=FeeBreakdownDTO.from_breakdown(breakdown),
            coupon_code=validation.coupon.code if validation else None,
        )

    async def attach_gateway_reference(
        self,
        payment_id: str,
        user_id: Optional[str],
        reference: GatewayReferenceDTO,
    ) -> GatewayReferenceResultDTO:
        """记录网关下单返回：绑定外部支付ID，订阅类支付同时创建 INCOMPLETE 订阅"""
        async with self._uow_factory() as uow:
            ledger = PaymentLedger(uow.payment_repository)
            current = await ledger.get(payment_id)
            if user_id is not None and current.user_id != user_id:
                raise PaymentNotFoundException(f"id={payment_id}")

            payment = await ledger.attach_external_id(
                payment_id, reference.external_payment_id, reference.external_order_id
            )
            subscription = None
            if reference.subscription is not None:
                if payment.payment_type != PaymentType.SUBSCRIPTION:
                    raise DomainValidationException(
                        "Only subscription payments can carry a subscription",
                        field="subscription",
                    )
                subscription = await SubscriptionLedger(uow.subscription_repository).create_for_payment(
                    payment_id=payment.id,
                    external_subscription_id=reference.subscription.external_subscription_id,
                    external_customer_id=reference.subscription.external_customer_id,
                    current_period_start=reference.subscription.current_period_start,
                    current_period_end=reference.subscription.current_period_end,
                )

        return GatewayReferenceResultDTO(
            payment=PaymentDTO.from_entity(payment),
            subscription=SubscriptionDTO.from_entity(subscription) if subscription else None,
        )

    async def list_payments(self, user_id: str, skip: int = 0, limit: int = 20) -> List[PaymentDTO]:
        """支付历史"""
        async with self._uow_factory(readonly=True) as uow:
            payments = await PaymentLedger(uow.payment_repository).list_for_user(user_id, skip=skip, limit=limit)
        return [PaymentDTO.from_entity(p) for p in payments]

    async def get_payment(self, payment_id: str, user_id: Optional[str] = None) -> PaymentDTO:
        async with self._uow_factory(readonly=True) as uow:
            payment = await PaymentLedger(uow.payment_repository).get(payment_id)
        if user_id is not None and payment.user_id != user_id:
            raise PaymentNotFoundException(f"id={payment_id}")
        return PaymentDTO.from_entity(payment)
