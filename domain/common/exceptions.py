"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。

Taxonomy used by the settlement engine:

- ``DomainValidationException``: bad input shape or range
- ``NotFoundException``: missing Payment / Coupon / RefundRequest / ...
- ``ForbiddenException``: ownership or role mismatch
- ``StateConflictException``: illegal transition, exhausted coupon,
  duplicate active refund, lost conditional update
- gateway failures live in ``infrastructure.external.payments.exceptions``
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        message_key: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        self.message_key = message_key
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
        message_key: str | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
            message_key=message_key or "validation.domain",
        )


class NotFoundException(BusinessException):
    """Resource lookups that came back empty."""

    http_code = BusinessCode.NOT_FOUND

    def __init__(self, message: str, *, error_type: str, code: int, details: dict | None = None, message_key: str | None = None):
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=details,
            message_key=message_key,
        )


class ForbiddenException(BusinessException):
    http_code = BusinessCode.FORBIDDEN

    def __init__(self, message: str = "Forbidden", *, error_type: str = "Forbidden", code: int = BusinessCode.FORBIDDEN, details: dict | None = None, message_key: str | None = None):
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=details,
            message_key=message_key or "auth.forbidden",
        )


class StateConflictException(BusinessException):
    """The requested change conflicts with the current persisted state.

    ``retryable`` tells the caller whether re-validating and re-attempting
    once can succeed (e.g. a coupon slot taken by a concurrent checkout).
    """

    http_code = BusinessCode.STATE_CONFLICT

    def __init__(
        self,
        message: str,
        *,
        error_type: str,
        code: int = BusinessCode.STATE_CONFLICT,
        details: dict | None = None,
        message_key: str | None = None,
        retryable: bool = False,
    ):
        merged = dict(details or {})
        merged["retryable"] = retryable
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=merged,
            message_key=message_key,
        )
        self.retryable = retryable


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class PaymentNotFoundException(NotFoundException):
    def __init__(self, identifier: str):
        super().__init__(
            f"Payment not found: {identifier}",
            error_type="PaymentNotFound",
            code=PaymentCode.PAYMENT_NOT_FOUND,
            details={"payment": identifier},
            message_key="payment.not_found",
        )


class ExternalPaymentIdConflictException(StateConflictException):
    def __init__(self, payment_id: str, external_payment_id: str):
        super().__init__(
            f"Payment {payment_id} is already bound to another gateway id",
            error_type="ExternalPaymentIdConflict",
            code=PaymentCode.EXTERNAL_ID_CONFLICT,
            details={"payment_id": payment_id, "external_payment_id": external_payment_id},
            message_key="payment.external_id.conflict",
        )


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CouponNotFoundException(NotFoundException):
    def __init__(self, identifier: str):
        super().__init__(
            f"Coupon not found: {identifier}",
            error_type="CouponNotFound",
            code=PaymentCode.COUPON_NOT_FOUND,
            details={"coupon": identifier},
            message_key="coupon.not_found",
        )


class CouponCodeExistsException(StateConflictException):
    def __init__(self, code: str):
        super().__init__(
            f"Coupon code {code} already exists",
            error_type="CouponCodeExists",
            code=PaymentCode.COUPON_CODE_EXISTS,
            details={"code": code},
            message_key="coupon.code.exists",
        )


class CouponExhaustedException(StateConflictException):
    def __init__(self, coupon_id: str):
        super().__init__(
            "Coupon expired or has no uses left",
            error_type="CouponExhausted",
            code=PaymentCode.COUPON_EXPIRED_OR_EXHAUSTED,
            details={"coupon_id": coupon_id},
            message_key="coupon.exhausted",
            retryable=True,
        )


class CouponAlreadyUsedException(StateConflictException):
    def __init__(self, coupon_id: str, user_id: str):
        super().__init__(
            "Coupon already used by this user",
            error_type="CouponAlreadyUsed",
            code=PaymentCode.COUPON_ALREADY_USED,
            details={"coupon_id": coupon_id, "user_id": user_id},
            message_key="coupon.already_used",
        )


class CouponRejectedException(BusinessException):
    """Checkout-time wrapper for a coupon that failed validation."""

    def __init__(self, error_kind: str):
        super().__init__(
            code=PaymentCode.COUPON_NOT_FOUND if error_kind == "NOT_FOUND" else PaymentCode.COUPON_EXPIRED_OR_EXHAUSTED,
            message=f"Coupon rejected: {error_kind}",
            error_type="CouponRejected",
            details={"error_kind": error_kind},
            field="coupon_code",
            message_key="coupon.rejected",
        )


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------
class SubscriptionNotFoundException(NotFoundException):
    def __init__(self, identifier: str):
        super().__init__(
            f"Subscription not found: {identifier}",
            error_type="SubscriptionNotFound",
            code=PaymentCode.SUBSCRIPTION_NOT_FOUND,
            details={"subscription": identifier},
            message_key="subscription.not_found",
        )


class SubscriptionTerminatedException(StateConflictException):
    def __init__(self, subscription_id: str):
        super().__init__(
            "Subscription is cancelled",
            error_type="SubscriptionTerminated",
            code=PaymentCode.SUBSCRIPTION_TERMINATED,
            details={"subscription_id": subscription_id},
            message_key="subscription.terminated",
        )


# ---------------------------------------------------------------------------
# Refunds
# ---------------------------------------------------------------------------
class RefundRequestNotFoundException(NotFoundException):
    def __init__(self, refund_id: str):
        super().__init__(
            f"Refund request not found: {refund_id}",
            error_type="RefundRequestNotFound",
            code=PaymentCode.REFUND_NOT_FOUND,
            details={"refund_id": refund_id},
            message_key="refund.not_found",
        )


class RefundStateConflictException(StateConflictException):
    def __init__(self, refund_id: str, current: str, action: str):
        super().__init__(
            f"Cannot {action} a refund request in status {current}",
            error_type="RefundStateConflict",
            code=PaymentCode.REFUND_STATE_CONFLICT,
            details={"refund_id": refund_id, "status": current, "action": action},
            message_key="refund.state.conflict",
        )


class RefundOwnershipException(ForbiddenException):
    def __init__(self, refund_id: str):
        super().__init__(
            "Refund request does not belong to user",
            error_type="RefundNotOwner",
            code=PaymentCode.REFUND_NOT_OWNER,
            details={"refund_id": refund_id},
            message_key="refund.not_owner",
        )


class CourseNotFoundException(NotFoundException):
    def __init__(self, course_id: str):
        super().__init__(
            f"Course not found: {course_id}",
            error_type="CourseNotFound",
            code=PaymentCode.COURSE_NOT_FOUND,
            details={"course_id": course_id},
            message_key="course.not_found",
        )


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------
class InsufficientBalanceException(StateConflictException):
    def __init__(self, instructor_id: str, amount):
        super().__init__(
            "Insufficient available balance",
            error_type="InsufficientBalance",
            code=PaymentCode.INSUFFICIENT_BALANCE,
            details={"instructor_id": instructor_id, "amount": str(amount)},
            message_key="payout.insufficient_balance",
        )
