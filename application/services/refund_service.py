"""
退款应用服务 - 学生发起/取消，管理员审批/拒绝/标记处理结果

mark_as_processed 与支付 COMPLETED -> REFUNDED、暂停选课、冲销讲师余额处于同一事务。
"""
from __future__ import annotations

from typing import Callable, List, Optional

from application.dtos.refunds import (
    RefundCreateDTO,
    RefundCreationDTO,
    RefundProcessDTO,
    RefundProcessedDTO,
    RefundRequestDTO,
)
from application.services.settlement_effects import SettlementEffects
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.entity import PaymentStatus
from domain.payment.service import PaymentLedger, TransitionOutcome
from domain.refund.entity import RefundStatus
from domain.refund.service import RefundWorkflow
from domain.settings.service import PlatformSettingsReader


logger = get_logger(__name__)


def _workflow(uow: AbstractUnitOfWork) -> RefundWorkflow:
    return RefundWorkflow(
        uow.refund_repository,
        uow.payment_repository,
        PlatformSettingsReader(uow.setting_repository),
    )


class RefundApplicationService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def create(self, user_id: str, data: RefundCreateDTO) -> RefundCreationDTO:
        """资格校验失败时返回 error_kind，成功时返回 PENDING 退款申请"""
        async with self._uow_factory() as uow:
            creation = await _workflow(uow).create(data.payment_id, user_id, data.reason)
        if not creation.success:
            logger.info(
                "refund_request_rejected",
                payment_id=data.payment_id,
                user_id=user_id,
                error_kind=creation.error_kind.value,
            )
            return RefundCreationDTO(
                success=False,
                error_kind=creation.error_kind.value,
                refund_days_limit=creation.refund_days_limit,
            )
        return RefundCreationDTO(
            success=True,
            refund=RefundRequestDTO.from_entity(creation.refund),
            refund_days_limit=creation.refund_days_limit,
        )

    async def get(self, refund_id: str) -> RefundRequestDTO:
        async with self._uow_factory(readonly=True) as uow:
            refund = await _workflow(uow).get(refund_id)
        return RefundRequestDTO.from_entity(refund)

    async def list_for_user(self, user_id: str, skip: int = 0, limit: int = 20) -> List[RefundRequestDTO]:
        async with self._uow_factory(readonly=True) as uow:
            refunds = await _workflow(uow).list_for_user(user_id, skip=skip, limit=limit)
        return [RefundRequestDTO.from_entity(r) for r in refunds]

    async def list(
        self,
        status: Optional[RefundStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> List[RefundRequestDTO]:
        async with self._uow_factory(readonly=True) as uow:
            refunds = await _workflow(uow).list(status=status, skip=skip, limit=limit)
        return [RefundRequestDTO.from_entity(r) for r in refunds]

    async def cancel(self, refund_id: str, user_id: str) -> RefundRequestDTO:
        async with self._uow_factory() as uow:
            refund = await _workflow(uow).cancel(refund_id, user_id)
        return RefundRequestDTO.from_entity(refund)

    async def approve(self, refund_id: str, admin_id: str, notes: Optional[str] = None) -> RefundRequestDTO:
        async with self._uow_factory() as uow:
            refund = await _workflow(uow).approve(refund_id, admin_id, notes)
        return RefundRequestDTO.from_entity(refund)

    async def reject(self, refund_id: str, admin_id: str, notes: Optional[str] = None) -> RefundRequestDTO:
        async with self._uow_factory() as uow:
            refund = await _workflow(uow).reject(refund_id, admin_id, notes)
        return RefundRequestDTO.from_entity(refund)

    async def mark_as_failed(self, refund_id: str, admin_id: str, notes: Optional[str] = None) -> RefundRequestDTO:
        async with self._uow_factory() as uow:
            refund = await _workflow(uow).mark_as_failed(refund_id, admin_id, notes)
        return RefundRequestDTO.from_entity(refund)

    async def mark_as_processed(self, refund_id: str, admin_id: str, data: RefundProcessDTO) -> RefundProcessedDTO:
        async with self._uow_factory() as uow:
            refund = await _workflow(uow).mark_as_processed(
                refund_id, admin_id, data.external_refund_id, data.notes
            )
            result = await PaymentLedger(uow.payment_repository).transition(
                PaymentStatus.REFUNDED, payment_id=refund.payment_id
            )
            action = None
            if result.applied:
                action = await SettlementEffects(uow).dispatch(result)
            elif result.outcome == TransitionOutcome.ILLEGAL:
                # the payment moved on without us (e.g. a chargeback webhook already refunded it)
                logger.warning(
                    "refund_payment_transition_illegal",
                    refund_id=refund_id,
                    payment_id=refund.payment_id,
                    status=result.payment.status.value if result.payment else None,
                )

        logger.info(
            "refund_processed",
            refund_id=refund_id,
            payment_id=refund.payment_id,
            admin_id=admin_id,
            payment_outcome=result.outcome.value,
        )
        return RefundProcessedDTO(
            refund=RefundRequestDTO.from_entity(refund),
            payment_status=result.payment.status.value if result.payment else None,
            enrollment_action=action.value if action else None,
        )
