"""
讲师余额应用服务 - 余额/流水查询、提现申请，以及持有期到期释放（Celery 定时任务调用）
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from application.dtos.payouts import (
    BalanceTransactionDTO,
    InstructorBalanceDTO,
    PayoutDTO,
    PayoutRequestDTO,
)
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payout.service import InstructorBalanceService
from domain.settings.service import PlatformSettingsReader


logger = get_logger(__name__)


class PayoutApplicationService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def get_balance(self, instructor_id: str) -> InstructorBalanceDTO:
        async with self._uow_factory(readonly=True) as uow:
            balance = await InstructorBalanceService(uow.balance_repository).get_balance(instructor_id)
        return InstructorBalanceDTO.from_entity(balance)

    async def list_transactions(self, instructor_id: str, skip: int = 0, limit: int = 20) -> List[BalanceTransactionDTO]:
        async with self._uow_factory(readonly=True) as uow:
            rows = await InstructorBalanceService(uow.balance_repository).list_transactions(
                instructor_id, skip=skip, limit=limit
            )
        return [BalanceTransactionDTO.from_entity(t) for t in rows]

    async def request_payout(self, instructor_id: str, data: PayoutRequestDTO) -> PayoutDTO:
        async with self._uow_factory() as uow:
            minimum = await PlatformSettingsReader(uow.setting_repository).minimum_payout_amount()
            balances = InstructorBalanceService(uow.balance_repository)
            transaction = await balances.request_payout(instructor_id, data.amount, data.method, minimum)
            balance = await balances.get_balance(instructor_id)
        return PayoutDTO(
            transaction=BalanceTransactionDTO.from_entity(transaction),
            balance=InstructorBalanceDTO.from_entity(balance),
        )

    async def release_matured_balances(self, now: Optional[datetime] = None) -> Decimal:
        async with self._uow_factory() as uow:
            hold_days = await PlatformSettingsReader(uow.setting_repository).balance_hold_days()
            released = await InstructorBalanceService(uow.balance_repository).release_matured(hold_days, now)
        logger.info("payout_release_finished", hold_days=hold_days, released=str(released))
        return released
