"""Instructor balance domain exports."""
from .entity import BalanceTransaction, BalanceTransactionType, InstructorBalance, PayoutMethod
from .repository import InstructorBalanceRepository
from .service import InstructorBalanceService

__all__ = [
    "BalanceTransaction",
    "BalanceTransactionType",
    "InstructorBalance",
    "InstructorBalanceRepository",
    "InstructorBalanceService",
    "PayoutMethod",
]
