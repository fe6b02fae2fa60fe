from .base_task import SettlementTask

__all__ = ["SettlementTask"]
