"""Services for probing, scheduling, and alerting."""
from .checker import CheckerService, CheckResult, ProbeStrategy
from .cooldown import CooldownLedger, InMemoryCooldownLedger, SqlCooldownLedger
from .alerter import AlerterService
from .due_set import DueSetSelector, DueDevice
from .scheduler import SchedulerService

__all__ = [
    "CheckerService",
    "CheckResult",
    "ProbeStrategy",
    "CooldownLedger",
    "InMemoryCooldownLedger",
    "SqlCooldownLedger",
    "AlerterService",
    "DueSetSelector",
    "DueDevice",
    "SchedulerService",
]
