"""RupIQ Ledger - Shared-expense ledger, balances and settlements."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .ledger import (
    build_settlement_event,
    compute_friend_balances,
    summarize_balances,
)
from .models import (
    BalanceSummary,
    Expense,
    FriendBalance,
    LedgerEvent,
    Participant,
    SplitDetail,
)
from .service import LedgerService
from .store import KeyValueStore
from .sync import remove_split_event, sync_split_event

__all__ = [
    "Settings",
    "load_settings",
    "KeyValueStore",
    "BalanceSummary",
    "Expense",
    "FriendBalance",
    "LedgerEvent",
    "Participant",
    "SplitDetail",
    "build_settlement_event",
    "compute_friend_balances",
    "summarize_balances",
    "remove_split_event",
    "sync_split_event",
    "LedgerService",
]
