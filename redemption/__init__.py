"""
Purchase Redemption Service

This module provides:
- Xsolla ledger lookup of completed transactions
- Single-use redemption records with storage-level uniqueness
- A redemption workflow: check → lookup → record → grant
- Discord role grant for verified purchases
"""

from .errors import (
    RedemptionServiceError,
    AlreadyRedeemedError,
    StoreError,
    LedgerError,
    GrantError,
)
from .models import (
    LedgerStatus,
    RedemptionStatus,
    RedemptionRecord,
    LedgerTransaction,
    RedemptionRequest,
    RedemptionResponse,
)
from .ledger_client import LedgerClient, parse_ledger_csv, find_match
from .store import InMemoryRedemptionStore, SqlRedemptionStore
from .granter import DiscordRoleGranter
from .service import RedemptionWorkflow

__all__ = [
    "RedemptionServiceError",
    "AlreadyRedeemedError",
    "StoreError",
    "LedgerError",
    "GrantError",
    "LedgerStatus",
    "RedemptionStatus",
    "RedemptionRecord",
    "LedgerTransaction",
    "RedemptionRequest",
    "RedemptionResponse",
    "LedgerClient",
    "parse_ledger_csv",
    "find_match",
    "InMemoryRedemptionStore",
    "SqlRedemptionStore",
    "DiscordRoleGranter",
    "RedemptionWorkflow",
]
