import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

from .errors import AlreadyRedeemedError, LedgerError
from .ledger_client import find_match
from .models import (
    STATUS_MESSAGES,
    LedgerTransaction,
    RedemptionRecord,
    RedemptionRequest,
    RedemptionResponse,
    RedemptionStatus,
)
from .store import RedemptionStore

logger = logging.getLogger(__name__)

GrantCallable = Callable[[str], Awaitable[None]]


class Ledger(Protocol):
    async def lookup(self, transaction_id: str) -> list[LedgerTransaction]: ...


class RedemptionWorkflow:
    """
    Verifies a submitted transaction id and grants the role exactly once.

    Order of steps: store check, ledger lookup, match, store record, grant.
    A transaction is recorded only after the ledger confirmed it and before the
    grant is attempted, so a failed grant leaves the id redeemed rather than
    risking a second grant.
    """

    def __init__(
        self,
        store: RedemptionStore,
        ledger: Ledger,
        grant: GrantCallable,
        ledger_timeout_s: float = 10.0,
        grant_timeout_s: float = 10.0,
    ):
        self.store = store
        self.ledger = ledger
        self.grant = grant
        self.ledger_timeout_s = ledger_timeout_s
        self.grant_timeout_s = grant_timeout_s

    async def submit(self, raw_id: str, requester_id: str) -> RedemptionResponse:
        request = RedemptionRequest(submitted_id=raw_id, requester=requester_id)
        status = await self._redeem(request)
        return RedemptionResponse(
            transaction_id=request.submitted_id,
            requester_id=request.requester,
            status=status,
            message=STATUS_MESSAGES[status],
        )

    def get_redemption(self, transaction_id: str) -> Optional[RedemptionRecord]:
        return self.store.get(transaction_id)

    async def _redeem(self, request: RedemptionRequest) -> RedemptionStatus:
        transaction_id = request.submitted_id
        if not transaction_id:
            return RedemptionStatus.NOT_FOUND

        try:
            if await asyncio.to_thread(self.store.has, transaction_id):
                logger.info(f"[Redeem] {transaction_id} already redeemed, rejecting {request.requester}")
                return RedemptionStatus.ALREADY_USED
        except Exception:
            logger.exception(f"[Redeem] Store check failed for {transaction_id}")
            return RedemptionStatus.LOOKUP_FAILED

        try:
            transactions = await asyncio.wait_for(
                self.ledger.lookup(transaction_id), timeout=self.ledger_timeout_s
            )
        except LedgerError as e:
            logger.warning(f"[Redeem] Ledger lookup failed for {transaction_id}: {e}")
            return RedemptionStatus.LOOKUP_FAILED
        except asyncio.TimeoutError:
            logger.warning(f"[Redeem] Ledger lookup for {transaction_id} timed out after {self.ledger_timeout_s}s")
            return RedemptionStatus.LOOKUP_FAILED
        except Exception:
            logger.exception(f"[Redeem] Ledger lookup failed unexpectedly for {transaction_id}")
            return RedemptionStatus.LOOKUP_FAILED

        if find_match(transactions, transaction_id) is None:
            logger.info(f"[Redeem] {transaction_id} not found among {len(transactions)} ledger rows")
            return RedemptionStatus.NOT_FOUND

        try:
            await asyncio.to_thread(self.store.record, transaction_id, request.requester)
        except AlreadyRedeemedError:
            logger.info(f"[Redeem] {transaction_id} redeemed concurrently, rejecting {request.requester}")
            return RedemptionStatus.ALREADY_USED
        except Exception:
            logger.exception(f"[Redeem] Could not record {transaction_id}")
            return RedemptionStatus.LOOKUP_FAILED

        try:
            await asyncio.wait_for(self.grant(request.requester), timeout=self.grant_timeout_s)
        except asyncio.TimeoutError:
            logger.error(
                f"[Redeem] Grant timed out for {request.requester} after recording {transaction_id}; "
                f"needs manual reconciliation"
            )
            return RedemptionStatus.GRANT_FAILED
        except Exception:
            logger.exception(
                f"[Redeem] Grant failed for {request.requester} after recording {transaction_id}; "
                f"needs manual reconciliation"
            )
            return RedemptionStatus.GRANT_FAILED

        logger.info(f"[Redeem] {transaction_id} redeemed by {request.requester}")
        return RedemptionStatus.SUCCESS
