"""
Xsolla transaction ledger client.

Looks up completed transactions through the merchant reports search endpoint,
which answers with a CSV report. The report format is simple enough that
`parse_ledger_csv` strips quotes and splits on commas; it does not handle
embedded delimiters or escaped quotes.
"""
import logging
from typing import Iterable, Optional

import httpx

from .config import Settings
from .errors import LedgerError
from .models import TRANSACTION_ID_FIELD, LedgerStatus, LedgerTransaction

logger = logging.getLogger(__name__)


def parse_ledger_csv(body: str) -> list[dict[str, str]]:
    """
    Parse a CSV report body into one dict per data row, keyed by header name.

    Cells missing from a short row become empty strings. A body with no data
    rows (empty, blank or header only) yields an empty list.
    """
    if not body or not body.strip():
        return []

    lines = [line.replace('"', "").strip() for line in body.split("\n")]
    lines = [line for line in lines if line]
    if len(lines) < 2:
        return []

    headers = [h.strip() for h in lines[0].split(",")]
    rows = []
    for line in lines[1:]:
        cells = line.split(",")
        rows.append({
            header: cells[i].strip() if i < len(cells) else ""
            for i, header in enumerate(headers)
        })
    return rows


def find_match(transactions: Iterable[LedgerTransaction], submitted_id: str) -> Optional[LedgerTransaction]:
    """Return the completed transaction whose id equals `submitted_id` exactly."""
    for transaction in transactions:
        if transaction.transaction_id != submitted_id:
            continue
        if transaction.status is LedgerStatus.DONE:
            return transaction
        logger.warning(
            f"[Ledger] Transaction {submitted_id} found with status={transaction.status.value}, not eligible"
        )
    return None


class LedgerClient:
    def __init__(
        self,
        merchant_id: str,
        api_key: str,
        project_id: str,
        base_url: str = "https://api.xsolla.com/merchant/v2",
        status_filter: str = "done",
        limit: int = 100,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.merchant_id = merchant_id
        self.project_id = project_id
        self.base_url = base_url.rstrip("/")
        self.status_filter = status_filter
        self.limit = limit
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._auth = httpx.BasicAuth(merchant_id, api_key)

    @classmethod
    def from_settings(cls, settings: Settings) -> "LedgerClient":
        return cls(
            merchant_id=settings.xsolla_merchant_id,
            api_key=settings.xsolla_api_key,
            project_id=settings.xsolla_project_id,
            base_url=settings.xsolla_base_url,
            status_filter=settings.ledger_status_filter,
            limit=settings.ledger_result_limit,
            timeout=settings.ledger_timeout_s,
        )

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/merchants/{self.merchant_id}/reports/transactions/search.csv"

    async def lookup(self, transaction_id: str) -> list[LedgerTransaction]:
        params = {
            "project_id": self.project_id,
            "transaction_id": transaction_id,
            "status": self.status_filter,
            "limit": str(self.limit),
        }
        try:
            response = await self._client.get(self.search_url, params=params, auth=self._auth)
        except (httpx.HTTPError, UnicodeError) as e:
            logger.error(f"[Ledger] Request for {transaction_id} failed: {e!r}")
            raise LedgerError(f"Ledger request failed: {e}") from e

        if not response.is_success:
            logger.error(
                f"[Ledger] Search for {transaction_id} returned HTTP {response.status_code}: {response.text[:200]}"
            )
            raise LedgerError(f"Ledger returned HTTP {response.status_code}")

        rows = parse_ledger_csv(response.text)
        logger.debug(f"[Ledger] Search for {transaction_id} returned {len(rows)} rows")
        transactions = []
        for row in rows:
            if not row.get(TRANSACTION_ID_FIELD):
                logger.warning(f"[Ledger] Skipping row without {TRANSACTION_ID_FIELD!r}: {row}")
                continue
            transactions.append(LedgerTransaction.from_row(row))
        return transactions

    async def aclose(self) -> None:
        await self._client.aclose()
