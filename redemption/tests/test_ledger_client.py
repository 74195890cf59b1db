"""
Unit Tests for the Ledger Client

Tests cover:
1. CSV report parsing
2. Match rule (exact id, completed status only)
3. Request shaping (endpoint, auth, query parameters)
4. Transport and HTTP failures
"""

import base64

import httpx
import pytest

from redemption.errors import LedgerError
from redemption.ledger_client import LedgerClient, find_match, parse_ledger_csv
from redemption.models import STATUS_FIELD, TRANSACTION_ID_FIELD, LedgerStatus, LedgerTransaction


def make_client(handler) -> LedgerClient:
    return LedgerClient(
        merchant_id="12345",
        api_key="secret-key",
        project_id="777",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestParseLedgerCsv:
    """Tests for parsing the CSV report body."""

    def test_single_row(self):
        """Test that quotes are stripped and cells keyed by header."""
        rows = parse_ledger_csv('Transaction ID,Status\n"TX1","done"\n')

        assert rows == [{"Transaction ID": "TX1", "Status": "done"}]

    def test_header_only_is_empty(self):
        """Test that a header without data rows yields nothing."""
        assert parse_ledger_csv("Transaction ID,Status\n") == []

    def test_empty_body_is_empty(self):
        """Test empty and blank bodies."""
        assert parse_ledger_csv("") == []
        assert parse_ledger_csv("   \n \n") == []

    def test_short_row_padded_with_empty_strings(self):
        """Test that missing trailing cells become empty strings."""
        rows = parse_ledger_csv("Transaction ID,Status,Amount\nTX2,done\n")

        assert rows == [{"Transaction ID": "TX2", "Status": "done", "Amount": ""}]

    def test_blank_lines_and_whitespace_ignored(self):
        """Test CRLF line endings, blank lines and padded cells."""
        body = '"Transaction ID" , "Status"\r\n\r\n  "TX3" , "done" \r\n"TX4","pending"\r\n'

        rows = parse_ledger_csv(body)

        assert rows == [
            {"Transaction ID": "TX3", "Status": "done"},
            {"Transaction ID": "TX4", "Status": "pending"},
        ]

    def test_extra_cells_dropped(self):
        """Test that cells beyond the header are ignored."""
        rows = parse_ledger_csv("Transaction ID\nTX5,extra\n")

        assert rows == [{"Transaction ID": "TX5"}]


class TestFindMatch:
    """Tests for the match rule."""

    def test_matches_done_transaction(self):
        transactions = [
            LedgerTransaction(transaction_id="TX1", status=LedgerStatus.DONE),
            LedgerTransaction(transaction_id="TX100", status=LedgerStatus.DONE),
        ]

        match = find_match(transactions, "TX100")

        assert match is not None
        assert match.transaction_id == "TX100"

    def test_pending_transaction_never_matches(self):
        """Test that a non-completed row with the same id is not admitted."""
        transactions = [
            LedgerTransaction.from_row({"Transaction ID": "TX100", "Status": "pending"}),
            LedgerTransaction.from_row({"Transaction ID": "TX100", "Status": "canceled"}),
        ]

        assert find_match(transactions, "TX100") is None

    def test_match_is_case_sensitive_and_exact(self):
        transactions = [LedgerTransaction(transaction_id="tx100", status=LedgerStatus.DONE)]

        assert find_match(transactions, "TX100") is None
        assert find_match(transactions, " tx100") is None

    def test_empty_sequence(self):
        assert find_match([], "TX100") is None


class TestLedgerTransaction:
    """Tests for building transactions from parsed rows."""

    def test_from_row(self):
        row = {"Transaction ID": "TX1", "Status": "Done", "Amount": "9.99", "Currency": "USD"}

        transaction = LedgerTransaction.from_row(row)

        assert transaction.transaction_id == "TX1"
        assert transaction.status == LedgerStatus.DONE
        assert transaction.amount == "9.99"
        assert transaction.currency == "USD"
        assert transaction.raw_row == row

    def test_parsed_report_columns_feed_transactions(self):
        """Test that the report header names are the ones transactions read."""
        rows = parse_ledger_csv(f"{TRANSACTION_ID_FIELD},{STATUS_FIELD}\nTX7,pending\n")

        transaction = LedgerTransaction.from_row(rows[0])

        assert transaction.transaction_id == "TX7"
        assert transaction.status == LedgerStatus.PENDING

    def test_unknown_status_is_other(self):
        transaction = LedgerTransaction.from_row({"Transaction ID": "TX1", "Status": "refunded"})

        assert transaction.status == LedgerStatus.OTHER


class TestLookup:
    """Tests for the search request."""

    @pytest.mark.asyncio
    async def test_request_shape(self):
        """Test endpoint, Basic auth and query parameters."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, text='Transaction ID,Status\n"TX100","done"\n')

        client = make_client(handler)
        transactions = await client.lookup("TX100")
        await client.aclose()

        request = seen["request"]
        assert request.method == "GET"
        assert request.url.path == "/merchant/v2/merchants/12345/reports/transactions/search.csv"
        assert dict(request.url.params) == {
            "project_id": "777",
            "transaction_id": "TX100",
            "status": "done",
            "limit": "100",
        }
        expected = base64.b64encode(b"12345:secret-key").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"

        assert len(transactions) == 1
        assert transactions[0].transaction_id == "TX100"
        assert transactions[0].status == LedgerStatus.DONE

    @pytest.mark.asyncio
    async def test_header_only_response(self):
        """Test that an empty report is an empty result, not an error."""
        client = make_client(lambda request: httpx.Response(200, text="Transaction ID,Status\n"))

        assert await client.lookup("TX999") == []

    @pytest.mark.asyncio
    async def test_rows_without_id_skipped(self):
        client = make_client(lambda request: httpx.Response(200, text="Transaction ID,Status\n,done\nTX1,done\n"))

        transactions = await client.lookup("TX1")

        assert [t.transaction_id for t in transactions] == ["TX1"]

    @pytest.mark.asyncio
    async def test_http_error_status_raises(self):
        """Test that a non-success status is a LedgerError."""
        client = make_client(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(LedgerError):
            await client.lookup("TX100")

    @pytest.mark.asyncio
    async def test_unauthorized_raises(self):
        client = make_client(lambda request: httpx.Response(401, text="unauthorized"))

        with pytest.raises(LedgerError):
            await client.lookup("TX100")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        """Test that connection failures are a LedgerError."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(LedgerError):
            await client.lookup("TX100")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
