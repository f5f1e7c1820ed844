"""Tests for the transfer ledger.

This module tests the TransferLedger class including transfer lookups and
balance snapshots.
"""

from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from netbank_autopay.ledger import TransferLedger
from netbank_autopay.ledger.sqlite_ledger import STATUS_DRY_RUN, STATUS_SUBMITTED


@pytest.fixture
async def ledger(tmp_path):
    """Create a temporary ledger for testing."""
    db_path = str(Path(tmp_path) / "nested" / "ledger.db")
    ledger = TransferLedger(db_path=db_path, logger=MagicMock())
    await ledger.initialize()
    yield ledger
    await ledger.close()


@pytest.mark.asyncio
async def test_record_and_find_submitted(ledger):
    """Test that a submitted transfer is found by its cutoff."""
    transfer_id = await ledger.record_transfer(
        cutoff=date(2026, 6, 15),
        bill_count=2,
        amount=Decimal("1170"),
        payee="Appartment Weekly",
        screenshot="screenshots/payment.png",
    )

    found = await ledger.find_submitted(date(2026, 6, 15))

    assert found is not None
    assert found["id"] == transfer_id
    assert found["bill_count"] == 2
    assert found["amount"] == Decimal("1170")
    assert found["status"] == STATUS_SUBMITTED
    assert found["cutoff"] == date(2026, 6, 15)


@pytest.mark.asyncio
async def test_find_submitted_accepts_datetime(ledger):
    """Test that a midnight datetime cutoff matches the stored date."""
    await ledger.record_transfer(
        cutoff=datetime(2026, 6, 15),
        bill_count=1,
        amount=Decimal("585"),
        payee="Appartment Weekly",
    )

    assert await ledger.find_submitted(date(2026, 6, 15)) is not None


@pytest.mark.asyncio
async def test_find_submitted_ignores_dry_runs(ledger):
    """Test that dry runs do not block a real payment."""
    await ledger.record_transfer(
        cutoff=date(2026, 6, 15),
        bill_count=1,
        amount=Decimal("585"),
        payee="Appartment Weekly",
        status=STATUS_DRY_RUN,
    )

    assert await ledger.find_submitted(date(2026, 6, 15)) is None


@pytest.mark.asyncio
async def test_find_submitted_other_cutoff(ledger):
    """Test that a transfer only covers its own cutoff."""
    await ledger.record_transfer(
        cutoff=date(2026, 6, 1),
        bill_count=1,
        amount=Decimal("585"),
        payee="Appartment Weekly",
    )

    assert await ledger.find_submitted(date(2026, 6, 15)) is None


@pytest.mark.asyncio
async def test_list_transfers_newest_first(ledger):
    """Test listing transfers with a limit."""
    for count in range(1, 4):
        await ledger.record_transfer(
            cutoff=date(2026, count, 15),
            bill_count=count,
            amount=Decimal("585") * count,
            payee="Appartment Weekly",
        )

    transfers = await ledger.list_transfers(limit=2)

    assert [t["bill_count"] for t in transfers] == [3, 2]
    assert transfers[0]["amount"] == Decimal("1755")


@pytest.mark.asyncio
async def test_save_snapshot(ledger):
    """Test saving account balance snapshots."""
    accounts = {
        "Smart Access": {
            "balance": "$1,234.56",
            "balance_amount": Decimal("1234.56"),
            "details": "06 2000",
            "number": "1234 5678",
        }
    }

    await ledger.save_snapshot(accounts)
    snapshots = await ledger.get_snapshots(days=1)

    assert len(snapshots) == 1
    latest = snapshots[0]["accounts"]["Smart Access"]
    assert latest["balance"] == "$1,234.56"
    assert latest["balance_amount"] == "1234.56"
    assert "created_at" in snapshots[0]


@pytest.mark.asyncio
async def test_lazy_initialize(tmp_path):
    """Test that operations open the database on first use."""
    ledger = TransferLedger(db_path=str(tmp_path / "lazy.db"), logger=MagicMock())
    try:
        assert await ledger.list_transfers() == []
    finally:
        await ledger.close()


@pytest.mark.asyncio
async def test_context_manager_persists(tmp_path):
    """Test that records survive reopening the database."""
    db_path = str(tmp_path / "ledger.db")

    async with TransferLedger(db_path, MagicMock()) as ledger:
        await ledger.record_transfer(
            cutoff=date(2026, 7, 1),
            bill_count=1,
            amount=Decimal("585"),
            payee="Appartment Weekly",
        )

    async with TransferLedger(db_path, MagicMock()) as ledger:
        assert await ledger.find_submitted(date(2026, 7, 1)) is not None
