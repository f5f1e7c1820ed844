"""SQLite-backed ledger of transfers and balance snapshots.

This module provides a TransferLedger class that handles:
- One row per transfer attempt, keyed by the pay date cutoff it covers
- Lookup of an already submitted transfer so a cutoff is never paid twice
- Account balance snapshots taken on every run
"""

import asyncio
import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

import aiosqlite

STATUS_SUBMITTED = "submitted"
STATUS_DRY_RUN = "dry_run"


class TransferLedger:
    """SQLite ledger of transfers and account snapshots.

    Attributes:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str, logger: Any) -> None:
        self.db_path = db_path
        self.logger = logger
        self._lock = asyncio.Lock()
        self._db: aiosqlite.Connection | None = None

    async def __aenter__(self) -> "TransferLedger":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def initialize(self) -> None:
        """Open the database connection and create tables.

        Creates the following tables if they don't exist:
        - transfers: one row per transfer attempt
        - snapshots: account balances per run
        """
        async with self._lock:
            if self._db is not None:
                return

            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            self._db = await aiosqlite.connect(self.db_path)
            self._db.row_factory = aiosqlite.Row

            await self._db.execute(
                """
                CREATE TABLE IF NOT EXISTS transfers (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    cutoff TEXT NOT NULL,
                    bill_count INTEGER NOT NULL,
                    amount TEXT NOT NULL,
                    payee TEXT NOT NULL,
                    status TEXT NOT NULL,
                    screenshot TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            await self._db.execute(
                """
                CREATE TABLE IF NOT EXISTS snapshots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )

            await self._db.execute(
                "CREATE INDEX IF NOT EXISTS idx_transfers_cutoff ON transfers(cutoff)"
            )
            await self._db.execute(
                "CREATE INDEX IF NOT EXISTS idx_snapshots_created_at ON snapshots(created_at)"
            )

            await self._db.commit()

            self.logger.debug("ledger_initialized", db_path=self.db_path)

    async def record_transfer(
        self,
        cutoff: date,
        bill_count: int,
        amount: Decimal,
        payee: str,
        status: str = STATUS_SUBMITTED,
        screenshot: str | None = None,
    ) -> int:
        """Store a transfer attempt.

        Returns:
            Row id of the new record.
        """
        if not self._db:
            await self.initialize()

        async with self._lock:
            cursor = await self._db.execute(  # type: ignore
                """
                INSERT INTO transfers
                    (cutoff, bill_count, amount, payee, status, screenshot, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    _as_date(cutoff).isoformat(),
                    bill_count,
                    str(amount),
                    payee,
                    status,
                    screenshot,
                    _now().isoformat(),
                ),
            )
            await self._db.commit()  # type: ignore

            self.logger.debug(
                "transfer_recorded",
                transfer_id=cursor.lastrowid,
                cutoff=_as_date(cutoff).isoformat(),
                status=status,
            )
            return cursor.lastrowid

    async def find_submitted(self, cutoff: date) -> dict[str, Any] | None:
        """Return the latest submitted transfer covering ``cutoff``, if any."""
        if not self._db:
            await self.initialize()

        async with self._lock:
            cursor = await self._db.execute(  # type: ignore
                """
                SELECT * FROM transfers
                WHERE cutoff = ? AND status = ?
                ORDER BY id DESC
                LIMIT 1
                """,
                (_as_date(cutoff).isoformat(), STATUS_SUBMITTED),
            )
            row = await cursor.fetchone()

        return _transfer_from_row(row) if row else None

    async def list_transfers(self, limit: int = 20) -> list[dict[str, Any]]:
        """Return the most recent transfers, newest first."""
        if not self._db:
            await self.initialize()

        async with self._lock:
            cursor = await self._db.execute(  # type: ignore
                "SELECT * FROM transfers ORDER BY id DESC LIMIT ?",
                (limit,),
            )
            rows = await cursor.fetchall()

        return [_transfer_from_row(row) for row in rows]

    async def save_snapshot(self, accounts: dict[str, Any]) -> None:
        """Save the account balances read during a run.

        Args:
            accounts: Accounts mapping (will be JSON serialized).
        """
        if not self._db:
            await self.initialize()

        async with self._lock:
            await self._db.execute(  # type: ignore
                "INSERT INTO snapshots (data, created_at) VALUES (?, ?)",
                (json.dumps(accounts, default=str), _now().isoformat()),
            )
            await self._db.commit()  # type: ignore

            self.logger.debug("snapshot_saved", accounts=len(accounts))

    async def get_snapshots(self, days: int = 30) -> list[dict[str, Any]]:
        """Get snapshots taken within the last ``days`` days, newest first."""
        if not self._db:
            await self.initialize()

        since = _now() - timedelta(days=days)

        async with self._lock:
            cursor = await self._db.execute(  # type: ignore
                """
                SELECT data, created_at
                FROM snapshots
                WHERE created_at >= ?
                ORDER BY id DESC
                """,
                (since.isoformat(),),
            )
            rows = await cursor.fetchall()

        return [
            {"accounts": json.loads(row["data"]), "created_at": row["created_at"]}
            for row in rows
        ]

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            self.logger.debug("ledger_closed")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


def _transfer_from_row(row: aiosqlite.Row) -> dict[str, Any]:
    return {
        "id": row["id"],
        "cutoff": date.fromisoformat(row["cutoff"]),
        "bill_count": row["bill_count"],
        "amount": Decimal(row["amount"]),
        "payee": row["payee"],
        "status": row["status"],
        "screenshot": row["screenshot"],
        "created_at": row["created_at"],
    }
