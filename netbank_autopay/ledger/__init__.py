"""Local record of submitted transfers and account balance snapshots."""

from netbank_autopay.ledger.sqlite_ledger import TransferLedger

__all__ = ["TransferLedger"]
