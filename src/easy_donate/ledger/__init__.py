"""Persistent donation ledger."""

__all__ = [
    "Base",
    "DonationLedger",
    "DonationRow",
]

from .schema import Base, DonationRow
from .store import DonationLedger
