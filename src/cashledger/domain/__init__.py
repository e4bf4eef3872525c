"""Domain layer for cashledger.

Only the database-free modules are re-exported here; services that take a
``Database`` are imported from their own modules.
"""

from cashledger.domain.entities import (
    Account,
    CheckOut,
    CheckStatus,
    EntryKind,
    EntryStatus,
    HeldCheck,
    LedgerEntry,
    Loan,
    LoanStatus,
)
from cashledger.domain.fee_schedule import FeeSchedule, fee_schedule_from_dict
from cashledger.domain.fees import FeeContext, FeeResult, compute_fee

__all__ = [
    "Account",
    "CheckOut",
    "CheckStatus",
    "EntryKind",
    "EntryStatus",
    "HeldCheck",
    "LedgerEntry",
    "Loan",
    "LoanStatus",
    "FeeSchedule",
    "fee_schedule_from_dict",
    "FeeContext",
    "FeeResult",
    "compute_fee",
]
