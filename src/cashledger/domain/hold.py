"""Hold ledger for deposited checks.

A held check is deposited without raising the balance. Its funds are made
available later, either all at once (:meth:`HoldLedger.release_full`) or a
budget at a time across every check carrying a tag, oldest deposit first
(:meth:`HoldLedger.release_partial`). ``cleared_amount`` tracks how much of
each check has been released so far.

The deposit entry of a held check stays ``pending`` for good; the money
reaches the balance only through the ``hold_release`` credits.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from decimal import Decimal
from typing import Iterable, Optional

from cashledger.database.base import Database
from cashledger.domain.entities import CheckStatus, EntryKind, EntryStatus, HeldCheck
from cashledger.domain.errors import NotFoundError, ValidationError, check_not_found
from cashledger.domain.locking import AccountLocks
from cashledger.domain.requests import ReleaseResult

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class HoldPolicy:
    """When to suggest holding a depositor's checks."""

    enabled: bool = False
    bounce_threshold: int = 3
    period_days: int = 90


class HoldLedger:
    """Service for placing and releasing holds on deposited checks."""

    def __init__(self, db: Database, locks: AccountLocks, policy: Optional[HoldPolicy] = None):
        """Initialize hold ledger.

        Args:
            db: Database instance
            locks: Per-account lock registry
            policy: Hold recommendation policy (disabled by default)
        """
        self.db = db
        self.locks = locks
        self.policy = policy or HoldPolicy()

    def _require_check(self, check_id: int, for_update: bool = False) -> HeldCheck:
        check = self.db.get_check_in(check_id, for_update=for_update)
        if check is None:
            raise NotFoundError(check_not_found(check_id))
        return check

    def _is_awaiting_funds(self, check: HeldCheck) -> bool:
        """True for a pending check whose deposit has not reached the balance."""
        if check.status != CheckStatus.PENDING or check.cleared_amount > 0 or check.entry_id is None:
            return False
        entry = self.db.get_entry(check.entry_id)
        return entry is not None and entry.status == EntryStatus.PENDING

    def place(self, check_id: int, tags: Iterable[str] = ()) -> HeldCheck:
        """Put a deposited check on hold and record its tags.

        Tags are added to any the check already carries.

        Raises:
            NotFoundError: If the check does not exist
            ValidationError: If the check's funds were already made available
        """
        check = self._require_check(check_id)
        if check.status != CheckStatus.HOLD and not self._is_awaiting_funds(check):
            raise ValidationError(
                f"Check {check_id} is {check.status.value} and its funds are not held back; cannot place a hold"
            )

        new_tags = {tag.strip() for tag in tags if tag and tag.strip()}
        with self.locks.hold(check.account_number), self.db.unit_of_work():
            self.db.update_check_in(check_id, status=CheckStatus.HOLD.value)
            self.db.set_check_tags(check_id, set(check.tags) | new_tags)

        logger.info("hold placed check=%s account=%s tags=%s", check_id, check.account_number, ",".join(sorted(new_tags)))
        return self._require_check(check_id)

    def _release(self, check: HeldCheck, amount: Decimal, transaction_ref: str, tag: Optional[str]) -> HeldCheck:
        cleared = check.cleared_amount + amount
        fully_cleared = cleared >= check.amount
        details = {"hold_release": {"check_id": check.id, "amount": str(amount)}}
        if tag is not None:
            details["hold_release"]["tag"] = tag
        self.db.create_entry(
            account_number=check.account_number,
            kind=EntryKind.CREDIT.value,
            amount=amount,
            memo=f"Hold release for check {check.check_number or check.id}",
            transaction_ref=transaction_ref,
            audit_details=details,
        )
        self.db.adjust_balance(check.account_number, amount)
        self.db.update_check_in(
            check.id,
            cleared_amount=check.amount if fully_cleared else cleared,
            status=CheckStatus.CLEARED.value if fully_cleared else None,
        )
        return self._require_check(check.id)

    def release_full(self, check_ids: Iterable[int]) -> ReleaseResult:
        """Release the whole remaining amount of each check.

        Checks that are not on hold, or already fully released, are skipped, so
        releasing twice credits nothing the second time.

        Raises:
            NotFoundError: If any check does not exist
        """
        check_ids = list(dict.fromkeys(check_ids))
        checks = [self._require_check(check_id) for check_id in check_ids]
        accounts = {c.account_number for c in checks}
        transaction_ref = str(uuid.uuid4())

        credited: dict[str, Decimal] = {}
        released: list[HeldCheck] = []
        with self.locks.hold(*accounts), self.db.unit_of_work():
            for check_id in check_ids:
                check = self._require_check(check_id, for_update=True)
                if check.status != CheckStatus.HOLD or check.remaining <= 0:
                    continue
                amount = check.remaining
                released.append(self._release(check, amount, transaction_ref, tag=None))
                credited[check.account_number] = credited.get(check.account_number, ZERO) + amount

        if released:
            logger.info(
                "hold released in full checks=%s total=%s",
                ",".join(str(c.id) for c in released),
                sum(credited.values(), ZERO),
            )
        return ReleaseResult(credited_accounts=credited, checks=tuple(released))

    def release_partial(self, tag: str, amount: Decimal) -> ReleaseResult:
        """Release up to ``amount`` across the held checks carrying ``tag``.

        Checks are drained oldest deposit first (ties broken by ID). A check
        that is only partly released stays on hold.

        Args:
            tag: Hold tag
            amount: Release budget, greater than zero

        Returns:
            ReleaseResult with the amount credited per account

        Raises:
            ValidationError: If amount is not positive
        """
        if amount <= 0:
            raise ValidationError(f"Release amount must be greater than zero (got {amount})")

        candidates = self.db.list_checks_in(tag=tag, statuses=[CheckStatus.HOLD.value])
        accounts = {c.account_number for c in candidates}
        transaction_ref = str(uuid.uuid4())

        credited: dict[str, Decimal] = {}
        released: list[HeldCheck] = []
        budget = amount
        with self.locks.hold(*accounts), self.db.unit_of_work():
            for check in self.db.list_checks_in(tag=tag, statuses=[CheckStatus.HOLD.value]):
                if budget <= 0:
                    break
                if check.account_number not in accounts or check.remaining <= 0:
                    continue
                portion = min(budget, check.remaining)
                released.append(self._release(check, portion, transaction_ref, tag=tag))
                credited[check.account_number] = credited.get(check.account_number, ZERO) + portion
                budget -= portion

        logger.info("hold released tag=%s requested=%s released=%s", tag, amount, amount - budget)
        return ReleaseResult(credited_accounts=credited, checks=tuple(released))

    def release_all_for_tag(self, tag: str) -> ReleaseResult:
        """Release every held check carrying ``tag``."""
        total = sum((c.remaining for c in self.held_checks(tag=tag)), ZERO)
        if total <= 0:
            return ReleaseResult()
        return self.release_partial(tag, total)

    def held_checks(self, tag: Optional[str] = None, account_number: Optional[str] = None) -> list[HeldCheck]:
        """Checks currently on hold, oldest deposit first."""
        return self.db.list_checks_in(tag=tag, account_number=account_number, statuses=[CheckStatus.HOLD.value])

    def list_tags(self) -> list[str]:
        return self.db.list_hold_tags()

    def should_recommend_hold(self, account_number: str, now: Optional[datetime] = None) -> bool:
        """Whether the account's recent bounced checks warrant holding new deposits."""
        if not self.policy.enabled:
            return False
        now = now or datetime.now(UTC)
        since = now - timedelta(days=self.policy.period_days)
        bounced = self.db.count_bounced_checks(account_number, since=since)
        return bounced >= self.policy.bounce_threshold
