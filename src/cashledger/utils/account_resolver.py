"""Utility for resolving account references to accounts."""

from cashledger.domain.account import AccountService
from cashledger.domain.entities import Account
from cashledger.domain.errors import NotFoundError, ValidationError, account_not_found


def resolve_account(account_service: AccountService, account: str) -> Account:
    """Resolve an account number or holder name to an account.

    The account number wins when both could match.

    Args:
        account_service: AccountService instance
        account: Account number or account holder name

    Returns:
        Account entity

    Raises:
        NotFoundError: If nothing matches
        ValidationError: If the name matches more than one account
    """
    account = str(account).strip()
    found = account_service.get_account_by_number(account)
    if found is not None:
        return found

    matches = [acc for acc in account_service.list_accounts() if acc.name.lower() == account.lower()]
    if len(matches) > 1:
        numbers = ", ".join(acc.account_number for acc in matches)
        raise ValidationError(f"Name '{account}' matches several accounts ({numbers}); use the account number")
    if matches:
        return matches[0]

    raise NotFoundError(account_not_found(account))
