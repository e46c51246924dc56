"""
Error types for the client and account services.

Read misses are reported as ``None`` or empty collections, not exceptions.
Money rule failures and persistence failures are exceptions internally;
the lifecycle services turn them into ``None``/``False`` results. The one
exception that reaches callers on purpose is ``AccountDeletionBlocked``.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List


class ClientBankError(Exception):
    """Base exception for all client bank errors."""


class InvalidInput(ClientBankError, ValueError):
    """Raised when a model or field fails validation. No write is attempted."""


class MoneyRuleError(ClientBankError):
    """Raised when an account-type money rule rejects an operation."""


class InvalidAmount(MoneyRuleError):
    """Raised when an amount is zero, negative, or otherwise not allowed."""


class LimitExceeded(MoneyRuleError):
    """Raised when an operation would push a balance past its overdraft or credit floor."""


class LimitReached(MoneyRuleError):
    """Raised when a savings account has used all withdrawals for the period."""


class InsufficientFunds(MoneyRuleError):
    """Raised when a savings withdrawal would take the balance below zero."""


class PersistenceError(ClientBankError):
    """Raised when an underlying read or write did not succeed."""


class OwnershipConflict(PersistenceError):
    """Raised when assigning an owner fails after the account row was written."""


@dataclass(frozen=True)
class BlockingAccount:
    """An account whose outstanding balance prevents a client deletion."""
    account_id: int
    account_type: str
    balance: Decimal

    def describe(self) -> str:
        return f"Account {self.account_id} ({self.account_type}): balance ${self.balance:,.2f}"


class AccountDeletionBlocked(ClientBankError):
    """
    Raised when a client cannot be deleted because accounts they solely own
    still carry a balance.
    """

    def __init__(self, client_id: int, blocking_accounts: List[BlockingAccount]):
        self.client_id = client_id
        self.blocking_accounts = list(blocking_accounts)
        super().__init__(
            f"Client {client_id} has {len(self.blocking_accounts)} account(s) "
            f"with outstanding balances"
        )

    @property
    def account_details(self) -> str:
        return "\n".join(account.describe() for account in self.blocking_accounts)

    def __str__(self) -> str:
        details = self.account_details
        base = super().__str__()
        return f"{base}\n{details}" if details else base
