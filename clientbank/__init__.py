"""
Client Bank

Client and account lifecycle services: personal and business clients,
checking, savings and credit-line accounts, joint ownership, and guarded
deletion, over in-memory, SQLite or PostgreSQL storage.
"""

__version__ = "1.0.0"

from .bank import ClientBank, create_bank
from .errors import AccountDeletionBlocked, BlockingAccount
from .models import (
    PersonalClient, BusinessClient, CheckingAccount, SavingsAccount, CreditLine,
    BusinessType, ContactTitle, OwnershipType,
)


__all__ = [
    "ClientBank",
    "create_bank",
    "AccountDeletionBlocked",
    "BlockingAccount",
    "PersonalClient",
    "BusinessClient",
    "CheckingAccount",
    "SavingsAccount",
    "CreditLine",
    "BusinessType",
    "ContactTitle",
    "OwnershipType",
]
