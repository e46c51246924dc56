"""
Account Lifecycle Services

One service per account type (checking, savings, credit line). A service
orchestrates the account gateway and the ownership registry:

- create stores the account and links its first owner as PRIMARY, all or
  nothing
- update re-validates before writing
- delete unlinks every owner, then removes the account
- money operations apply the account's rule in memory, then persist

Failures come back as ``None`` / ``False``; details go to the log.
"""

import logging
from decimal import Decimal
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from .config import ClientBankConfig, get_config
from .errors import InvalidInput, MoneyRuleError, OwnershipConflict, PersistenceError
from .gateways import (
    AccountGateway, CheckingAccountGateway, SavingsAccountGateway, CreditLineGateway,
)
from .logging_config import log_action
from .models import Account, CheckingAccount, SavingsAccount, CreditLine, OwnershipType
from .ownership import OwnershipRegistry
from .records import (
    checking_to_record, checking_from_record,
    savings_to_record, savings_from_record,
    credit_line_to_record, credit_line_from_record,
)
from .storage import StorageInterface


logger = logging.getLogger(__name__)

A = TypeVar('A', bound=Account)


class AccountService(Generic[A]):
    """Lifecycle operations shared by every account type"""

    model_class: type = Account
    gateway_class: type = AccountGateway
    to_record: Callable = None
    from_record: Callable = None

    def __init__(self, storage: StorageInterface,
                 registry: Optional[OwnershipRegistry] = None,
                 config: Optional[ClientBankConfig] = None):
        self.storage = storage
        self.gateway = self.gateway_class(storage)
        self.registry = registry or OwnershipRegistry(storage)
        self.config = config or get_config()

    @property
    def kind(self) -> str:
        return self.model_class.kind.value.lower()

    def _model_of(self, record) -> Optional[A]:
        try:
            return type(self).from_record(record)
        except InvalidInput as e:
            logger.warning(f"Stored {self.kind} account {record.account_id} is invalid: {e}")
            return None

    def _rejected(self, account, action: str) -> bool:
        """Log and report True if the account is the wrong type or fails validation"""
        if not isinstance(account, self.model_class):
            logger.warning(f"{action}: expected {self.model_class.__name__}, got {type(account).__name__}")
            return True
        errors = account.validation_errors()
        if errors:
            log_action(
                logger, "warning", f"Rejected invalid {self.kind} account",
                action=action, extra={"errors": errors},
            )
            return True
        return False

    def create(self, account: A, owner_client_id: int) -> Optional[int]:
        """
        Store a new account owned by ``owner_client_id`` (PRIMARY).

        Either both the account and its ownership link exist afterwards, or
        neither does. Returns the new account id, or None.
        """
        if self._rejected(account, "create_account"):
            return None

        record = type(self).to_record(account)
        account_id = None
        try:
            with self.storage.atomic():
                account_id = self.gateway.create(record)
                try:
                    self.registry.assign(owner_client_id, account_id, OwnershipType.PRIMARY)
                except OwnershipConflict:
                    if not self.storage.supports_transactions:
                        self._compensate_create(account_id)
                    raise
        except OwnershipConflict as e:
            log_action(
                logger, "error",
                f"Could not link {self.kind} account to client {owner_client_id}; creation undone",
                action="create_account", resource=f"client:{owner_client_id}",
                extra={"error": str(e)},
            )
            return None
        except PersistenceError as e:
            logger.warning(f"Failed to create {self.kind} account: {e}")
            return None

        account.account_id = account_id
        log_action(
            logger, "info", f"Created {self.kind} account {account_id}",
            action="create_account", resource=f"account:{account_id}",
            extra={"owner": owner_client_id, "balance": str(account.balance)},
        )
        return account_id

    def _compensate_create(self, account_id: int) -> None:
        log_action(
            logger, "error", f"Removing {self.kind} account {account_id} left without an owner",
            action="compensate_create_account", resource=f"account:{account_id}",
        )
        try:
            self.gateway.delete_by_id(account_id)
        except PersistenceError as e:
            logger.error(f"Compensation failed for account {account_id}: {e}")

    def get_by_id(self, account_id: int) -> Optional[A]:
        try:
            record = self.gateway.get_by_id(account_id)
        except PersistenceError as e:
            logger.warning(f"Failed to read {self.kind} account {account_id}: {e}")
            return None
        if record is None:
            return None
        return self._model_of(record)

    def get_all(self) -> List[A]:
        try:
            records = self.gateway.get_all()
        except PersistenceError as e:
            logger.warning(f"Failed to list {self.kind} accounts: {e}")
            return []
        models = (self._model_of(record) for record in records)
        return [model for model in models if model is not None]

    def update(self, account_id: int, account: A) -> Optional[A]:
        """Validate and overwrite a stored account; returns the stored result or None"""
        if self._rejected(account, "update_account"):
            return None

        record = type(self).to_record(account)
        record.account_id = account_id
        try:
            updated = self.gateway.update_by_id(record)
        except PersistenceError as e:
            logger.warning(f"Failed to update {self.kind} account {account_id}: {e}")
            return None
        account.account_id = account_id
        return self._model_of(updated)

    def delete(self, account_id: int) -> bool:
        """
        Remove every ownership link, then the account itself. No balance
        check is made here; client deletion guards balances.
        """
        try:
            with self.storage.atomic():
                if not self.gateway.exists(account_id):
                    logger.warning(f"Cannot delete: {self.kind} account {account_id} not found")
                    return False
                owners = self.registry.owners_of(account_id)
                self.registry.remove_all_owners_of(account_id)
                try:
                    deleted = self.gateway.delete_by_id(account_id)
                except PersistenceError:
                    if not self.storage.supports_transactions:
                        self._restore_owners(account_id, owners)
                    raise
        except PersistenceError as e:
            logger.warning(f"Failed to delete {self.kind} account {account_id}: {e}")
            return False

        if deleted:
            log_action(
                logger, "info", f"Deleted {self.kind} account {account_id}",
                action="delete_account", resource=f"account:{account_id}",
                extra={"former_owners": sorted(owners)},
            )
        return deleted

    def _restore_owners(self, account_id: int, owners: Dict[int, OwnershipType]) -> None:
        for client_id, ownership_type in owners.items():
            try:
                self.registry.assign(client_id, account_id, ownership_type)
            except OwnershipConflict as e:
                logger.error(f"Could not restore owner {client_id} of account {account_id}: {e}")

    # Ownership

    def owners_of(self, account_id: int) -> Dict[int, OwnershipType]:
        try:
            return self.registry.owners_of(account_id)
        except PersistenceError as e:
            logger.warning(f"Failed to read owners of account {account_id}: {e}")
            return {}

    def add_joint_owner(self, account_id: int, client_id: int) -> bool:
        """Link another client to an existing account as JOINT owner"""
        if self.get_by_id(account_id) is None:
            logger.warning(f"Cannot add owner: {self.kind} account {account_id} not found")
            return False
        try:
            if self.registry.owns(client_id, account_id):
                logger.warning(f"Client {client_id} already owns account {account_id}")
                return False
            self.registry.add_joint_owner(client_id, account_id)
        except PersistenceError as e:
            logger.warning(f"Failed to add client {client_id} to account {account_id}: {e}")
            return False
        log_action(
            logger, "info", f"Added joint owner {client_id} to account {account_id}",
            action="add_joint_owner", resource=f"account:{account_id}",
        )
        return True

    def remove_owner(self, account_id: int, client_id: int) -> bool:
        """Unlink a client from an account. An account always keeps at least one owner."""
        try:
            with self.storage.atomic():
                owners = self.registry.owners_of(account_id)
                if client_id not in owners:
                    logger.warning(f"Client {client_id} does not own account {account_id}")
                    return False
                if len(owners) <= 1:
                    logger.warning(f"Cannot remove the only owner of account {account_id}")
                    return False
                removed = self.registry.remove(client_id, account_id)
        except PersistenceError as e:
            logger.warning(f"Failed to remove client {client_id} from account {account_id}: {e}")
            return False
        if removed:
            log_action(
                logger, "info", f"Removed owner {client_id} from account {account_id}",
                action="remove_owner", resource=f"account:{account_id}",
            )
        return removed

    # Money operations

    def _apply(self, account: A, action: str, operation: Callable, *args) -> bool:
        """
        Run a money rule on the in-memory account, then persist it. A failed
        rule leaves the account untouched. A failed write leaves the account
        changed in memory but not in storage; callers should re-fetch.
        """
        if not isinstance(account, self.model_class):
            logger.warning(f"{action}: expected {self.model_class.__name__}, got {type(account).__name__}")
            return False
        try:
            operation(*args)
        except (MoneyRuleError, InvalidInput) as e:
            logger.info(f"{action} refused on {self.kind} account {account.account_id}: {e}")
            return False
        return self._persist(account, action)

    def _persist(self, account: A, action: str) -> bool:
        if not account.account_id:
            logger.warning(f"{action}: {self.kind} account has not been created yet")
            return False
        try:
            self.gateway.update_by_id(type(self).to_record(account))
        except PersistenceError as e:
            log_action(
                logger, "error",
                f"{action} applied in memory but not stored; account {account.account_id} must be re-read",
                action=action, resource=f"account:{account.account_id}",
                extra={"error": str(e)},
            )
            return False
        return True


class CheckingAccountService(AccountService[CheckingAccount]):
    model_class = CheckingAccount
    gateway_class = CheckingAccountGateway
    to_record = staticmethod(checking_to_record)
    from_record = staticmethod(checking_from_record)

    def deposit(self, account: CheckingAccount, amount) -> bool:
        return self._apply(account, "deposit", account.deposit, amount)

    def withdraw(self, account: CheckingAccount, amount) -> bool:
        """Withdraw, allowing overdraft down to the limit (fee charged when negative)"""
        return self._apply(account, "withdraw", account.withdraw, amount)


class SavingsAccountService(AccountService[SavingsAccount]):
    model_class = SavingsAccount
    gateway_class = SavingsAccountGateway
    to_record = staticmethod(savings_to_record)
    from_record = staticmethod(savings_from_record)

    def deposit(self, account: SavingsAccount, amount) -> bool:
        return self._apply(account, "deposit", account.deposit, amount)

    def withdraw(self, account: SavingsAccount, amount) -> bool:
        return self._apply(account, "withdraw", account.withdraw, amount)

    def apply_interest(self, account: SavingsAccount) -> bool:
        return self._apply(account, "apply_interest", account.apply_interest)

    def reset_withdrawal_counter(self, account: SavingsAccount) -> bool:
        """Start a new withdrawal period"""
        return self._apply(account, "reset_withdrawal_counter", account.reset_withdrawal_counter)


class CreditLineService(AccountService[CreditLine]):
    model_class = CreditLine
    gateway_class = CreditLineGateway
    to_record = staticmethod(credit_line_to_record)
    from_record = staticmethod(credit_line_from_record)

    def charge_credit(self, account: CreditLine, amount) -> bool:
        return self._apply(account, "charge_credit", account.charge, amount)

    def make_payment(self, account: CreditLine, amount) -> bool:
        return self._apply(account, "make_payment", account.make_payment, amount)

    def minimum_payment(self, account: CreditLine) -> Decimal:
        return account.minimum_payment()

    def increase_credit_limit(self, account: CreditLine) -> bool:
        """Raise the limit by the configured percentage and store it"""
        return self._apply(
            account, "increase_credit_limit", account.increase_credit_limit,
            self.config.credit_limit_increase_percent,
        )
