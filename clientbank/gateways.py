"""
Persistence Gateways Module

One gateway per client/account variant. Every entity is stored as a party
row (``clients`` or ``accounts``) plus a type-specific child row keyed by
the party's generated id. Gateways keep the two rows consistent: inside a
transaction where the storage has one, by compensating writes where it
does not.

Storage failures surface as PersistenceError; a missing row is ``None``.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, NamedTuple, Optional

from .errors import InvalidInput, PersistenceError
from .logging_config import log_action
from .money import to_money
from .records import (
    PersonalClientRecord, BusinessClientRecord,
    CheckingAccountRecord, SavingsAccountRecord, CreditLineRecord,
    format_tax_id, format_ein,
)
from .storage import StorageInterface, StorageError


logger = logging.getLogger(__name__)


class PartyGateway:
    """
    Create/read/update/delete for one party-plus-child record type.

    Subclasses set the tables, the key column and the record class.
    """

    parent_table: str = ""
    child_table: str = ""
    key_column: str = ""
    record_class: type = None

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    @property
    def entity(self) -> str:
        return self.record_class.kind.lower()

    def _to_record(self, row: Dict[str, Any]):
        try:
            return self.record_class.from_row(row)
        except InvalidInput as e:
            logger.warning(f"Skipping corrupt {self.entity} row {row.get(self.key_column)}: {e}")
            return None

    def create(self, record) -> int:
        """
        Insert the party row, then the child row under the generated key.
        Sets and returns the new id.
        """
        parent_row, child_row = record.to_rows()
        new_id = None
        try:
            with self.storage.atomic():
                new_id = self.storage.insert(self.parent_table, parent_row)
                child_row[self.key_column] = new_id
                try:
                    self.storage.insert(self.child_table, child_row)
                except StorageError:
                    if not self.storage.supports_transactions:
                        self._compensate_create(new_id)
                    raise
        except StorageError as e:
            logger.warning(f"Failed to create {self.entity}: {e}")
            raise PersistenceError(f"Failed to create {self.entity}: {e}") from e

        setattr(record, self.key_column, new_id)
        logger.debug(f"Created {self.entity} {new_id}")
        return new_id

    def _compensate_create(self, new_id: int) -> None:
        log_action(
            logger, "error",
            f"Child insert failed, removing orphaned {self.parent_table} row {new_id}",
            action="compensate_create",
            resource=f"{self.parent_table}:{new_id}",
        )
        try:
            self.storage.delete(self.parent_table, {self.key_column: new_id})
        except StorageError as e:
            logger.error(f"Compensation failed for {self.parent_table} row {new_id}: {e}")

    def find_by(self, **filters) -> List[Any]:
        """All records whose joined row matches every filter"""
        try:
            rows = self.storage.find_joined(
                self.parent_table, self.child_table, self.key_column, filters
            )
        except StorageError as e:
            raise PersistenceError(f"Failed to read {self.entity}: {e}") from e
        records = (self._to_record(row) for row in rows)
        return [record for record in records if record is not None]

    def get_by_id(self, entity_id: int):
        """Record with this id, or None"""
        matches = self.find_by(**{self.key_column: entity_id})
        return matches[0] if matches else None

    def get_all(self) -> List[Any]:
        return self.find_by()

    def update_by_id(self, record):
        """
        Overwrite both rows of an existing record and return the stored result.
        Raises PersistenceError if the record does not exist or a write fails.
        """
        entity_id = getattr(record, self.key_column)
        key = {self.key_column: entity_id}
        parent_row, child_row = record.to_rows()

        previous = self.get_by_id(entity_id)
        if previous is None:
            raise PersistenceError(f"Cannot update {self.entity} {entity_id}: not found")

        try:
            with self.storage.atomic():
                self.storage.update(self.parent_table, key, parent_row)
                try:
                    self.storage.update(self.child_table, key, child_row)
                except StorageError:
                    if not self.storage.supports_transactions:
                        # Put the party row back the way it was
                        self.storage.update(self.parent_table, key, previous.to_rows()[0])
                    raise
        except StorageError as e:
            logger.warning(f"Failed to update {self.entity} {entity_id}: {e}")
            raise PersistenceError(f"Failed to update {self.entity} {entity_id}: {e}") from e

        updated = self.get_by_id(entity_id)
        if updated is None:
            raise PersistenceError(f"{self.entity} {entity_id} could not be read back after update")
        return updated

    def exists(self, entity_id: int) -> bool:
        """True if a row of this type (the child row) exists for the id"""
        try:
            return self.storage.count(self.child_table, {self.key_column: entity_id}) > 0
        except StorageError as e:
            raise PersistenceError(f"Failed to read {self.entity} {entity_id}: {e}") from e

    def delete_by_id(self, entity_id: int) -> bool:
        """
        Delete the child row, then the party row. False if there is no
        record of this type with the id.
        """
        key = {self.key_column: entity_id}
        try:
            with self.storage.atomic():
                child_rows = self.storage.find(self.child_table, key)
                if not child_rows:
                    return False
                self.storage.delete(self.child_table, key)
                try:
                    deleted = self.storage.delete(self.parent_table, key)
                except StorageError:
                    if not self.storage.supports_transactions:
                        for row in child_rows:
                            self.storage.insert(self.child_table, row)
                    raise
        except StorageError as e:
            logger.warning(f"Failed to delete {self.entity} {entity_id}: {e}")
            raise PersistenceError(f"Failed to delete {self.entity} {entity_id}: {e}") from e
        return deleted > 0


class ClientGateway(PartyGateway):
    parent_table = "clients"
    key_column = "customer_id"

    def get_by_name(self, name: str) -> List[Any]:
        return self.find_by(name=name)


class PersonalClientGateway(ClientGateway):
    child_table = "personal_clients"
    record_class = PersonalClientRecord

    def get_by_tax_id(self, tax_id: str) -> Optional[PersonalClientRecord]:
        matches = self.find_by(tax_id=format_tax_id(tax_id))
        return matches[0] if matches else None


class BusinessClientGateway(ClientGateway):
    child_table = "business_clients"
    record_class = BusinessClientRecord

    def get_by_ein(self, ein: str) -> Optional[BusinessClientRecord]:
        matches = self.find_by(ein=format_ein(ein))
        return matches[0] if matches else None


class AccountGateway(PartyGateway):
    parent_table = "accounts"
    key_column = "account_id"


class CheckingAccountGateway(AccountGateway):
    child_table = "checking_accounts"
    record_class = CheckingAccountRecord


class SavingsAccountGateway(AccountGateway):
    child_table = "savings_accounts"
    record_class = SavingsAccountRecord


class CreditLineGateway(AccountGateway):
    child_table = "credit_lines"
    record_class = CreditLineRecord


class AccountSummary(NamedTuple):
    account_id: int
    account_type: str
    balance: Decimal


class AccountDirectory:
    """Type-agnostic reads of the ``accounts`` party table"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def summary(self, account_id: int) -> Optional[AccountSummary]:
        try:
            rows = self.storage.find("accounts", {"account_id": account_id})
        except StorageError as e:
            raise PersistenceError(f"Failed to read account {account_id}: {e}") from e
        if not rows:
            return None
        row = rows[0]
        try:
            balance = to_money(row["balance"])
        except InvalidInput as e:
            raise PersistenceError(f"Unreadable balance on account {account_id}: {e}") from e
        return AccountSummary(int(row["account_id"]), row["account_type"], balance)
