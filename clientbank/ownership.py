"""
Ownership Registry Module

Many-to-many links between clients and accounts, stored in the
``client_accounts`` junction table. An account is joint when more than one
client row references it; the PRIMARY/JOINT tag on each row is advisory
and never re-derived.
"""

import logging
from collections import Counter
from typing import Dict, List

from .errors import OwnershipConflict, PersistenceError
from .models import OwnershipType
from .storage import StorageInterface, StorageError


logger = logging.getLogger(__name__)


class OwnershipRegistry:
    """Client <-> account ownership links"""

    table = "client_accounts"

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def _find(self, **filters) -> List[Dict]:
        try:
            return self.storage.find(self.table, filters)
        except StorageError as e:
            raise PersistenceError(f"Failed to read account ownership: {e}") from e

    def _delete(self, **filters) -> int:
        try:
            return self.storage.delete(self.table, filters)
        except StorageError as e:
            raise PersistenceError(f"Failed to remove account ownership: {e}") from e

    def assign(self, client_id: int, account_id: int,
               ownership_type: OwnershipType = OwnershipType.PRIMARY) -> None:
        """
        Link a client to an account. Assigning the same pair twice, or
        naming a client or account that does not exist, raises OwnershipConflict.
        """
        ownership_type = OwnershipType(ownership_type)
        try:
            self.storage.insert(self.table, {
                'customer_id': client_id,
                'account_id': account_id,
                'ownership_type': ownership_type.value,
            })
        except StorageError as e:
            logger.warning(
                f"Failed to assign account {account_id} to client {client_id} "
                f"as {ownership_type.value}: {e}"
            )
            raise OwnershipConflict(
                f"Cannot assign account {account_id} to client {client_id}: {e}"
            ) from e
        logger.debug(f"Assigned account {account_id} to client {client_id} as {ownership_type.value}")

    def add_joint_owner(self, client_id: int, account_id: int) -> None:
        self.assign(client_id, account_id, OwnershipType.JOINT)

    def accounts_of(self, client_id: int) -> Dict[int, OwnershipType]:
        """account_id -> ownership type for every account the client is linked to"""
        return {
            row['account_id']: OwnershipType(row['ownership_type'])
            for row in self._find(customer_id=client_id)
        }

    def owners_of(self, account_id: int) -> Dict[int, OwnershipType]:
        """client_id -> ownership type for every owner of the account"""
        return {
            row['customer_id']: OwnershipType(row['ownership_type'])
            for row in self._find(account_id=account_id)
        }

    def owns(self, client_id: int, account_id: int) -> bool:
        return bool(self._find(customer_id=client_id, account_id=account_id))

    def is_joint(self, account_id: int) -> bool:
        """True iff more than one client is linked to the account"""
        try:
            return self.storage.count(self.table, {'account_id': account_id}) > 1
        except StorageError as e:
            raise PersistenceError(f"Failed to read account ownership: {e}") from e

    def all_joint_accounts(self) -> List[int]:
        owners = Counter(row['account_id'] for row in self._find())
        return sorted(account_id for account_id, count in owners.items() if count > 1)

    def remove(self, client_id: int, account_id: int) -> bool:
        """Unlink one client from one account; False if they were not linked"""
        return self._delete(customer_id=client_id, account_id=account_id) > 0

    def remove_all_owners_of(self, account_id: int) -> int:
        """Unlink every client from an account. Returns the number of links removed."""
        return self._delete(account_id=account_id)

    def remove_all_accounts_of(self, client_id: int) -> int:
        """Unlink a client from every account. Returns the number of links removed."""
        return self._delete(customer_id=client_id)
