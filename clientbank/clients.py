"""
Client Lifecycle Services

One service per client type (personal, business) built on the client
gateways and the ownership registry.

Deleting a client is guarded: if any account the client owns alone still
carries a balance, the deletion is refused with AccountDeletionBlocked and
nothing is written. Otherwise the client's ownership links and its own rows
are removed; the accounts stay, for the account services to delete.
"""

import logging
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from .errors import (
    AccountDeletionBlocked, BlockingAccount, InvalidInput, OwnershipConflict,
    PersistenceError,
)
from .gateways import (
    AccountDirectory, ClientGateway, PersonalClientGateway, BusinessClientGateway,
)
from .logging_config import log_action
from .models import Client, PersonalClient, BusinessClient, OwnershipType
from .money import is_effectively_zero
from .ownership import OwnershipRegistry
from .records import (
    personal_client_to_record, personal_client_from_record,
    business_client_to_record, business_client_from_record,
)
from .storage import StorageInterface


logger = logging.getLogger(__name__)

C = TypeVar('C', bound=Client)


class ClientService(Generic[C]):
    """Lifecycle operations shared by both client types"""

    model_class: type = Client
    gateway_class: type = ClientGateway
    to_record: Callable = None
    from_record: Callable = None

    def __init__(self, storage: StorageInterface,
                 registry: Optional[OwnershipRegistry] = None):
        self.storage = storage
        self.gateway = self.gateway_class(storage)
        self.registry = registry or OwnershipRegistry(storage)
        self.accounts = AccountDirectory(storage)

    @property
    def kind(self) -> str:
        return self.model_class.kind.value.lower()

    def _model_of(self, record) -> Optional[C]:
        if record is None:
            return None
        try:
            return type(self).from_record(record)
        except InvalidInput as e:
            logger.warning(f"Stored {self.kind} client {record.customer_id} is invalid: {e}")
            return None

    def _models_of(self, records) -> List[C]:
        models = (self._model_of(record) for record in records)
        return [model for model in models if model is not None]

    def _rejected(self, client, action: str) -> bool:
        if not isinstance(client, self.model_class):
            logger.warning(f"{action}: expected {self.model_class.__name__}, got {type(client).__name__}")
            return True
        errors = client.validation_errors()
        if errors:
            log_action(
                logger, "warning", f"Rejected invalid {self.kind} client",
                action=action, extra={"errors": errors},
            )
            return True
        return False

    def create(self, client: C) -> Optional[int]:
        """Store a new client; returns the generated customer id or None"""
        if self._rejected(client, "create_client"):
            return None
        try:
            customer_id = self.gateway.create(type(self).to_record(client))
        except PersistenceError as e:
            logger.warning(f"Failed to create {self.kind} client: {e}")
            return None

        client.customer_id = customer_id
        log_action(
            logger, "info", f"Created {self.kind} client {customer_id}",
            action="create_client", resource=f"client:{customer_id}",
        )
        return customer_id

    def get_by_id(self, customer_id: int) -> Optional[C]:
        try:
            return self._model_of(self.gateway.get_by_id(customer_id))
        except PersistenceError as e:
            logger.warning(f"Failed to read {self.kind} client {customer_id}: {e}")
            return None

    def get_by_name(self, name: str) -> List[C]:
        try:
            return self._models_of(self.gateway.get_by_name(name))
        except PersistenceError as e:
            logger.warning(f"Failed to search {self.kind} clients by name: {e}")
            return []

    def get_all(self) -> List[C]:
        try:
            return self._models_of(self.gateway.get_all())
        except PersistenceError as e:
            logger.warning(f"Failed to list {self.kind} clients: {e}")
            return []

    def update(self, customer_id: int, client: C) -> Optional[C]:
        """Validate and overwrite a stored client; returns the stored result or None"""
        if self._rejected(client, "update_client"):
            return None

        record = type(self).to_record(client)
        record.customer_id = customer_id
        try:
            updated = self.gateway.update_by_id(record)
        except PersistenceError as e:
            logger.warning(f"Failed to update {self.kind} client {customer_id}: {e}")
            return None
        client.customer_id = customer_id
        return self._model_of(updated)

    def accounts_of(self, customer_id: int) -> Dict[int, OwnershipType]:
        """account_id -> ownership type for every account linked to the client"""
        try:
            return self.registry.accounts_of(customer_id)
        except PersistenceError as e:
            logger.warning(f"Failed to read accounts of client {customer_id}: {e}")
            return {}

    def blocking_accounts(self, customer_id: int) -> List[BlockingAccount]:
        """
        Accounts the client owns alone whose balance is not effectively zero.
        Jointly owned accounts never block.
        """
        blocking = []
        for account_id in sorted(self.registry.accounts_of(customer_id)):
            if self.registry.is_joint(account_id):
                continue
            summary = self.accounts.summary(account_id)
            if summary is None or is_effectively_zero(summary.balance):
                continue
            blocking.append(BlockingAccount(summary.account_id, summary.account_type, summary.balance))
        return blocking

    def delete(self, customer_id: int) -> bool:
        """
        Delete a client and its ownership links, leaving its accounts in place.

        Raises AccountDeletionBlocked, without writing anything, when an
        account the client owns alone has an outstanding balance. Returns
        False if the client does not exist or storage fails.
        """
        try:
            with self.storage.atomic():
                if not self.gateway.exists(customer_id):
                    logger.warning(f"Cannot delete: {self.kind} client {customer_id} not found")
                    return False

                blocking = self.blocking_accounts(customer_id)
                if blocking:
                    raise AccountDeletionBlocked(customer_id, blocking)

                links = self.registry.accounts_of(customer_id)
                self.registry.remove_all_accounts_of(customer_id)
                try:
                    deleted = self.gateway.delete_by_id(customer_id)
                except PersistenceError:
                    if not self.storage.supports_transactions:
                        self._restore_links(customer_id, links)
                    raise
        except AccountDeletionBlocked as e:
            log_action(
                logger, "warning", f"Deletion of {self.kind} client {customer_id} blocked",
                action="delete_client", resource=f"client:{customer_id}",
                extra={"blocking_accounts": [a.account_id for a in e.blocking_accounts]},
            )
            raise
        except PersistenceError as e:
            logger.warning(f"Failed to delete {self.kind} client {customer_id}: {e}")
            return False

        if deleted:
            log_action(
                logger, "info", f"Deleted {self.kind} client {customer_id}",
                action="delete_client", resource=f"client:{customer_id}",
                extra={"unlinked_accounts": sorted(links)},
            )
        return deleted

    def _restore_links(self, customer_id: int, links: Dict[int, OwnershipType]) -> None:
        for account_id, ownership_type in links.items():
            try:
                self.registry.assign(customer_id, account_id, ownership_type)
            except OwnershipConflict as e:
                logger.error(f"Could not restore link of client {customer_id} to account {account_id}: {e}")


class PersonalClientService(ClientService[PersonalClient]):
    model_class = PersonalClient
    gateway_class = PersonalClientGateway
    to_record = staticmethod(personal_client_to_record)
    from_record = staticmethod(personal_client_from_record)

    def get_by_tax_id(self, tax_id: str) -> Optional[PersonalClient]:
        try:
            return self._model_of(self.gateway.get_by_tax_id(tax_id))
        except PersistenceError as e:
            logger.warning(f"Failed to look up personal client by tax id: {e}")
            return None

    def delete_by_tax_id(self, tax_id: str) -> bool:
        """Guarded delete of the client holding this tax id"""
        client = self.get_by_tax_id(tax_id)
        if client is None:
            return False
        return self.delete(client.customer_id)


class BusinessClientService(ClientService[BusinessClient]):
    model_class = BusinessClient
    gateway_class = BusinessClientGateway
    to_record = staticmethod(business_client_to_record)
    from_record = staticmethod(business_client_from_record)

    def get_by_ein(self, ein: str) -> Optional[BusinessClient]:
        try:
            return self._model_of(self.gateway.get_by_ein(ein))
        except PersistenceError as e:
            logger.warning(f"Failed to look up business client by EIN: {e}")
            return None

    def delete_by_ein(self, ein: str) -> bool:
        client = self.get_by_ein(ein)
        if client is None:
            return False
        return self.delete(client.customer_id)
