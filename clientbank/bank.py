"""
Client Bank Facade

Wires one storage handle, the ownership registry, and the five lifecycle
services together. The storage handle is shared by everything built here
and closed when the bank is closed.
"""

import logging
from typing import Optional

from .accounts import CheckingAccountService, SavingsAccountService, CreditLineService
from .clients import PersonalClientService, BusinessClientService
from .config import ClientBankConfig, get_config
from .logging_config import setup_logging
from .ownership import OwnershipRegistry
from .storage import StorageInterface, create_storage


logger = logging.getLogger(__name__)


class ClientBank:
    """Entry point for client and account lifecycle operations"""

    def __init__(self, storage: StorageInterface, config: Optional[ClientBankConfig] = None):
        self.config = config or get_config()
        self.storage = storage
        self.storage.create_schema()

        self.ownership = OwnershipRegistry(storage)
        self.personal_clients = PersonalClientService(storage, self.ownership)
        self.business_clients = BusinessClientService(storage, self.ownership)
        self.checking = CheckingAccountService(storage, self.ownership, self.config)
        self.savings = SavingsAccountService(storage, self.ownership, self.config)
        self.credit_lines = CreditLineService(storage, self.ownership, self.config)

    @classmethod
    def from_config(cls, config: Optional[ClientBankConfig] = None) -> 'ClientBank':
        config = config or get_config()
        storage = create_storage(config.database_url, sqlite_foreign_keys=config.sqlite_foreign_keys)
        logger.info(f"Opened {type(storage).__name__} for {config.database_url}")
        return cls(storage, config)

    def close(self) -> None:
        self.storage.close()

    def __enter__(self) -> 'ClientBank':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def create_bank(database_url: Optional[str] = None) -> ClientBank:
    """
    Create a ClientBank backed by the given database URL, with logging
    configured from the environment.

    Args:
        database_url: memory://, sqlite:///path or postgresql://...;
            defaults to the configured database_url

    Returns:
        ClientBank instance with its schema in place
    """
    config = get_config()
    if database_url is not None:
        config = config.model_copy(update={"database_url": database_url})
    setup_logging(config.log_level, config.log_format, config.log_file)
    return ClientBank.from_config(config)
