"""Pytest configuration and fixtures."""

import logging
from decimal import Decimal

import pytest

from clientbank.accounts import CheckingAccountService, SavingsAccountService, CreditLineService
from clientbank.clients import PersonalClientService, BusinessClientService
from clientbank.config import ClientBankConfig
from clientbank.models import (
    PersonalClient, BusinessClient, CheckingAccount, SavingsAccount, CreditLine,
)
from clientbank.ownership import OwnershipRegistry
from clientbank.storage import InMemoryStorage, SQLiteStorage


@pytest.fixture(autouse=True)
def reset_clientbank_logger():
    """Undo setup_logging() so caplog keeps seeing clientbank records."""
    yield
    logger = logging.getLogger("clientbank")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    """
    Storage with the schema in place. Memory has no transactions and
    exercises compensation; SQLite exercises rollback.
    """
    if request.param == "memory":
        backend = InMemoryStorage()
    else:
        backend = SQLiteStorage(tmp_path / "clientbank_test.db")
    backend.create_schema()
    yield backend
    backend.close()


@pytest.fixture
def memory_storage():
    backend = InMemoryStorage()
    backend.create_schema()
    return backend


@pytest.fixture
def sqlite_storage(tmp_path):
    backend = SQLiteStorage(tmp_path / "clientbank_sqlite.db")
    backend.create_schema()
    yield backend
    backend.close()


@pytest.fixture
def test_config() -> ClientBankConfig:
    return ClientBankConfig(database_url="memory://", credit_limit_increase_percent="10")


@pytest.fixture
def registry(storage) -> OwnershipRegistry:
    return OwnershipRegistry(storage)


@pytest.fixture
def personal_service(storage, registry) -> PersonalClientService:
    return PersonalClientService(storage, registry)


@pytest.fixture
def business_service(storage, registry) -> BusinessClientService:
    return BusinessClientService(storage, registry)


@pytest.fixture
def checking_service(storage, registry, test_config) -> CheckingAccountService:
    return CheckingAccountService(storage, registry, test_config)


@pytest.fixture
def savings_service(storage, registry, test_config) -> SavingsAccountService:
    return SavingsAccountService(storage, registry, test_config)


@pytest.fixture
def credit_service(storage, registry, test_config) -> CreditLineService:
    return CreditLineService(storage, registry, test_config)


@pytest.fixture
def make_personal():
    """Factory for valid personal clients; keyword arguments override fields."""
    def factory(**overrides) -> PersonalClient:
        fields = dict(
            name="Jane Doe",
            address="123 Main St",
            phone_number="555-123-4567",
            tax_id="123-45-6789",
            credit_score=720,
            yearly_income=Decimal("85000"),
            total_debt=Decimal("1200"),
        )
        fields.update(overrides)
        return PersonalClient(**fields)
    return factory


@pytest.fixture
def make_business():
    """Factory for valid business clients; keyword arguments override fields."""
    def factory(**overrides) -> BusinessClient:
        fields = dict(
            name="Acme Widgets LLC",
            address="500 Industrial Way",
            phone_number="(555) 987-6543",
            ein="12-3456789",
            business_type="LLC",
            contact_name="Pat Smith",
            contact_title="CEO",
            total_asset_value=Decimal("250000"),
            annual_revenue=Decimal("1000000"),
            annual_profit=Decimal("150000"),
        )
        fields.update(overrides)
        return BusinessClient(**fields)
    return factory


@pytest.fixture
def make_checking():
    def factory(**overrides) -> CheckingAccount:
        fields = dict(
            account_name="Everyday Checking",
            balance=Decimal("100.00"),
            overdraft_fee=Decimal("25.00"),
            overdraft_limit=Decimal("500.00"),
        )
        fields.update(overrides)
        return CheckingAccount(**fields)
    return factory


@pytest.fixture
def make_savings():
    def factory(**overrides) -> SavingsAccount:
        fields = dict(
            account_name="Rainy Day Fund",
            balance=Decimal("1000.00"),
            interest_rate=Decimal("5"),
            withdrawal_limit=3,
        )
        fields.update(overrides)
        return SavingsAccount(**fields)
    return factory


@pytest.fixture
def make_credit_line():
    def factory(**overrides) -> CreditLine:
        fields = dict(
            account_name="Business Credit",
            balance=Decimal("0.00"),
            credit_limit=Decimal("5000.00"),
            interest_rate=Decimal("18.5"),
            min_payment_percentage=Decimal("2.5"),
        )
        fields.update(overrides)
        return CreditLine(**fields)
    return factory


@pytest.fixture
def insert_client(storage):
    """Insert a bare clients row and return its id (enough to satisfy foreign keys)."""
    def factory(name: str = "Row Client") -> int:
        return storage.insert("clients", {
            "client_type": "PERSONAL",
            "name": name,
            "address": "1 Test Ave",
            "phone_number": "(555) 000-0000",
        })
    return factory


@pytest.fixture
def insert_account(storage):
    """Insert a bare accounts row and return its id."""
    def factory(balance: str = "0.00", account_type: str = "CHECKING") -> int:
        return storage.insert("accounts", {
            "account_type": account_type,
            "account_name": "Row Account",
            "balance": balance,
        })
    return factory
