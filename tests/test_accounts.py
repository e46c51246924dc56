"""
Test suite for account lifecycle services

Runs against in-memory storage (compensating writes) and SQLite
(transactions). Covers create-with-owner atomicity, update validation,
delete cascade, joint owners and money operations.
"""

import logging
import pytest
from decimal import Decimal

from clientbank.models import OwnershipType


@pytest.fixture
def owner_id(personal_service, make_personal):
    return personal_service.create(make_personal())


@pytest.fixture
def second_owner_id(personal_service, make_personal):
    return personal_service.create(make_personal(name="John Roe", tax_id="987-65-4321"))


class TestAccountCreation:
    """Test create-with-ownership"""

    def test_create_assigns_id_and_primary_owner(self, checking_service, registry, owner_id, make_checking):
        account = make_checking()
        account_id = checking_service.create(account, owner_id)

        assert account_id is not None
        assert account.account_id == account_id
        assert registry.owners_of(account_id) == {owner_id: OwnershipType.PRIMARY}
        assert checking_service.get_by_id(account_id).balance == Decimal("100.00")

    def test_invalid_account_is_not_written(self, savings_service, storage, owner_id, make_savings):
        account = make_savings()
        account.balance = Decimal("-10.00")

        assert savings_service.create(account, owner_id) is None
        assert storage.count("accounts") == 0
        assert account.account_id == 0

    def test_wrong_model_type_rejected(self, savings_service, storage, owner_id, make_checking):
        assert savings_service.create(make_checking(), owner_id) is None
        assert storage.count("accounts") == 0

    def test_failed_owner_assignment_undoes_creation(self, checking_service, storage, make_checking):
        """Test the account row is gone when linking the owner fails"""
        account = make_checking()
        account_id = checking_service.create(account, 9999)

        assert account_id is None
        assert account.account_id == 0
        assert storage.count("accounts") == 0
        assert storage.count("checking_accounts") == 0
        assert checking_service.get_all() == []

    def test_failed_creation_cannot_be_fetched(self, credit_service, make_credit_line):
        account = make_credit_line()
        assert credit_service.create(account, 9999) is None
        # The id the account would have had is not readable either
        assert credit_service.get_by_id(1) is None

    def test_creation_is_logged(self, checking_service, owner_id, make_checking, caplog):
        caplog.set_level(logging.INFO, logger="clientbank")
        account_id = checking_service.create(make_checking(), owner_id)

        created = [r for r in caplog.records if getattr(r, "action", None) == "create_account"]
        assert created
        assert created[-1].resource == f"account:{account_id}"

    def test_compensation_is_logged_without_transactions(self, memory_storage, test_config, make_checking, caplog):
        from clientbank.accounts import CheckingAccountService

        caplog.set_level(logging.INFO, logger="clientbank")
        service = CheckingAccountService(memory_storage, config=test_config)
        assert service.create(make_checking(), 9999) is None

        actions = [getattr(r, "action", None) for r in caplog.records]
        assert "compensate_create_account" in actions
        assert memory_storage.count("accounts") == 0


class TestAccountReads:
    """Test get_by_id and get_all"""

    def test_get_all_is_per_type(self, checking_service, savings_service, owner_id, make_checking, make_savings):
        checking_service.create(make_checking(), owner_id)
        checking_service.create(make_checking(account_name="Second Checking"), owner_id)
        savings_service.create(make_savings(), owner_id)

        assert [a.account_name for a in checking_service.get_all()] == [
            "Everyday Checking", "Second Checking",
        ]
        assert len(savings_service.get_all()) == 1

    def test_missing_account(self, checking_service):
        assert checking_service.get_by_id(4040) is None

    def test_corrupt_stored_account_is_skipped(self, savings_service, storage, owner_id, make_savings):
        """Test a stored value that no longer validates yields no model"""
        account_id = savings_service.create(make_savings(), owner_id)
        storage.update("accounts", {"account_id": account_id}, {"balance": "-50.00"})

        assert savings_service.get_by_id(account_id) is None
        assert savings_service.get_all() == []


class TestAccountUpdate:
    """Test update with re-validation"""

    def test_update_persists(self, checking_service, owner_id, make_checking):
        account = make_checking()
        account_id = checking_service.create(account, owner_id)

        account.account_name = "Bills Checking"
        account.overdraft_limit = Decimal("1000.00")
        updated = checking_service.update(account_id, account)

        assert updated.account_name == "Bills Checking"
        assert checking_service.get_by_id(account_id).overdraft_limit == Decimal("1000.00")

    def test_invalid_update_skips_write(self, credit_service, owner_id, make_credit_line):
        account = make_credit_line()
        account_id = credit_service.create(account, owner_id)

        account.balance = Decimal("10.00")
        assert credit_service.update(account_id, account) is None
        assert credit_service.get_by_id(account_id).balance == Decimal("0.00")

    def test_update_missing_account(self, checking_service, make_checking):
        assert checking_service.update(777, make_checking()) is None


class TestAccountDeletion:
    """Test delete with ownership cascade"""

    def test_delete_removes_owners_then_account(self, checking_service, registry, storage,
                                                owner_id, second_owner_id, make_checking):
        account_id = checking_service.create(make_checking(), owner_id)
        checking_service.add_joint_owner(account_id, second_owner_id)

        assert checking_service.delete(account_id)
        assert checking_service.get_by_id(account_id) is None
        assert registry.owners_of(account_id) == {}
        assert storage.count("accounts") == 0
        # Clients are untouched
        assert storage.count("clients") == 2

    def test_delete_ignores_balance(self, checking_service, owner_id, make_checking):
        account_id = checking_service.create(make_checking(balance=Decimal("900")), owner_id)
        assert checking_service.delete(account_id)

    def test_delete_missing_or_other_type(self, checking_service, savings_service, registry,
                                          owner_id, make_checking):
        account_id = checking_service.create(make_checking(), owner_id)

        assert not checking_service.delete(5555)
        assert not savings_service.delete(account_id)
        assert registry.owners_of(account_id) == {owner_id: OwnershipType.PRIMARY}


class TestJointOwners:
    """Test adding and removing co-owners"""

    def test_add_joint_owner(self, savings_service, owner_id, second_owner_id, make_savings):
        account_id = savings_service.create(make_savings(), owner_id)

        assert savings_service.add_joint_owner(account_id, second_owner_id)
        assert savings_service.owners_of(account_id) == {
            owner_id: OwnershipType.PRIMARY,
            second_owner_id: OwnershipType.JOINT,
        }

    def test_add_existing_owner_refused(self, savings_service, owner_id, make_savings):
        account_id = savings_service.create(make_savings(), owner_id)
        assert not savings_service.add_joint_owner(account_id, owner_id)

    def test_add_owner_to_missing_account_or_client(self, savings_service, owner_id, make_savings):
        account_id = savings_service.create(make_savings(), owner_id)
        assert not savings_service.add_joint_owner(3131, owner_id)
        assert not savings_service.add_joint_owner(account_id, 3131)

    def test_remove_owner_keeps_at_least_one(self, savings_service, owner_id, second_owner_id, make_savings):
        account_id = savings_service.create(make_savings(), owner_id)
        savings_service.add_joint_owner(account_id, second_owner_id)

        assert savings_service.remove_owner(account_id, owner_id)
        assert savings_service.owners_of(account_id) == {second_owner_id: OwnershipType.JOINT}
        assert not savings_service.remove_owner(account_id, second_owner_id)
        assert not savings_service.remove_owner(account_id, owner_id)


class TestCheckingMoneyOperations:
    """Test checking deposits and overdraft withdrawals through the service"""

    def test_overdraft_within_limit(self, checking_service, owner_id, make_checking):
        account = make_checking()
        checking_service.create(account, owner_id)

        assert checking_service.withdraw(account, Decimal("550"))
        assert account.balance == Decimal("-475.00")
        assert checking_service.get_by_id(account.account_id).balance == Decimal("-475.00")

    def test_overdraft_past_limit_changes_nothing(self, checking_service, owner_id, make_checking):
        account = make_checking()
        checking_service.create(account, owner_id)

        assert not checking_service.withdraw(account, Decimal("700"))
        assert account.balance == Decimal("100.00")
        assert checking_service.get_by_id(account.account_id).balance == Decimal("100.00")

    def test_deposit(self, checking_service, owner_id, make_checking):
        account = make_checking()
        checking_service.create(account, owner_id)

        assert checking_service.deposit(account, Decimal("50.255"))
        assert checking_service.get_by_id(account.account_id).balance == Decimal("150.26")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1"), "abc"])
    def test_bad_amounts_refused(self, checking_service, owner_id, make_checking, amount):
        account = make_checking()
        checking_service.create(account, owner_id)

        assert not checking_service.deposit(account, amount)
        assert account.balance == Decimal("100.00")

    def test_unsaved_account_not_persisted(self, checking_service, make_checking):
        account = make_checking()
        assert not checking_service.deposit(account, Decimal("10"))

    def test_persistence_failure_reports_divergence(self, checking_service, owner_id, make_checking):
        """Test a rule that succeeds but cannot be stored returns False with memory changed"""
        account = make_checking()
        checking_service.create(account, owner_id)
        checking_service.delete(account.account_id)

        assert not checking_service.deposit(account, Decimal("10"))
        assert account.balance == Decimal("110.00")


class TestSavingsMoneyOperations:
    """Test savings withdrawals, cap, interest and period reset"""

    def test_withdrawal_cap(self, savings_service, owner_id, make_savings):
        account = make_savings()
        savings_service.create(account, owner_id)

        for _ in range(3):
            assert savings_service.withdraw(account, Decimal("10"))
        assert not savings_service.withdraw(account, Decimal("10"))

        stored = savings_service.get_by_id(account.account_id)
        assert stored.balance == Decimal("970.00")
        assert stored.withdrawal_counter == 3

    def test_insufficient_funds(self, savings_service, owner_id, make_savings):
        account = make_savings(balance=Decimal("20"))
        savings_service.create(account, owner_id)
        assert not savings_service.withdraw(account, Decimal("20.01"))
        assert account.withdrawal_counter == 0

    def test_reset_withdrawal_counter(self, savings_service, owner_id, make_savings):
        account = make_savings(withdrawal_counter=3)
        savings_service.create(account, owner_id)

        assert savings_service.reset_withdrawal_counter(account)
        assert savings_service.get_by_id(account.account_id).withdrawal_counter == 0
        assert savings_service.withdraw(account, Decimal("10"))

    def test_apply_interest(self, savings_service, owner_id, make_savings):
        account = make_savings()
        savings_service.create(account, owner_id)

        assert savings_service.apply_interest(account)
        assert savings_service.get_by_id(account.account_id).balance == Decimal("1050.00")

    def test_zero_interest_leaves_balance(self, savings_service, owner_id, make_savings):
        account = make_savings(interest_rate=Decimal("0"))
        savings_service.create(account, owner_id)

        assert savings_service.apply_interest(account)
        assert savings_service.get_by_id(account.account_id).balance == Decimal("1000.00")


class TestCreditLineMoneyOperations:
    """Test credit line charges, payments, minimum payment and limit increases"""

    def test_charge_to_limit(self, credit_service, owner_id, make_credit_line):
        account = make_credit_line()
        credit_service.create(account, owner_id)

        assert credit_service.charge_credit(account, Decimal("5000"))
        assert not credit_service.charge_credit(account, Decimal("0.01"))
        assert credit_service.get_by_id(account.account_id).balance == Decimal("-5000.00")

    def test_make_payment(self, credit_service, owner_id, make_credit_line):
        account = make_credit_line()
        credit_service.create(account, owner_id)

        assert credit_service.make_payment(account, Decimal("500"))
        assert credit_service.get_by_id(account.account_id).balance == Decimal("-500.00")
        assert not credit_service.make_payment(account, Decimal("-1"))

    def test_minimum_payment(self, credit_service, owner_id, make_credit_line):
        account = make_credit_line(balance=Decimal("-2000"))
        credit_service.create(account, owner_id)
        assert credit_service.minimum_payment(account) == Decimal("50.00")

    def test_increase_credit_limit_uses_config(self, credit_service, owner_id, make_credit_line):
        account = make_credit_line()
        credit_service.create(account, owner_id)

        assert credit_service.increase_credit_limit(account)
        assert credit_service.get_by_id(account.account_id).credit_limit == Decimal("5500.00")

    def test_stored_fraction_survives_updates(self, credit_service, storage, owner_id, make_credit_line):
        account = make_credit_line()
        credit_service.create(account, owner_id)
        credit_service.charge_credit(account, Decimal("100"))

        row = storage.find("credit_lines", {"account_id": account.account_id})[0]
        assert Decimal(row["min_payment_percentage"]) == Decimal("0.025")
        assert credit_service.get_by_id(account.account_id).min_payment_percentage == Decimal("2.5")
