"""
Tests for the client <-> account ownership registry
"""

import pytest

from clientbank.errors import OwnershipConflict
from clientbank.models import OwnershipType


class TestOwnershipRegistry:
    """Test assignment, queries and removal of ownership links"""

    def test_assign_and_query_both_directions(self, registry, insert_client, insert_account):
        alice, bob = insert_client("Alice Row"), insert_client("Bob Row")
        checking, savings = insert_account(), insert_account(account_type="SAVINGS")

        registry.assign(alice, checking, OwnershipType.PRIMARY)
        registry.assign(alice, savings)
        registry.add_joint_owner(bob, checking)

        assert registry.accounts_of(alice) == {
            checking: OwnershipType.PRIMARY,
            savings: OwnershipType.PRIMARY,
        }
        assert registry.accounts_of(bob) == {checking: OwnershipType.JOINT}
        assert registry.owners_of(checking) == {
            alice: OwnershipType.PRIMARY,
            bob: OwnershipType.JOINT,
        }
        assert registry.owns(bob, checking)
        assert not registry.owns(bob, savings)

    def test_unknown_ids_give_empty_results(self, registry):
        assert registry.accounts_of(12345) == {}
        assert registry.owners_of(12345) == {}
        assert not registry.is_joint(12345)

    def test_is_joint_counts_rows_not_tags(self, registry, insert_client, insert_account):
        """Test two PRIMARY rows still make an account joint"""
        a, b = insert_client(), insert_client()
        account = insert_account()

        registry.assign(a, account, OwnershipType.PRIMARY)
        assert not registry.is_joint(account)

        registry.assign(b, account, OwnershipType.PRIMARY)
        assert registry.is_joint(account)

    def test_all_joint_accounts(self, registry, insert_client, insert_account):
        a, b, c = insert_client(), insert_client(), insert_client()
        solo, pair, trio = insert_account(), insert_account(), insert_account()

        registry.assign(a, solo)
        for client in (a, b):
            registry.assign(client, pair)
        for client in (a, b, c):
            registry.assign(client, trio)

        assert registry.all_joint_accounts() == [pair, trio]

    def test_duplicate_assignment_is_a_conflict(self, registry, insert_client, insert_account):
        client, account = insert_client(), insert_account()
        registry.assign(client, account)
        with pytest.raises(OwnershipConflict):
            registry.assign(client, account, OwnershipType.JOINT)

    def test_assign_to_missing_client_is_a_conflict(self, registry, insert_account):
        with pytest.raises(OwnershipConflict):
            registry.assign(9999, insert_account())

    def test_assign_to_missing_account_is_a_conflict(self, registry, insert_client):
        with pytest.raises(OwnershipConflict):
            registry.assign(insert_client(), 9999)

    def test_remove_single_link(self, registry, insert_client, insert_account):
        a, b = insert_client(), insert_client()
        account = insert_account()
        registry.assign(a, account)
        registry.add_joint_owner(b, account)

        assert registry.remove(b, account)
        assert not registry.remove(b, account)
        assert registry.owners_of(account) == {a: OwnershipType.PRIMARY}

    def test_remove_all_owners_of(self, registry, insert_client, insert_account):
        a, b = insert_client(), insert_client()
        account, other = insert_account(), insert_account()
        registry.assign(a, account)
        registry.add_joint_owner(b, account)
        registry.assign(a, other)

        assert registry.remove_all_owners_of(account) == 2
        assert registry.owners_of(account) == {}
        assert registry.accounts_of(a) == {other: OwnershipType.PRIMARY}

    def test_remove_all_accounts_of(self, registry, insert_client, insert_account):
        a, b = insert_client(), insert_client()
        account, other = insert_account(), insert_account()
        registry.assign(a, account)
        registry.assign(a, other)
        registry.add_joint_owner(b, account)

        assert registry.remove_all_accounts_of(a) == 2
        assert registry.accounts_of(a) == {}
        assert registry.owners_of(account) == {b: OwnershipType.JOINT}
