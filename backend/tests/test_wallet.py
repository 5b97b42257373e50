import pytest

from conftest import NOW, build_service
from cosmicbeats.identity.roles import Role
from cosmicbeats.identity.service import UserDirectory
from cosmicbeats.wallet.service import LedgerWallet, WalletError


def test_credit_updates_balance(database):
    wallet = LedgerWallet(database)
    wallet.credit("alice", 30, idempotency_key="referral:1:validation", reason="referral_validation")
    wallet.credit("alice", 5, idempotency_key="action:1:referrer", reason="referral_action")

    assert wallet.get_balance("alice") == 35
    transactions = wallet.list_transactions("alice")
    assert [t.balance_after for t in transactions] == [30, 35]


def test_credit_replay_is_a_no_op(database):
    wallet = LedgerWallet(database)
    for _ in range(3):
        wallet.credit("alice", 50, idempotency_key="badge:alice:signal_beacon", reason="referral_badge")

    assert wallet.get_balance("alice") == 50
    assert len(wallet.list_transactions("alice")) == 1


def test_credit_rejects_non_positive_amounts(database):
    with pytest.raises(WalletError):
        LedgerWallet(database).credit("alice", 0, idempotency_key="k", reason="referral_action")


def test_unknown_user_has_zero_balance(database):
    assert LedgerWallet(database).get_balance("nobody") == 0


def test_user_directory_defaults_to_attendee(database):
    directory = UserDirectory(database)
    assert directory.role_of("unknown") == Role.ATTENDEE


def test_user_directory_set_role(database):
    directory = UserDirectory(database)
    directory.set_role("dj", Role.PERFORMER)
    assert directory.role_of("dj") == Role.PERFORMER

    directory.set_role("dj", "venue")
    assert directory.role_of("dj") == Role.VENUE


def test_service_with_database_backed_collaborators(database):
    directory = UserDirectory(database)
    directory.set_role("club", Role.VENUE)
    wallet = LedgerWallet(database)
    service = build_service(database, wallet, directory)

    referral = service.redeem_code("club", "bob", "CLUB1", now=NOW)
    service.complete_action(referral.id, "vote", now=NOW)
    service.validate_referral(referral.id, "club", now=NOW)

    assert wallet.get_balance("club") == 100 + 5
    assert wallet.get_balance("bob") == 5
