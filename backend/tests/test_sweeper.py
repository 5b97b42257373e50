from datetime import timedelta

from conftest import NOW
from cosmicbeats.referral.models import ReferralStatus


def test_sweep_boundary(service, wallet):
    referral = service.redeem_code("alice", "bob", "ALICE1", now=NOW)

    assert service.sweep(now=NOW + timedelta(days=7) - timedelta(seconds=1)) == 0
    assert service.get_referral(referral.id).status == ReferralStatus.PENDING

    assert service.sweep(now=NOW + timedelta(days=7)) == 1
    expired = service.get_referral(referral.id)
    assert expired.status == ReferralStatus.INVALID
    assert expired.invalid_reason == "expired"
    assert wallet.credits == []


def test_sweep_leaves_terminal_referrals_alone(service):
    valid = service.redeem_code("alice", "bob", "ALICE1", now=NOW)
    pending = service.redeem_code("alice", "carol", "ALICE1", now=NOW)
    service.validate_referral(valid.id, "alice", now=NOW)

    assert service.sweep(now=NOW + timedelta(days=30)) == 1
    assert service.get_referral(valid.id).status == ReferralStatus.VALID
    assert service.get_referral(pending.id).status == ReferralStatus.INVALID


def test_sweep_is_idempotent(service):
    service.redeem_code("alice", "bob", "ALICE1", now=NOW)
    later = NOW + timedelta(days=8)

    assert service.sweep(now=later) == 1
    assert service.sweep(now=later) == 0


def test_due_lists_only_closed_windows(service):
    old = service.redeem_code("alice", "bob", "ALICE1", now=NOW)
    service.redeem_code("alice", "carol", "ALICE1", now=NOW + timedelta(days=2))

    assert service.sweeper.due(NOW + timedelta(days=7)) == [old.id]
