import threading
from datetime import timedelta

import pytest

from conftest import NOW, build_service, create_referrals
from cosmicbeats.identity.roles import Role
from cosmicbeats.referral import SYSTEM_ACTOR
from cosmicbeats.referral.exceptions import AlreadyProcessed, Expired, NotAuthorized, NotFound, QuotaExceeded, SelfReferral
from cosmicbeats.referral.models import ReferralStatus


def test_redeem_creates_pending_referral(service):
    referral = service.redeem_code("alice", "bob", " ALICE1 ", now=NOW)

    assert referral.status == ReferralStatus.PENDING
    assert referral.referrer_id == "alice"
    assert referral.referred_id == "bob"
    assert referral.code == "ALICE1"
    assert referral.created_at == NOW
    assert referral.referred_role == Role.ATTENDEE
    assert [a.type.value for a in referral.actions] == ["profile_completion", "scan_qr", "vote", "match"]
    assert all(not a.completed and a.dual_reward for a in referral.actions)


def test_performer_gets_upload_session_action(service, roles):
    roles.roles["dj"] = Role.PERFORMER
    referral = service.redeem_code("alice", "dj", "ALICE1", now=NOW)

    assert referral.referred_role == Role.PERFORMER
    assert len(referral.actions) == 5
    assert referral.actions[-1].type.value == "upload_session"


def test_explicit_role_wins_over_lookup(service):
    referral = service.redeem_code("alice", "club", "ALICE1", referred_role=Role.VENUE, now=NOW)
    assert referral.referred_role == Role.VENUE
    assert len(referral.actions) == 4


def test_self_referral_rejected(service):
    with pytest.raises(SelfReferral):
        service.redeem_code("alice", "alice", "ALICE1", now=NOW)
    assert service.list_referrals("alice") == []


def test_weekly_quota(service):
    create_referrals(service, "alice", 5)

    with pytest.raises(QuotaExceeded) as exc_info:
        service.redeem_code("alice", "one-too-many", "ALICE1", now=NOW + timedelta(hours=1))

    assert exc_info.value.limit == 5
    assert len(service.list_referrals("alice")) == 5


def test_quota_resets_next_monday(service):
    create_referrals(service, "alice", 5)

    next_monday = NOW.replace(day=9, hour=0)
    referral = service.redeem_code("alice", "next-week", "ALICE1", now=next_monday)

    assert referral.status == ReferralStatus.PENDING
    assert service.ledger.weekly_count("alice", next_monday) == 1


def test_quota_is_per_referrer(service):
    create_referrals(service, "alice", 5)
    assert service.redeem_code("carol", "dave", "CAROL1", now=NOW).referrer_id == "carol"


def test_concurrent_redeems_never_exceed_quota(service):
    errors = []
    created = []

    def redeem(i):
        try:
            created.append(service.redeem_code("alice", f"user-{i}", "ALICE1", now=NOW))
        except QuotaExceeded as e:
            errors.append(e)

    threads = [threading.Thread(target=redeem, args=(i,)) for i in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(created) == 5
    assert len(errors) == 5
    assert service.ledger.weekly_count("alice", NOW) == 5


def test_validate_credits_referrer_once(service, wallet):
    referral = service.redeem_code("alice", "bob", "ALICE1", now=NOW)

    validated = service.validate_referral(referral.id, "alice", now=NOW + timedelta(days=1))
    assert validated.status == ReferralStatus.VALID
    assert validated.completed_at == NOW + timedelta(days=1)
    assert validated.beatcoins_rewarded == 30

    with pytest.raises(AlreadyProcessed):
        service.validate_referral(referral.id, "alice", now=NOW + timedelta(days=2))

    assert wallet.balance("alice") == 30
    assert wallet.reasons("alice") == ["referral_validation"]
    assert wallet.balance("bob") == 0


def test_flat_reward_follows_referrer_role(service, wallet, roles):
    roles.roles["club"] = Role.VENUE
    referral = service.redeem_code("club", "bob", "CLUB1", now=NOW)
    service.validate_referral(referral.id, "club", now=NOW)
    assert wallet.balance("club") == 100


def test_validate_requires_referrer_or_system(service):
    referral = service.redeem_code("alice", "bob", "ALICE1", now=NOW)

    with pytest.raises(NotAuthorized):
        service.validate_referral(referral.id, "bob", now=NOW)
    with pytest.raises(NotAuthorized):
        service.validate_referral(referral.id, "mallory", now=NOW)

    assert service.validate_referral(referral.id, SYSTEM_ACTOR, now=NOW).status == ReferralStatus.VALID


def test_validate_unknown_referral(service):
    with pytest.raises(NotFound):
        service.validate_referral("does-not-exist", "alice", now=NOW)


def test_validate_after_deadline_expires(service, wallet):
    referral = service.redeem_code("alice", "bob", "ALICE1", now=NOW)

    with pytest.raises(Expired):
        service.validate_referral(referral.id, "alice", now=NOW + timedelta(days=7))

    assert service.get_referral(referral.id).status == ReferralStatus.INVALID
    assert wallet.credits == []


def test_invalidate_is_terminal(service, wallet):
    referral = service.redeem_code("alice", "bob", "ALICE1", now=NOW)
    invalidated = service.invalidate(referral.id, reason="abuse")

    assert invalidated.status == ReferralStatus.INVALID
    assert invalidated.invalid_reason == "abuse"
    with pytest.raises(AlreadyProcessed):
        service.validate_referral(referral.id, "alice", now=NOW)
    assert wallet.credits == []


def test_concurrent_validations_credit_once(service, wallet):
    referral = service.redeem_code("alice", "bob", "ALICE1", now=NOW)
    outcomes = []

    def validate():
        try:
            service.validate_referral(referral.id, "alice", now=NOW)
            outcomes.append("ok")
        except AlreadyProcessed:
            outcomes.append("already")

    threads = [threading.Thread(target=validate) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["already"] * 5 + ["ok"]
    assert wallet.balance("alice") == 30


def test_zero_weekly_limit_blocks_every_redeem(database, wallet, roles):
    service = build_service(database, wallet, roles, weekly_limit=0)

    assert service.quota.limit == 0
    with pytest.raises(QuotaExceeded):
        service.redeem_code("alice", "bob", "ALICE1", now=NOW)
