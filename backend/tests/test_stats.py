from datetime import timedelta

from conftest import NOW, create_referrals
from cosmicbeats.identity.roles import Role
from cosmicbeats.referral.catalog import ActionType


def test_stats_for_new_referrer(service):
    stats = service.get_stats("alice", now=NOW)

    assert stats.role == Role.ATTENDEE
    assert stats.total_referrals == 0
    assert stats.total_beatcoins_earned == 0
    assert stats.weekly_referrals == 0
    assert stats.weekly_referrals_limit == 5
    assert stats.badges == []
    assert stats.next_milestone.count == 5


def test_stats_totals(service):
    first = service.redeem_code("alice", "bob", "ALICE1", now=NOW)
    second = service.redeem_code("alice", "carol", "ALICE1", now=NOW + timedelta(minutes=5))
    third = service.redeem_code("alice", "dave", "ALICE1", now=NOW + timedelta(minutes=10))

    service.validate_referral(first.id, "alice", now=NOW + timedelta(hours=1))
    service.complete_action(second.id, ActionType.PROFILE_COMPLETION, now=NOW + timedelta(hours=2))
    service.invalidate(third.id, reason="abuse")

    stats = service.get_stats("alice", now=NOW + timedelta(days=1, hours=1))

    assert stats.total_referrals == 3
    assert stats.valid_referrals == 1
    assert stats.pending_referrals == 1
    assert stats.invalid_referrals == 1
    assert stats.total_beatcoins_earned == 30 + 10
    assert stats.weekly_referrals == 3

    details = {d.id: d for d in stats.referral_details}
    assert details[second.id].time_remaining_days == 6
    assert details[second.id].beatcoins_earned == 10
    assert details[second.id].actions[0].completed
    assert details[first.id].beatcoins_earned == 30


def test_weekly_usage_counts_only_this_week(service):
    create_referrals(service, "alice", 3)
    assert service.get_stats("alice", now=NOW).weekly_referrals == 3
    assert service.get_stats("alice", now=NOW + timedelta(weeks=1)).weekly_referrals == 0


def test_stats_include_badges(service):
    for referral in create_referrals(service, "alice", 3):
        service.validate_referral(referral.id, "alice", now=NOW + timedelta(hours=1))

    stats = service.get_stats("alice", now=NOW + timedelta(hours=2))
    assert [b.id for b in stats.badges] == ["signal_beacon"]


def test_leaderboard_ranks_by_validations_in_period(service):
    for referrer, count in (("carol", 2), ("alice", 2), ("bob", 1)):
        for referral in create_referrals(service, referrer, count):
            service.validate_referral(referral.id, referrer, now=NOW + timedelta(hours=1))

    weekly = service.get_leaderboard("weekly", now=NOW + timedelta(days=1))
    assert [(e.rank, e.referrer_id, e.valid_referrals) for e in weekly] == [
        (1, "alice", 2),
        (2, "carol", 2),
        (3, "bob", 1),
    ]
    assert len(service.get_leaderboard("weekly", now=NOW, limit=1)) == 1


def test_monthly_leaderboard_spans_weeks(service):
    early = service.redeem_code("alice", "bob", "ALICE1", now=NOW)
    late = service.redeem_code("alice", "carol", "ALICE1", now=NOW)
    service.validate_referral(early.id, "alice", now=NOW)
    service.validate_referral(late.id, "alice", now=NOW + timedelta(days=6))

    later = NOW + timedelta(days=7)
    assert service.get_leaderboard("weekly", now=later)[0].valid_referrals == 1
    assert service.get_leaderboard("monthly", now=later)[0].valid_referrals == 2


def test_referral_detail(service):
    referral = service.redeem_code("alice", "bob", "ALICE1", now=NOW)
    detail = service.get_referral_detail(referral.id, now=NOW + timedelta(days=8))

    assert detail.time_remaining_days == 0
    assert detail.status.value == "pending"
    assert len(detail.actions) == 4
