from datetime import datetime, timedelta

from cosmicbeats.identity.roles import Role
from cosmicbeats.referral.catalog import (
    REFERRAL_BADGES,
    ActionType,
    RewardKind,
    action_reward,
    actions_for_role,
    get_badge,
    rewards_for_role,
)
from cosmicbeats.referral.sharing import build_share_links
from cosmicbeats.referral.windows import days_remaining, is_expired, month_bounds, week_bounds, week_start


def test_flat_rewards_per_role():
    assert rewards_for_role(Role.PERFORMER).beatcoins_per_referral == 50
    assert rewards_for_role(Role.ATTENDEE).beatcoins_per_referral == 30
    assert rewards_for_role(Role.OTHER).beatcoins_per_referral == 40
    assert rewards_for_role(Role.VENUE).beatcoins_per_referral == 100


def test_milestone_ladders():
    venue = rewards_for_role(Role.VENUE).milestones
    assert [m.count for m in venue] == [3, 10, 20]
    assert venue[0].reward.kind == RewardKind.FEATURE

    attendee = rewards_for_role("attendee").milestones
    assert attendee[0].reward.kind == RewardKind.BEATCOINS
    assert attendee[0].reward.value == 200
    assert attendee[0].is_completed(5)
    assert not attendee[0].is_completed(4)


def test_badges_are_ordered_by_requirement():
    assert [(b.requirement, b.reward) for b in REFERRAL_BADGES] == [
        (3, 50),
        (10, 100),
        (20, 200),
        (50, 500),
        (100, 1000),
    ]
    assert get_badge("signal_beacon").name == "Signal Beacon"
    assert get_badge("missing") is None


def test_action_sets_depend_on_referred_role():
    assert len(actions_for_role(Role.ATTENDEE)) == 4
    assert len(actions_for_role(Role.PERFORMER)) == 5
    assert ActionType.UPLOAD_SESSION in actions_for_role(Role.PERFORMER)
    assert ActionType.UPLOAD_SESSION not in actions_for_role(Role.VENUE)


def test_action_rewards():
    assert action_reward(ActionType.PROFILE_COMPLETION) == 10
    assert action_reward("scan_qr") == 5
    assert action_reward(ActionType.VOTE) == 5
    assert action_reward(ActionType.MATCH) == 3
    assert action_reward(ActionType.UPLOAD_SESSION) == 10


def test_week_starts_on_monday_midnight():
    sunday_night = datetime(2026, 3, 8, 23, 59, 59)
    assert week_start(sunday_night) == datetime(2026, 3, 2)
    assert week_start(datetime(2026, 3, 9)) == datetime(2026, 3, 9)
    assert week_bounds(datetime(2026, 3, 4, 12)) == (datetime(2026, 3, 2), datetime(2026, 3, 9))


def test_month_bounds_roll_over_the_year():
    assert month_bounds(datetime(2026, 12, 15, 8)) == (datetime(2026, 12, 1), datetime(2027, 1, 1))
    assert month_bounds(datetime(2026, 3, 4)) == (datetime(2026, 3, 1), datetime(2026, 4, 1))


def test_expiration_boundary():
    created = datetime(2026, 3, 4, 12)
    deadline = created + timedelta(days=7)
    assert is_expired(created, deadline, 7)
    assert not is_expired(created, deadline - timedelta(seconds=1), 7)


def test_days_remaining_rounds_up_and_floors_at_zero():
    created = datetime(2026, 3, 4, 12)
    assert days_remaining(created, created, 7) == 7
    assert days_remaining(created, created + timedelta(days=1, hours=1), 7) == 6
    assert days_remaining(created, created + timedelta(days=6, hours=23), 7) == 1
    assert days_remaining(created, created + timedelta(days=9), 7) == 0


def test_share_links():
    links = build_share_links("DJ-NOVA", "https://cosmicbeats.app/")
    assert links["default"] == "https://cosmicbeats.app/register?ref=DJ-NOVA"
    assert links["instagram"] == links["default"]
    assert links["whatsapp"].startswith("https://wa.me/?text=")
    assert "DJ-NOVA" in links["telegram"]
    assert set(links) == {"default", "instagram", "tiktok", "whatsapp", "twitter", "telegram"}
