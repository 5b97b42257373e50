"""
Pytest configuration and shared fixtures for the referral engine tests.
"""
import threading
from datetime import datetime, timedelta

import pytest
from sqlalchemy import update

from cosmicbeats.identity.roles import Role
from cosmicbeats.referral.models import Referral, ReferralStatus
from cosmicbeats.referral.policy import manual_only
from cosmicbeats.referral.service import ReferralService
from cosmicbeats.storage.db import Database

# Wednesday; the week runs from Monday 2026-03-02 to Monday 2026-03-09
NOW = datetime(2026, 3, 4, 12, 0, 0)


class FakeWallet:
    """Wallet double that records credits and deduplicates by key."""

    def __init__(self):
        self.credits: list[dict] = []
        self.calls = 0
        self.failing = False
        self._keys: set[str] = set()
        self._lock = threading.Lock()

    def credit(self, user_id: str, amount: int, *, idempotency_key: str, reason: str) -> None:
        with self._lock:
            self.calls += 1
            if self.failing:
                raise ConnectionError("wallet unavailable")
            if idempotency_key in self._keys:
                return
            self._keys.add(idempotency_key)
            self.credits.append(
                {"user_id": user_id, "amount": amount, "key": idempotency_key, "reason": reason}
            )

    def balance(self, user_id: str) -> int:
        return sum(c["amount"] for c in self.credits if c["user_id"] == user_id)

    def reasons(self, user_id: str) -> list[str]:
        return [c["reason"] for c in self.credits if c["user_id"] == user_id]


class FakeRoles:
    """Role provider double; unknown users are attendees."""

    def __init__(self, roles: dict[str, Role] | None = None):
        self.roles = dict(roles or {})

    def role_of(self, user_id: str) -> Role:
        return self.roles.get(user_id, Role.ATTENDEE)


@pytest.fixture
def now():
    """Fixed datetime for deterministic tests"""
    return NOW


@pytest.fixture
def database(tmp_path):
    """Fresh SQLite database per test."""
    db = Database(f"sqlite:///{tmp_path / 'referrals.db'}")
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture
def wallet():
    return FakeWallet()


@pytest.fixture
def roles():
    return FakeRoles()


def build_service(database, wallet, roles, **overrides) -> ReferralService:
    options = {
        "weekly_limit": 5,
        "expiration_days": 7,
        "policy": manual_only,
        "credit_max_attempts": 2,
        "credit_backoff_seconds": 0,
        "share_base_url": "https://cosmicbeats.app",
    }
    options.update(overrides)
    return ReferralService(database, wallet, roles, **options)


@pytest.fixture
def service(database, wallet, roles):
    return build_service(database, wallet, roles)


def create_referrals(service, referrer_id: str, count: int, start: datetime = NOW) -> list[Referral]:
    """Create `count` referrals for one referrer, five per week from `start`."""
    referrals = []
    for i in range(count):
        created_at = start + timedelta(weeks=i // 5, minutes=i % 5)
        referrals.append(
            service.redeem_code(referrer_id, f"{referrer_id}-friend-{i}", f"{referrer_id.upper()}1", now=created_at)
        )
    return referrals


def force_valid(database, referral_ids: list[str], completed_at: datetime = NOW) -> None:
    """Mark referrals valid behind the engine's back, without any side effect."""
    with database.session() as session:
        session.execute(
            update(Referral)
            .where(Referral.id.in_(referral_ids))
            .values(status=ReferralStatus.VALID, completed_at=completed_at, beatcoins_rewarded=0)
        )
