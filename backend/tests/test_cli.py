import pytest
from typer.testing import CliRunner

from cosmicbeats import cli
from cosmicbeats.identity.roles import Role
from cosmicbeats.identity.service import UserDirectory
from cosmicbeats.referral.models import CreditStatus, RewardCredit
from cosmicbeats.wallet.service import LedgerWallet

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_database(database, monkeypatch):
    monkeypatch.setattr(cli, "_database", lambda: database)
    return database


def test_init(cli_database):
    result = runner.invoke(cli.app, ["init"])
    assert result.exit_code == 0
    assert "Database initialized" in result.output


def test_set_role(cli_database):
    result = runner.invoke(cli.app, ["set-role", "dj", "performer"])

    assert result.exit_code == 0
    assert UserDirectory(cli_database).role_of("dj") == Role.PERFORMER


def test_set_role_rejects_unknown_role():
    result = runner.invoke(cli.app, ["set-role", "dj", "astronaut"])
    assert result.exit_code != 0


def test_stats(cli_database):
    runner.invoke(cli.app, ["set-role", "club", "venue"])
    result = runner.invoke(cli.app, ["stats", "club"])

    assert result.exit_code == 0
    assert "venue" in result.output
    assert "No badges yet" in result.output


def test_sweep():
    result = runner.invoke(cli.app, ["sweep"])
    assert result.exit_code == 0
    assert "Expired 0 referral(s)" in result.output


def test_leaderboard():
    assert "No validated referrals" in runner.invoke(cli.app, ["leaderboard"]).output
    assert runner.invoke(cli.app, ["leaderboard", "--period", "yearly"]).exit_code == 1


def test_credits_retry_settles_failed_credits(cli_database):
    with cli_database.session() as session:
        session.add(
            RewardCredit(
                idempotency_key="referral:abc:validation",
                user_id="alice",
                amount=30,
                reason="referral_validation",
                status=CreditStatus.FAILED,
                attempts=3,
            )
        )

    result = runner.invoke(cli.app, ["credits-retry"])

    assert result.exit_code == 0
    assert "Applied 1 credit(s)" in result.output
    assert LedgerWallet(cli_database).get_balance("alice") == 30
