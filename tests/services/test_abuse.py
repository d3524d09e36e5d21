"""Tests for the read-only rate-limit evaluation."""

from tests.helpers import BROWSER_UA, TEST_IP, count_entries, seed_entries
from webchat_guard.models import Organization
from webchat_guard.services.abuse import AbuseGuardService, check_rate_limit


def _check(db_session, clock, org_id, **kwargs):
    kwargs.setdefault("user_agent", BROWSER_UA)
    return check_rate_limit(db_session, TEST_IP, org_id, clock=clock, **kwargs)


def test_fresh_client_is_allowed(db_session, free_org, clock) -> None:
    decision = _check(
        db_session,
        clock,
        free_org.id,
        device_fingerprint="device-1",
        session_token="wc_1",
        message="hi",
    )
    assert decision.allowed is True
    assert decision.risk_score == 0
    assert decision.reason == "allowed"
    assert decision.requires_challenge is None


def test_missing_user_agent_adds_low_risk(db_session, free_org, clock) -> None:
    decision = _check(db_session, clock, free_org.id, user_agent="   ")
    assert decision.allowed is True
    assert decision.risk_score == 5
    assert decision.reason == "allowed"


def test_unknown_organization_is_a_bare_deny(db_session, clock) -> None:
    decision = _check(db_session, clock, 9999)
    assert decision.model_dump(exclude_none=True) == {"allowed": False}


def test_check_does_not_write_to_the_ledger(db_session, free_org, clock) -> None:
    _check(db_session, clock, free_org.id)
    assert count_entries(db_session) == 0


def test_soft_ip_quota_triggers_challenge(db_session, free_org, clock) -> None:
    seed_entries(db_session, 30, timestamp=clock.now - 30_000, organization_id=free_org.id)

    decision = _check(db_session, clock, free_org.id)

    assert decision.allowed is True
    assert decision.requires_challenge is True
    assert decision.challenge_reason == "adaptive_throttle"
    assert decision.challenge_type == "proof_of_human"
    assert decision.risk_score == 20
    assert decision.retry_after_ms == 30_000


def test_below_soft_quota_is_allowed(db_session, free_org, clock) -> None:
    seed_entries(db_session, 29, timestamp=clock.now - 30_000, organization_id=free_org.id)
    assert _check(db_session, clock, free_org.id).requires_challenge is None


def test_twice_hard_quota_blocks(db_session, free_org, clock) -> None:
    seed_entries(db_session, 180, timestamp=clock.now - 30_000, organization_id=free_org.id)

    decision = _check(db_session, clock, free_org.id)

    assert decision.allowed is False
    assert decision.reason == "velocity_block"
    assert decision.retry_after_ms == 30_000


def test_hard_quota_once_still_only_challenges(db_session, free_org, clock) -> None:
    seed_entries(db_session, 179, timestamp=clock.now - 30_000, organization_id=free_org.id)
    decision = _check(db_session, clock, free_org.id)
    assert decision.allowed is True
    assert decision.requires_challenge is True


def test_block_beats_challenge_when_both_apply(db_session, free_org, clock) -> None:
    seed_entries(
        db_session,
        180,
        timestamp=clock.now - 30_000,
        organization_id=free_org.id,
        session_token="wc_1",
        message="buy now",
    )
    decision = _check(db_session, clock, free_org.id, session_token="wc_1", message="buy now")
    assert decision.allowed is False
    assert decision.requires_challenge is None


def test_repeated_message_adds_risk(db_session, free_org, clock) -> None:
    seed_entries(
        db_session,
        4,
        timestamp=clock.now - 30_000,
        organization_id=free_org.id,
        message="Hello   there",
    )
    decision = _check(db_session, clock, free_org.id, message="hello there")
    assert decision.allowed is True
    assert decision.risk_score == 30
    assert decision.requires_challenge is None


def test_repeated_message_reason_has_priority_over_burst(db_session, free_org, clock) -> None:
    burst_ts = clock.now - 5_000
    seed_entries(db_session, 4, timestamp=burst_ts, organization_id=free_org.id, message="spam")
    seed_entries(db_session, 8, timestamp=burst_ts, organization_id=free_org.id)

    decision = _check(db_session, clock, free_org.id, message="SPAM")

    assert decision.requires_challenge is True
    assert decision.challenge_reason == "repeated_message_pattern"
    assert decision.risk_score == 65


def test_repeats_on_other_channels_do_not_count(db_session, free_org, clock) -> None:
    seed_entries(
        db_session,
        4,
        timestamp=clock.now - 30_000,
        organization_id=free_org.id,
        channel="telegram",
        message="spam",
    )
    decision = _check(db_session, clock, free_org.id, message="spam")
    assert decision.risk_score == 0


def test_burst_reason(db_session, free_org, clock) -> None:
    seed_entries(db_session, 12, timestamp=clock.now - 5_000, organization_id=free_org.id)
    seed_entries(db_session, 18, timestamp=clock.now - 30_000, organization_id=free_org.id)
    decision = _check(db_session, clock, free_org.id)
    assert decision.challenge_reason == "burst_velocity"
    assert decision.risk_score == 55


def test_device_counts_span_ips_and_block_at_double(db_session, free_org, clock) -> None:
    seed_entries(
        db_session,
        48,
        timestamp=clock.now - 30_000,
        organization_id=free_org.id,
        ip_address="198.51.100.9",
        device_fingerprint="device-1",
    )
    decision = _check(db_session, clock, free_org.id, device_fingerprint="DEVICE-1")
    assert decision.allowed is False
    # No same-IP entries exist to time the retry from.
    assert decision.retry_after_ms is None


def test_session_soft_quota_challenges(db_session, free_org, clock) -> None:
    seed_entries(
        db_session,
        18,
        timestamp=clock.now - 30_000,
        organization_id=free_org.id,
        ip_address="198.51.100.9",
        session_token="wc_1",
    )
    decision = _check(db_session, clock, free_org.id, session_token=" wc_1 ")
    assert decision.requires_challenge is True
    assert decision.risk_score == 10


def test_channels_are_counted_separately(db_session, free_org, clock) -> None:
    seed_entries(
        db_session,
        30,
        timestamp=clock.now - 30_000,
        organization_id=free_org.id,
        channel="telegram",
    )
    assert _check(db_session, clock, free_org.id, channel="webchat").requires_challenge is None
    assert _check(db_session, clock, free_org.id, channel="telegram").requires_challenge is True


def test_entries_outside_the_day_window_are_ignored(db_session, free_org, clock) -> None:
    seed_entries(
        db_session, 1800, timestamp=clock.now - 25 * 3_600_000, organization_id=free_org.id
    )
    assert _check(db_session, clock, free_org.id).allowed is True


def test_daily_quota_blocks_with_day_retry(db_session, free_org, clock) -> None:
    oldest = clock.now - 2 * 3_600_000
    seed_entries(db_session, 1800, timestamp=oldest, organization_id=free_org.id)

    decision = _check(db_session, clock, free_org.id)

    assert decision.allowed is False
    assert decision.retry_after_ms == 22 * 3_600_000


def test_paid_tier_doubles_quotas(db_session, paid_org, clock) -> None:
    seed_entries(db_session, 30, timestamp=clock.now - 30_000, organization_id=paid_org.id)
    assert _check(db_session, clock, paid_org.id).requires_challenge is None


def test_tier_override_wins_over_plan(db_session, clock) -> None:
    org = Organization(name="Downgraded", plan="pro", tier="free")
    db_session.add(org)
    db_session.flush()
    seed_entries(db_session, 30, timestamp=clock.now - 30_000, organization_id=org.id)

    assert _check(db_session, clock, org.id).requires_challenge is True


def test_service_uses_policy_threshold(db_session, free_org, clock) -> None:
    from webchat_guard.core.risk import DecisionPolicy

    service = AbuseGuardService(db_session, clock=clock, policy=DecisionPolicy(challenge_threshold=5))
    decision = service.check_rate_limit(TEST_IP, free_org.id)
    assert decision.requires_challenge is True
    assert decision.risk_score == 5


def test_lone_surrogates_in_message_still_count_repeats(db_session, free_org, clock) -> None:
    seed_entries(
        db_session, 4, timestamp=clock.now - 30_000, organization_id=free_org.id, message="hi \ud83d"
    )
    decision = _check(db_session, clock, free_org.id, message="HI \ud83d", session_token="wc_\ud83d")
    assert decision.allowed is True
    assert decision.risk_score == 30
