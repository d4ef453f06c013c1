"""
Tests for the OTP issuance/verification state machine.
"""

import asyncio

import pytest

from memberauth_core.errors import (
    AttemptsExhausted,
    ChallengeExpired,
    ChallengeNotFound,
    DeliveryError,
    InvalidCode,
    ValidationError,
)
from memberauth_core.identifiers import Channel
from memberauth_core.otp import ChallengeState, digest_code


MOBILE = "9999900000"
EMAIL = "member@example.com"


def wrong_code(code: str) -> str:
    return "100000" if code != "100000" else "100001"


class TestIssue:

    @pytest.mark.asyncio
    async def test_issue_stores_digest_and_sends_code(self, otp_service, challenges, providers, config, clock):
        """Should upsert a fresh challenge and hand the plain code to the provider."""
        result = await otp_service.issue(MOBILE, Channel.SMS)

        code = providers[Channel.SMS].last_code(MOBILE)
        challenge = await challenges.get(MOBILE)

        assert result.identifier == MOBILE
        assert challenge.attempt_count == 0
        assert challenge.channel is Channel.SMS
        assert challenge.code_digest == digest_code(config.otp_secret, MOBILE, code)
        assert challenge.code_digest != code
        assert (challenge.expires_at - clock.now).total_seconds() == 300

    @pytest.mark.asyncio
    async def test_issue_normalizes_identifier(self, otp_service, providers):
        """Email identifiers are lowercased, phone separators stripped."""
        await otp_service.issue("  Member@Example.COM ", Channel.EMAIL)
        await otp_service.issue("99999-00000", Channel.SMS)

        assert providers[Channel.EMAIL].sent[0][0] == EMAIL
        assert providers[Channel.SMS].sent[0][0] == MOBILE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("identifier,channel", [
        ("", Channel.SMS),
        (None, Channel.EMAIL),
        ("12345", Channel.SMS),
        ("99999000001", Channel.SMS),
        ("not-an-email", Channel.EMAIL),
        ("member@localhost", Channel.EMAIL),
    ])
    async def test_issue_rejects_invalid_identifier(self, otp_service, providers, identifier, channel):
        with pytest.raises(ValidationError):
            await otp_service.issue(identifier, channel)
        assert providers[channel].sent == []

    @pytest.mark.asyncio
    async def test_dev_code_only_outside_production(self, otp_service, config, providers):
        result = await otp_service.issue(MOBILE, Channel.SMS)
        assert result.code == providers[Channel.SMS].last_code(MOBILE)

        config.environment = "production"
        result = await otp_service.issue(MOBILE, Channel.SMS)
        assert result.code is None

    @pytest.mark.asyncio
    async def test_delivery_failure_withdraws_challenge(self, otp_service, challenges, providers):
        """A failed send must not leave a live challenge behind."""
        providers[Channel.SMS].fail = True

        with pytest.raises(DeliveryError):
            await otp_service.issue(MOBILE, Channel.SMS)

        assert await challenges.get(MOBILE) is None

    @pytest.mark.asyncio
    async def test_unexpected_send_error_withdraws_challenge(self, otp_service, challenges, providers):
        """Should withdraw the challenge whatever the provider raises."""
        async def crash(identifier, code):
            raise RuntimeError("provider bug")

        providers[Channel.SMS].send_code = crash

        with pytest.raises(RuntimeError):
            await otp_service.issue(MOBILE, Channel.SMS)

        assert await challenges.get(MOBILE) is None

    @pytest.mark.asyncio
    async def test_cancelled_send_withdraws_challenge(self, otp_service, challenges, providers):
        async def hang(identifier, code):
            await asyncio.sleep(3600)

        providers[Channel.SMS].send_code = hang
        task = asyncio.ensure_future(otp_service.issue(MOBILE, Channel.SMS))
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert await challenges.get(MOBILE) is None

    @pytest.mark.asyncio
    async def test_reissue_resets_attempts_and_invalidates_old_code(self, otp_service, challenges, providers):
        await otp_service.issue(MOBILE, Channel.SMS)
        first_code = providers[Channel.SMS].last_code(MOBILE)
        with pytest.raises(InvalidCode):
            await otp_service.verify(MOBILE, Channel.SMS, wrong_code(first_code))
        assert (await challenges.get(MOBILE)).attempt_count == 1

        await otp_service.issue(MOBILE, Channel.SMS)
        second_code = providers[Channel.SMS].last_code(MOBILE)
        assert (await challenges.get(MOBILE)).attempt_count == 0

        if first_code != second_code:
            with pytest.raises(InvalidCode):
                await otp_service.verify(MOBILE, Channel.SMS, first_code)

        member = await otp_service.verify(MOBILE, Channel.SMS, second_code)
        assert member.mobile == MOBILE


class TestVerify:

    @pytest.mark.asyncio
    async def test_end_to_end_flow(self, otp_service, challenges, members, providers):
        """Issue, one wrong attempt, then the right code; challenge is gone afterwards."""
        await otp_service.issue(MOBILE, Channel.SMS)
        code = providers[Channel.SMS].last_code(MOBILE)
        assert (await challenges.get(MOBILE)).attempt_count == 0

        bad = "000000"
        with pytest.raises(InvalidCode) as exc_info:
            await otp_service.verify(MOBILE, Channel.SMS, bad)
        assert exc_info.value.attempts_remaining == 4
        assert (await challenges.get(MOBILE)).attempt_count == 1

        member = await otp_service.verify(MOBILE, Channel.SMS, code)

        assert member.is_verified is True
        assert member.mobile == MOBILE
        assert await challenges.get(MOBILE) is None
        assert (await members.find_by_identifier(Channel.SMS, MOBILE)).id == member.id

    @pytest.mark.asyncio
    async def test_second_verify_with_same_code_is_not_found(self, otp_service, providers):
        await otp_service.issue(EMAIL, Channel.EMAIL)
        code = providers[Channel.EMAIL].last_code(EMAIL)

        await otp_service.verify(EMAIL, Channel.EMAIL, code)
        with pytest.raises(ChallengeNotFound):
            await otp_service.verify(EMAIL, Channel.EMAIL, code)

    @pytest.mark.asyncio
    async def test_verify_without_challenge(self, otp_service):
        with pytest.raises(ChallengeNotFound):
            await otp_service.verify(MOBILE, Channel.SMS, "123456")

    @pytest.mark.asyncio
    async def test_verify_requires_code(self, otp_service):
        await otp_service.issue(MOBILE, Channel.SMS)
        with pytest.raises(ValidationError):
            await otp_service.verify(MOBILE, Channel.SMS, "  ")

    @pytest.mark.asyncio
    async def test_expired_even_with_correct_code(self, otp_service, challenges, providers, clock):
        await otp_service.issue(MOBILE, Channel.SMS)
        code = providers[Channel.SMS].last_code(MOBILE)

        clock.advance(minutes=5, seconds=1)

        with pytest.raises(ChallengeExpired):
            await otp_service.verify(MOBILE, Channel.SMS, code)
        # Expired records are rejected, not deleted
        assert await challenges.get(MOBILE) is not None

    @pytest.mark.asyncio
    async def test_correct_code_just_before_expiry(self, otp_service, providers, clock):
        await otp_service.issue(MOBILE, Channel.SMS)
        code = providers[Channel.SMS].last_code(MOBILE)

        clock.advance(minutes=4, seconds=59)

        member = await otp_service.verify(MOBILE, Channel.SMS, code)
        assert member.is_verified

    @pytest.mark.asyncio
    async def test_exhausted_after_five_wrong_codes(self, otp_service, challenges, providers):
        await otp_service.issue(MOBILE, Channel.SMS)
        code = providers[Channel.SMS].last_code(MOBILE)
        bad = wrong_code(code)

        for remaining in (4, 3, 2, 1, 0):
            with pytest.raises(InvalidCode) as exc_info:
                await otp_service.verify(MOBILE, Channel.SMS, bad)
            assert exc_info.value.attempts_remaining == remaining

        with pytest.raises(AttemptsExhausted):
            await otp_service.verify(MOBILE, Channel.SMS, code)
        assert (await challenges.get(MOBILE)).attempt_count == 5

        # Recovery requires a fresh issue
        await otp_service.issue(MOBILE, Channel.SMS)
        member = await otp_service.verify(MOBILE, Channel.SMS, providers[Channel.SMS].last_code(MOBILE))
        assert member.is_verified

    @pytest.mark.asyncio
    async def test_existing_member_is_reused(self, otp_service, members, providers):
        existing = await members.get_or_create(Channel.EMAIL, EMAIL)
        assert existing.is_verified is False

        await otp_service.issue(EMAIL, Channel.EMAIL)
        member = await otp_service.verify(EMAIL, Channel.EMAIL, providers[Channel.EMAIL].last_code(EMAIL))

        assert member.id == existing.id
        assert member.is_verified is True

    @pytest.mark.asyncio
    async def test_concurrent_verifications_succeed_once(self, otp_service, providers):
        """Racing submissions of the correct code: exactly one wins."""
        await otp_service.issue(MOBILE, Channel.SMS)
        code = providers[Channel.SMS].last_code(MOBILE)

        results = await asyncio.gather(
            *(otp_service.verify(MOBILE, Channel.SMS, code) for _ in range(5)),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert all(isinstance(f, ChallengeNotFound) for f in failures)

    @pytest.mark.asyncio
    async def test_concurrent_wrong_codes_count_every_attempt(self, otp_service, challenges, providers):
        await otp_service.issue(MOBILE, Channel.SMS)
        bad = wrong_code(providers[Channel.SMS].last_code(MOBILE))

        results = await asyncio.gather(
            *(otp_service.verify(MOBILE, Channel.SMS, bad) for _ in range(3)),
            return_exceptions=True,
        )

        assert all(isinstance(r, InvalidCode) for r in results)
        assert (await challenges.get(MOBILE)).attempt_count == 3


class TestState:

    @pytest.mark.asyncio
    async def test_state_transitions(self, otp_service, providers, clock):
        assert await otp_service.state(MOBILE, Channel.SMS) is ChallengeState.NO_CHALLENGE

        await otp_service.issue(MOBILE, Channel.SMS)
        assert await otp_service.state(MOBILE, Channel.SMS) is ChallengeState.ISSUED

        clock.advance(minutes=6)
        assert await otp_service.state(MOBILE, Channel.SMS) is ChallengeState.EXPIRED

        await otp_service.issue(MOBILE, Channel.SMS)
        assert await otp_service.state(MOBILE, Channel.SMS) is ChallengeState.ISSUED

        await otp_service.verify(MOBILE, Channel.SMS, providers[Channel.SMS].last_code(MOBILE))
        assert await otp_service.state(MOBILE, Channel.SMS) is ChallengeState.VERIFIED

    @pytest.mark.asyncio
    async def test_exhausted_state(self, otp_service, providers):
        await otp_service.issue(MOBILE, Channel.SMS)
        bad = wrong_code(providers[Channel.SMS].last_code(MOBILE))
        for _ in range(5):
            with pytest.raises(InvalidCode):
                await otp_service.verify(MOBILE, Channel.SMS, bad)

        assert await otp_service.state(MOBILE, Channel.SMS) is ChallengeState.EXHAUSTED
