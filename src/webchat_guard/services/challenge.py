"""Human-proof challenge verification.

Tokens are accepted either through a static bypass token (internal testing
only, never for production traffic) or an operator-configured verification
webhook. Every failure path answers "not verified"; nothing is raised to the
caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from webchat_guard.core.quotas import Channel
from webchat_guard.core.settings import settings
from webchat_guard.schemas.abuse import ChallengeVerification
from webchat_guard.utils.hash import clean_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChallengeConfig:
    """Immutable configuration for challenge verification."""

    bypass_token: str | None = None
    verify_url: str | None = None
    verify_secret: str | None = None
    timeout_seconds: float = 5.0

    @property
    def hook_configured(self) -> bool:
        return bool(self.verify_url)

    @property
    def bypass_enabled(self) -> bool:
        return self.bypass_token is not None


def load_challenge_config() -> ChallengeConfig:
    """Build configuration object from global settings."""
    return ChallengeConfig(
        bypass_token=clean_token(settings.challenge_bypass_token),
        verify_url=clean_token(settings.challenge_verify_url),
        verify_secret=clean_token(settings.challenge_verify_secret),
        timeout_seconds=float(settings.challenge_verify_timeout_seconds),
    )


class ChallengeVerifier:
    """Verifies challenge tokens against the configured provider."""

    def __init__(
        self,
        config: ChallengeConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_challenge_config()
        self._transport = transport

    def _build_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.verify_secret:
            headers["Authorization"] = f"Bearer {self.config.verify_secret}"
        return headers

    async def verify(
        self,
        channel: Channel,
        ip_address: str,
        challenge_token: str | None,
        request_id: str | None = None,
    ) -> ChallengeVerification:
        """Verify a challenge token.

        Args:
            channel: Channel the challenged message arrived on.
            ip_address: Client IP address, forwarded to the hook.
            challenge_token: Opaque token returned by the client.
            request_id: Correlation id forwarded to the hook.

        Returns:
            A `ChallengeVerification`; `verified` is False on any failure.
        """
        token = clean_token(challenge_token)
        if token is None:
            return ChallengeVerification(verified=False, provider="none", reason="missing_token")

        if self.config.bypass_token and token == self.config.bypass_token:
            logger.warning("Challenge accepted via local bypass token (channel=%s)", channel)
            return ChallengeVerification(verified=True, provider="local_bypass", score=1)

        if not self.config.verify_url:
            return ChallengeVerification(
                verified=False,
                provider="none",
                reason="challenge_hook_not_configured",
            )

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.config.verify_url,
                    json={
                        "token": token,
                        "channel": channel,
                        "ipAddress": ip_address,
                        "requestId": request_id,
                    },
                    headers=self._build_headers(),
                )
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Challenge verification hook failed: %s", exc, exc_info=True)
            return ChallengeVerification(
                verified=False,
                provider="external_hook",
                reason="challenge_hook_error",
            )

        return self._interpret(payload)

    @staticmethod
    def _interpret(payload: Any) -> ChallengeVerification:
        """Map a hook response body onto a verification result."""
        if not isinstance(payload, dict):
            payload = {}
        verified = payload.get("success") is True or payload.get("verified") is True
        score = payload.get("score")
        if isinstance(score, bool) or not isinstance(score, int | float):
            score = None
        reason = None
        if not verified:
            reason = payload.get("reason") or "challenge_verification_failed"
            if not isinstance(reason, str):
                reason = "challenge_verification_failed"
        return ChallengeVerification(
            verified=verified,
            provider="external_hook",
            score=score,
            reason=reason,
        )


def get_challenge_verifier() -> ChallengeVerifier:
    """Return a challenge verifier configured from settings."""
    return ChallengeVerifier()


async def verify_abuse_challenge(
    channel: Channel,
    ip_address: str,
    challenge_token: str | None,
    request_id: str | None = None,
    *,
    verifier: ChallengeVerifier | None = None,
) -> ChallengeVerification:
    """Verify a challenge token with the configured provider."""
    verifier = verifier or get_challenge_verifier()
    return await verifier.verify(channel, ip_address, challenge_token, request_id)
