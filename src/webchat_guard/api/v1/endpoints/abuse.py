# src/webchat_guard/api/v1/endpoints/abuse.py
"""Internal abuse-control endpoints used by the inbound channel handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse

from webchat_guard.api.v1.dependencies import (
    CallingServiceDep,
    ChallengeVerifierDep,
    SessionDep,
)
from webchat_guard.core.quotas import Channel, resolve_quotas
from webchat_guard.db.time import Clock, now_ms
from webchat_guard.schemas.abuse import (
    AbuseDecision,
    ChallengeVerification,
    ChallengeVerifyIn,
    InboundGuardOut,
    InboundMessageIn,
    RateLimitCheckIn,
    RateLimitEntryIn,
)
from webchat_guard.services.abuse import AbuseGuardService
from webchat_guard.services.guard import InboundGuard, InboundMessage, OrganizationNotFoundError
from webchat_guard.services.ledger import LedgerRecord, RateLimitLedger

router = APIRouter(prefix="/abuse", tags=["abuse"])


def get_clock_dep() -> Clock:
    """Return the clock used to stamp and window ledger entries."""
    return now_ms


ClockDep = Annotated[Clock, Depends(get_clock_dep)]


def _retry_headers(decision: AbuseDecision) -> dict[str, str]:
    """Return a Retry-After header for blocked decisions that carry a hint."""
    seconds = decision.retry_after_seconds
    if decision.allowed or seconds is None:
        return {}
    return {"Retry-After": str(seconds)}


@router.post("/check", response_model=AbuseDecision, response_model_exclude_none=True)
async def check_rate_limit(
    payload: RateLimitCheckIn,
    response: Response,
    db: SessionDep,
    clock: ClockDep,
    _service: CallingServiceDep,
) -> AbuseDecision:
    """Evaluate an inbound message without recording it."""
    decision = AbuseGuardService(db, clock=clock).check_rate_limit(
        payload.ip_address,
        payload.organization_id,
        channel=payload.channel,
        device_fingerprint=payload.device_fingerprint,
        session_token=payload.session_token,
        user_agent=payload.user_agent,
        message=payload.message,
    )
    response.headers.update(_retry_headers(decision))
    return decision


@router.post(
    "/challenge/verify",
    response_model=ChallengeVerification,
    response_model_exclude_none=True,
)
async def verify_challenge(
    payload: ChallengeVerifyIn,
    verifier: ChallengeVerifierDep,
    _service: CallingServiceDep,
) -> ChallengeVerification:
    """Verify a human-proof token returned by a challenged client."""
    return await verifier.verify(
        payload.channel,
        payload.ip_address,
        payload.challenge_token,
        payload.request_id,
    )


@router.post("/entries", status_code=status.HTTP_201_CREATED)
async def record_entry(
    payload: RateLimitEntryIn,
    db: SessionDep,
    clock: ClockDep,
    _service: CallingServiceDep,
) -> dict[str, object]:
    """Append a ledger entry and sweep the caller's stale entries."""
    entry = RateLimitLedger(db, clock=clock).record(
        LedgerRecord(
            ip_address=payload.ip_address,
            organization_id=payload.organization_id,
            channel=payload.channel,
            device_fingerprint=payload.device_fingerprint,
            session_token=payload.session_token,
            user_agent=payload.user_agent,
            message=payload.message,
            outcome=payload.outcome,
            challenge_state=payload.challenge_state,
            reason=payload.reason,
            risk_score=payload.risk_score,
            request_id=payload.request_id,
            should_log_signal=bool(payload.should_log_signal),
        )
    )
    db.commit()
    return {"id": entry.id, "timestamp": entry.timestamp}


@router.post(
    "/inbound",
    response_model=InboundGuardOut,
    response_model_exclude_none=True,
    responses={
        status.HTTP_403_FORBIDDEN: {"description": "Challenge required or failed"},
        status.HTTP_429_TOO_MANY_REQUESTS: {"description": "Blocked for velocity"},
    },
)
async def guard_inbound(
    payload: InboundMessageIn,
    db: SessionDep,
    clock: ClockDep,
    verifier: ChallengeVerifierDep,
    _service: CallingServiceDep,
) -> InboundGuardOut | JSONResponse:
    """Check, optionally verify and record one inbound message."""
    guard = InboundGuard(db, verifier, clock=clock)
    try:
        result = await guard.guard(
            InboundMessage(
                ip_address=payload.ip_address,
                organization_id=payload.organization_id,
                channel=payload.channel,
                device_fingerprint=payload.device_fingerprint,
                session_token=payload.session_token,
                user_agent=payload.user_agent,
                message=payload.message,
                challenge_token=payload.challenge_token,
                request_id=payload.request_id,
            )
        )
    except OrganizationNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found",
        ) from exc
    db.commit()

    if result.proceed:
        return result

    body = result.model_dump(mode="json", by_alias=True, exclude_none=True)
    if not result.decision.allowed:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body,
            headers=_retry_headers(result.decision),
        )
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=body)


@router.get("/quotas/{channel}")
async def get_quotas(
    channel: Channel,
    _service: CallingServiceDep,
    tier: str = "free",
) -> dict[str, int]:
    """Return the tier-scaled quotas for a channel."""
    return resolve_quotas(channel, tier).as_dict()
