"""Referral API v1 endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from cosmicbeats.api.deps import get_current_user_id, get_referral_service
from cosmicbeats.api.rate_limit import limiter
from cosmicbeats.identity.roles import Role
from cosmicbeats.logging_config import get_logger
from cosmicbeats.referral.catalog import ActionType
from cosmicbeats.referral.exceptions import (
    ActionNotFound,
    AlreadyCompleted,
    AlreadyProcessed,
    Expired,
    NotAuthorized,
    NotFound,
    QuotaExceeded,
    ReferralError,
    SelfReferral,
    WalletCreditFailed,
)
from cosmicbeats.referral.ledger import SYSTEM_ACTOR
from cosmicbeats.referral.schemas import (
    ActionView,
    BadgeView,
    LeaderboardEntry,
    LeaderboardPeriod,
    ReferralDetail,
    ReferralStats,
)
from cosmicbeats.referral.service import ReferralService

logger = get_logger(__name__)

router = APIRouter(prefix="/referral", tags=["referral"])

CurrentUser = Annotated[str, Depends(get_current_user_id)]
Service = Annotated[ReferralService, Depends(get_referral_service)]


# ==================== ERRORS ====================


ERROR_STATUS: dict[type[ReferralError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    ActionNotFound: status.HTTP_404_NOT_FOUND,
    NotAuthorized: status.HTTP_403_FORBIDDEN,
    SelfReferral: status.HTTP_400_BAD_REQUEST,
    QuotaExceeded: status.HTTP_429_TOO_MANY_REQUESTS,
    AlreadyProcessed: status.HTTP_409_CONFLICT,
    AlreadyCompleted: status.HTTP_409_CONFLICT,
    Expired: status.HTTP_410_GONE,
    WalletCreditFailed: status.HTTP_502_BAD_GATEWAY,
}


async def referral_error_handler(request: Request, exc: ReferralError) -> JSONResponse:
    """Render engine errors as `{"detail": ..., "code": ...}`."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error("referral_request_failed", path=request.url.path, code=exc.code, error=str(exc))
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": exc.code},
    )


# ==================== MODELS ====================


class RedeemRequest(BaseModel):
    """Request to redeem a referral code for the calling user."""
    referrer_id: str = Field(min_length=1, max_length=64, description="Owner of the code, resolved by the code registry")
    code: str = Field(min_length=1, max_length=64)
    referred_role: Role | None = Field(
        default=None,
        description="Role of the calling user; looked up when omitted",
    )


class ShareLinksResponse(BaseModel):
    code: str
    links: dict[str, str]


# ==================== ENDPOINTS ====================


@router.post("/redeem", response_model=ReferralDetail, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def redeem_code(request: Request, body: RedeemRequest, user_id: CurrentUser, service: Service):
    """Open a pending referral for the caller.

    The caller is the referred user; the referrer must still have a slot left
    this week.
    """
    referral = service.redeem_code(
        referrer_id=body.referrer_id,
        referred_id=user_id,
        code=body.code,
        referred_role=body.referred_role,
    )
    return service.get_referral_detail(referral.id)


@router.post("/{referral_id}/validate", response_model=ReferralDetail)
@limiter.limit("30/minute")
def validate_referral(request: Request, referral_id: str, user_id: CurrentUser, service: Service):
    """Validate a pending referral. Only its referrer may call this."""
    if user_id == SYSTEM_ACTOR:
        logger.warning("referral_validation_reserved_actor", referral_id=referral_id)
        raise NotAuthorized(referral_id, user_id)
    service.validate_referral(referral_id, actor=user_id)
    return service.get_referral_detail(referral_id)


@router.post("/{referral_id}/actions/{action_type}/complete", response_model=ActionView)
@limiter.limit("60/minute")
def complete_action(
    request: Request,
    referral_id: str,
    action_type: str,
    user_id: CurrentUser,
    service: Service,
):
    """Complete an onboarding action of the caller's own referral.

    Pays the action reward to both the referrer and the caller.
    """
    referral = service.get_referral(referral_id)
    if user_id != referral.referred_id:
        logger.warning("referral_action_denied", referral_id=referral_id, actor=user_id)
        raise NotAuthorized(referral_id, user_id)

    action = service.complete_action(referral_id, action_type)
    return ActionView(
        type=ActionType(action.type),
        completed=action.completed,
        completed_at=action.completed_at,
        beatcoins_rewarded=action.beatcoins_rewarded,
        dual_reward=action.dual_reward,
    )


@router.get("/stats", response_model=ReferralStats)
def get_referral_stats(user_id: CurrentUser, service: Service):
    """Get referral statistics for the caller.

    Includes:
    - Counts per status and this week's usage of the quota
    - Role milestones with their completion
    - Badges earned and per-referral details with days remaining
    """
    return service.get_stats(user_id)


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
def get_leaderboard(
    service: Service,
    period: LeaderboardPeriod = "weekly",
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
):
    """Top referrers by referrals validated this week or month."""
    return service.get_leaderboard(period, limit=limit)


@router.get("/badges", response_model=list[BadgeView])
def get_badges(user_id: CurrentUser, service: Service):
    return [BadgeView.build(badge) for badge in service.get_badges(user_id)]


@router.get("/share-links", response_model=ShareLinksResponse)
def get_share_links(
    service: Service,
    code: Annotated[str, Query(min_length=1, max_length=64)],
):
    """Shareable links for a referral code, one per platform."""
    code = code.strip()
    return ShareLinksResponse(code=code, links=service.share_links(code))


@router.get("/{referral_id}", response_model=ReferralDetail)
def get_referral(referral_id: str, user_id: CurrentUser, service: Service):
    """Get one referral. Visible to its referrer and its referred user."""
    detail = service.get_referral_detail(referral_id)
    if user_id not in (detail.referrer_id, detail.referred_id):
        raise NotAuthorized(referral_id, user_id)
    return detail
