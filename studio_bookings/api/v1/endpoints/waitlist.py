# studio_bookings/api/v1/endpoints/waitlist.py
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from studio_bookings.api import deps
from studio_bookings.core.exceptions import CourseNotFoundError
from studio_bookings.db.session import get_db
from studio_bookings.schemas.signup import Signup, WaitlistJoin
from studio_bookings.schemas.waitlist import (
    ClaimTokenRequest,
    ClaimTokenStatus,
    ExpiredOffersResult,
    PromotionResult,
)
from studio_bookings.services.waitlist_service import WaitlistService

router = APIRouter(tags=["Waitlist"])

# Claim page responses: unknown tokens are 404, used or lapsed ones are 400
CLAIM_STATUS_CODES = {
    ClaimTokenStatus.valid: status.HTTP_200_OK,
    ClaimTokenStatus.invalid: status.HTTP_404_NOT_FOUND,
    ClaimTokenStatus.claimed: status.HTTP_400_BAD_REQUEST,
    ClaimTokenStatus.expired: status.HTTP_400_BAD_REQUEST,
}


@router.post(
    "/courses/{course_id}/join",
    response_model=Signup,
    status_code=status.HTTP_201_CREATED,
)
def join_waitlist(
    course_id: str,
    participant: WaitlistJoin,
    db: Session = Depends(get_db),
    waitlist: WaitlistService = Depends(deps.get_waitlist_service),
):
    try:
        return waitlist.join_waitlist(db, course_id=course_id, participant=participant)
    except CourseNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.post("/claims/validate")
def validate_claim(
    claim_in: ClaimTokenRequest,
    db: Session = Depends(get_db),
    waitlist: WaitlistService = Depends(deps.get_waitlist_service),
):
    """Check a claim link before the participant is sent to checkout."""
    validation = waitlist.validate_claim_token(db, token=claim_in.token)
    return JSONResponse(
        status_code=CLAIM_STATUS_CODES[validation.status],
        content=validation.model_dump(mode="json"),
    )


@router.post(
    "/courses/{course_id}/promote",
    response_model=PromotionResult,
    dependencies=[Depends(deps.get_internal_api_key)],
)
def promote_next_in_line(
    course_id: str,
    db: Session = Depends(get_db),
    waitlist: WaitlistService = Depends(deps.get_waitlist_service),
):
    try:
        return waitlist.promote_next_in_line(db, course_id=course_id)
    except CourseNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.post(
    "/expired-offers/process",
    response_model=ExpiredOffersResult,
    dependencies=[Depends(deps.get_internal_api_key)],
)
def process_expired_offers(
    db: Session = Depends(get_db),
    waitlist: WaitlistService = Depends(deps.get_waitlist_service),
):
    return waitlist.process_expired_offers(db)
