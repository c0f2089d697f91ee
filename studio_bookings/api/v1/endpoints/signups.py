# studio_bookings/api/v1/endpoints/signups.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from studio_bookings import crud
from studio_bookings.api import deps
from studio_bookings.core.email import EmailNotifier
from studio_bookings.core.exceptions import (
    RefundFailedError,
    SignupActionError,
    SignupNotFoundError,
)
from studio_bookings.db.session import get_db
from studio_bookings.schemas.classification import (
    GroupedSignups,
    GroupedSignupsOptions,
    ModeFilter,
    PaymentFilter,
    StatusFilter,
    TimeFilter,
)
from studio_bookings.schemas.signup import CancelSignupResult, Signup, SignupCancel
from studio_bookings.schemas.token import TokenPayload
from studio_bookings.services import signup_actions
from studio_bookings.services.payment.stripe_gateway import StripeGateway
from studio_bookings.services.signup_classifier import DEFAULT_TIME_FILTER, classify_signups
from studio_bookings.services.signup_projection import project_signups
from studio_bookings.services.waitlist_service import WaitlistService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Signups"])

NO_TIME_FILTER = ("", "all")


def resolve_time_filter(mode: ModeFilter, time: Optional[str]) -> Optional[TimeFilter]:
    """
    Omitted `time` falls back to the mode's default; `all` or an empty value
    turns the time filter off whatever the mode.
    """
    if time is None:
        return DEFAULT_TIME_FILTER[mode]
    if time.strip().lower() in NO_TIME_FILTER:
        return None
    try:
        return TimeFilter(time)
    except ValueError:
        allowed = ", ".join([t.value for t in TimeFilter] + ["all"])
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid time filter '{time}', expected one of: {allowed}",
        )


@router.get("/organizations/{org_id}/signups/grouped", response_model=GroupedSignups)
def get_grouped_signups(
    org_id: str,
    mode: ModeFilter = ModeFilter.active,
    time: Optional[str] = None,
    status_filter: StatusFilter = Query(StatusFilter.all, alias="status"),
    payment: PaymentFilter = PaymentFilter.all,
    q: str = "",
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.require_org_member),
):
    """
    Signups for the teacher dashboard, grouped per class and bucketed into
    exceptions, confirmed, waitlist and cancelled.

    When `time` is omitted the mode's default applies (`upcoming` for
    active, none otherwise). `time=all` disables it explicitly.
    """
    options = GroupedSignupsOptions(
        mode=mode,
        time=resolve_time_filter(mode, time),
        status=status_filter,
        payment=payment,
        search_query=q,
    )
    signups = crud.signup.get_for_organization(db, organization_id=org_id)
    return classify_signups(project_signups(signups), options)


@router.post("/organizations/{org_id}/signups/{signup_id}/mark-paid", response_model=Signup)
def mark_signup_paid(
    org_id: str,
    signup_id: str,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.require_org_member),
):
    try:
        return signup_actions.mark_as_paid(db, organization_id=org_id, signup_id=signup_id)
    except SignupNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.post("/organizations/{org_id}/signups/{signup_id}/cancel", response_model=CancelSignupResult)
def cancel_signup(
    org_id: str,
    signup_id: str,
    cancel_in: SignupCancel,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.require_org_member),
    gateway: StripeGateway = Depends(deps.get_gateway),
    notifier: EmailNotifier = Depends(deps.get_notifier),
    waitlist: WaitlistService = Depends(deps.get_waitlist_service),
):
    """Cancel a participant's signup, refunding the Stripe payment if asked to."""
    try:
        signup, refunded, refund_amount = signup_actions.cancel_signup(
            db,
            organization_id=org_id,
            signup_id=signup_id,
            refund=cancel_in.refund,
            reason=cancel_in.reason,
            gateway=gateway,
            notifier=notifier,
            waitlist=waitlist,
        )
    except SignupNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except SignupActionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except RefundFailedError as e:
        logger.error(f"Refund failed while cancelling signup {signup_id}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Refund failed, signup was not cancelled",
        )

    return CancelSignupResult(signup=signup, refunded=refunded, refund_amount=refund_amount)
