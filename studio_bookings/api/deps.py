# studio_bookings/api/deps.py
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader, OAuth2PasswordBearer
from jose import JWTError, jwt

from studio_bookings.core.config import settings
from studio_bookings.core.email import EmailNotifier, notifier
from studio_bookings.schemas.token import TokenPayload
from studio_bookings.services.checkout_reconciler import CheckoutReconciler
from studio_bookings.services.payment.stripe_gateway import StripeGateway, get_stripe_gateway
from studio_bookings.services.waitlist_service import WaitlistService

# The `tokenUrl` doesn't have to be a real endpoint in this service,
# it's just for the OpenAPI documentation.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
        token_data = TokenPayload(**payload)
    except (JWTError, ValueError):
        # Catches any error from jose or Pydantic validation
        raise credentials_exception

    return token_data


def require_org_member(
    org_id: str, current_user: TokenPayload = Depends(get_current_user)
) -> TokenPayload:
    """Teachers may only act on their own organization's signups."""
    if current_user.org_id != org_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to access this organization",
        )
    return current_user


# Define the header we expect the key to be in
api_key_header = APIKeyHeader(name="X-Internal-Api-Key", auto_error=False)


def get_internal_api_key(api_key: str = Security(api_key_header)) -> str:
    """
    Checks for and validates the internal API key from the request header.
    """
    if api_key and api_key == settings.INTERNAL_API_KEY:
        return api_key
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing Internal API Key",
    )


def get_notifier() -> EmailNotifier:
    return notifier


def get_gateway() -> StripeGateway:
    return get_stripe_gateway()


def get_reconciler(notifier: EmailNotifier = Depends(get_notifier)) -> CheckoutReconciler:
    return CheckoutReconciler(notifier)


def get_waitlist_service(notifier: EmailNotifier = Depends(get_notifier)) -> WaitlistService:
    return WaitlistService(notifier)
