# studio_bookings/schemas/checkout_event.py
"""
Typed view of the Stripe events the reconciler acts on.

Stripe sends a loosely typed metadata bag with "true"/"false" string flags.
`decode_event` turns the raw event into exactly one of the variants below
and rejects anything that lacks the fields its branch needs, so the
reconciler never touches raw payload dictionaries.
"""
from decimal import Decimal
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, ValidationError

from studio_bookings.core.exceptions import InvalidEventError

CHECKOUT_COMPLETED = "checkout.session.completed"
CHECKOUT_EXPIRED = "checkout.session.expired"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_REFUNDED = "charge.refunded"

ORDINARY_REQUIRED_FIELDS = ("course_id", "organization_id", "customer_email", "customer_name")
CLAIM_REQUIRED_FIELDS = ("signup_id", "claim_token")


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str
    event_type: str


class _CompletedBase(_EventBase):
    checkout_session_id: str
    payment_intent_id: Optional[str] = None
    amount_total: Optional[Decimal] = None


class OrdinaryCheckoutCompleted(_CompletedBase):
    kind: Literal["ordinary_checkout"] = "ordinary_checkout"

    course_id: str
    organization_id: str
    customer_name: str
    customer_email: EmailStr
    customer_phone: Optional[str] = None
    is_drop_in: bool = False
    session_id: Optional[str] = None


class WaitlistClaimCompleted(_CompletedBase):
    kind: Literal["waitlist_claim"] = "waitlist_claim"

    signup_id: str
    claim_token: str


class PaymentLinkCompleted(_CompletedBase):
    """Payment for a signup that already exists, e.g. one a teacher added by hand."""

    kind: Literal["payment_link"] = "payment_link"

    signup_id: str


class CheckoutSessionExpired(_EventBase):
    kind: Literal["checkout_expired"] = "checkout_expired"

    checkout_session_id: str


class PaymentIntentFailed(_EventBase):
    kind: Literal["payment_failed"] = "payment_failed"

    payment_intent_id: str


class ChargeRefunded(_EventBase):
    kind: Literal["charge_refunded"] = "charge_refunded"

    charge_id: str
    payment_intent_id: str
    amount: Optional[int] = None
    amount_refunded: Optional[int] = None

    @property
    def is_full_refund(self) -> bool:
        # Without both amounts we cannot tell, so treat it as full.
        if self.amount is None or self.amount_refunded is None:
            return True
        return self.amount_refunded >= self.amount


class UnhandledEvent(_EventBase):
    kind: Literal["unhandled"] = "unhandled"


CheckoutEvent = Union[
    OrdinaryCheckoutCompleted,
    WaitlistClaimCompleted,
    PaymentLinkCompleted,
    CheckoutSessionExpired,
    PaymentIntentFailed,
    ChargeRefunded,
    UnhandledEvent,
]


def parse_flag(value: Any) -> bool:
    """Stripe metadata values are strings; only "true" (any case) is true."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() == "true"


def minor_to_major(amount: Optional[int]) -> Optional[Decimal]:
    if amount is None:
        return None
    return (Decimal(amount) / Decimal(100)).quantize(Decimal("0.01"))


def _missing(values: Dict[str, Any], fields) -> list[str]:
    return [name for name in fields if not values.get(name)]


def _decode_completed(base: Dict[str, Any], obj: Dict[str, Any]) -> CheckoutEvent:
    metadata = obj.get("metadata") or {}
    common = {
        **base,
        "checkout_session_id": obj.get("id"),
        "payment_intent_id": obj.get("payment_intent"),
        "amount_total": minor_to_major(obj.get("amount_total")),
    }

    if parse_flag(metadata.get("is_waitlist_claim")):
        missing = _missing(metadata, CLAIM_REQUIRED_FIELDS)
        if missing:
            raise InvalidEventError(
                f"Waitlist claim is missing metadata: {', '.join(missing)}",
                missing_fields=missing,
            )
        return WaitlistClaimCompleted(
            **common,
            signup_id=metadata["signup_id"],
            claim_token=metadata["claim_token"],
        )

    if metadata.get("existing_signup_id"):
        return PaymentLinkCompleted(**common, signup_id=metadata["existing_signup_id"])

    values = {
        "course_id": metadata.get("course_id"),
        "organization_id": metadata.get("organization_id"),
        "customer_email": metadata.get("customer_email") or obj.get("customer_email"),
        "customer_name": metadata.get("customer_name"),
    }
    missing = _missing(values, ORDINARY_REQUIRED_FIELDS)
    if missing:
        raise InvalidEventError(
            f"Checkout session is missing metadata: {', '.join(missing)}",
            missing_fields=missing,
        )

    return OrdinaryCheckoutCompleted(
        **common,
        **values,
        customer_phone=metadata.get("customer_phone") or None,
        is_drop_in=parse_flag(metadata.get("is_drop_in")),
        session_id=metadata.get("session_id") or None,
    )


def decode_event(event: Dict[str, Any]) -> CheckoutEvent:
    """
    Decode a verified Stripe event into a `CheckoutEvent` variant.

    Raises:
        InvalidEventError: a required field is missing or malformed.
    """
    event_id = event.get("id")
    event_type = event.get("type")
    if not event_id or not event_type:
        raise InvalidEventError("Event is missing its id or type")

    obj = (event.get("data") or {}).get("object") or {}
    base = {"event_id": event_id, "event_type": event_type}

    try:
        if event_type == CHECKOUT_COMPLETED:
            return _decode_completed(base, obj)

        if event_type == CHECKOUT_EXPIRED:
            return CheckoutSessionExpired(**base, checkout_session_id=obj.get("id"))

        if event_type == PAYMENT_FAILED:
            return PaymentIntentFailed(**base, payment_intent_id=obj.get("id"))

        if event_type == CHARGE_REFUNDED:
            return ChargeRefunded(
                **base,
                charge_id=obj.get("id"),
                payment_intent_id=obj.get("payment_intent"),
                amount=obj.get("amount"),
                amount_refunded=obj.get("amount_refunded"),
            )
    except ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise InvalidEventError(
            f"Malformed {event_type} event: {', '.join(fields)}",
            missing_fields=fields,
        ) from e

    return UnhandledEvent(**base)
