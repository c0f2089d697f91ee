# studio_bookings/services/signup_classifier.py
"""
Signup classification and grouping for the teacher dashboard.

Takes a flat list of signups and the dashboard's filter options and returns
grouped, sorted, annotated view models. Nothing here touches the database or
mutates its input; the only ambient input is the clock, and every public
function takes `now` explicitly so callers (and tests) control it.

Results depend on wall-clock time: an offer that is not yet urgent today
shows up as `offer_expiring` tomorrow. Callers simply recompute.
"""

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from studio_bookings.core.config import settings
from studio_bookings.schemas.classification import (
    ExceptionType,
    GroupedSignups,
    GroupedSignupsOptions,
    ModeFilter,
    PaymentFilter,
    SignupBuckets,
    SignupCounts,
    SignupDisplay,
    SignupGroup,
    SignupStats,
    StatusFilter,
    TimeFilter,
)
from studio_bookings.schemas.signup import (
    CANCELLED_STATUSES,
    OfferStatus,
    PaymentStatus,
    SignupStatus,
)
from studio_bookings.utils.dates import (
    calendar_date_key,
    end_of_week,
    ensure_aware,
    start_of_day,
    utcnow,
)
from studio_bookings.utils.strings import collation_key, matches_query

# Waitlist entries without a position sort after everyone else
MISSING_POSITION = 999

# Default time filter for each mode; anything else counts as an active filter
DEFAULT_TIME_FILTER = {
    ModeFilter.active: TimeFilter.upcoming,
    ModeFilter.needs_attention: None,
    ModeFilter.ended: None,
}


def _is_cancelled(signup: SignupDisplay) -> bool:
    return signup.status.value in CANCELLED_STATUSES


def detect_exception(
    signup: SignupDisplay, now: Optional[datetime] = None
) -> Optional[ExceptionType]:
    """
    Decide whether a signup needs the teacher's attention, and why.

    First match wins: failed payment, then an offer expiring within the
    window, then an unpaid confirmed seat.
    """
    if signup.payment_status == PaymentStatus.failed:
        return ExceptionType.payment_failed

    if signup.offer_status == OfferStatus.pending and signup.offer_expires_at:
        now = ensure_aware(now) if now else utcnow()
        remaining = ensure_aware(signup.offer_expires_at) - now
        window = timedelta(hours=settings.OFFER_EXPIRING_WINDOW_HOURS)
        if timedelta(0) < remaining < window:
            return ExceptionType.offer_expiring

    if (
        signup.payment_status == PaymentStatus.pending
        and signup.status == SignupStatus.confirmed
    ):
        return ExceptionType.pending_payment

    return None


def needs_attention(signup: SignupDisplay, now: datetime) -> bool:
    """Cancelled signups are settled and never count as exceptions."""
    return not _is_cancelled(signup) and detect_exception(signup, now) is not None


def group_signups(
    signups: Iterable[SignupDisplay], now: Optional[datetime] = None
) -> List[SignupGroup]:
    """Bucket signups per (course, class day) and order everything for display."""
    now = now or utcnow()
    partitions: "OrderedDict[str, List[SignupDisplay]]" = OrderedDict()
    for signup in signups:
        day = calendar_date_key(signup.class_datetime)
        key = f"{signup.course_id}-{day.isoformat()}"
        partitions.setdefault(key, []).append(signup)

    groups = []
    for key, members in partitions.items():
        exceptions: List[SignupDisplay] = []
        confirmed: List[SignupDisplay] = []
        waitlist: List[SignupDisplay] = []
        cancelled: List[SignupDisplay] = []

        for signup in members:
            exception = detect_exception(signup, now)
            annotated = signup.model_copy(update={"exception_type": exception})

            # Cancelled signups never surface as exceptions
            if _is_cancelled(annotated):
                cancelled.append(annotated)
            elif exception is not None:
                exceptions.append(annotated)
            elif annotated.status == SignupStatus.confirmed:
                confirmed.append(annotated)
            elif annotated.status == SignupStatus.waitlist:
                waitlist.append(annotated)

        exceptions.sort(key=lambda s: s.exception_type.priority)
        waitlist.sort(key=lambda s: s.waitlist_position or MISSING_POSITION)
        confirmed.sort(key=lambda s: collation_key(s.participant_name))
        cancelled.sort(key=lambda s: collation_key(s.participant_name))

        first = members[0]
        groups.append(
            SignupGroup(
                key=key,
                course_id=first.course_id,
                course_title=first.course_title,
                class_date=first.class_datetime,
                class_time=first.class_time,
                signups=SignupBuckets(
                    exceptions=exceptions,
                    confirmed=confirmed,
                    waitlist=waitlist,
                    cancelled=cancelled,
                ),
                # Counted from raw statuses, before exception routing
                counts=SignupCounts(
                    confirmed=sum(1 for s in members if s.status == SignupStatus.confirmed),
                    waitlist=sum(1 for s in members if s.status == SignupStatus.waitlist),
                    cancelled=sum(1 for s in members if _is_cancelled(s)),
                    exceptions=len(exceptions),
                ),
                has_exceptions=bool(exceptions),
            )
        )

    groups.sort(key=lambda g: g.class_date)
    return groups


def filter_by_mode(
    signups: List[SignupDisplay], mode: ModeFilter, now: datetime
) -> List[SignupDisplay]:
    today = start_of_day(now)
    if mode == ModeFilter.active:
        return [s for s in signups if s.class_datetime >= today and not _is_cancelled(s)]
    if mode == ModeFilter.ended:
        return [s for s in signups if _is_cancelled(s) or s.class_datetime < today]
    if mode == ModeFilter.needs_attention:
        return [s for s in signups if needs_attention(s, now)]
    return signups


def filter_by_time(
    signups: List[SignupDisplay], time_filter: Optional[TimeFilter], now: datetime
) -> List[SignupDisplay]:
    if time_filter is None:
        return signups

    today = start_of_day(now)
    if time_filter == TimeFilter.today:
        tomorrow = today + timedelta(days=1)
        return [s for s in signups if today <= s.class_datetime < tomorrow]
    if time_filter == TimeFilter.this_week:
        week_end = end_of_week(now)
        return [s for s in signups if today <= s.class_datetime < week_end]
    if time_filter == TimeFilter.upcoming:
        return [s for s in signups if s.class_datetime >= today]
    return signups


def filter_by_status(
    signups: List[SignupDisplay], status: StatusFilter
) -> List[SignupDisplay]:
    if status == StatusFilter.confirmed:
        return [s for s in signups if s.status == SignupStatus.confirmed]
    if status == StatusFilter.waitlist:
        return [s for s in signups if s.status == SignupStatus.waitlist]
    if status == StatusFilter.cancelled:
        return [s for s in signups if _is_cancelled(s)]
    return signups


def filter_by_payment(
    signups: List[SignupDisplay], payment: PaymentFilter
) -> List[SignupDisplay]:
    if payment == PaymentFilter.paid:
        return [s for s in signups if s.payment_status == PaymentStatus.paid]
    if payment == PaymentFilter.refunded:
        return [s for s in signups if s.payment_status == PaymentStatus.refunded]
    return signups


def filter_by_search(signups: List[SignupDisplay], query: str) -> List[SignupDisplay]:
    query = query.strip()
    if not query:
        return signups
    return [
        s for s in signups
        if matches_query(query, s.participant_name, s.participant_email)
    ]


def filter_signups(
    signups: List[SignupDisplay],
    options: GroupedSignupsOptions,
    now: Optional[datetime] = None,
) -> List[SignupDisplay]:
    """Apply mode, time, status, payment and search filters, in that order."""
    now = now or utcnow()
    result = filter_by_mode(signups, options.mode, now)
    result = filter_by_time(result, options.time, now)
    result = filter_by_status(result, options.status)
    result = filter_by_payment(result, options.payment)
    return filter_by_search(result, options.search_query)


def has_active_filters(options: GroupedSignupsOptions) -> bool:
    """True when anything differs from the current mode's defaults."""
    return (
        options.time != DEFAULT_TIME_FILTER.get(options.mode)
        or options.status != StatusFilter.all
        or options.payment != PaymentFilter.all
        or options.search_query.strip() != ""
    )


def classify_signups(
    signups: List[SignupDisplay],
    options: GroupedSignupsOptions,
    now: Optional[datetime] = None,
) -> GroupedSignups:
    """Filter, group and summarize signups for one dashboard render."""
    now = now or utcnow()
    total_exceptions = sum(1 for s in signups if needs_attention(s, now))

    filtered = filter_signups(signups, options, now)
    groups = group_signups(filtered, now)

    stats = SignupStats(
        exceptions=sum(g.counts.exceptions for g in groups),
        confirmed=sum(g.counts.confirmed for g in groups),
        waitlist=sum(g.counts.waitlist for g in groups),
        cancelled=sum(g.counts.cancelled for g in groups),
        groups=len(groups),
        total_exceptions=total_exceptions,
    )

    return GroupedSignups(
        groups=groups,
        filtered_signups=filtered,
        stats=stats,
        has_active_filters=has_active_filters(options),
    )
