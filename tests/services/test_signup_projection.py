from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from studio_bookings.schemas.signup import SignupStatus
from studio_bookings.services.signup_projection import project_signups, signup_to_display

OSLO = ZoneInfo("Europe/Oslo")


def test_course_signup_uses_start_date_and_schedule_time(make_signup, course):
    signup = make_signup(course)

    display = signup_to_display(signup)

    assert display.class_datetime == datetime(2026, 3, 10, 18, 0, tzinfo=OSLO)
    assert display.class_time == "18:00"
    assert display.course_title == "Vinyasa Flow"
    assert display.status == SignupStatus.confirmed


def test_drop_in_date_and_time_win(make_signup, course):
    signup = make_signup(course, is_drop_in=True, class_date=date(2026, 3, 17), class_time="09:30")

    display = signup_to_display(signup)

    assert display.class_datetime == datetime(2026, 3, 17, 9, 30, tzinfo=OSLO)
    assert display.class_time == "09:30"


def test_course_without_start_date_falls_back_to_created_at(make_course, make_signup):
    course = make_course(start_date=None, time_schedule=None)
    signup = make_signup(course)

    display = signup_to_display(signup)

    assert display.class_time == ""
    assert display.class_datetime.tzinfo is not None


def test_project_signups_keeps_order(make_signup, course):
    signups = [make_signup(course), make_signup(course, status="waitlist", waitlist_position=1)]

    displays = project_signups(signups)

    assert [d.id for d in displays] == [s.id for s in signups]
    assert displays[1].waitlist_position == 1


def test_offer_expiry_from_database_is_aware(make_signup, course):
    expires = datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc)
    signup = make_signup(course, status="waitlist", offer_status="pending", offer_expires_at=expires)

    display = signup_to_display(signup)

    assert display.offer_expires_at == expires
