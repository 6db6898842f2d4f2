from datetime import date, time
from decimal import Decimal

import pytest
from django.utils import timezone

from bookings import reports
from bookings.models import Booking, BookingStatus


pytestmark = pytest.mark.django_db

MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)
NEXT_MONDAY = date(2026, 10, 26)


@pytest.fixture
def book(make_client, make_room):
    client = make_client()

    def _book(room, booking_date, start, status=BookingStatus.PENDING):
        return Booking.objects.create(
            client=client,
            room=room,
            booking_date=booking_date,
            start_time=start,
            end_time=time(start.hour + 1, start.minute),
            hours_booked=Decimal("1"),
            status=status,
        )

    return _book


def test_popular_days_ignores_cancelled(book, make_room):
    room = make_room()
    book(room, MONDAY, time(9))
    book(room, NEXT_MONDAY, time(10))
    book(room, TUESDAY, time(9))
    book(room, TUESDAY, time(11), status=BookingStatus.CANCELLED)

    assert reports.popular_days() == [
        {"day": "Monday", "total_bookings": 2},
        {"day": "Tuesday", "total_bookings": 1},
    ]


def test_popular_times_are_ranked_and_limited(book, make_room):
    room = make_room()
    for day in (MONDAY, TUESDAY, NEXT_MONDAY):
        book(room, day, time(9))
    book(room, MONDAY, time(14))
    book(room, TUESDAY, time(14), status=BookingStatus.CANCELLED)
    book(room, TUESDAY, time(8))

    rows = reports.popular_times()

    assert rows[0] == {"start_time": "09:00", "total_bookings": 3}
    assert rows[1:] == [
        {"start_time": "08:00", "total_bookings": 1},
        {"start_time": "14:00", "total_bookings": 1},
    ]
    assert len(reports.popular_times(limit=1)) == 1


def test_popular_rooms_counts_active_bookings(book, make_room):
    busy = make_room(number="201")
    quiet = make_room(number="202")
    make_room(number="100")
    book(busy, MONDAY, time(9))
    book(busy, TUESDAY, time(9))
    book(quiet, MONDAY, time(9))
    book(quiet, TUESDAY, time(9), status=BookingStatus.CANCELLED)

    rows = [(room.number, room.bookings_count) for room in reports.popular_rooms()]

    assert rows == [("201", 2), ("202", 1), ("100", 0)]


def test_birthdays_in_month_sorted_by_day(make_client):
    make_client(name="Late", birth_date=date(1990, 5, 28))
    make_client(name="Early", birth_date=date(1985, 5, 2))
    make_client(name="Other month", birth_date=date(1985, 6, 2))
    make_client(name="No birthday")

    names = [client.name for client in reports.birthdays_in_month(5)]

    assert names == ["Early", "Late"]


def test_birthdays_today(make_client):
    make_client(name="Today", birth_date=date(1990, 10, 19))
    make_client(name="Tomorrow", birth_date=date(1990, 10, 20))

    names = [client.name for client in reports.birthdays_today(date(2026, 10, 19))]

    assert names == ["Today"]


def test_report_endpoints(api, book, make_room, make_client):
    room = make_room()
    book(room, MONDAY, time(9))
    today = timezone.localdate()
    make_client(name="Birthday", birth_date=date(2000, today.month, today.day))

    assert api.get("/api/reports/popular-days/").json() == [{"day": "Monday", "total_bookings": 1}]
    assert api.get("/api/reports/popular-times/").json() == [{"start_time": "09:00", "total_bookings": 1}]
    assert api.get("/api/reports/popular-rooms/").json()[0]["bookings_count"] == 1
    assert [row["name"] for row in api.get("/api/reports/birthdays/today/").json()] == ["Birthday"]
    assert [row["name"] for row in api.get("/api/reports/birthdays/").json()] == ["Birthday"]


def test_birthdays_endpoint_validates_month(api):
    response = api.get("/api/reports/birthdays/", {"month": 13})

    assert response.status_code == 422
    assert "month" in response.json()["details"]


def test_filter_bookings_combines_filters(book, make_room):
    room = make_room()
    other_room = make_room()
    wanted = book(room, TUESDAY, time(9), status=BookingStatus.CONFIRMED)
    book(room, TUESDAY, time(11))
    book(other_room, TUESDAY, time(9), status=BookingStatus.CONFIRMED)
    book(room, NEXT_MONDAY, time(9), status=BookingStatus.CONFIRMED)

    rows = reports.filter_bookings(
        reports.BookingFilters(
            room_id=room.id,
            start_date=MONDAY,
            end_date=TUESDAY,
            status=BookingStatus.CONFIRMED,
        )
    )

    assert list(rows) == [wanted]
