from __future__ import annotations

from dataclasses import dataclass
from datetime import date as date_type

from django.db.models import Count, Q, QuerySet
from django.db.models.functions import ExtractDay, ExtractWeekDay
from django.utils import timezone

from .models import Booking, BookingStatus, Client, Room


# ExtractWeekDay numbers days 1 (Sunday) through 7 (Saturday).
WEEKDAY_NAMES = {
    1: "Sunday",
    2: "Monday",
    3: "Tuesday",
    4: "Wednesday",
    5: "Thursday",
    6: "Friday",
    7: "Saturday",
}


@dataclass(frozen=True)
class BookingFilters:
    client_id: int | None = None
    room_id: int | None = None
    start_date: date_type | None = None
    end_date: date_type | None = None
    status: str | None = None


def filter_bookings(filters: BookingFilters) -> QuerySet[Booking]:
    """
    Bookings matching every filter that is set, ordered by date then start time.
    Both ends of the date range are inclusive.
    """
    queryset = Booking.objects.select_related("client", "room")

    if filters.client_id:
        queryset = queryset.filter(client_id=filters.client_id)
    if filters.room_id:
        queryset = queryset.filter(room_id=filters.room_id)
    if filters.start_date:
        queryset = queryset.filter(booking_date__gte=filters.start_date)
    if filters.end_date:
        queryset = queryset.filter(booking_date__lte=filters.end_date)
    if filters.status:
        queryset = queryset.filter(status=filters.status)

    return queryset.order_by("booking_date", "start_time", "id")


def _counted_bookings() -> QuerySet[Booking]:
    return Booking.objects.exclude(status=BookingStatus.CANCELLED)


def popular_days() -> list[dict]:
    rows = (
        _counted_bookings()
        .annotate(day_of_week=ExtractWeekDay("booking_date"))
        .values("day_of_week")
        .annotate(total_bookings=Count("id"))
        .order_by("-total_bookings", "day_of_week")
    )
    return [
        {
            "day": WEEKDAY_NAMES.get(row["day_of_week"], "Unknown"),
            "total_bookings": row["total_bookings"],
        }
        for row in rows
    ]


def popular_times(limit: int = 10) -> list[dict]:
    rows = (
        _counted_bookings()
        .values("start_time")
        .annotate(total_bookings=Count("id"))
        .order_by("-total_bookings", "start_time")[:limit]
    )
    return [
        {"start_time": row["start_time"].strftime("%H:%M"), "total_bookings": row["total_bookings"]}
        for row in rows
    ]


def popular_rooms() -> QuerySet[Room]:
    return Room.objects.annotate(
        bookings_count=Count("bookings", filter=~Q(bookings__status=BookingStatus.CANCELLED))
    ).order_by("-bookings_count", "number")


def birthdays_in_month(month: int) -> QuerySet[Client]:
    return (
        Client.objects.filter(birth_date__month=month)
        .annotate(birth_day=ExtractDay("birth_date"))
        .order_by("birth_day", "name")
    )


def birthdays_today(today: date_type | None = None) -> QuerySet[Client]:
    today = today or timezone.localdate()
    return Client.objects.filter(birth_date__month=today.month, birth_date__day=today.day).order_by("name")


def search_clients(term: str = "") -> QuerySet[Client]:
    queryset = Client.objects.all()
    term = (term or "").strip()
    if term:
        queryset = queryset.filter(
            Q(name__icontains=term) | Q(email__icontains=term) | Q(phone__icontains=term)
        )
    return queryset.order_by("name", "id")
