from __future__ import annotations

from decimal import Decimal

from .models import Booking, Client, Room


def _hours(value) -> float:
    return float(Decimal(value).quantize(Decimal("0.01")))


def _isoformat(value) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_client(client: Client) -> dict:
    return {
        "id": client.id,
        "name": client.name,
        "email": client.email,
        "phone": client.phone,
        "birth_date": _isoformat(client.birth_date),
        "credit_balance": _hours(client.credit_balance),
        "credit_consumed": _hours(client.credit_consumed),
        "credit_expires_at": _isoformat(client.credit_expires_at),
        "created_at": _isoformat(client.created_at),
        "updated_at": _isoformat(client.updated_at),
    }


def serialize_room(room: Room) -> dict:
    data = {
        "id": room.id,
        "number": room.number,
        "name": room.name,
        "description": room.description,
        "capacity": room.capacity,
        "is_active": room.is_active,
    }
    if hasattr(room, "bookings_count"):
        data["bookings_count"] = room.bookings_count
    return data


def serialize_booking(booking: Booking, *, nested: bool = True) -> dict:
    data = {
        "id": booking.id,
        "client_id": booking.client_id,
        "room_id": booking.room_id,
        "booking_date": _isoformat(booking.booking_date),
        "start_time": booking.start_time.strftime("%H:%M"),
        "end_time": booking.end_time.strftime("%H:%M"),
        "hours_booked": _hours(booking.hours_booked),
        "status": booking.status,
        "notes": booking.notes,
        "cancelled_at": _isoformat(booking.cancelled_at),
        "created_at": _isoformat(booking.created_at),
        "updated_at": _isoformat(booking.updated_at),
    }
    if nested:
        data["client"] = serialize_client(booking.client)
        data["room"] = serialize_room(booking.room)
    return data
