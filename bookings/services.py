from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date as date_type
from datetime import datetime, time
from decimal import Decimal
from typing import Any, Mapping

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from . import ledger
from .models import OPEN_STATUSES, Booking, BookingStatus, Client, Room


logger = logging.getLogger(__name__)


class BookingError(Exception):
    """Base error type for booking domain errors."""


class InvalidTransitionError(BookingError):
    """Raised when a booking cannot move to the requested status."""


@dataclass(frozen=True)
class BookingInput:
    client_id: int
    room_id: int
    booking_date: date_type
    start_time: time
    end_time: time
    hours_booked: Decimal
    status: str = BookingStatus.PENDING
    notes: str = ""


@dataclass(frozen=True)
class CreditSummary:
    balance: Decimal
    consumed: Decimal
    expires_at: datetime | None


UPDATABLE_FIELDS = ("room_id", "booking_date", "start_time", "end_time", "hours_booked", "status", "notes")


def _actor_label(actor) -> str:
    if actor is None:
        return "system"
    return getattr(actor, "email", "") or getattr(actor, "username", "") or str(actor.pk)


def _validate_time_range(start_time: time, end_time: time) -> None:
    if end_time <= start_time:
        raise ValidationError({"end_time": "The end time must be after the start time."})


def _lock_client(client_id: int) -> Client:
    return Client.objects.select_for_update().get(id=client_id)


def _active_room(room_id: int) -> Room:
    return Room.objects.get(id=room_id, is_active=True)


def create_booking(*, actor, data: BookingInput) -> Booking:
    """
    Create a booking and debit its hours from the client in one transaction:
    - Locks the Client row so concurrent bookings cannot overdraw it.
    - Sweeps expired credit before checking the balance.
    - No booking row is written unless the debit succeeded.
    """
    _validate_time_range(data.start_time, data.end_time)
    if data.status not in OPEN_STATUSES:
        raise ValidationError({"status": "New bookings must be pending or confirmed."})

    hours = ledger.quantize(data.hours_booked)

    with transaction.atomic():
        room = _active_room(data.room_id)
        client = _lock_client(data.client_id)

        if not ledger.has_sufficient_credit(client, hours):
            raise ValidationError({"hours_booked": "Insufficient credit to make this booking."})

        ledger.debit(client, hours)

        booking = Booking.objects.create(
            client=client,
            room=room,
            booking_date=data.booking_date,
            start_time=data.start_time,
            end_time=data.end_time,
            hours_booked=hours,
            status=data.status,
            notes=data.notes or "",
        )

    logger.info(
        "Booking %s created by %s for client %s (%s hours)",
        booking.pk,
        _actor_label(actor),
        client.pk,
        hours,
    )
    return booking


def update_booking(*, actor, booking_id: int, changes: Mapping[str, Any]) -> Booking:
    """
    Apply a partial update to a booking.

    `changes` only carries the fields the caller actually sent. When
    hours_booked moves, the difference is debited or refunded on the locked
    client row before the booking is saved; if the client cannot cover an
    increase the whole update is rejected.
    """
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unsupported booking fields: {', '.join(sorted(unknown))}")

    with transaction.atomic():
        booking = Booking.objects.select_for_update().get(id=booking_id)
        client = _lock_client(booking.client_id)
        ledger.expire_credits(client)

        if not booking.is_open:
            raise ValidationError({"status": f"A {booking.status} booking can no longer be edited."})

        new_status = changes.get("status") or booking.status
        if new_status == BookingStatus.CANCELLED:
            raise ValidationError({"status": "Use the cancel operation to cancel a booking."})
        if new_status not in OPEN_STATUSES:
            raise ValidationError({"status": "Only an administrator can complete a booking."})

        if "room_id" in changes and changes["room_id"] != booking.room_id:
            booking.room = _active_room(changes["room_id"])

        start_time = changes.get("start_time") or booking.start_time
        end_time = changes.get("end_time") or booking.end_time
        _validate_time_range(start_time, end_time)

        original_hours = ledger.quantize(booking.hours_booked)
        new_hours = original_hours
        if changes.get("hours_booked") is not None:
            new_hours = ledger.quantize(changes["hours_booked"])

        difference = new_hours - original_hours
        if difference > 0:
            if ledger.quantize(client.credit_balance) < difference:
                raise ValidationError(
                    {"hours_booked": "Insufficient credit to increase the booking duration."}
                )
            ledger.debit(client, difference)
        elif difference < 0:
            ledger.refund(client, -difference)

        if changes.get("booking_date") is not None:
            booking.booking_date = changes["booking_date"]
        if "notes" in changes:
            booking.notes = changes["notes"] or ""
        booking.start_time = start_time
        booking.end_time = end_time
        booking.hours_booked = new_hours
        booking.status = new_status
        booking.save()

    logger.info(
        "Booking %s updated by %s (hours %s -> %s)",
        booking.pk,
        _actor_label(actor),
        original_hours,
        new_hours,
    )
    return booking


def cancel_booking(*, actor, booking_id: int) -> tuple[Booking, bool]:
    """
    Cancel a booking and refund its hours.
    Returns (booking, changed); cancelling an already-cancelled booking is a
    no-op that reports changed=False.
    """
    with transaction.atomic():
        booking = Booking.objects.select_for_update().get(id=booking_id)

        if booking.status == BookingStatus.CANCELLED:
            return booking, False

        if not booking.is_open:
            raise InvalidTransitionError(f"A {booking.status} booking cannot be cancelled.")

        client = _lock_client(booking.client_id)
        ledger.refund(client, booking.hours_booked)

        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = timezone.now()
        booking.save(update_fields=["status", "cancelled_at", "updated_at"])

    logger.info(
        "Booking %s cancelled by %s, refunded %s hours to client %s",
        booking.pk,
        _actor_label(actor),
        booking.hours_booked,
        booking.client_id,
    )
    return booking, True


def complete_booking(*, actor, booking_id: int) -> Booking:
    """
    Administrative transition to completed. The hours stay consumed.
    """
    with transaction.atomic():
        booking = Booking.objects.select_for_update().get(id=booking_id)
        if not booking.is_open:
            raise InvalidTransitionError(f"A {booking.status} booking cannot be completed.")

        booking.status = BookingStatus.COMPLETED
        booking.save(update_fields=["status", "updated_at"])

    logger.info("Booking %s completed by %s", booking.pk, _actor_label(actor))
    return booking


def add_client_credit(*, actor, client_id: int, hours) -> Client:
    with transaction.atomic():
        client = _lock_client(client_id)
        try:
            ledger.add_credit(client, hours)
        except ledger.LedgerError as exc:
            raise ValidationError({"hours": str(exc)}) from exc

    logger.info("Client %s topped up by %s with %s hours", client.pk, _actor_label(actor), hours)
    return client


def get_credit_summary(*, client_id: int) -> CreditSummary:
    """
    Current balance after sweeping expired credit.
    """
    with transaction.atomic():
        client = _lock_client(client_id)
        ledger.expire_credits(client)

    return CreditSummary(
        balance=ledger.quantize(client.credit_balance),
        consumed=ledger.quantize(client.credit_consumed),
        expires_at=client.credit_expires_at,
    )


def get_client(*, client_id: int) -> Client:
    """
    Load a client for display, sweeping expired credit first.
    """
    with transaction.atomic():
        client = _lock_client(client_id)
        ledger.expire_credits(client)
    return client
