from __future__ import annotations

import json

from django.core.exceptions import ValidationError
from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import ProtectedError
from django.forms.models import model_to_dict
from django.http import HttpResponse, JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from accounts.authentication import principal_required

from . import reports
from .forms import (
    BirthdayMonthForm,
    BookingCreateForm,
    BookingFilterForm,
    BookingUpdateForm,
    ClientForm,
    CreditBalanceForm,
    CreditTopUpForm,
    RoomBookingFilterForm,
)
from .models import Booking, Client, Room
from .serializers import serialize_booking, serialize_client, serialize_room
from .services import (
    BookingInput,
    InvalidTransitionError,
    add_client_credit,
    cancel_booking,
    create_booking,
    get_client,
    get_credit_summary,
    update_booking,
)


DEFAULT_PER_PAGE = 15
MAX_PER_PAGE = 100


def _payload(request) -> dict | None:
    try:
        payload = json.loads(request.body.decode("utf-8") or "{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _invalid_json():
    return JsonResponse({"error": "Invalid JSON payload."}, status=400)


def _not_found(label: str):
    return JsonResponse({"error": f"{label} not found."}, status=404)


def _form_errors(form) -> JsonResponse:
    details = {
        field: [error["message"] for error in errors]
        for field, errors in form.errors.get_json_data().items()
    }
    return JsonResponse({"error": "Validation error.", "details": details}, status=422)


def _validation_errors(exc: ValidationError) -> JsonResponse:
    details = exc.message_dict if hasattr(exc, "error_dict") else {"__all__": exc.messages}
    return JsonResponse({"error": "Validation error.", "details": details}, status=422)


def _per_page(value: str | None) -> int:
    try:
        per_page = int(value or DEFAULT_PER_PAGE)
    except ValueError:
        per_page = DEFAULT_PER_PAGE
    return max(1, min(per_page, MAX_PER_PAGE))


# ==================== ROOMS ====================


@require_GET
@principal_required
def rooms_api(request, principal):
    """
    GET /api/rooms/
    Active rooms only.
    """
    rooms = Room.objects.filter(is_active=True).order_by("number")
    return JsonResponse([serialize_room(room) for room in rooms], safe=False)


@require_GET
@principal_required
def room_detail_api(request, room_id: int, principal):
    """
    GET /api/rooms/<id>/
    """
    room = Room.objects.filter(id=room_id).first()
    if room is None:
        return _not_found("Room")
    return JsonResponse(serialize_room(room))


# ==================== CLIENTS ====================


@require_http_methods(["GET", "POST"])
@principal_required
def clients_api(request, principal):
    """
    GET /api/clients/?search=&page=&per_page=
    POST /api/clients/
    """
    if request.method == "POST":
        payload = _payload(request)
        if payload is None:
            return _invalid_json()

        form = ClientForm(payload)
        if not form.is_valid():
            return _form_errors(form)
        client = form.save()
        return JsonResponse(serialize_client(client), status=201)

    queryset = reports.search_clients(request.GET.get("search", ""))
    paginator = Paginator(queryset, _per_page(request.GET.get("per_page")))
    page = paginator.get_page(request.GET.get("page"))

    return JsonResponse(
        {
            "data": [serialize_client(client) for client in page.object_list],
            "current_page": page.number,
            "per_page": paginator.per_page,
            "total": paginator.count,
            "last_page": paginator.num_pages,
        }
    )


@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@principal_required
def client_detail_api(request, client_id: int, principal):
    """
    GET /api/clients/<id>/     (sweeps expired credit)
    PUT|PATCH /api/clients/<id>/
    DELETE /api/clients/<id>/
    """
    if request.method == "GET":
        try:
            client = get_client(client_id=client_id)
        except Client.DoesNotExist:
            return _not_found("Client")
        return JsonResponse(serialize_client(client))

    client = Client.objects.filter(id=client_id).first()
    if client is None:
        return _not_found("Client")

    if request.method == "DELETE":
        try:
            client.delete()
        except ProtectedError:
            return JsonResponse(
                {
                    "error": "Validation error.",
                    "details": {"client": ["Clients with bookings cannot be deleted."]},
                },
                status=422,
            )
        return HttpResponse(status=204)

    payload = _payload(request)
    if payload is None:
        return _invalid_json()

    with transaction.atomic():
        client = Client.objects.select_for_update().filter(id=client_id).first()
        if client is None:
            return _not_found("Client")

        data = payload
        if request.method == "PATCH":
            data = {**model_to_dict(client, fields=ClientForm._meta.fields), **payload}

        form = ClientForm(data, instance=client)
        if not form.is_valid():
            return _form_errors(form)
        client = form.save(commit=False)
        client.save(update_fields=form.update_fields(payload))

    return JsonResponse(serialize_client(client))


@require_POST
@principal_required(staff=True)
def client_credits_api(request, client_id: int, principal):
    """
    POST /api/clients/<id>/credits/
    Payload (JSON):
      - hours: decimal
    """
    payload = _payload(request)
    if payload is None:
        return _invalid_json()

    form = CreditTopUpForm(payload)
    if not form.is_valid():
        return _form_errors(form)

    try:
        client = add_client_credit(actor=principal, client_id=client_id, hours=form.cleaned_data["hours"])
    except Client.DoesNotExist:
        return _not_found("Client")
    except ValidationError as exc:
        return _validation_errors(exc)

    return JsonResponse(serialize_client(client))


# ==================== CREDITS ====================


@require_GET
@principal_required
def credit_balance_api(request, principal):
    """
    GET /api/credits/balance/?client_id=123
    """
    form = CreditBalanceForm(request.GET)
    if not form.is_valid():
        return _form_errors(form)

    try:
        summary = get_credit_summary(client_id=form.cleaned_data["client_id"])
    except Client.DoesNotExist:
        return _not_found("Client")

    return JsonResponse(
        {
            "balance": float(summary.balance),
            "consumed": float(summary.consumed),
            "expires_at": summary.expires_at.isoformat() if summary.expires_at else None,
        }
    )


# ==================== BOOKINGS ====================


def _booking_listing(request, form_class):
    payload = _payload(request)
    if payload is None:
        return _invalid_json()

    form = form_class(payload)
    if not form.is_valid():
        return _form_errors(form)

    bookings = reports.filter_bookings(reports.BookingFilters(**form.cleaned_data))
    return JsonResponse([serialize_booking(booking) for booking in bookings], safe=False)


@require_POST
@principal_required
def list_bookings_api(request, principal):
    """
    POST /api/bookings/list/
    Payload (JSON, every key optional):
      - client_id, room_id: int
      - start_date, end_date: YYYY-MM-DD (inclusive)
      - status: pending|confirmed|cancelled|completed
    """
    return _booking_listing(request, BookingFilterForm)


@require_POST
@principal_required
def list_bookings_by_room_api(request, principal):
    """
    POST /api/bookings/by-room/
    Same payload as /api/bookings/list/ with room_id required.
    """
    return _booking_listing(request, RoomBookingFilterForm)


@require_POST
@principal_required
def create_booking_api(request, principal):
    """
    POST /api/bookings/
    Payload (JSON):
      - client_id, room_id: int
      - booking_date: YYYY-MM-DD
      - start_time, end_time: HH:MM
      - hours_booked: decimal >= 0.5
      - status: pending|confirmed (optional)
      - notes: str (optional)
    """
    payload = _payload(request)
    if payload is None:
        return _invalid_json()

    form = BookingCreateForm(payload)
    if not form.is_valid():
        return _form_errors(form)

    try:
        booking = create_booking(actor=principal, data=BookingInput(**form.cleaned_data))
    except Client.DoesNotExist:
        return _not_found("Client")
    except Room.DoesNotExist:
        return _not_found("Room")
    except ValidationError as exc:
        return _validation_errors(exc)

    return JsonResponse(serialize_booking(booking), status=201)


@require_POST
@principal_required
def update_booking_api(request, booking_id: int, principal):
    """
    POST /api/bookings/<id>/update/
    Payload (JSON): any subset of room_id, booking_date, start_time,
    end_time, hours_booked, status, notes.
    """
    payload = _payload(request)
    if payload is None:
        return _invalid_json()

    form = BookingUpdateForm(payload)
    if not form.is_valid():
        return _form_errors(form)

    try:
        booking = update_booking(actor=principal, booking_id=booking_id, changes=form.changes())
    except Booking.DoesNotExist:
        return _not_found("Booking")
    except Room.DoesNotExist:
        return _not_found("Room")
    except ValidationError as exc:
        return _validation_errors(exc)

    return JsonResponse(serialize_booking(booking))


@require_POST
@principal_required
def cancel_booking_api(request, booking_id: int, principal):
    """
    POST /api/bookings/<id>/cancel/
    """
    try:
        booking, changed = cancel_booking(actor=principal, booking_id=booking_id)
    except Booking.DoesNotExist:
        return _not_found("Booking")
    except InvalidTransitionError as exc:
        return JsonResponse({"error": "Validation error.", "details": {"status": [str(exc)]}}, status=422)

    message = "Booking cancelled successfully." if changed else "The booking is already cancelled."
    return JsonResponse({"message": message, "booking": serialize_booking(booking)})


# ==================== REPORTS ====================


@require_GET
@principal_required
def popular_days_api(request, principal):
    return JsonResponse(reports.popular_days(), safe=False)


@require_GET
@principal_required
def popular_times_api(request, principal):
    return JsonResponse(reports.popular_times(), safe=False)


@require_GET
@principal_required
def popular_rooms_api(request, principal):
    return JsonResponse([serialize_room(room) for room in reports.popular_rooms()], safe=False)


@require_GET
@principal_required
def birthdays_api(request, principal):
    """
    GET /api/reports/birthdays/?month=1..12 (defaults to the current month)
    """
    form = BirthdayMonthForm(request.GET)
    if not form.is_valid():
        return _form_errors(form)

    month = form.cleaned_data.get("month") or timezone.localdate().month
    clients = reports.birthdays_in_month(month)
    return JsonResponse([serialize_client(client) for client in clients], safe=False)


@require_GET
@principal_required
def birthdays_today_api(request, principal):
    clients = reports.birthdays_today()
    return JsonResponse([serialize_client(client) for client in clients], safe=False)
