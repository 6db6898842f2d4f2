from datetime import date, time
from decimal import Decimal
from unittest import mock

import pytest

from bookings.admin import ClientAdmin
from bookings.models import Booking, BookingStatus, Client
from bookings.services import BookingInput, create_booking


pytestmark = pytest.mark.django_db


@pytest.fixture
def booking(admin_user, make_client, make_room):
    client = make_client(credit=4)
    return create_booking(
        actor=admin_user,
        data=BookingInput(
            client_id=client.id,
            room_id=make_room().id,
            booking_date=date(2026, 10, 20),
            start_time=time(9, 0),
            end_time=time(10, 0),
            hours_booked=Decimal("1"),
        ),
    )


def test_cancel_action_refunds_credit(admin_client, booking):
    response = admin_client.post(
        "/admin/bookings/booking/",
        {"action": "cancel_bookings", "_selected_action": [booking.id]},
    )

    assert response.status_code == 302
    booking.refresh_from_db()
    booking.client.refresh_from_db()
    assert booking.status == BookingStatus.CANCELLED
    assert booking.client.credit_balance == Decimal("4.00")


def test_complete_action_skips_cancelled_bookings(admin_client, booking):
    admin_client.post("/admin/bookings/booking/", {"action": "cancel_bookings", "_selected_action": [booking.id]})

    admin_client.post("/admin/bookings/booking/", {"action": "complete_bookings", "_selected_action": [booking.id]})

    assert Booking.objects.get(id=booking.id).status == BookingStatus.CANCELLED


def test_booking_admin_has_no_add_view(admin_client):
    assert admin_client.get("/admin/bookings/booking/add/").status_code == 403


def test_unhandled_api_error_is_json(api):
    with mock.patch("bookings.api.reports.popular_days", side_effect=RuntimeError("boom")):
        response = api.get("/api/reports/popular-days/")

    assert response.status_code == 500
    assert response.json() == {"error": "Unexpected server error."}


def test_client_change_keeps_concurrent_ledger_writes(admin_client, make_client):
    client = make_client(name="Before", credit=8)
    original_get_object = ClientAdmin.get_object

    def get_object_then_debit(self, request, object_id, from_field=None):
        obj = original_get_object(self, request, object_id, from_field)
        Client.objects.filter(id=client.id).update(credit_balance=Decimal("6.00"))
        return obj

    with mock.patch.object(ClientAdmin, "get_object", get_object_then_debit):
        response = admin_client.post(
            f"/admin/bookings/client/{client.id}/change/",
            {"name": "After", "email": client.email, "phone": client.phone, "birth_date": "", "add_hours": ""},
        )

    assert response.status_code == 302
    client.refresh_from_db()
    assert client.name == "After"
    assert client.credit_balance == Decimal("6.00")


def test_client_change_tops_up_through_ledger(admin_client, make_client):
    client = make_client(credit=2)

    admin_client.post(
        f"/admin/bookings/client/{client.id}/change/",
        {"name": client.name, "email": client.email, "phone": client.phone, "birth_date": "", "add_hours": "3"},
    )

    client.refresh_from_db()
    assert client.credit_balance == Decimal("5.00")


def _change_booking(admin_client, booking, **overrides):
    data = {
        "booking_date": booking.booking_date.isoformat(),
        "start_time": booking.start_time.strftime("%H:%M"),
        "end_time": booking.end_time.strftime("%H:%M"),
        "notes": booking.notes,
    }
    data.update(overrides)
    return admin_client.post(f"/admin/bookings/booking/{booking.id}/change/", data)


def test_booking_change_goes_through_update(admin_client, booking):
    response = _change_booking(admin_client, booking, notes="Projector")

    assert response.status_code == 302
    booking.refresh_from_db()
    assert booking.notes == "Projector"


def test_booking_change_with_inverted_times_is_a_form_error(admin_client, booking):
    response = _change_booking(admin_client, booking, start_time="11:00", end_time="10:00")

    assert response.status_code == 200
    assert "end_time" in response.context["adminform"].form.errors
    booking.refresh_from_db()
    assert booking.start_time == time(9, 0)
