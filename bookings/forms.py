from __future__ import annotations

from decimal import Decimal

from django import forms

from .models import OPEN_STATUSES, BookingStatus, Client, Room


TIME_INPUT_FORMATS = ["%H:%M"]

HOURS_FIELD_OPTIONS = {
    "max_digits": 8,
    "decimal_places": 2,
    "min_value": Decimal("0.5"),
}


def check_time_range(form: forms.Form) -> None:
    start = form.cleaned_data.get("start_time")
    end = form.cleaned_data.get("end_time")
    if start and end and end <= start:
        form.add_error("end_time", "The end time must be after the start time.")


class BookingCreateForm(forms.Form):
    client_id = forms.IntegerField(min_value=1)
    room_id = forms.IntegerField(min_value=1)
    booking_date = forms.DateField()
    start_time = forms.TimeField(input_formats=TIME_INPUT_FORMATS)
    end_time = forms.TimeField(input_formats=TIME_INPUT_FORMATS)
    hours_booked = forms.DecimalField(**HOURS_FIELD_OPTIONS)
    status = forms.ChoiceField(
        choices=[(value, label) for value, label in BookingStatus.choices if value in OPEN_STATUSES],
        required=False,
    )
    notes = forms.CharField(required=False)

    def clean(self):
        cleaned = super().clean()
        check_time_range(self)
        if not cleaned.get("status"):
            cleaned["status"] = BookingStatus.PENDING
        return cleaned


class BookingUpdateForm(forms.Form):
    room_id = forms.IntegerField(min_value=1, required=False)
    booking_date = forms.DateField(required=False)
    start_time = forms.TimeField(input_formats=TIME_INPUT_FORMATS, required=False)
    end_time = forms.TimeField(input_formats=TIME_INPUT_FORMATS, required=False)
    hours_booked = forms.DecimalField(required=False, **HOURS_FIELD_OPTIONS)
    # Cancelling has its own endpoint; completing is an admin action.
    status = forms.ChoiceField(
        choices=[(value, label) for value, label in BookingStatus.choices if value in OPEN_STATUSES],
        required=False,
    )
    notes = forms.CharField(required=False)

    def clean(self):
        cleaned = super().clean()
        check_time_range(self)
        return cleaned

    def changes(self) -> dict:
        """
        Cleaned values for the fields present in the payload. Nulls are
        dropped except for notes, which can be cleared.
        """
        changes = {}
        for name, value in self.cleaned_data.items():
            if name not in self.data:
                continue
            if value in (None, "") and name != "notes":
                continue
            changes[name] = value
        return changes


class BookingFilterForm(forms.Form):
    client_id = forms.IntegerField(min_value=1, required=False)
    room_id = forms.IntegerField(min_value=1, required=False)
    start_date = forms.DateField(required=False)
    end_date = forms.DateField(required=False)
    status = forms.ChoiceField(choices=BookingStatus.choices, required=False)

    def clean_client_id(self):
        client_id = self.cleaned_data.get("client_id")
        if client_id and not Client.objects.filter(id=client_id).exists():
            raise forms.ValidationError("Client not found.")
        return client_id

    def clean_room_id(self):
        room_id = self.cleaned_data.get("room_id")
        if room_id and not Room.objects.filter(id=room_id).exists():
            raise forms.ValidationError("Room not found.")
        return room_id

    def clean(self):
        cleaned = super().clean()
        start = cleaned.get("start_date")
        end = cleaned.get("end_date")
        if start and end and end < start:
            self.add_error("end_date", "The end date must be on or after the start date.")
        return cleaned


class RoomBookingFilterForm(BookingFilterForm):
    room_id = forms.IntegerField(min_value=1)


CLIENT_PROFILE_FIELDS = ("name", "email", "phone", "birth_date")
CLIENT_CREDIT_FIELDS = ("credit_balance", "credit_consumed", "credit_expires_at")


class ClientForm(forms.ModelForm):
    class Meta:
        model = Client
        fields = CLIENT_PROFILE_FIELDS + CLIENT_CREDIT_FIELDS

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for name in ("credit_balance", "credit_consumed"):
            self.fields[name].required = False

    def _credit_value(self, name: str) -> Decimal:
        value = self.cleaned_data.get(name)
        if value is None:
            return getattr(self.instance, name) or Decimal("0.00")
        return value

    def clean_credit_balance(self):
        return self._credit_value("credit_balance")

    def clean_credit_consumed(self):
        return self._credit_value("credit_consumed")

    def update_fields(self, sent) -> list[str]:
        """
        Columns an update writes: the profile plus only the credit fields the
        caller sent. Unsent credit fields keep whatever the ledger stored.
        """
        return [*CLIENT_PROFILE_FIELDS, *(name for name in CLIENT_CREDIT_FIELDS if name in sent), "updated_at"]


class CreditTopUpForm(forms.Form):
    hours = forms.DecimalField(max_digits=8, decimal_places=2, min_value=Decimal("0.01"))


class CreditBalanceForm(forms.Form):
    client_id = forms.IntegerField(min_value=1)


class BirthdayMonthForm(forms.Form):
    month = forms.IntegerField(min_value=1, max_value=12, required=False)
