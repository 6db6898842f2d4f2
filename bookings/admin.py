from decimal import Decimal

from django import forms
from django.contrib import admin, messages
from django.utils.html import format_html

from .forms import CLIENT_PROFILE_FIELDS, check_time_range
from .models import Booking, BookingStatus, Client, Room
from .services import InvalidTransitionError, add_client_credit, cancel_booking, complete_booking, update_booking


admin.site.site_header = "Room Credits Admin"
admin.site.site_title = "Room Credits Admin"
admin.site.index_title = "Rooms, clients and bookings"

LEDGER_FIELDS = ("credit_balance", "credit_consumed", "credit_expires_at")

STATUS_COLORS = {
    BookingStatus.PENDING: "#c9b26b",
    BookingStatus.CONFIRMED: "#4f8a5b",
    BookingStatus.CANCELLED: "#a35a5a",
    BookingStatus.COMPLETED: "#7e8571",
}


class ClientAdminForm(forms.ModelForm):
    add_hours = forms.DecimalField(
        required=False,
        max_digits=8,
        decimal_places=2,
        min_value=Decimal("0.01"),
        help_text="Top up credit hours. Credits expire at the end of the current month.",
    )

    class Meta:
        model = Client
        fields = "__all__"


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    form = ClientAdminForm
    list_display = ("name", "email", "phone", "credit_balance", "credit_consumed", "credit_expires_at")
    search_fields = ("name", "email", "phone")
    ordering = ("name",)

    def get_readonly_fields(self, request, obj=None):
        readonly = list(super().get_readonly_fields(request, obj))
        if obj is not None:
            # Existing balances only move through the ledger.
            readonly.extend(LEDGER_FIELDS)
        return readonly

    def get_fields(self, request, obj=None):
        fields = list(super().get_fields(request, obj))
        if obj is None and "add_hours" in fields:
            fields.remove("add_hours")
        return fields

    def save_model(self, request, obj, form, change):
        if not change:
            super().save_model(request, obj, form, change)
            return

        # The loaded balance may be stale; ledger columns are written by the ledger only.
        obj.save(update_fields=[*CLIENT_PROFILE_FIELDS, "updated_at"])
        hours = form.cleaned_data.get("add_hours")
        if hours:
            add_client_credit(actor=request.user, client_id=obj.pk, hours=hours)
            obj.refresh_from_db()
            messages.success(request, f"Added {hours} credit hours to {obj.name}.")


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ("number", "name", "capacity", "is_active")
    list_filter = ("is_active",)
    search_fields = ("number", "name")
    ordering = ("number",)
    actions = ("deactivate_rooms",)

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description="Deactivate selected rooms")
    def deactivate_rooms(self, request, queryset):
        updated = queryset.update(is_active=False)
        self.message_user(request, f"{updated} room(s) deactivated.")


class BookingAdminForm(forms.ModelForm):
    class Meta:
        model = Booking
        fields = "__all__"

    def clean(self):
        cleaned = super().clean()
        if self.instance.pk and self.has_changed() and not self.instance.is_open:
            raise forms.ValidationError(f"A {self.instance.status} booking can no longer be edited.")
        check_time_range(self)
        return cleaned


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    form = BookingAdminForm
    list_display = ("id", "client", "room", "booking_date", "time_range", "hours_booked", "status_badge")
    list_filter = ("status", "room", "booking_date")
    search_fields = ("client__name", "client__email", "room__number", "room__name")
    ordering = ("-booking_date", "start_time")
    readonly_fields = ("client", "room", "hours_booked", "status", "cancelled_at", "created_at", "updated_at")
    list_select_related = ("client", "room")
    actions = ("cancel_bookings", "complete_bookings")

    @admin.display(description="Time", ordering="start_time")
    def time_range(self, obj: Booking) -> str:
        return f"{obj.start_time:%H:%M}–{obj.end_time:%H:%M}"

    @admin.display(description="Status", ordering="status")
    def status_badge(self, obj: Booking) -> str:
        return format_html(
            '<span style="padding:3px 8px;border-radius:999px;color:{};font-weight:600;font-size:11px;">{}</span>',
            STATUS_COLORS.get(obj.status, "#7e8571"),
            obj.get_status_display(),
        )

    def get_readonly_fields(self, request, obj=None):
        readonly = list(super().get_readonly_fields(request, obj))
        if obj is not None and not obj.is_open:
            readonly.extend(["booking_date", "start_time", "end_time", "notes"])
        return readonly

    def has_add_permission(self, request):
        # Bookings debit credit, so they are only created through the API.
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def get_actions(self, request):
        actions = super().get_actions(request)
        actions.pop("delete_selected", None)
        return actions

    def save_model(self, request, obj, form, change):
        changes = {name: form.cleaned_data[name] for name in form.changed_data if name in form.cleaned_data}
        if changes:
            update_booking(actor=request.user, booking_id=obj.pk, changes=changes)

    def _transition(self, request, queryset, operation, verb: str) -> None:
        done = 0
        for booking in queryset:
            try:
                operation(actor=request.user, booking_id=booking.pk)
            except InvalidTransitionError as exc:
                self.message_user(request, f"Booking {booking.pk}: {exc}", level=messages.WARNING)
            else:
                done += 1
        self.message_user(request, f"{done} booking(s) {verb}.")

    @admin.action(description="Cancel selected bookings (refund credit)")
    def cancel_bookings(self, request, queryset):
        self._transition(request, queryset, cancel_booking, "cancelled")

    @admin.action(description="Mark selected bookings as completed")
    def complete_bookings(self, request, queryset):
        self._transition(request, queryset, complete_booking, "completed")
