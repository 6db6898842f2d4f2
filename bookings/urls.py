from django.urls import path

from .api import (
    birthdays_api,
    birthdays_today_api,
    cancel_booking_api,
    client_credits_api,
    client_detail_api,
    clients_api,
    create_booking_api,
    credit_balance_api,
    list_bookings_api,
    list_bookings_by_room_api,
    popular_days_api,
    popular_rooms_api,
    popular_times_api,
    room_detail_api,
    rooms_api,
    update_booking_api,
)


app_name = "bookings"

urlpatterns = [
    path("clients/", clients_api, name="clients"),
    path("clients/<int:client_id>/", client_detail_api, name="client_detail"),
    path("clients/<int:client_id>/credits/", client_credits_api, name="client_credits"),
    path("rooms/", rooms_api, name="rooms"),
    path("rooms/<int:room_id>/", room_detail_api, name="room_detail"),
    path("bookings/", create_booking_api, name="create_booking"),
    path("bookings/list/", list_bookings_api, name="list_bookings"),
    path("bookings/by-room/", list_bookings_by_room_api, name="list_bookings_by_room"),
    path("bookings/<int:booking_id>/update/", update_booking_api, name="update_booking"),
    path("bookings/<int:booking_id>/cancel/", cancel_booking_api, name="cancel_booking"),
    path("credits/balance/", credit_balance_api, name="credit_balance"),
    path("reports/popular-days/", popular_days_api, name="popular_days"),
    path("reports/popular-times/", popular_times_api, name="popular_times"),
    path("reports/popular-rooms/", popular_rooms_api, name="popular_rooms"),
    path("reports/birthdays/", birthdays_api, name="birthdays"),
    path("reports/birthdays/today/", birthdays_today_api, name="birthdays_today"),
]
