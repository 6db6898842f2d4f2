from django.urls import path

from .api import current_user_api, login_api, logout_api, refresh_api


app_name = "accounts"

urlpatterns = [
    path("login/", login_api, name="login"),
    path("refresh/", refresh_api, name="refresh"),
    path("logout/", logout_api, name="logout"),
    path("user/", current_user_api, name="user"),
]
