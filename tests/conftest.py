import json
from decimal import Decimal
from itertools import count

import pytest
import requests
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import Client as HttpClient

from bookings import ledger
from bookings.models import Client, Room


_sequence = count(1)


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(
        username="operator",
        email="operator@example.com",
        password="not-used-here",
    )


@pytest.fixture
def staff_user(db):
    return get_user_model().objects.create_user(
        username="admin",
        email="admin@example.com",
        password="not-used-here",
        is_staff=True,
    )


@pytest.fixture
def api(user):
    http = HttpClient()
    http.force_login(user)
    return http


@pytest.fixture
def staff_api(staff_user):
    http = HttpClient()
    http.force_login(staff_user)
    return http


@pytest.fixture
def anonymous_api(db):
    return HttpClient()


@pytest.fixture
def make_room(db):
    def _make_room(**overrides):
        number = next(_sequence)
        defaults = {
            "number": f"R-{number}",
            "name": "Main Room",
            "description": "Meeting room",
            "capacity": 10,
            "is_active": True,
        }
        defaults.update(overrides)
        return Room.objects.create(**defaults)

    return _make_room


@pytest.fixture
def make_client(db):
    def _make_client(credit=0, **overrides):
        number = next(_sequence)
        defaults = {
            "name": f"Client {number}",
            "email": f"client{number}@example.com",
            "phone": "11999999999",
        }
        defaults.update(overrides)
        client = Client.objects.create(**defaults)
        if credit:
            ledger.add_credit(client, Decimal(str(credit)))
            client.refresh_from_db()
        return client

    return _make_client


def post_json(http, url, payload=None, **extra):
    return http.post(url, data=json.dumps(payload or {}), content_type="application/json", **extra)


def idp_response(status: int, payload=None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(payload if payload is not None else {}).encode("utf-8")
    response.headers["Content-Type"] = "application/json"
    response.url = "https://idp.test/"
    return response
