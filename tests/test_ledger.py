from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from bookings import ledger
from bookings.models import Client


pytestmark = pytest.mark.django_db


def _aware(*args) -> datetime:
    return timezone.make_aware(datetime(*args), timezone.get_current_timezone())


def test_add_credit_sets_expiry_to_end_of_month(make_client):
    client = make_client()
    ledger.add_credit(client, Decimal("10"), now=_aware(2026, 10, 19, 12, 0))

    client.refresh_from_db()
    assert client.credit_balance == Decimal("10.00")
    expires = timezone.localtime(client.credit_expires_at)
    assert (expires.year, expires.month, expires.day) == (2026, 10, 31)
    assert (expires.hour, expires.minute, expires.second) == (23, 59, 59)


def test_end_of_month_handles_february_in_leap_year():
    assert timezone.localtime(ledger.end_of_month(_aware(2028, 2, 3, 8, 0))).day == 29


def test_expire_credits_only_after_expiry(make_client):
    expires_at = _aware(2026, 10, 31, 23, 59)
    client = make_client(credit_balance=Decimal("5"), credit_expires_at=expires_at)

    assert ledger.expire_credits(client, now=expires_at) is False
    assert ledger.expire_credits(client, now=expires_at - timedelta(days=3)) is False
    assert client.credit_balance == Decimal("5")

    assert ledger.expire_credits(client, now=expires_at + timedelta(seconds=1)) is True
    client.refresh_from_db()
    assert client.credit_balance == Decimal("0.00")
    assert client.credit_expires_at is None


def test_expire_credits_without_expiry_date_is_noop(make_client):
    client = make_client(credit_balance=Decimal("3"))
    assert ledger.expire_credits(client) is False
    assert client.credit_balance == Decimal("3")


def test_debit_moves_balance_into_consumed(make_client):
    client = make_client(credit=8)
    ledger.debit(client, Decimal("2"))

    client.refresh_from_db()
    assert client.credit_balance == Decimal("6.00")
    assert client.credit_consumed == Decimal("2.00")


def test_debit_rejects_insufficient_balance(make_client):
    client = make_client(credit=1)

    with pytest.raises(ledger.InsufficientCreditError):
        ledger.debit(client, Decimal("1.5"))

    client.refresh_from_db()
    assert client.credit_balance == Decimal("1.00")
    assert client.credit_consumed == Decimal("0.00")


def test_debit_sweeps_expired_credit_first(make_client):
    client = make_client(
        credit_balance=Decimal("10"),
        credit_expires_at=timezone.now() - timedelta(days=1),
    )

    assert ledger.has_sufficient_credit(client, Decimal("1")) is False
    with pytest.raises(ledger.InsufficientCreditError):
        ledger.debit(client, Decimal("1"))


def test_refund_skips_expiry_sweep(make_client):
    client = make_client(
        credit_balance=Decimal("1"),
        credit_consumed=Decimal("3"),
        credit_expires_at=timezone.now() - timedelta(days=1),
    )

    ledger.refund(client, Decimal("2"))

    client.refresh_from_db()
    assert client.credit_balance == Decimal("3.00")
    assert client.credit_consumed == Decimal("1.00")
    assert client.credit_expires_at is not None


def test_refund_floors_consumed_at_zero(make_client):
    client = make_client(credit_balance=Decimal("1"), credit_consumed=Decimal("0.5"))
    ledger.refund(client, Decimal("2"))

    client.refresh_from_db()
    assert client.credit_balance == Decimal("3.00")
    assert client.credit_consumed == Decimal("0.00")


def test_amounts_are_rounded_to_cents(make_client):
    client = make_client(credit=5)
    ledger.debit(client, Decimal("1.005"))

    client.refresh_from_db()
    assert client.credit_balance == Decimal("3.99")
    assert client.credit_consumed == Decimal("1.01")


@pytest.mark.parametrize("hours", [Decimal("0"), Decimal("-1")])
def test_non_positive_amounts_are_rejected(make_client, hours):
    client = make_client(credit=5)
    with pytest.raises(ledger.LedgerError):
        ledger.debit(client, hours)
    with pytest.raises(ledger.LedgerError):
        ledger.refund(client, hours)


def test_balance_never_goes_negative(make_client):
    client = make_client(credit=4)
    operations = [
        ("debit", "1.5"),
        ("debit", "3"),
        ("refund", "0.75"),
        ("debit", "2.5"),
        ("debit", "0.75"),
        ("refund", "4"),
        ("debit", "5"),
    ]

    for operation, hours in operations:
        try:
            getattr(ledger, operation)(client, Decimal(hours))
        except ledger.InsufficientCreditError:
            pass
        client.refresh_from_db()
        assert client.credit_balance >= 0
        assert client.credit_consumed >= 0

    assert Client.objects.filter(credit_balance__lt=0).count() == 0
