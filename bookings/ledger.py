"""
Credit ledger for a single client row.

Every function here mutates and saves the Client instance it is handed.
Callers own the transaction and are expected to have locked the row with
select_for_update() when the mutation races with other requests.
"""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, time
from decimal import ROUND_HALF_UP, Decimal

from django.utils import timezone

from .models import Client


logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

LEDGER_FIELDS = ["credit_balance", "credit_consumed", "credit_expires_at", "updated_at"]


class LedgerError(Exception):
    """Base error type for credit ledger errors."""


class InsufficientCreditError(LedgerError):
    """Raised when a debit would take the balance below zero."""

    def __init__(self, balance: Decimal, requested: Decimal):
        self.balance = balance
        self.requested = requested
        super().__init__(f"Insufficient credit: balance {balance}, requested {requested}.")


def quantize(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _positive_hours(hours) -> Decimal:
    amount = quantize(hours)
    if amount <= 0:
        raise LedgerError("Credit amounts must be positive.")
    return amount


def end_of_month(moment: datetime) -> datetime:
    """
    Last instant of the month containing `moment`, in the current time zone.
    """
    local = timezone.localtime(moment)
    last_day = calendar.monthrange(local.year, local.month)[1]
    naive = datetime.combine(local.date().replace(day=last_day), time.max)
    return timezone.make_aware(naive, timezone.get_current_timezone())


def expire_credits(client: Client, *, now: datetime | None = None) -> bool:
    """
    Zero the balance once the expiry date has passed.
    Returns True when the client was swept.
    """
    expires_at = client.credit_expires_at
    if expires_at is None:
        return False

    now = now or timezone.now()
    if now <= expires_at:
        return False

    logger.info(
        "Expiring %s credit hours for client %s (expired at %s)",
        client.credit_balance,
        client.pk,
        expires_at.isoformat(),
    )
    client.credit_balance = ZERO
    client.credit_expires_at = None
    client.save(update_fields=LEDGER_FIELDS)
    return True


def has_sufficient_credit(client: Client, hours, *, now: datetime | None = None) -> bool:
    expire_credits(client, now=now)
    return quantize(client.credit_balance) >= quantize(hours)


def debit(client: Client, hours, *, now: datetime | None = None) -> None:
    amount = _positive_hours(hours)
    expire_credits(client, now=now)

    balance = quantize(client.credit_balance)
    if balance < amount:
        raise InsufficientCreditError(balance, amount)

    client.credit_balance = quantize(max(ZERO, balance - amount))
    client.credit_consumed = quantize(client.credit_consumed) + amount
    client.save(update_fields=LEDGER_FIELDS)
    logger.info("Debited %s credit hours from client %s (balance %s)", amount, client.pk, client.credit_balance)


def refund(client: Client, hours) -> None:
    """
    Give hours back to the client. Deliberately skips the expiry sweep so a
    refund is never zeroed on the way in.
    """
    amount = _positive_hours(hours)

    client.credit_balance = quantize(client.credit_balance) + amount
    client.credit_consumed = quantize(max(ZERO, quantize(client.credit_consumed) - amount))
    client.save(update_fields=LEDGER_FIELDS)
    logger.info("Refunded %s credit hours to client %s (balance %s)", amount, client.pk, client.credit_balance)


def add_credit(client: Client, hours, *, now: datetime | None = None) -> None:
    """
    Top up the balance. Credits expire at the end of the current month.
    """
    amount = _positive_hours(hours)
    now = now or timezone.now()
    expire_credits(client, now=now)

    client.credit_balance = quantize(client.credit_balance) + amount
    client.credit_expires_at = end_of_month(now)
    client.save(update_fields=LEDGER_FIELDS)
    logger.info(
        "Added %s credit hours to client %s (balance %s, expires %s)",
        amount,
        client.pk,
        client.credit_balance,
        client.credit_expires_at.isoformat(),
    )
