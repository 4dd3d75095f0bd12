"""Pytest fixtures for Portalman tests."""

from datetime import datetime, timedelta, timezone as dt_timezone
from unittest.mock import patch

import pytest

from portalman.delivery import locmem
from portalman.models import Customer, Wholesaler

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=dt_timezone.utc)


@pytest.fixture(autouse=True)
def _clear_sms_outbox():
    """Reset the in-memory SMS backend between tests."""
    locmem.outbox.clear()
    locmem.fail_next.clear()
    yield
    locmem.outbox.clear()
    locmem.fail_next.clear()


@pytest.fixture
def w1(db):
    """Wholesaler W1."""
    return Wholesaler.objects.create(code="W1", business_name="Fresh Foods Wholesale")


@pytest.fixture
def w2(db):
    """Wholesaler W2 (no customer ending in 9999)."""
    return Wholesaler.objects.create(code="W2", business_name="Second Supply")


@pytest.fixture
def jane(w1):
    """Jane: W1 customer, phone ending 4321, email on file."""
    return Customer.objects.create(
        wholesaler=w1,
        name="Jane",
        phone="07700 904321",
        email="Jane@X.com",
    )


@pytest.fixture
def sms_only(w1):
    """W1 customer without email."""
    return Customer.objects.create(
        wholesaler=w1,
        name="Sam",
        phone="+447700905555",
    )


@pytest.fixture
def twins(w1):
    """Two W1 customers sharing the suffix 1234."""
    return [
        Customer.objects.create(wholesaler=w1, name="Ann", phone="+447700111234"),
        Customer.objects.create(wholesaler=w1, name="Bob", phone="+447700221234"),
    ]


class FrozenClock:
    """Patches django.utils.timezone.now; advance() moves it forward."""

    def __init__(self, start=T0):
        self.now = start
        self._patcher = patch("django.utils.timezone.now", side_effect=lambda: self.now)

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)
        return self.now

    def start(self):
        self._patcher.start()
        return self

    def stop(self):
        self._patcher.stop()


@pytest.fixture
def clock():
    """Server clock frozen at T0."""
    frozen = FrozenClock().start()
    yield frozen
    frozen.stop()


def last_sms_code():
    """Code contained in the last SMS sent through the locmem backend."""
    body = locmem.outbox[-1].body
    return body.split(": ", 1)[1][:6]
