from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytz

from offer_engine.database.memory_repository import MemoryOfferRepository
from offer_engine.models.offer import Offer
from offer_engine.services.offer_service import OfferService

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=pytz.utc)


class FrozenClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def make_offer_data(**overrides):
    data = {
        "code": "WELCOME10",
        "type": "percentage",
        "value": Decimal(10),
        "description": "10% off on orders above 500",
        "start_date": NOW - timedelta(days=1),
        "end_date": NOW + timedelta(days=30),
        "minimum_order_amount": Decimal(500),
        "maximum_discount": Decimal(200),
    }
    data.update(overrides)
    return data


@pytest.fixture
def offer_data():
    return make_offer_data


@pytest.fixture
def build_offer():
    """Offer model built in memory, bypassing any store"""
    def _build(**overrides):
        return Offer(offer_id=1, **make_offer_data(**overrides))
    return _build


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def repository():
    return MemoryOfferRepository()


@pytest.fixture
def service(repository, clock):
    return OfferService(repository, clock=clock)


@pytest.fixture
def create_offer(service):
    async def _create(**overrides):
        return await service.create_offer(make_offer_data(**overrides), created_by=1)
    return _create
