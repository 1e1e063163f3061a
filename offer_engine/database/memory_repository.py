# offer_engine/database/memory_repository.py
import asyncio
import itertools
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..exceptions import DuplicateOfferCode, OfferInUse
from ..models.offer import Offer, OfferFilters, UsageRecord, utc_now
from .offer_repository import OfferRepository


class MemoryOfferRepository(OfferRepository):
    """In-process offer store.

    Every mutation runs under one asyncio.Lock, which makes the conditional
    increment atomic for coroutines sharing an event loop. Offers are copied
    in and out so callers never hold a reference to stored state.
    """

    def __init__(self):
        self._offers: Dict[int, Offer] = {}
        self._usage: Dict[int, List[UsageRecord]] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def create_offer(self, data: Dict[str, Any]) -> Offer:
        async with self._lock:
            if any(o.code == data['code'] for o in self._offers.values()):
                raise DuplicateOfferCode(data['code'])

            offer_id = next(self._ids)
            offer = Offer(offer_id=offer_id, created_at=utc_now(), **data)
            self._offers[offer_id] = offer
            self._usage[offer_id] = []
            return self._snapshot(offer_id)

    async def get_offer(self, offer_id: int) -> Optional[Offer]:
        if offer_id not in self._offers:
            return None
        return self._snapshot(offer_id)

    async def update_offer(self, offer_id: int, data: Dict[str, Any]) -> Optional[Offer]:
        async with self._lock:
            offer = self._offers.get(offer_id)
            if offer is None:
                return None
            if 'code' in data and any(
                o.code == data['code'] and o.offer_id != offer_id
                for o in self._offers.values()
            ):
                raise DuplicateOfferCode(data['code'])

            self._offers[offer_id] = offer.model_copy(
                update={**data, 'updated_at': utc_now()}
            )
            return self._snapshot(offer_id)

    async def set_active(self, offer_id: int, is_active: bool) -> bool:
        return await self.update_offer(offer_id, {'is_active': is_active}) is not None

    async def delete_offer(self, offer_id: int) -> bool:
        async with self._lock:
            offer = self._offers.get(offer_id)
            if offer is None:
                return False
            if offer.times_used or self._usage[offer_id]:
                raise OfferInUse()
            del self._offers[offer_id]
            del self._usage[offer_id]
            return True

    async def find_active_offer_by_code(self, code: str, now: datetime) -> Optional[Offer]:
        for offer_id, offer in self._offers.items():
            if offer.code == code and offer.is_valid_at(now):
                return self._snapshot(offer_id)
        return None

    async def find_active_offers(self, filters: OfferFilters, now: datetime) -> List[Offer]:
        offers = [o for o in self._offers.values() if o.is_valid_at(now)]

        if filters.type is not None:
            offers = [o for o in offers if o.type == filters.type]
        if filters.min_amount is not None:
            offers = [o for o in offers if o.minimum_order_amount <= filters.min_amount]
        if filters.max_discount is not None:
            offers = [
                o for o in offers
                if o.maximum_discount is not None and o.maximum_discount >= filters.max_discount
            ]

        offers.sort(key=lambda o: (o.created_at, o.offer_id), reverse=True)
        return [o.model_copy(deep=True) for o in offers]

    async def conditionally_increment_usage(self, offer_id: int,
                                            expected_limit: Optional[int]) -> bool:
        async with self._lock:
            return self._increment(offer_id, expected_limit)

    async def append_usage_record(self, offer_id: int, record: UsageRecord) -> None:
        async with self._lock:
            self._usage[offer_id].append(record.model_copy())

    async def record_redemption(self, offer_id: int, expected_limit: Optional[int],
                                record: UsageRecord) -> Optional[Offer]:
        async with self._lock:
            if not self._increment(offer_id, expected_limit):
                return None
            self._usage[offer_id].append(record.model_copy())
            return self._snapshot(offer_id)

    async def get_usage_history(self, offer_id: int) -> List[UsageRecord]:
        return [r.model_copy() for r in self._usage.get(offer_id, [])]

    async def get_usage_stats(self, offer_id: int) -> Dict[str, Any]:
        history = self._usage.get(offer_id, [])
        return {
            "total_usage": len(history),
            "total_discount_amount": sum((r.discount_applied for r in history), Decimal(0)),
            "unique_users": len({r.user_id for r in history}),
        }

    def _increment(self, offer_id: int, expected_limit: Optional[int]) -> bool:
        offer = self._offers.get(offer_id)
        if offer is None:
            return False
        if expected_limit is not None and offer.times_used >= expected_limit:
            return False
        self._offers[offer_id] = offer.model_copy(update={'times_used': offer.times_used + 1})
        return True

    def _snapshot(self, offer_id: int) -> Offer:
        offer = self._offers[offer_id]
        return offer.model_copy(
            update={'usage_history': [r.model_copy() for r in self._usage[offer_id]]},
            deep=True
        )
