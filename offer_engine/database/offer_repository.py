# offer_engine/database/offer_repository.py
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

import asyncpg

from ..exceptions import DuplicateOfferCode, OfferInUse
from ..models.offer import Offer, OfferFilters, UsageRecord

OFFER_COLUMNS = (
    'code', 'type', 'value', 'description', 'start_date', 'end_date',
    'minimum_order_amount', 'maximum_discount', 'usage_limit',
    'is_active', 'user_specific', 'allowed_users', 'created_by', 'updated_by'
)


class OfferRepository(ABC):
    """Storage boundary of the offer engine"""

    @abstractmethod
    async def create_offer(self, data: Dict[str, Any]) -> Offer:
        """Insert a validated offer; raises DuplicateOfferCode"""

    @abstractmethod
    async def get_offer(self, offer_id: int) -> Optional[Offer]:
        """Offer with its usage history, or None"""

    @abstractmethod
    async def update_offer(self, offer_id: int, data: Dict[str, Any]) -> Optional[Offer]:
        """Overwrite policy fields; None if the offer does not exist"""

    @abstractmethod
    async def set_active(self, offer_id: int, is_active: bool) -> bool:
        pass

    @abstractmethod
    async def delete_offer(self, offer_id: int) -> bool:
        """Delete an offer that was never redeemed; raises OfferInUse otherwise"""

    @abstractmethod
    async def find_active_offer_by_code(self, code: str, now: datetime) -> Optional[Offer]:
        """Active offer with this normalized code whose window contains now"""

    @abstractmethod
    async def find_active_offers(self, filters: OfferFilters, now: datetime) -> List[Offer]:
        """Active offers inside their window, newest first, without history"""

    @abstractmethod
    async def conditionally_increment_usage(self, offer_id: int,
                                            expected_limit: Optional[int]) -> bool:
        """Increment times_used only while it is below expected_limit.

        Must be a single atomic step in the store. Returns False when the
        increment was rejected.
        """

    @abstractmethod
    async def append_usage_record(self, offer_id: int, record: UsageRecord) -> None:
        pass

    @abstractmethod
    async def get_usage_history(self, offer_id: int) -> List[UsageRecord]:
        pass

    @abstractmethod
    async def get_usage_stats(self, offer_id: int) -> Dict[str, Any]:
        pass

    async def record_redemption(self, offer_id: int, expected_limit: Optional[int],
                                record: UsageRecord) -> Optional[Offer]:
        """Conditional increment followed by the ledger append.

        Returns the offer as stored afterwards, or None when the increment
        was rejected.
        """
        if not await self.conditionally_increment_usage(offer_id, expected_limit):
            return None
        await self.append_usage_record(offer_id, record)
        return await self.get_offer(offer_id)


class PostgresOfferRepository(OfferRepository):
    """Offer store on PostgreSQL through the shared asyncpg pool"""

    def __init__(self, db):
        self.db = db
        self.logger = logging.getLogger(__name__)

    async def create_offer(self, data: Dict[str, Any]) -> Offer:
        """Insert a new offer"""
        values = self._column_values(data)
        columns = list(values)
        placeholders = ', '.join(f"${i}" for i in range(1, len(columns) + 1))

        async with self.db.pool.acquire() as conn:
            try:
                row = await conn.fetchrow(f"""
                    INSERT INTO offers ({', '.join(columns)})
                    VALUES ({placeholders})
                    RETURNING *
                """, *values.values())
            except asyncpg.UniqueViolationError:
                raise DuplicateOfferCode(data['code'])
            return self._to_offer(row, [])

    async def get_offer(self, offer_id: int) -> Optional[Offer]:
        """Load an offer and join its ledger"""
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT *
                FROM offers
                WHERE offer_id = $1
            """, offer_id)
            if not row:
                return None
            return self._to_offer(row, await self._fetch_history(conn, offer_id))

    async def update_offer(self, offer_id: int, data: Dict[str, Any]) -> Optional[Offer]:
        """Update policy fields"""
        values = self._column_values(data)
        query_parts = []
        params = []
        param_count = 1

        for key, value in values.items():
            query_parts.append(f"{key} = ${param_count}")
            params.append(value)
            param_count += 1

        if not query_parts:
            return await self.get_offer(offer_id)

        params.append(offer_id)
        query = f"""
            UPDATE offers
            SET {', '.join(query_parts)}, updated_at = NOW()
            WHERE offer_id = ${param_count}
            RETURNING *
        """

        async with self.db.pool.acquire() as conn:
            try:
                row = await conn.fetchrow(query, *params)
            except asyncpg.UniqueViolationError:
                raise DuplicateOfferCode(data['code'])
            if not row:
                return None
            return self._to_offer(row, await self._fetch_history(conn, offer_id))

    async def set_active(self, offer_id: int, is_active: bool) -> bool:
        """Toggle is_active"""
        async with self.db.pool.acquire() as conn:
            result = await conn.execute("""
                UPDATE offers
                SET is_active = $2, updated_at = NOW()
                WHERE offer_id = $1
            """, offer_id, is_active)
            return result == "UPDATE 1"

    async def delete_offer(self, offer_id: int) -> bool:
        """Delete only while times_used is still 0"""
        async with self.db.pool.acquire() as conn:
            async with conn.transaction():
                deleted = await conn.fetchval("""
                    DELETE FROM offers
                    WHERE offer_id = $1 AND times_used = 0
                    RETURNING offer_id
                """, offer_id)
                if deleted is not None:
                    return True

                exists = await conn.fetchval("""
                    SELECT 1 FROM offers WHERE offer_id = $1
                """, offer_id)
                if exists:
                    raise OfferInUse()
                return False

    async def find_active_offer_by_code(self, code: str, now: datetime) -> Optional[Offer]:
        """Look up a redeemable offer by code"""
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT *
                FROM offers
                WHERE code = $1
                AND is_active = true
                AND start_date <= $2
                AND end_date >= $2
            """, code, now)
            if not row:
                return None
            return self._to_offer(row, await self._fetch_history(conn, row['offer_id']))

    async def find_active_offers(self, filters: OfferFilters, now: datetime) -> List[Offer]:
        """List offers currently inside their window"""
        query = """
            SELECT *
            FROM offers
            WHERE is_active = true
            AND start_date <= $1
            AND end_date >= $1
        """
        params = [now]
        param_index = 2

        if filters.type is not None:
            query += f" AND type = ${param_index}"
            params.append(filters.type.value)
            param_index += 1

        if filters.min_amount is not None:
            query += f" AND minimum_order_amount <= ${param_index}"
            params.append(filters.min_amount)
            param_index += 1

        if filters.max_discount is not None:
            query += f" AND maximum_discount >= ${param_index}"
            params.append(filters.max_discount)
            param_index += 1

        query += " ORDER BY created_at DESC, offer_id DESC"

        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
            return [self._to_offer(row, []) for row in rows]

    async def conditionally_increment_usage(self, offer_id: int,
                                            expected_limit: Optional[int]) -> bool:
        async with self.db.pool.acquire() as conn:
            return await self._increment(conn, offer_id, expected_limit) is not None

    async def append_usage_record(self, offer_id: int, record: UsageRecord) -> None:
        async with self.db.pool.acquire() as conn:
            await self._insert_usage(conn, offer_id, record)

    async def record_redemption(self, offer_id: int, expected_limit: Optional[int],
                                record: UsageRecord) -> Optional[Offer]:
        """Increment and ledger insert in one transaction"""
        async with self.db.pool.acquire() as conn:
            async with conn.transaction():
                row = await self._increment(conn, offer_id, expected_limit)
                if row is None:
                    return None
                await self._insert_usage(conn, offer_id, record)
                return self._to_offer(row, await self._fetch_history(conn, offer_id))

    async def get_usage_history(self, offer_id: int) -> List[UsageRecord]:
        async with self.db.pool.acquire() as conn:
            return await self._fetch_history(conn, offer_id)

    async def get_usage_stats(self, offer_id: int) -> Dict[str, Any]:
        """Usage report for one offer"""
        async with self.db.pool.acquire() as conn:
            stats = await conn.fetchrow("""
                SELECT
                    COUNT(*) as total_usage,
                    COALESCE(SUM(discount_applied), 0) as total_discount_amount,
                    COUNT(DISTINCT user_id) as unique_users
                FROM offer_usage
                WHERE offer_id = $1
            """, offer_id)
            return dict(stats)

    @staticmethod
    async def _increment(conn, offer_id: int, expected_limit: Optional[int]):
        """Updated offer row, or None when the limit was already reached"""
        return await conn.fetchrow("""
            UPDATE offers
            SET times_used = times_used + 1, updated_at = NOW()
            WHERE offer_id = $1
            AND ($2::integer IS NULL OR times_used < $2)
            RETURNING *
        """, offer_id, expected_limit)

    @staticmethod
    async def _insert_usage(conn, offer_id: int, record: UsageRecord) -> None:
        await conn.execute("""
            INSERT INTO offer_usage (
                offer_id, user_id, order_id, discount_applied, applied_at
            ) VALUES ($1, $2, $3, $4, $5)
        """, offer_id, record.user_id, record.order_id,
             record.discount_applied, record.applied_at)

    @staticmethod
    async def _fetch_history(conn, offer_id: int) -> List[UsageRecord]:
        rows = await conn.fetch("""
            SELECT user_id, order_id, discount_applied, applied_at
            FROM offer_usage
            WHERE offer_id = $1
            ORDER BY applied_at, usage_id
        """, offer_id)
        return [UsageRecord(**dict(row)) for row in rows]

    @staticmethod
    def _column_values(data: Dict[str, Any]) -> Dict[str, Any]:
        values = {key: data[key] for key in OFFER_COLUMNS if key in data}
        if 'type' in values and hasattr(values['type'], 'value'):
            values['type'] = values['type'].value
        if 'allowed_users' in values:
            values['allowed_users'] = sorted(values['allowed_users'])
        return values

    @staticmethod
    def _to_offer(row, history: List[UsageRecord]) -> Offer:
        data = dict(row)
        data['allowed_users'] = set(data.get('allowed_users') or [])
        data['usage_history'] = history
        return Offer(**data)
