# offer_engine/services/offer_service.py
import logging
from datetime import datetime
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from ..database.offer_repository import OfferRepository
from ..exceptions import (
    InvalidOfferDefinition, MinimumNotMet, OfferError,
    OfferNotFound, OfferNotFoundOrExpired, RedemptionRace,
    UsageLimitExceeded, UserNotEligible
)
from ..models.offer import (
    Offer, OfferCreate, OfferDefinition, OfferFilters, OfferType,
    OfferUpdate, UsageRecord, normalize_code, utc_now
)
from ..utils.messages import Messages

CENT = Decimal("0.01")


class OfferService:
    """Coupon validation, discount calculation and redemption.

    Validity is derived from is_active and the date window on every call;
    nothing about it is cached. The only write on the checkout path is
    apply_coupon, which relies on the repository's conditional increment so
    that concurrent checkouts cannot redeem past usage_limit.
    """

    def __init__(self, repository: OfferRepository,
                 clock: Callable[[], datetime] = utc_now):
        self.repository = repository
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    async def validate_coupon(self, code: str, order_amount,
                              user_id: Optional[int] = None) -> Offer:
        """Check that a code may be applied to this order; read only"""
        order_amount = self._to_amount(order_amount)
        code = normalize_code(code)

        offer = None
        if code:
            offer = await self.repository.find_active_offer_by_code(code, self.clock())
        if not offer:
            raise self._reject(code, OfferNotFoundOrExpired())

        # Minimum order amount, inclusive
        if order_amount < offer.minimum_order_amount:
            raise self._reject(code, MinimumNotMet(
                offer.minimum_order_amount,
                Messages.minimum_not_met(offer.minimum_order_amount)
            ))

        # Usage limit
        if offer.usage_limit is not None and offer.times_used >= offer.usage_limit:
            raise self._reject(code, UsageLimitExceeded())

        # User restriction
        if offer.user_specific and (user_id is None or user_id not in offer.allowed_users):
            raise self._reject(code, UserNotEligible())

        return offer

    @staticmethod
    def calculate_discount(offer: Offer, order_amount) -> Decimal:
        """Discount for an order, capped by maximum_discount and the order total"""
        order_amount = OfferService._to_amount(order_amount)

        if offer.type == OfferType.PERCENTAGE:
            discount = (order_amount * offer.value / 100).quantize(CENT, rounding=ROUND_HALF_UP)
        else:
            discount = offer.value

        if offer.maximum_discount is not None and discount > offer.maximum_discount:
            discount = offer.maximum_discount

        # Whole cents, never above the order total
        return min(discount, order_amount.quantize(CENT, rounding=ROUND_DOWN))

    async def apply_coupon(self, offer: Offer, user_id: int, discount_applied,
                           order_id: Optional[int] = None) -> Offer:
        """Record one redemption of an already validated offer.

        Does not re-validate and does not deduplicate by order_id. Raises
        RedemptionRace when the store refuses the increment because the limit
        was reached in the meantime.
        """
        try:
            record = UsageRecord(
                user_id=user_id,
                order_id=order_id,
                discount_applied=Decimal(str(discount_applied)),
                applied_at=self.clock()
            )
        except ValidationError as e:
            raise ValueError(f"Invalid discount for {offer.code}: {discount_applied}") from e

        try:
            updated = await self.repository.record_redemption(
                offer.offer_id, offer.usage_limit, record
            )
        except Exception as e:
            self.logger.error(f"Failed to record redemption of {offer.code}: {e}")
            raise

        if updated is None:
            self.logger.warning(f"Redemption of {offer.code} by user {user_id} lost a race")
            raise RedemptionRace()

        self.logger.info(f"Offer {offer.code} redeemed: {Messages.format_usage(record)}")
        return updated

    async def redeem_coupon(self, code: str, order_amount, user_id: int,
                            order_id: Optional[int] = None) -> Tuple[Offer, Decimal]:
        """Validate, price and apply a code; one retry after a race"""
        try:
            return await self._redeem_once(code, order_amount, user_id, order_id)
        except RedemptionRace:
            self.logger.info(f"Retrying redemption of {normalize_code(code)}")
            return await self._redeem_once(code, order_amount, user_id, order_id)

    async def quote_coupon(self, code: str, cart_total,
                           user_id: Optional[int] = None) -> Dict[str, Any]:
        """Preview a code against a cart total without recording anything"""
        total_amount = self._to_amount(cart_total)
        try:
            offer = await self.validate_coupon(code, total_amount, user_id)
        except OfferError as e:
            return {
                "valid": False,
                "error": str(e)
            }

        discount_amount = self.calculate_discount(offer, total_amount)
        return {
            "valid": True,
            "offer_id": offer.offer_id,
            "code": offer.code,
            "amount": discount_amount,
            "final_amount": total_amount - discount_amount
        }

    async def create_offer(self, data: Union[OfferCreate, Dict[str, Any]],
                           created_by: Optional[int] = None) -> Offer:
        """Create a new offer"""
        if isinstance(data, OfferCreate):
            definition = data
        else:
            try:
                definition = OfferCreate.model_validate(data)
            except ValidationError as e:
                raise InvalidOfferDefinition(self._definition_errors(e))

        payload = definition.model_dump()
        if created_by is not None:
            payload['created_by'] = created_by

        offer = await self.repository.create_offer(payload)
        self.logger.info(f"Offer {offer.code} created (id {offer.offer_id})")
        return offer

    async def get_offer(self, offer_id: int) -> Offer:
        offer = await self.repository.get_offer(offer_id)
        if offer is None:
            raise OfferNotFound()
        return offer

    async def update_offer(self, offer_id: int, changes: Union[OfferUpdate, Dict[str, Any]],
                           updated_by: Optional[int] = None) -> Offer:
        """Edit policy fields; the merged offer is validated as a whole"""
        try:
            if not isinstance(changes, OfferUpdate):
                changes = OfferUpdate.model_validate(changes)
            updates = changes.model_dump(exclude_unset=True)

            offer = await self.get_offer(offer_id)
            current = offer.model_dump(include=set(OfferDefinition.model_fields))
            definition = OfferDefinition.model_validate({**current, **updates})
        except ValidationError as e:
            raise InvalidOfferDefinition(self._definition_errors(e))

        payload = definition.model_dump(include=set(updates))
        payload['updated_by'] = updated_by

        updated = await self.repository.update_offer(offer_id, payload)
        if updated is None:
            raise OfferNotFound()

        self.logger.info(f"Offer {updated.code} updated: {sorted(updates)}")
        return updated

    async def deactivate_offer(self, offer_id: int) -> bool:
        """Soft-disable an offer"""
        result = await self.repository.set_active(offer_id, False)
        if result:
            self.logger.info(f"Offer {offer_id} deactivated")
        return result

    async def delete_offer(self, offer_id: int) -> bool:
        """Hard delete, allowed only for offers nobody has redeemed.

        The store re-checks the usage count as part of the delete and raises
        OfferInUse if a redemption got in first.
        """
        offer = await self.get_offer(offer_id)
        result = await self.repository.delete_offer(offer_id)
        if result:
            self.logger.info(f"Offer {offer.code} deleted")
        return result

    async def get_active_offers(self, filters: Union[OfferFilters, Dict[str, Any], None] = None
                                ) -> List[Offer]:
        """Offers currently redeemable by date and status, newest first"""
        if filters is None:
            filters = OfferFilters()
        elif not isinstance(filters, OfferFilters):
            filters = OfferFilters.model_validate(filters)
        return await self.repository.find_active_offers(filters, self.clock())

    async def get_usage_stats(self, offer_id: int) -> Dict[str, Any]:
        """Usage report for one offer"""
        offer = await self.get_offer(offer_id)
        stats = await self.repository.get_usage_stats(offer_id)
        stats.update({
            "code": offer.code,
            "times_used": offer.times_used,
            "remaining_uses": offer.remaining_uses
        })
        return stats

    async def _redeem_once(self, code, order_amount, user_id, order_id) -> Tuple[Offer, Decimal]:
        offer = await self.validate_coupon(code, order_amount, user_id)
        discount = self.calculate_discount(offer, order_amount)
        offer = await self.apply_coupon(offer, user_id, discount, order_id)
        return offer, discount

    def _reject(self, code: str, error: OfferError) -> OfferError:
        self.logger.debug(f"Coupon {code!r} rejected: {type(error).__name__}")
        return error

    @staticmethod
    def _to_amount(value) -> Decimal:
        amount = Decimal(str(value))
        if amount < 0:
            raise ValueError("Order amount cannot be negative")
        return amount

    @staticmethod
    def _definition_errors(error: ValidationError) -> List[str]:
        messages = []
        for item in error.errors():
            ctx_error = item.get('ctx', {}).get('error')
            if ctx_error is not None:
                messages.append(str(ctx_error))
            else:
                field = '.'.join(str(part) for part in item['loc'])
                messages.append(f"{field}: {item['msg']}" if field else item['msg'])
        return messages
