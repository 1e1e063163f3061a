# offer_engine/utils/messages.py
from decimal import Decimal
from ..models.offer import Offer, OfferType, UsageRecord
from ..utils.formatters import format_price, format_datetime

class Messages:
    @staticmethod
    def minimum_not_met(minimum: Decimal) -> str:
        return f"Minimum order amount of {format_price(minimum)} required"

    @staticmethod
    def format_offer(offer: Offer) -> str:
        """Offer summary for listings"""
        if offer.type == OfferType.PERCENTAGE:
            headline = f"{offer.value.normalize():f}% off"
        else:
            headline = f"{format_price(offer.value)} off"

        lines = [f"🎫 {offer.code}: {headline}"]
        if offer.description:
            lines.append(f"📝 {offer.description}")
        if offer.minimum_order_amount:
            lines.append(f"🛒 On orders of {format_price(offer.minimum_order_amount)} or more")
        if offer.maximum_discount is not None:
            lines.append(f"🔝 Up to {format_price(offer.maximum_discount)}")
        if offer.remaining_uses is not None:
            lines.append(f"🔄 Uses left: {offer.remaining_uses}")
        lines.append(f"🕒 Valid until {format_datetime(offer.end_date)}")
        return "\n".join(lines)

    @staticmethod
    def format_usage(record: UsageRecord) -> str:
        order = f"order #{record.order_id}" if record.order_id is not None else "no order"
        return (
            f"user {record.user_id} saved {format_price(record.discount_applied)} "
            f"on {order} at {format_datetime(record.applied_at)}"
        )
