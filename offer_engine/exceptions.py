# offer_engine/exceptions.py
from decimal import Decimal
from typing import List, Optional


class OfferError(Exception):
    """Base class for every failure raised by the offer engine"""
    message = "Offer could not be applied"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class OfferNotFoundOrExpired(OfferError):
    """No active offer with this code exists right now.

    Unknown, inactive and expired codes all end up here with the same text
    so that callers cannot tell which codes exist.
    """
    message = "Invalid or expired coupon code"


class MinimumNotMet(OfferError):
    def __init__(self, minimum: Decimal, message: Optional[str] = None):
        self.minimum = minimum
        super().__init__(message or f"Minimum order amount of {minimum} required")


class UsageLimitExceeded(OfferError):
    message = "Coupon usage limit exceeded"


class UserNotEligible(OfferError):
    message = "This coupon is not available for your account"


class RedemptionRace(OfferError):
    """The conditional usage increment was rejected by the store"""
    message = "This coupon just became unavailable"


class InvalidOfferDefinition(OfferError):
    """Offer fields violate a date or value constraint"""
    message = "Invalid offer definition"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or self.message)


class OfferNotFound(OfferError):
    message = "Offer not found"


class DuplicateOfferCode(OfferError):
    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Offer code {code} already exists")


class OfferInUse(OfferError):
    message = "Offer has been redeemed and can only be deactivated"
