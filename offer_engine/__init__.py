"""Coupon and offer engine"""
from .exceptions import (
    OfferError,
    OfferNotFoundOrExpired,
    MinimumNotMet,
    UsageLimitExceeded,
    UserNotEligible,
    RedemptionRace,
    InvalidOfferDefinition,
    OfferNotFound,
    DuplicateOfferCode,
    OfferInUse
)
from .models.offer import Offer, OfferType, OfferCreate, OfferUpdate, OfferFilters, UsageRecord
from .database.offer_repository import OfferRepository, PostgresOfferRepository
from .database.memory_repository import MemoryOfferRepository
from .services.offer_service import OfferService

__all__ = [
    'OfferService',
    'OfferRepository',
    'PostgresOfferRepository',
    'MemoryOfferRepository',
    'Offer',
    'OfferType',
    'OfferCreate',
    'OfferUpdate',
    'OfferFilters',
    'UsageRecord',
    'OfferError',
    'OfferNotFoundOrExpired',
    'MinimumNotMet',
    'UsageLimitExceeded',
    'UserNotEligible',
    'RedemptionRace',
    'InvalidOfferDefinition',
    'OfferNotFound',
    'DuplicateOfferCode',
    'OfferInUse'
]
