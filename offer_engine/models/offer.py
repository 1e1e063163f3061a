# offer_engine/models/offer.py
import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Set

import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CODE_PATTERN = re.compile(r"^[A-Z0-9]{3,20}$")


def normalize_code(code: Optional[str]) -> str:
    """Offer codes are compared stripped and upper-cased"""
    return (code or "").strip().upper()


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


class OfferType(str, Enum):
    """Discount kinds"""
    PERCENTAGE = "percentage"  # value is a percent of the order total
    FIXED = "fixed"  # value is an amount off


class UsageRecord(BaseModel):
    """One redemption in the usage ledger"""
    user_id: int
    order_id: Optional[int] = None
    discount_applied: Decimal = Field(ge=0, decimal_places=2)
    applied_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OfferDefinition(BaseModel):
    """Policy fields an admin controls"""
    code: str
    type: OfferType
    value: Decimal = Field(decimal_places=2)
    description: str = Field("", max_length=500)
    start_date: datetime
    end_date: datetime
    minimum_order_amount: Decimal = Field(Decimal(0), ge=0, decimal_places=2)
    maximum_discount: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    usage_limit: Optional[int] = Field(None, ge=1)  # None means unlimited
    is_active: bool = True
    user_specific: bool = False
    allowed_users: Set[int] = Field(default_factory=set)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code_field(cls, value):
        code = normalize_code(value)
        if not CODE_PATTERN.match(code):
            raise ValueError("Offer code must be 3-20 letters or digits")
        return code

    @field_validator("start_date", "end_date")
    @classmethod
    def ensure_aware(cls, value: datetime) -> datetime:
        # Naive datetimes are taken as UTC
        if value.tzinfo is None:
            return pytz.utc.localize(value)
        return value

    @model_validator(mode="after")
    def check_constraints(self):
        if self.type == OfferType.PERCENTAGE:
            if not (0 < self.value <= 100):
                raise ValueError("Percentage value must be greater than 0 and at most 100")
            if self.maximum_discount is not None and self.maximum_discount <= 0:
                raise ValueError("Maximum discount must be positive for percentage offers")
        elif self.value <= 0:
            raise ValueError("Fixed amount must be positive")

        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class OfferCreate(OfferDefinition):
    created_by: Optional[int] = None


class OfferUpdate(BaseModel):
    """Partial edit of policy fields; usage counters are not editable"""
    code: Optional[str] = None
    type: Optional[OfferType] = None
    value: Optional[Decimal] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    minimum_order_amount: Optional[Decimal] = None
    maximum_discount: Optional[Decimal] = None
    usage_limit: Optional[int] = None
    is_active: Optional[bool] = None
    user_specific: Optional[bool] = None
    allowed_users: Optional[Set[int]] = None


class OfferFilters(BaseModel):
    """Filters for listing active offers"""
    type: Optional[OfferType] = None
    min_amount: Optional[Decimal] = None  # offers whose minimum is at most this
    max_discount: Optional[Decimal] = None  # offers whose cap is at least this


class Offer(OfferDefinition):
    """Stored offer with its usage counters"""
    offer_id: int
    times_used: int = Field(0, ge=0)
    usage_history: List[UsageRecord] = Field(default_factory=list)
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_valid_at(self, now: datetime) -> bool:
        """Active and inside [start_date, end_date]"""
        return self.is_active and self.start_date <= now <= self.end_date

    @property
    def is_expired(self) -> bool:
        return utc_now() > self.end_date

    @property
    def is_valid(self) -> bool:
        return self.is_valid_at(utc_now())

    @property
    def remaining_uses(self) -> Optional[int]:
        if self.usage_limit is None:
            return None
        return max(0, self.usage_limit - self.times_used)
