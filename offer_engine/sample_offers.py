# offer_engine/sample_offers.py
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List
from .models.offer import utc_now

def sample_offers() -> List[Dict[str, Any]]:
    """Demo offers, each starting now"""
    now = utc_now()
    return [
        {
            "code": "WELCOME10",
            "type": "percentage",
            "value": Decimal(10),
            "description": "Welcome discount for new customers - 10% off on orders above ₹500",
            "start_date": now,
            "end_date": now + timedelta(days=30),
            "minimum_order_amount": Decimal(500),
            "maximum_discount": Decimal(200),
            "usage_limit": 1000,
        },
        {
            "code": "FLAT100",
            "type": "fixed",
            "value": Decimal(100),
            "description": "Flat ₹100 off on orders above ₹1000",
            "start_date": now,
            "end_date": now + timedelta(days=15),
            "minimum_order_amount": Decimal(1000),
            "usage_limit": 500,
        },
        {
            "code": "FLASH50",
            "type": "percentage",
            "value": Decimal(50),
            "description": "Flash Sale - 50% off (max discount ₹500)",
            "start_date": now,
            "end_date": now + timedelta(days=7),
            "minimum_order_amount": Decimal(200),
            "maximum_discount": Decimal(500),
            "usage_limit": 200,
        },
        {
            "code": "LOYALTY20",
            "type": "percentage",
            "value": Decimal(20),
            "description": "Loyalty program discount for premium customers",
            "start_date": now,
            "end_date": now + timedelta(days=90),
            "minimum_order_amount": Decimal(1000),
            "maximum_discount": Decimal(300),
            "usage_limit": None,  # unlimited
            "user_specific": True,
            "allowed_users": {1001, 1002},
        },
    ]
