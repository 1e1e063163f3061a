from datetime import timedelta
from decimal import Decimal

import pytest

from offer_engine.exceptions import (
    MinimumNotMet, OfferNotFoundOrExpired, UsageLimitExceeded, UserNotEligible
)
from tests.conftest import NOW


async def test_valid_code_returns_offer_unchanged(service, create_offer, repository):
    created = await create_offer()

    offer = await service.validate_coupon("WELCOME10", 600)

    assert offer.offer_id == created.offer_id
    assert offer.times_used == 0
    stored = await repository.get_offer(created.offer_id)
    assert stored.times_used == 0
    assert stored.usage_history == []


async def test_code_lookup_is_case_insensitive(service, create_offer):
    await create_offer()

    offer = await service.validate_coupon("  welcome10 ", 600)

    assert offer.code == "WELCOME10"


async def test_unknown_code(service):
    with pytest.raises(OfferNotFoundOrExpired):
        await service.validate_coupon("NOPE123", 600)


@pytest.mark.parametrize("code", ["", "   ", None])
async def test_blank_code(service, code):
    with pytest.raises(OfferNotFoundOrExpired):
        await service.validate_coupon(code, 600)


async def test_inactive_and_expired_look_like_unknown(service, create_offer, clock):
    await create_offer(code="OFF1", is_active=False)
    await create_offer(code="OLD1", start_date=NOW - timedelta(days=10),
                       end_date=NOW - timedelta(days=1))
    await create_offer(code="SOON1", start_date=NOW + timedelta(days=1),
                       end_date=NOW + timedelta(days=5))

    messages = set()
    for code in ("OFF1", "OLD1", "SOON1", "NEVER1"):
        with pytest.raises(OfferNotFoundOrExpired) as exc_info:
            await service.validate_coupon(code, 600)
        messages.add(str(exc_info.value))

    assert len(messages) == 1


async def test_window_bounds_are_inclusive(service, create_offer, clock):
    await create_offer(start_date=NOW, end_date=NOW + timedelta(hours=1))

    await service.validate_coupon("WELCOME10", 600)
    clock.now = NOW + timedelta(hours=1)
    await service.validate_coupon("WELCOME10", 600)
    clock.now = NOW + timedelta(hours=1, seconds=1)
    with pytest.raises(OfferNotFoundOrExpired):
        await service.validate_coupon("WELCOME10", 600)


async def test_validity_is_recomputed_each_call(service, create_offer, clock):
    await create_offer(end_date=NOW + timedelta(minutes=5))

    await service.validate_coupon("WELCOME10", 600)
    clock.now = NOW + timedelta(minutes=6)

    with pytest.raises(OfferNotFoundOrExpired):
        await service.validate_coupon("WELCOME10", 600)


async def test_minimum_order_amount_boundary(service, create_offer):
    await create_offer()

    with pytest.raises(MinimumNotMet) as exc_info:
        await service.validate_coupon("WELCOME10", Decimal("499.99"))
    assert exc_info.value.minimum == Decimal(500)
    assert "500" in str(exc_info.value)

    offer = await service.validate_coupon("WELCOME10", 500)
    assert offer.code == "WELCOME10"


async def test_flat100_below_minimum(service, create_offer):
    await create_offer(code="FLAT100", type="fixed", value=Decimal(100),
                       minimum_order_amount=Decimal(1000), maximum_discount=None)

    with pytest.raises(MinimumNotMet):
        await service.validate_coupon("FLAT100", 800)


async def test_usage_limit_boundary(service, create_offer, repository):
    offer = await create_offer(usage_limit=3)
    for _ in range(2):
        assert await repository.conditionally_increment_usage(offer.offer_id, 3)

    # times_used == usage_limit - 1
    await service.validate_coupon("WELCOME10", 600)

    assert await repository.conditionally_increment_usage(offer.offer_id, 3)
    with pytest.raises(UsageLimitExceeded):
        await service.validate_coupon("WELCOME10", 600)


async def test_unlimited_offer_never_exhausts(service, create_offer, repository):
    offer = await create_offer(usage_limit=None)
    for _ in range(50):
        assert await repository.conditionally_increment_usage(offer.offer_id, None)

    await service.validate_coupon("WELCOME10", 600)


async def test_user_specific_offer(service, create_offer):
    await create_offer(code="LOYALTY20", value=Decimal(20), user_specific=True,
                       allowed_users={1001, 1002})

    offer = await service.validate_coupon("LOYALTY20", 1200, user_id=1001)
    assert offer.code == "LOYALTY20"

    with pytest.raises(UserNotEligible):
        await service.validate_coupon("LOYALTY20", 1200, user_id=2002)


async def test_user_specific_offer_requires_user(service, create_offer):
    await create_offer(user_specific=True, allowed_users={1001})

    with pytest.raises(UserNotEligible):
        await service.validate_coupon("WELCOME10", 1200)


async def test_checks_run_in_order(service, create_offer, repository):
    offer = await create_offer(usage_limit=1, user_specific=True, allowed_users={1})
    assert await repository.conditionally_increment_usage(offer.offer_id, 1)

    # below minimum wins over exhausted and not eligible
    with pytest.raises(MinimumNotMet):
        await service.validate_coupon("WELCOME10", 100, user_id=99)

    # exhausted wins over not eligible
    with pytest.raises(UsageLimitExceeded):
        await service.validate_coupon("WELCOME10", 600, user_id=99)


async def test_negative_order_amount(service, create_offer):
    await create_offer()

    with pytest.raises(ValueError):
        await service.validate_coupon("WELCOME10", -5)


async def test_quote_coupon(service, create_offer):
    created = await create_offer()

    result = await service.quote_coupon("welcome10", 3000)

    assert result == {
        "valid": True,
        "offer_id": created.offer_id,
        "code": "WELCOME10",
        "amount": Decimal(200),
        "final_amount": Decimal(2800),
    }


async def test_quote_coupon_reports_reason(service, create_offer):
    await create_offer()

    result = await service.quote_coupon("WELCOME10", 100)

    assert result["valid"] is False
    assert "Minimum order amount" in result["error"]
