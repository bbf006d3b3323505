from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from offer_engine.economy.offers.constants import (
    DISCOUNT_BUY_X_GET_Y,
    DISCOUNT_FIXED_AMOUNT,
    DISCOUNT_FIXED_PRICE,
    DISCOUNT_PERCENTAGE,
    MONEY_QUANTUM,
)
from offer_engine.economy.offers.errors import OfferConfigurationError, OfferPricingMismatchError
from offer_engine.economy.offers.types import DiscountQuote

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_money(value: Decimal | int | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def compute_quote(
    *,
    base_price: Decimal,
    discount_type: str,
    discount_value: Decimal,
    price_override: Decimal | None = None,
) -> DiscountQuote | None:
    """Derive price and discount from the list price.

    Returns None when the offer terms cannot be expressed as a single-unit
    price (buy_x_get_y), in which case the caller-supplied pair stands.
    """
    base = to_money(base_price)
    if base < ZERO:
        raise OfferPricingMismatchError("base price must be non-negative")

    if price_override is not None:
        price_paid = min(to_money(price_override), base)
        return DiscountQuote(base_price=base, discount_amount=base - price_paid, price_paid=price_paid)

    value = to_money(discount_value)
    if discount_type == DISCOUNT_PERCENTAGE:
        if value > HUNDRED:
            raise OfferConfigurationError(f"percentage discount above 100: {value}")
        discount = to_money(base * value / HUNDRED)
        discount = min(discount, base)
    elif discount_type == DISCOUNT_FIXED_AMOUNT:
        discount = min(value, base)
    elif discount_type == DISCOUNT_FIXED_PRICE:
        discount = base - min(value, base)
    elif discount_type == DISCOUNT_BUY_X_GET_Y:
        return None
    else:
        raise OfferConfigurationError(f"unsupported discount_type: {discount_type}")

    return DiscountQuote(base_price=base, discount_amount=discount, price_paid=base - discount)


def resolve_quote(
    *,
    price: Decimal,
    discount: Decimal | None,
    discount_type: str,
    discount_value: Decimal,
    price_override: Decimal | None = None,
) -> DiscountQuote:
    """Check a caller quote (price paid plus discount) against the offer terms.

    Without an explicit discount the price is treated as the list price and
    the discount is computed here.
    """
    paid = to_money(price)
    if paid < ZERO:
        raise OfferPricingMismatchError("price must be non-negative")

    if discount is None:
        quote = compute_quote(
            base_price=paid,
            discount_type=discount_type,
            discount_value=discount_value,
            price_override=price_override,
        )
        if quote is None:
            return DiscountQuote(base_price=paid, discount_amount=ZERO, price_paid=paid)
        return quote

    claimed_discount = to_money(discount)
    if claimed_discount < ZERO:
        raise OfferPricingMismatchError("discount must be non-negative")

    base = paid + claimed_discount
    quote = compute_quote(
        base_price=base,
        discount_type=discount_type,
        discount_value=discount_value,
        price_override=price_override,
    )
    if quote is None:
        return DiscountQuote(base_price=base, discount_amount=claimed_discount, price_paid=paid)
    if quote.discount_amount != claimed_discount or quote.price_paid != paid:
        raise OfferPricingMismatchError(
            f"expected price {quote.price_paid} with discount {quote.discount_amount}, "
            f"got price {paid} with discount {claimed_discount}"
        )
    return quote
