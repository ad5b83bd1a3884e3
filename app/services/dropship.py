"""Cross-border dropship freight.

Imported items ship straight from the marketplace, so their freight comes
from the marketplace itself: resolve a shippable SKU, resolve the buyer's
address from the CEP, then ask for delivery options.  Any failure along the
way falls back to a deterministic price-tier estimate; this path never
raises.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from app.services.aliexpress import (
    AliExpressClient,
    AliExpressError,
    FreightOption,
    pick_shippable_sku,
)
from app.services.postal import PostalCodeClient
from app.services.quote import (
    CartLine,
    FulfillmentOrigin,
    QuoteMethod,
    ShippingOption,
    ShippingQuote,
)

logger = logging.getLogger(__name__)

CATEGORY_DEPTH = 3  # the category itself plus two ancestors

PUBLIC_CARRIER = "International Shipping"

IMPORT_FREE_SHIPPING_MIN = Decimal("150")
IMPORT_BASE_COST = Decimal("19.90")
IMPORT_COST_PER_KG = Decimal("12.00")
IMPORT_MIN_WEIGHT_KG = Decimal("0.3")


@dataclass(frozen=True)
class PriceTier:
    below: Decimal
    surcharge: Decimal
    min_days: int
    max_days: int


_PRICE_TIERS = (
    PriceTier(Decimal("50"), Decimal("0"), 30, 45),
    PriceTier(Decimal("100"), Decimal("5.00"), 20, 40),
    PriceTier(IMPORT_FREE_SHIPPING_MIN, Decimal("10.00"), 15, 30),
)
_FREE_TIER = PriceTier(Decimal("Infinity"), Decimal("0"), 15, 30)


# ── Classification ──────────────────────────────────────


def is_imported_category(chain: Sequence[tuple[str, str]], imported_slugs: Sequence[str]) -> bool:
    """True when the category or one of its two ancestors is an import category.

    ``chain`` holds ``(slug, name)`` pairs, the product's own category first.
    """
    wanted = {s.lower() for s in imported_slugs}
    for slug, name in list(chain)[:CATEGORY_DEPTH]:
        if (slug or "").lower() in wanted or (name or "").lower() in wanted:
            return True
    return False


def is_marketplace_supplier(name: Optional[str], url: Optional[str], domains: Sequence[str]) -> bool:
    haystack = f"{name or ''} {url or ''}".lower()
    return any(domain.lower() in haystack for domain in domains)


def classify_origin(
    chain: Sequence[tuple[str, str]],
    supplier_name: Optional[str],
    supplier_url: Optional[str],
    seller_id: Optional[str],
    imported_slugs: Sequence[str],
    marketplace_domains: Sequence[str],
) -> FulfillmentOrigin:
    if is_imported_category(chain, imported_slugs) and is_marketplace_supplier(
        supplier_name, supplier_url, marketplace_domains
    ):
        return FulfillmentOrigin.DROPSHIP
    if seller_id:
        return FulfillmentOrigin.SELLER
    return FulfillmentOrigin.PLATFORM


# ── Estimate ────────────────────────────────────────────


def price_tier(unit_price: Decimal) -> PriceTier:
    for tier in _PRICE_TIERS:
        if unit_price < tier.below:
            return tier
    return _FREE_TIER


def estimate_import_freight(unit_price: Decimal, weight_kg: Decimal, reason: str = "") -> ShippingQuote:
    """Deterministic freight for imported items when the marketplace can't answer."""
    tier = price_tier(unit_price)
    delivery_range = f"{tier.min_days}-{tier.max_days}"

    if unit_price >= IMPORT_FREE_SHIPPING_MIN:
        cost = Decimal("0.00")
    else:
        chargeable = max(weight_kg, IMPORT_MIN_WEIGHT_KG)
        cost = (IMPORT_BASE_COST + IMPORT_COST_PER_KG * chargeable + tier.surcharge).quantize(Decimal("0.01"))

    is_free = cost == 0
    option = ShippingOption(
        carrier=PUBLIC_CARRIER,
        service="International Standard",
        cost=cost,
        delivery_days=tier.max_days,
        delivery_range=delivery_range,
        is_free=is_free,
    )
    return ShippingQuote(
        cost=cost,
        delivery_days=tier.max_days,
        is_free=is_free,
        method=QuoteMethod.INTERNATIONAL_ESTIMATE,
        service=option.service,
        carrier=PUBLIC_CARRIER,
        message=f"Estimated international shipping ({delivery_range} business days)"
                + (f" - {reason}" if reason else ""),
        delivery_range=delivery_range,
        options=[option],
    )


# ── Marketplace freight ─────────────────────────────────


def public_label(option: FreightOption) -> str:
    """Carrier-agnostic service name; never leaks the marketplace brand."""
    text = f"{option.code} {option.company}".lower()
    if re.search(r"express|premium|dhl|fedex|ups|ems|priority", text):
        return "International Express"
    if re.search(r"econom|saver|small|post", text):
        return "International Economy"
    return "International Standard"


def _days(option: FreightOption) -> tuple[int, str]:
    low, high = option.min_days, option.max_days
    if low is None and high is None and option.description:
        found = [int(n) for n in re.findall(r"\d+", option.description)]
        if found:
            low, high = min(found), max(found)
    high = high or low or 30
    low = low or high
    return high, f"{low}-{high}"


def to_shipping_option(option: FreightOption) -> ShippingOption:
    days, delivery_range = _days(option)
    return ShippingOption(
        carrier=PUBLIC_CARRIER,
        service=public_label(option),
        cost=option.cost,
        delivery_days=days,
        delivery_range=delivery_range,
        is_free=option.free_shipping,
    )


class DropshipFreightService:
    """Freight for the representative imported line of a cart."""

    def __init__(self, client: Optional[AliExpressClient], postal: PostalCodeClient):
        self.client = client
        self.postal = postal

    async def quote(self, line: CartLine, cep: str) -> ShippingQuote:
        weight = Decimal(str(line.total_weight_kg or 0))
        if self.client is None:
            logger.warning("AliExpress credentials missing; estimating import freight")
            return estimate_import_freight(line.unit_price, weight, "marketplace not configured")
        if not line.marketplace_product_id:
            logger.warning(f"Product {line.product_id} has no marketplace id; estimating import freight")
            return estimate_import_freight(line.unit_price, weight, "product not linked")

        try:
            variants = await self.client.get_sku_variants(line.marketplace_product_id)
            sku = pick_shippable_sku(variants, line.marketplace_sku_id)
            if sku is None:
                logger.warning(f"No SKU variants for marketplace product {line.marketplace_product_id}")
                return estimate_import_freight(line.unit_price, weight, "no shippable variant")

            address = await self.postal.resolve(cep)
            options = await self.client.query_freight(
                line.marketplace_product_id,
                sku.sku_id,
                line.quantity,
                address.to_freight_address(),
            )
        except AliExpressError as e:
            logger.error(f"Marketplace freight lookup failed for {line.product_id}: {e}")
            return estimate_import_freight(line.unit_price, weight, "marketplace unavailable")

        if not options:
            logger.warning(f"Marketplace returned no delivery options for {line.product_id}")
            return estimate_import_freight(line.unit_price, weight, "no delivery options")

        mapped = sorted((to_shipping_option(o) for o in options), key=lambda o: o.cost)
        best = mapped[0]
        return ShippingQuote(
            cost=best.cost,
            delivery_days=best.delivery_days,
            is_free=best.is_free,
            method=QuoteMethod.INTERNATIONAL,
            service=best.service,
            carrier=PUBLIC_CARRIER,
            message=f"{best.service} ({best.delivery_range} business days)",
            delivery_range=best.delivery_range,
            options=mapped,
        )
