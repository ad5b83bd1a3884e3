"""Shipping quote assembler.

Classifies the cart, then either prices the imported portion through the
marketplace or packs the domestic portion and prices it through local
rules, Correios and finally a flat rate.  A quote always comes back.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from app.services.correios import (
    DEFAULT_SERVICES,
    CarrierError,
    CorreiosClient,
    cheapest,
)
from app.services.dropship import DropshipFreightService, estimate_import_freight
from app.services.packaging import Box, PackItem, PackagingResult, select_packaging
from app.services.quote import (
    CartLine,
    FulfillmentOrigin,
    PromoHint,
    QuoteMethod,
    ShippingOption,
    ShippingQuote,
)
from app.services.regions import MatchResult, Rule, match_rule

logger = logging.getLogger(__name__)

DOMESTIC_CARRIER = "Standard"


@dataclass
class QuoteSettings:
    """Flags read from system_config / settings for one quote."""
    correios_enabled: bool = False
    origin_postal_code: str = ""
    correios_services: list[str] = field(default_factory=lambda: list(DEFAULT_SERVICES))
    fallback_cost: Decimal = Decimal("15.00")
    fallback_days: int = 10


def group_by_origin(lines: Sequence[CartLine]) -> dict[str, list[CartLine]]:
    groups: dict[str, list[CartLine]] = defaultdict(list)
    for line in lines:
        groups[line.origin_key].append(line)
    return dict(groups)


class ShippingQuoteService:
    """Prices one cart against the configured rules and carriers."""

    def __init__(
        self,
        rules: Sequence[Rule],
        boxes: Sequence[Box],
        settings: Optional[QuoteSettings] = None,
        correios: Optional[CorreiosClient] = None,
        dropship: Optional[DropshipFreightService] = None,
    ):
        self.rules = list(rules)
        self.boxes = list(boxes)
        self.settings = settings or QuoteSettings()
        self.correios = correios
        self.dropship = dropship

    async def quote(
        self,
        cep: str,
        cart_value: Decimal,
        lines: Sequence[CartLine],
        loose_weight_kg: Optional[Decimal] = None,
    ) -> ShippingQuote:
        """Quote a cart. ``loose_weight_kg`` covers legacy callers sending only a weight."""
        imported = [line for line in lines if line.origin == FulfillmentOrigin.DROPSHIP]
        if imported:
            representative = imported[0]
            if len(imported) > 1:
                logger.info(f"{len(imported)} imported lines; quoting {representative.product_id} for the cart")
            return await self._quote_imported(representative, cep)

        return await self._quote_domestic(cep, cart_value, list(lines), loose_weight_kg)

    async def _quote_imported(self, line: CartLine, cep: str) -> ShippingQuote:
        if self.dropship is None:
            weight = Decimal(str(line.total_weight_kg or 0))
            return estimate_import_freight(line.unit_price, weight, "marketplace not configured")
        return await self.dropship.quote(line, cep)

    def pack(self, lines: Sequence[CartLine], loose_weight_kg: Optional[Decimal] = None) -> PackagingResult:
        items = [line.pack_item() for line in lines]
        if not items and loose_weight_kg:
            items = [PackItem(product_id="cart", weight_kg=float(loose_weight_kg))]
        packaging = select_packaging(items, self.boxes)
        packaging.origins = sorted(group_by_origin(lines))
        return packaging

    async def _quote_domestic(
        self,
        cep: str,
        cart_value: Decimal,
        lines: list[CartLine],
        loose_weight_kg: Optional[Decimal],
    ) -> ShippingQuote:
        packaging = self.pack(lines, loose_weight_kg)
        if len(packaging.origins) > 1:
            logger.info(f"Cart spans origins {packaging.origins}; quoting one aggregate package")
        weight = Decimal(str(packaging.total_weight_kg))

        match = match_rule(self.rules, cep, cart_value, weight)
        if match.rule is not None:
            return self._quote_from_rule(match, cart_value, weight, packaging)
        if match.rejected:
            logger.info(f"No shipping rule for CEP {cep}; rejected: {', '.join(match.rejected)}")

        promo = None
        if match.promo_min_cart_value is not None:
            promo = PromoHint.for_target(match.promo_min_cart_value, cart_value, free_shipping=False)

        carrier_quote = await self._quote_carrier(cep, cart_value, packaging)
        if carrier_quote is not None:
            carrier_quote.promo = promo
            return carrier_quote

        logger.warning(f"No rule or carrier rate for CEP {cep}; using flat fallback")
        return ShippingQuote(
            cost=self.settings.fallback_cost,
            delivery_days=self.settings.fallback_days,
            is_free=False,
            method=QuoteMethod.FALLBACK,
            service="Standard shipping",
            carrier=DOMESTIC_CARRIER,
            message="Standard shipping",
            packaging=packaging,
            promo=promo,
        )

    def _quote_from_rule(
        self,
        match: MatchResult,
        cart_value: Decimal,
        weight: Decimal,
        packaging: PackagingResult,
    ) -> ShippingQuote:
        rule = match.rule
        if rule.free_shipping_min and cart_value >= rule.free_shipping_min:
            return ShippingQuote(
                cost=Decimal("0.00"),
                delivery_days=rule.delivery_days,
                is_free=True,
                method=QuoteMethod.CUSTOM_RULE,
                service=rule.name,
                carrier=DOMESTIC_CARRIER,
                message=f"Free shipping on orders over R$ {rule.free_shipping_min:.2f}",
                rule_name=rule.name,
                packaging=packaging,
            )

        cost = rule.cost_for(weight)
        promo = None
        if rule.free_shipping_min:
            promo = PromoHint.for_target(rule.free_shipping_min, cart_value, free_shipping=True)
        elif match.promo_min_cart_value is not None:
            promo = PromoHint.for_target(match.promo_min_cart_value, cart_value, free_shipping=False)

        return ShippingQuote(
            cost=cost,
            delivery_days=rule.delivery_days,
            is_free=cost == 0,
            method=QuoteMethod.CUSTOM_RULE,
            service=rule.name,
            carrier=DOMESTIC_CARRIER,
            message=rule.name,
            rule_name=rule.name,
            packaging=packaging,
            promo=promo,
        )

    async def _quote_carrier(
        self,
        cep: str,
        cart_value: Decimal,
        packaging: PackagingResult,
    ) -> Optional[ShippingQuote]:
        if self.correios is None or not self.settings.correios_enabled:
            return None
        if not self.settings.origin_postal_code:
            logger.warning("Correios enabled but no origin postal code configured")
            return None

        try:
            rates = await self.correios.quote(
                origin_cep=self.settings.origin_postal_code,
                destination_cep=cep,
                weight_kg=Decimal(str(packaging.chargeable_weight_kg)),
                length_cm=Decimal(str(packaging.length_cm)),
                width_cm=Decimal(str(packaging.width_cm)),
                height_cm=Decimal(str(packaging.height_cm)),
                declared_value=cart_value,
                services=self.settings.correios_services,
            )
        except CarrierError as e:
            logger.error(f"Correios quote failed: {e}")
            return None

        usable = cheapest(rates)
        if not usable:
            logger.warning(f"Correios returned no usable rate for CEP {cep}")
            return None

        options = [
            ShippingOption(
                carrier="Correios",
                service=rate.service,
                cost=rate.price,
                delivery_days=rate.days,
                delivery_range=str(rate.days),
            )
            for rate in usable
        ]
        best = options[0]
        return ShippingQuote(
            cost=best.cost,
            delivery_days=best.delivery_days,
            is_free=False,
            method=QuoteMethod.CARRIER,
            service=best.service,
            carrier="Correios",
            message=f"Via Correios ({best.service})",
            packaging=packaging,
            options=options,
        )
