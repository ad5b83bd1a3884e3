"""CEP regions and domestic shipping rule matching.

Rules are scanned by descending priority and the first one whose region,
cart value and weight constraints all hold wins.  While scanning, the
smallest unmet minimum cart value among rules whose region did match is
remembered so the storefront can say "add R$X more".
"""

import json
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


class RegionType(str, Enum):
    NATIONWIDE = "NATIONWIDE"
    STATE = "STATE"
    ZIPCODE_RANGE = "ZIPCODE_RANGE"
    CITY = "CITY"


# CEP ranges per federative unit.  AP and RO sit inside the PA and GO
# blocks, so the broader blocks are split around them.
_CEP_RANGES: dict[str, list[tuple[int, int]]] = {
    "SP": [(1000000, 19999999)],
    "RJ": [(20000000, 28999999)],
    "ES": [(29000000, 29999999)],
    "MG": [(30000000, 39999999)],
    "BA": [(40000000, 48999999)],
    "SE": [(49000000, 49999999)],
    "PE": [(50000000, 56999999)],
    "AL": [(57000000, 57999999)],
    "PB": [(58000000, 58999999)],
    "RN": [(59000000, 59999999)],
    "CE": [(60000000, 63999999)],
    "PI": [(64000000, 64999999)],
    "MA": [(65000000, 65999999)],
    "PA": [(66000000, 68899999)],
    "AP": [(68900000, 68999999)],
    "AM": [(69000000, 69299999), (69400000, 69899999)],
    "RR": [(69300000, 69399999)],
    "AC": [(69900000, 69999999)],
    "DF": [(70000000, 72799999), (73000000, 73699999)],
    "GO": [(72800000, 72999999), (73700000, 76799999)],
    "RO": [(76800000, 76999999)],
    "TO": [(77000000, 77999999)],
    "MT": [(78000000, 78899999)],
    "MS": [(79000000, 79999999)],
    "PR": [(80000000, 87999999)],
    "SC": [(88000000, 89999999)],
    "RS": [(90000000, 99999999)],
}

# Names accepted by the AliExpress address validator (no accents)
STATE_NAMES: dict[str, str] = {
    "AC": "Acre", "AL": "Alagoas", "AP": "Amapa", "AM": "Amazonas",
    "BA": "Bahia", "CE": "Ceara", "DF": "Distrito Federal", "ES": "Espirito Santo",
    "GO": "Goias", "MA": "Maranhao", "MT": "Mato Grosso", "MS": "Mato Grosso do Sul",
    "MG": "Minas Gerais", "PA": "Para", "PB": "Paraiba", "PR": "Parana",
    "PE": "Pernambuco", "PI": "Piaui", "RJ": "Rio de Janeiro", "RN": "Rio Grande do Norte",
    "RS": "Rio Grande do Sul", "RO": "Rondonia", "RR": "Roraima", "SC": "Santa Catarina",
    "SP": "Sao Paulo", "SE": "Sergipe", "TO": "Tocantins",
}


def clean_cep(cep: str) -> str:
    """Strip everything but digits."""
    return re.sub(r"\D", "", cep or "")


def is_valid_cep(cep: str) -> bool:
    return len(clean_cep(cep)) == 8


def state_for_cep(cep: str) -> Optional[str]:
    """Map a CEP to its two-letter state code, or None when out of range."""
    digits = clean_cep(cep)
    if not digits:
        return None
    number = int(digits)
    for state, ranges in _CEP_RANGES.items():
        for low, high in ranges:
            if low <= number <= high:
                return state
    return None


@dataclass
class Rule:
    """Quote-time view of a shipping rule."""
    name: str
    priority: int = 0
    region_type: RegionType = RegionType.NATIONWIDE
    regions: str = "[]"
    min_cart_value: Optional[Decimal] = None
    max_cart_value: Optional[Decimal] = None
    min_weight: Optional[Decimal] = None
    max_weight: Optional[Decimal] = None
    shipping_cost: Decimal = Decimal("0")
    cost_per_kg: Optional[Decimal] = None
    free_shipping_min: Optional[Decimal] = None
    delivery_days: int = 7
    is_active: bool = True
    id: Optional[str] = None

    @classmethod
    def from_model(cls, row) -> "Rule":
        return cls(
            id=row.id,
            name=row.name,
            priority=row.priority or 0,
            region_type=RegionType(row.region_type or "NATIONWIDE"),
            regions=row.regions or "[]",
            min_cart_value=_dec(row.min_cart_value),
            max_cart_value=_dec(row.max_cart_value),
            min_weight=_dec(row.min_weight),
            max_weight=_dec(row.max_weight),
            shipping_cost=_dec(row.shipping_cost) or Decimal("0"),
            cost_per_kg=_dec(row.cost_per_kg),
            free_shipping_min=_dec(row.free_shipping_min),
            delivery_days=row.delivery_days or 0,
            is_active=bool(row.is_active),
        )

    def cost_for(self, weight_kg: Decimal) -> Decimal:
        """Flat cost plus the per-kg part."""
        cost = self.shipping_cost
        if self.cost_per_kg and weight_kg:
            cost += self.cost_per_kg * weight_kg
        return cost.quantize(Decimal("0.01"))


def _dec(value) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


@dataclass
class MatchResult:
    rule: Optional[Rule]
    promo_min_cart_value: Optional[Decimal] = None
    rejected: list[str] = field(default_factory=list)


def region_matches(rule: Rule, cep: str) -> bool:
    """Check the rule's region payload against a destination CEP."""
    try:
        regions = json.loads(rule.regions or "[]")
    except (TypeError, ValueError) as e:
        logger.warning(f"Rule '{rule.name}' has malformed regions ({e}); nationwide only")
        return rule.region_type == RegionType.NATIONWIDE

    if rule.region_type == RegionType.NATIONWIDE:
        return True
    if rule.region_type == RegionType.STATE:
        state = state_for_cep(cep)
        if state is None or not isinstance(regions, list):
            return False
        return state in {str(r).upper() for r in regions}
    if rule.region_type == RegionType.ZIPCODE_RANGE:
        digits = clean_cep(cep)
        if not digits or not isinstance(regions, list):
            return False
        number = int(digits)
        for entry in regions:
            bounds = _parse_range(entry)
            if bounds and bounds[0] <= number <= bounds[1]:
                return True
        return False
    # CITY payloads are not filtered yet
    return True


def _parse_range(entry) -> Optional[tuple[int, int]]:
    parts = str(entry).split("-")
    if len(parts) == 4:
        # "01000-000-01999-999"
        parts = [parts[0] + parts[1], parts[2] + parts[3]]
    if len(parts) != 2:
        return None
    low, high = clean_cep(parts[0]), clean_cep(parts[1])
    if not low or not high:
        return None
    return int(low), int(high)


def match_rule(
    rules: Sequence[Rule],
    cep: str,
    cart_value: Decimal,
    weight_kg: Decimal,
) -> MatchResult:
    """Return the highest-priority rule satisfied by the cart, if any."""
    ordered = sorted(
        (r for r in rules if r.is_active),
        key=lambda r: r.priority,
        reverse=True,
    )
    result = MatchResult(rule=None)

    for rule in ordered:
        if not region_matches(rule, cep):
            logger.debug(f"Rule '{rule.name}': region {rule.region_type.value} does not match {cep}")
            result.rejected.append(rule.name)
            continue

        if rule.min_cart_value and cart_value < rule.min_cart_value:
            logger.debug(f"Rule '{rule.name}': cart R${cart_value} < min R${rule.min_cart_value}")
            if result.promo_min_cart_value is None or rule.min_cart_value < result.promo_min_cart_value:
                result.promo_min_cart_value = rule.min_cart_value
            result.rejected.append(rule.name)
            continue
        if rule.max_cart_value and cart_value > rule.max_cart_value:
            result.rejected.append(rule.name)
            continue
        if rule.min_weight and weight_kg < rule.min_weight:
            result.rejected.append(rule.name)
            continue
        if rule.max_weight and weight_kg > rule.max_weight:
            result.rejected.append(rule.name)
            continue

        logger.info(f"Shipping rule matched: {rule.name} (priority {rule.priority})")
        result.rule = rule
        return result

    return result
