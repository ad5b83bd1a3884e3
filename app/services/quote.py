"""Cart lines going into a shipping quote and the quote coming out."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from app.services.packaging import PackItem, PackagingResult


class FulfillmentOrigin(str, Enum):
    """Who ships a cart line."""
    PLATFORM = "platform"
    SELLER = "seller"
    DROPSHIP = "dropship"


class QuoteMethod(str, Enum):
    CUSTOM_RULE = "CUSTOM_RULE"
    CARRIER = "CARRIER"
    FALLBACK = "FALLBACK"
    INTERNATIONAL = "INTERNATIONAL"
    INTERNATIONAL_ESTIMATE = "INTERNATIONAL_ESTIMATE"


@dataclass
class CartLine:
    """One cart entry resolved against the product catalog."""
    product_id: str
    quantity: int = 1
    name: str = ""
    unit_price: Decimal = Decimal("0")
    weight_kg: Optional[float] = None
    length_cm: Optional[float] = None
    width_cm: Optional[float] = None
    height_cm: Optional[float] = None
    origin: FulfillmentOrigin = FulfillmentOrigin.PLATFORM
    seller_id: Optional[str] = None
    marketplace_product_id: Optional[str] = None
    marketplace_sku_id: Optional[str] = None

    @property
    def origin_key(self) -> str:
        if self.origin == FulfillmentOrigin.SELLER and self.seller_id:
            return f"seller:{self.seller_id}"
        return self.origin.value

    @property
    def total_weight_kg(self) -> float:
        return (self.weight_kg or 0.0) * self.quantity

    def pack_item(self) -> PackItem:
        return PackItem(
            product_id=self.product_id,
            quantity=self.quantity,
            weight_kg=self.weight_kg,
            length_cm=self.length_cm,
            width_cm=self.width_cm,
            height_cm=self.height_cm,
        )


@dataclass
class ShippingOption:
    carrier: str
    service: str
    cost: Decimal
    delivery_days: int
    delivery_range: str = ""
    is_free: bool = False


@dataclass
class PromoHint:
    """How much more the buyer has to spend to unlock a better price."""
    target_value: Decimal
    missing_amount: Decimal
    free_shipping: bool
    message: str

    @classmethod
    def for_target(cls, target: Decimal, cart_value: Decimal, free_shipping: bool) -> Optional["PromoHint"]:
        missing = (target - cart_value).quantize(Decimal("0.01"))
        if missing <= 0:
            return None
        goal = "get free shipping" if free_shipping else "unlock cheaper shipping"
        return cls(
            target_value=target,
            missing_amount=missing,
            free_shipping=free_shipping,
            message=f"Add R$ {missing:.2f} more to {goal}",
        )


@dataclass
class ShippingQuote:
    cost: Decimal
    delivery_days: int
    is_free: bool
    method: QuoteMethod
    service: str
    carrier: str
    message: str = ""
    rule_name: Optional[str] = None
    delivery_range: Optional[str] = None
    packaging: Optional[PackagingResult] = None
    options: list[ShippingOption] = field(default_factory=list)
    promo: Optional[PromoHint] = None
