"""Pydantic schemas for the shipping API."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Storefront-facing payloads use camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Quote ────────────────────────────────────────────────
class QuoteItem(CamelModel):
    id: Optional[str] = None
    product_id: Optional[str] = None
    quantity: int = Field(1, ge=1, le=100)

    @property
    def resolved_id(self) -> Optional[str]:
        return self.id or self.product_id


class QuoteRequest(CamelModel):
    cep: Optional[str] = None
    cart_value: Optional[Decimal] = None
    weight: Optional[Decimal] = None
    items: list[QuoteItem] = Field(default_factory=list, max_length=50)
    products: list[QuoteItem] = Field(default_factory=list, max_length=50)

    @property
    def all_items(self) -> list[QuoteItem]:
        return [i for i in (self.items or self.products) if i.resolved_id]


class ShippingOptionOut(CamelModel):
    carrier: str
    service: str
    cost: float
    delivery_days: int
    delivery_range: str = ""
    is_free: bool = False


class PromoOut(CamelModel):
    target_value: float
    missing_amount: float
    free_shipping: bool
    message: str


class QuoteResponse(CamelModel):
    shipping_cost: float
    delivery_days: int
    is_free: bool
    shipping_method: str
    shipping_service: str
    shipping_carrier: str
    message: str = ""
    rule_name: Optional[str] = None
    delivery_range: Optional[str] = None
    packaging: Optional[dict] = None
    shipping_options: Optional[list[ShippingOptionOut]] = None
    promo: Optional[PromoOut] = None


# ── Carrier proxy ────────────────────────────────────────
class CarrierQuoteRequest(CamelModel):
    cep_origem: str
    cep_destino: str
    peso: Decimal = Decimal("0.3")
    comprimento: Decimal = Decimal("16")
    altura: Decimal = Decimal("2")
    largura: Decimal = Decimal("11")
    valor: Decimal = Decimal("0")


# ── Shipping rules ───────────────────────────────────────
RegionTypeName = Literal["NATIONWIDE", "STATE", "ZIPCODE_RANGE", "CITY"]


class ShippingRuleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    priority: int = 0
    region_type: RegionTypeName = "NATIONWIDE"
    regions: list[str] = Field(default_factory=list)
    min_cart_value: Optional[Decimal] = None
    max_cart_value: Optional[Decimal] = None
    min_weight: Optional[Decimal] = None
    max_weight: Optional[Decimal] = None
    shipping_cost: Decimal = Decimal("0")
    cost_per_kg: Optional[Decimal] = None
    free_shipping_min: Optional[Decimal] = None
    delivery_days: int = Field(7, ge=0)
    is_active: bool = True


class ShippingRuleUpdate(BaseModel):
    name: Optional[str] = None
    priority: Optional[int] = None
    region_type: Optional[RegionTypeName] = None
    regions: Optional[list[str]] = None
    min_cart_value: Optional[Decimal] = None
    max_cart_value: Optional[Decimal] = None
    min_weight: Optional[Decimal] = None
    max_weight: Optional[Decimal] = None
    shipping_cost: Optional[Decimal] = None
    cost_per_kg: Optional[Decimal] = None
    free_shipping_min: Optional[Decimal] = None
    delivery_days: Optional[int] = None
    is_active: Optional[bool] = None


class ShippingRuleOut(BaseModel):
    id: str
    name: str
    priority: int
    region_type: str
    regions: str
    min_cart_value: Optional[Decimal]
    max_cart_value: Optional[Decimal]
    min_weight: Optional[Decimal]
    max_weight: Optional[Decimal]
    shipping_cost: Decimal
    cost_per_kg: Optional[Decimal]
    free_shipping_min: Optional[Decimal]
    delivery_days: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Packaging ────────────────────────────────────────────
class PackagingBoxCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    box_type: Literal["BOX", "BAG", "ENVELOPE"] = "BOX"
    inner_length: float = Field(..., gt=0)
    inner_width: float = Field(..., gt=0)
    inner_height: float = Field(..., gt=0)
    outer_length: float = Field(..., gt=0)
    outer_width: float = Field(..., gt=0)
    outer_height: float = Field(..., gt=0)
    empty_weight: float = Field(0.1, ge=0)
    max_weight: float = Field(30, gt=0)
    cost: Decimal = Decimal("0")
    is_active: bool = True


class PackagingBoxUpdate(BaseModel):
    name: Optional[str] = None
    inner_length: Optional[float] = None
    inner_width: Optional[float] = None
    inner_height: Optional[float] = None
    outer_length: Optional[float] = None
    outer_width: Optional[float] = None
    outer_height: Optional[float] = None
    empty_weight: Optional[float] = None
    max_weight: Optional[float] = None
    cost: Optional[Decimal] = None
    is_active: Optional[bool] = None


class PackagingBoxOut(PackagingBoxCreate):
    id: str
    created_at: datetime

    model_config = {"from_attributes": True}


# ── System config ────────────────────────────────────────
class ConfigEntry(BaseModel):
    key: str = Field(..., min_length=1, max_length=200)
    value: str = ""


class ConfigOut(ConfigEntry):
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
