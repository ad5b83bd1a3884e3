"""Storefront data models consumed by shipping quotes."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, DateTime, Enum, Float, ForeignKey, Integer, Numeric, String, Text,
)
from sqlalchemy.orm import relationship

from app.database import Base


def utcnow():
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Category(Base):
    """Product category; parent chain decides imported classification."""
    __tablename__ = "categories"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), unique=True, nullable=False, index=True)
    parent_id = Column(String(64), ForeignKey("categories.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    parent = relationship("Category", remote_side=[id])


class Supplier(Base):
    """Supplier (AliExpress, local distributor, etc.)."""
    __tablename__ = "suppliers"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(300), nullable=False)
    url = Column(String(1000), default="")
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Product(Base):
    """Storefront product with the physical data shipping needs."""
    __tablename__ = "products"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(500), nullable=False)
    price = Column(Numeric(10, 2), default=0)
    weight_kg = Column(Float, nullable=True)
    length_cm = Column(Float, nullable=True)
    width_cm = Column(Float, nullable=True)
    height_cm = Column(Float, nullable=True)
    category_id = Column(String(64), ForeignKey("categories.id"), nullable=True)
    supplier_id = Column(String(64), ForeignKey("suppliers.id"), nullable=True)
    seller_id = Column(String(64), nullable=True)  # null = platform fulfilled
    supplier_sku = Column(String(100), nullable=True)  # marketplace product id
    supplier_sku_id = Column(String(100), nullable=True)  # preferred marketplace variant
    active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    category = relationship("Category")
    supplier = relationship("Supplier")


class ShippingRule(Base):
    """Admin-managed domestic pricing rule."""
    __tablename__ = "shipping_rules"

    id = Column(String(64), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    priority = Column(Integer, default=0)
    region_type = Column(
        Enum("NATIONWIDE", "STATE", "ZIPCODE_RANGE", "CITY", name="region_type"),
        default="NATIONWIDE",
    )
    regions = Column(Text, default="[]")  # JSON payload, shape depends on region_type
    min_cart_value = Column(Numeric(10, 2), nullable=True)
    max_cart_value = Column(Numeric(10, 2), nullable=True)
    min_weight = Column(Numeric(10, 3), nullable=True)
    max_weight = Column(Numeric(10, 3), nullable=True)
    shipping_cost = Column(Numeric(10, 2), default=0)
    cost_per_kg = Column(Numeric(10, 2), nullable=True)
    free_shipping_min = Column(Numeric(10, 2), nullable=True)
    delivery_days = Column(Integer, default=7)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class PackagingBox(Base):
    """Box or bag available at the shipping desk."""
    __tablename__ = "packaging_boxes"

    id = Column(String(64), primary_key=True, default=new_id)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    box_type = Column(Enum("BOX", "BAG", "ENVELOPE", name="packaging_type"), default="BOX")
    inner_length = Column(Float, nullable=False)
    inner_width = Column(Float, nullable=False)
    inner_height = Column(Float, nullable=False)
    outer_length = Column(Float, nullable=False)
    outer_width = Column(Float, nullable=False)
    outer_height = Column(Float, nullable=False)
    empty_weight = Column(Float, default=0.1)
    max_weight = Column(Float, default=30)
    cost = Column(Numeric(10, 2), default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class SystemConfig(Base):
    """Key/value system flags (correios.enabled, api.keys, ...)."""
    __tablename__ = "system_config"

    key = Column(String(200), primary_key=True)
    value = Column(Text, default="")
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AliExpressCredential(Base):
    """OAuth credentials for the AliExpress dropshipping API."""
    __tablename__ = "aliexpress_credentials"

    id = Column(String(64), primary_key=True, default=new_id)
    app_key = Column(String(100), nullable=False)
    app_secret = Column(String(200), nullable=False)
    access_token = Column(String(500), default="")
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
