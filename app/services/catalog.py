"""Database reads feeding a shipping quote.

Everything here is read-only; rules, boxes and flags are administered
through the admin API.
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import Settings
from app.models import (
    AliExpressCredential,
    Category,
    PackagingBox,
    Product,
    ShippingRule,
    SystemConfig,
)
from app.services.aliexpress import Credentials
from app.services.correios import parse_services
from app.services.dropship import CATEGORY_DEPTH, classify_origin
from app.services.packaging import Box
from app.services.quote import CartLine
from app.services.regions import Rule
from app.services.shipping import QuoteSettings

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT_WEIGHT_KG = 0.2


@dataclass
class RequestedItem:
    product_id: str
    quantity: int = 1


def clean_product_id(raw: str) -> str:
    """Cart ids carry variant suffixes (``<id>_<color>_<size>``)."""
    return str(raw).split("_")[0]


async def get_config(db: AsyncSession, key: str) -> Optional[str]:
    row = await db.get(SystemConfig, key)
    return row.value if row else None


async def get_config_map(db: AsyncSession, prefix: str) -> dict[str, str]:
    result = await db.execute(select(SystemConfig).where(SystemConfig.key.startswith(prefix)))
    return {row.key: row.value for row in result.scalars().all()}


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


async def load_quote_settings(db: AsyncSession, settings: Settings) -> QuoteSettings:
    flags = await get_config_map(db, "correios.")
    return QuoteSettings(
        correios_enabled=_flag(flags.get("correios.enabled"), settings.correios_enabled),
        origin_postal_code=flags.get("correios.origin_postal_code") or settings.correios_origin_postal_code,
        correios_services=parse_services(flags.get("correios.services")),
        fallback_cost=Decimal(str(settings.fallback_shipping_cost)).quantize(Decimal("0.01")),
        fallback_days=settings.fallback_delivery_days,
    )


async def load_rules(db: AsyncSession) -> list[Rule]:
    result = await db.execute(
        select(ShippingRule)
        .where(ShippingRule.is_active.is_(True))
        .order_by(ShippingRule.priority.desc())
    )
    return [Rule.from_model(row) for row in result.scalars().all()]


async def load_boxes(db: AsyncSession) -> list[Box]:
    result = await db.execute(select(PackagingBox).where(PackagingBox.is_active.is_(True)))
    return [Box.from_model(row) for row in result.scalars().all()]


async def load_credentials(db: AsyncSession, settings: Settings) -> Optional[Credentials]:
    result = await db.execute(select(AliExpressCredential).order_by(AliExpressCredential.created_at.desc()))
    row = result.scalars().first()
    if row is not None:
        creds = Credentials(row.app_key, row.app_secret, row.access_token or "")
    else:
        creds = Credentials(
            settings.aliexpress_app_key,
            settings.aliexpress_app_secret,
            settings.aliexpress_access_token,
        )
    return creds if creds.usable else None


async def category_chain(db: AsyncSession, category: Optional[Category]) -> list[tuple[str, str]]:
    """The category and up to two ancestors as ``(slug, name)`` pairs."""
    chain: list[tuple[str, str]] = []
    current = category
    while current is not None and len(chain) < CATEGORY_DEPTH:
        chain.append((current.slug, current.name))
        current = await db.get(Category, current.parent_id) if current.parent_id else None
    return chain


async def load_cart_lines(
    db: AsyncSession,
    items: Sequence[RequestedItem],
    settings: Settings,
) -> list[CartLine]:
    """Resolve requested ids into classified cart lines."""
    ids = sorted({clean_product_id(item.product_id) for item in items})
    result = await db.execute(
        select(Product)
        .where(Product.id.in_(ids))
        .options(selectinload(Product.category), selectinload(Product.supplier))
    )
    products = {p.id: p for p in result.scalars().all()}

    lines: list[CartLine] = []
    for item in items:
        pid = clean_product_id(item.product_id)
        quantity = max(item.quantity, 1)
        product = products.get(pid)
        if product is None:
            logger.warning(f"Product {pid} not found; counting {UNKNOWN_PRODUCT_WEIGHT_KG}kg per unit")
            lines.append(CartLine(product_id=pid, quantity=quantity, weight_kg=UNKNOWN_PRODUCT_WEIGHT_KG))
            continue

        chain = await category_chain(db, product.category)
        supplier = product.supplier
        origin = classify_origin(
            chain,
            supplier.name if supplier else None,
            supplier.url if supplier else None,
            product.seller_id,
            settings.imported_category_slugs,
            settings.marketplace_domains,
        )
        lines.append(CartLine(
            product_id=product.id,
            quantity=quantity,
            name=product.name,
            unit_price=Decimal(str(product.price or 0)),
            weight_kg=product.weight_kg,
            length_cm=product.length_cm,
            width_cm=product.width_cm,
            height_cm=product.height_cm,
            origin=origin,
            seller_id=product.seller_id,
            marketplace_product_id=product.supplier_sku,
            marketplace_sku_id=product.supplier_sku_id,
        ))
    return lines


async def api_key_valid(db: AsyncSession, api_key: str, settings: Settings) -> bool:
    """Check a key against settings, ``api.keys`` and ``app.apiKey``."""
    if api_key in settings.api_keys:
        return True

    raw = await get_config(db, "api.keys")
    if raw:
        try:
            entries = json.loads(raw)
        except ValueError:
            logger.error("system_config 'api.keys' is not valid JSON")
            entries = []
        for entry in entries if isinstance(entries, list) else []:
            if isinstance(entry, dict) and entry.get("key") == api_key and entry.get("active", True):
                return True

    mobile_key = await get_config(db, "app.apiKey")
    return bool(mobile_key) and mobile_key == api_key
