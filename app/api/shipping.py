"""Shipping quote API."""

import logging
from decimal import Decimal
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import get_db
from app.schemas import (
    CarrierQuoteRequest,
    PromoOut,
    QuoteRequest,
    QuoteResponse,
    ShippingOptionOut,
)
from app.services.aliexpress import AliExpressClient
from app.services.auth import require_api_key
from app.services.catalog import (
    RequestedItem,
    get_config,
    load_boxes,
    load_cart_lines,
    load_credentials,
    load_quote_settings,
    load_rules,
)
from app.services.correios import CorreiosClient, parse_services
from app.services.dropship import DropshipFreightService
from app.services.postal import PostalCodeClient
from app.services.quote import ShippingQuote
from app.services.regions import clean_cep, is_valid_cep
from app.services.shipping import ShippingQuoteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shipping", tags=["shipping"])
settings = get_settings()


def get_http_transport() -> Optional[httpx.AsyncBaseTransport]:
    """Transport for outbound calls; None uses the network."""
    return None


def to_response(quote: ShippingQuote) -> QuoteResponse:
    return QuoteResponse(
        shipping_cost=float(quote.cost),
        delivery_days=quote.delivery_days,
        is_free=quote.is_free,
        shipping_method=quote.method.value,
        shipping_service=quote.service,
        shipping_carrier=quote.carrier,
        message=quote.message,
        rule_name=quote.rule_name,
        delivery_range=quote.delivery_range,
        packaging=quote.packaging.to_dict() if quote.packaging else None,
        shipping_options=[
            ShippingOptionOut(
                carrier=o.carrier,
                service=o.service,
                cost=float(o.cost),
                delivery_days=o.delivery_days,
                delivery_range=o.delivery_range,
                is_free=o.is_free,
            )
            for o in quote.options
        ] or None,
        promo=PromoOut(
            target_value=float(quote.promo.target_value),
            missing_amount=float(quote.promo.missing_amount),
            free_shipping=quote.promo.free_shipping,
            message=quote.promo.message,
        ) if quote.promo else None,
    )


@router.post("/quote", response_model=QuoteResponse, response_model_exclude_none=True)
async def quote_shipping(
    data: QuoteRequest,
    db: AsyncSession = Depends(get_db),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
    _api_key: str = Depends(require_api_key),
):
    """Quote shipping for a cart; always answers unless the request itself is bad."""
    if not data.cep:
        raise HTTPException(400, "CEP is required")
    cep = clean_cep(data.cep)
    if not is_valid_cep(cep):
        raise HTTPException(400, "CEP must have 8 digits")

    requested = [RequestedItem(i.resolved_id, i.quantity) for i in data.all_items]
    lines = await load_cart_lines(db, requested, settings)
    cart_value = data.cart_value
    if cart_value is None:
        cart_value = sum((line.unit_price * line.quantity for line in lines), Decimal("0"))

    credentials = await load_credentials(db, settings)
    postal = PostalCodeClient(settings.viacep_url, settings.http_timeout_seconds, transport)
    marketplace = (
        AliExpressClient(credentials, settings.aliexpress_api_url, settings.http_timeout_seconds, transport)
        if credentials else None
    )
    service = ShippingQuoteService(
        rules=await load_rules(db),
        boxes=await load_boxes(db),
        settings=await load_quote_settings(db, settings),
        correios=CorreiosClient(settings.correios_calculator_url, settings.http_timeout_seconds, transport),
        dropship=DropshipFreightService(marketplace, postal),
    )

    logger.info(f"Quoting CEP {cep}: {len(lines)} lines, cart R${cart_value}")
    quote = await service.quote(cep, Decimal(str(cart_value)), lines, data.weight)
    return to_response(quote)


@router.post("/correios")
async def correios_rates(
    data: CarrierQuoteRequest,
    db: AsyncSession = Depends(get_db),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_http_transport),
    _api_key: str = Depends(require_api_key),
):
    """Internal carrier proxy: every enabled Correios service, estimates on failure."""
    if not is_valid_cep(data.cep_origem) or not is_valid_cep(data.cep_destino):
        raise HTTPException(400, "Origin and destination CEPs are required")

    client = CorreiosClient(settings.correios_calculator_url, settings.http_timeout_seconds, transport)
    rates = await client.quote(
        origin_cep=data.cep_origem,
        destination_cep=data.cep_destino,
        weight_kg=data.peso,
        length_cm=data.comprimento,
        width_cm=data.largura,
        height_cm=data.altura,
        declared_value=data.valor,
        services=parse_services(await get_config(db, "correios.services")),
        estimate_on_failure=True,
    )
    return {"resultados": [rate.to_dict() for rate in rates]}
