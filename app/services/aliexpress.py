"""AliExpress dropshipping API client.

Every call is a form-encoded POST to the sync gateway, signed with
HMAC-SHA256 over the alphabetically sorted ``key + value`` pairs of all
parameters except ``sign``.  Replies are parsed by explicit shape handlers;
anything they do not recognise raises ``UnrecognizedPayload`` instead of
being guessed at.
"""

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

PRODUCT_GET = "aliexpress.ds.product.get"
FREIGHT_QUERY = "aliexpress.ds.freight.query"


class AliExpressError(Exception):
    """Transport-level failure talking to the gateway."""


class AliExpressAPIError(AliExpressError):
    """Gateway answered with a business error (bad signature, not found...)."""

    def __init__(self, code: str, message: str):
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


class UnrecognizedPayload(AliExpressError):
    """Reply shape matches none of the known variants."""


def sign_params(params: dict[str, Any], app_secret: str) -> str:
    """HMAC-SHA256 signature expected by the gateway (upper-case hex)."""
    canonical = "".join(f"{key}{params[key]}" for key in sorted(params) if key != "sign")
    digest = hmac.new(app_secret.encode("utf-8"), canonical.encode("utf-8"), hashlib.sha256)
    return digest.hexdigest().upper()


@dataclass
class Credentials:
    app_key: str
    app_secret: str
    access_token: str

    @property
    def usable(self) -> bool:
        return bool(self.app_key and self.app_secret and self.access_token)


@dataclass
class SkuVariant:
    sku_id: str
    attributes: str = ""
    price: Optional[Decimal] = None
    available_stock: int = 0

    @property
    def in_stock(self) -> bool:
        return self.available_stock > 0


@dataclass
class FreightOption:
    code: str
    company: str
    cost: Decimal
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    free_shipping: bool = False
    description: str = ""


# ── Shape parsers ───────────────────────────────────────


def _as_records(block: Any, wrapper_key: str, what: str) -> list[dict]:
    """Normalise the three list shapes the gateway uses.

    ``{wrapper_key: [..]}``, ``{wrapper_key: {..}}`` and a bare ``[..]``.
    """
    if block is None:
        return []
    if isinstance(block, list):
        records = block
    elif isinstance(block, dict) and wrapper_key in block:
        inner = block[wrapper_key]
        if isinstance(inner, list):
            records = inner
        elif isinstance(inner, dict):
            records = [inner]
        else:
            raise UnrecognizedPayload(f"{what}: '{wrapper_key}' holds {type(inner).__name__}")
    else:
        raise UnrecognizedPayload(f"{what}: unexpected {type(block).__name__} block")

    if not all(isinstance(r, dict) for r in records):
        raise UnrecognizedPayload(f"{what}: list holds non-object entries")
    return records


def _decimal(value: Any) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _int(value: Any) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _stock(record: dict) -> int:
    available = _int(record.get("sku_available_stock"))
    if available is not None:
        return available
    flag = record.get("sku_stock")
    if isinstance(flag, bool):
        return 1 if flag else 0
    return _int(flag) or 0


def parse_sku_variants(result: dict) -> list[SkuVariant]:
    """SKU variants from a ``product.get`` result."""
    if not isinstance(result, dict):
        raise UnrecognizedPayload("product.get: result is not an object")
    records = _as_records(result.get("ae_item_sku_info_dtos"), "ae_item_sku_info_d_t_o", "product.get SKUs")
    variants = []
    for record in records:
        sku_id = record.get("sku_id")
        if sku_id in (None, ""):
            raise UnrecognizedPayload("product.get: SKU without sku_id")
        variants.append(SkuVariant(
            sku_id=str(sku_id),
            attributes=str(record.get("sku_attr") or ""),
            price=_decimal(record.get("offer_sale_price") or record.get("sku_price")),
            available_stock=_stock(record),
        ))
    return variants


def parse_freight_options(result: dict) -> list[FreightOption]:
    """Delivery options from a ``freight.query`` result, cheapest first."""
    if not isinstance(result, dict):
        raise UnrecognizedPayload("freight.query: result is not an object")
    if result.get("success") in (False, "false"):
        raise AliExpressAPIError(
            str(result.get("code") or "freight_failed"),
            str(result.get("msg") or result.get("error_message") or "freight query failed"),
        )
    records = _as_records(result.get("delivery_options"), "delivery_option_d_t_o", "freight.query options")

    options = []
    for record in records:
        free = record.get("free_shipping") in (True, "true")
        cents = _decimal(record.get("shipping_fee_cent"))
        if cents is None:
            raise UnrecognizedPayload("freight.query: option without shipping_fee_cent")
        cost = Decimal("0") if free else (cents / 100).quantize(Decimal("0.01"))
        options.append(FreightOption(
            code=str(record.get("code") or record.get("company") or ""),
            company=str(record.get("company") or record.get("code") or ""),
            cost=cost,
            min_days=_int(record.get("min_delivery_days")),
            max_days=_int(record.get("max_delivery_days")),
            free_shipping=free or cost == 0,
            description=str(record.get("delivery_date_desc") or ""),
        ))
    options.sort(key=lambda o: o.cost)
    return options


def _unwrap(data: Any, method: str) -> dict:
    if not isinstance(data, dict):
        raise UnrecognizedPayload(f"{method}: reply is not an object")
    if "error_response" in data:
        err = data["error_response"] or {}
        if not isinstance(err, dict):
            raise AliExpressAPIError("error_response", str(err))
        raise AliExpressAPIError(str(err.get("code", "")), str(err.get("msg", "unknown error")))
    envelope = data.get(method.replace(".", "_") + "_response")
    if not isinstance(envelope, dict):
        raise UnrecognizedPayload(f"{method}: missing response envelope")
    result = envelope.get("result")
    if result is None:
        raise AliExpressAPIError(str(envelope.get("rsp_code", "no_result")),
                                 str(envelope.get("rsp_msg", "empty result")))
    return result


# ── Client ──────────────────────────────────────────────


class AliExpressClient:
    """Signed calls against the dropshipping gateway."""

    def __init__(
        self,
        credentials: Credentials,
        api_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    def build_params(self, method: str, extra: dict[str, Any]) -> dict[str, str]:
        params = {
            "app_key": self.credentials.app_key,
            "method": method,
            "session": self.credentials.access_token,
            "timestamp": str(int(datetime.now(timezone.utc).timestamp() * 1000)),
            "format": "json",
            "v": "2.0",
            "sign_method": "sha256",
        }
        params.update({k: str(v) for k, v in extra.items()})
        params["sign"] = sign_params(params, self.credentials.app_secret)
        return params

    async def call(self, method: str, extra: dict[str, Any]) -> dict:
        params = self.build_params(method, extra)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.api_url, data=params)
        except httpx.HTTPError as e:
            raise AliExpressError(f"{method}: {e}")
        if resp.status_code != 200:
            raise AliExpressError(f"{method}: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError:
            raise UnrecognizedPayload(f"{method}: reply is not JSON")
        return _unwrap(data, method)

    async def get_sku_variants(self, product_id: str) -> list[SkuVariant]:
        result = await self.call(PRODUCT_GET, {
            "product_id": product_id,
            "ship_to_country": "BR",
            "target_currency": "BRL",
            "target_language": "PT",
        })
        return parse_sku_variants(result)

    async def query_freight(
        self,
        product_id: str,
        sku_id: str,
        quantity: int,
        address: dict[str, str],
        currency: str = "BRL",
    ) -> list[FreightOption]:
        request = {
            "productId": str(product_id),
            "quantity": quantity,
            "shipToCountry": "BR",
            "address": json.dumps(address),
            "selectedSkuId": str(sku_id),
            "locale": "pt_BR",
            "language": "pt_BR",
            "currency": currency,
        }
        result = await self.call(FREIGHT_QUERY, {"queryDeliveryReq": json.dumps(request)})
        return parse_freight_options(result)


def pick_shippable_sku(variants: list[SkuVariant], preferred: Optional[str] = None) -> Optional[SkuVariant]:
    """Preferred variant if listed and in stock, else the first in stock, else the first."""
    if not variants:
        return None
    if preferred:
        for variant in variants:
            if variant.sku_id == preferred and variant.in_stock:
                return variant
    for variant in variants:
        if variant.in_stock:
            return variant
    return variants[0]
