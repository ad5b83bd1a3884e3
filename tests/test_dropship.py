"""Imported item freight tests."""

import json
from decimal import Decimal
from urllib.parse import parse_qs

import httpx
import pytest

from app.services.aliexpress import AliExpressClient, Credentials, FreightOption
from app.services.dropship import (
    PUBLIC_CARRIER,
    DropshipFreightService,
    classify_origin,
    estimate_import_freight,
    is_imported_category,
    public_label,
    to_shipping_option,
)
from app.services.postal import PostalCodeClient
from app.services.quote import CartLine, FulfillmentOrigin, QuoteMethod

SLUGS = ["importados", "imported"]
DOMAINS = ["aliexpress", "alibaba"]


def imported_line(price="80", weight=0.5, marketplace_id="1005001", sku_id=None):
    return CartLine(
        product_id="p-imp",
        quantity=1,
        unit_price=Decimal(price),
        weight_kg=weight,
        origin=FulfillmentOrigin.DROPSHIP,
        marketplace_product_id=marketplace_id,
        marketplace_sku_id=sku_id,
    )


class TestClassification:
    def test_imported_parent_category(self):
        chain = [("fones", "Fones"), ("importados", "Importados")]
        assert is_imported_category(chain, SLUGS)

    def test_only_two_ancestors_count(self):
        chain = [("a", "A"), ("b", "B"), ("c", "C"), ("importados", "Importados")]
        assert not is_imported_category(chain, SLUGS)

    def test_category_name_matches_too(self):
        assert is_imported_category([("cat-12", "Imported")], SLUGS)

    def test_dropship_needs_marketplace_supplier(self):
        chain = [("importados", "Importados")]
        assert classify_origin(chain, "AliExpress", "", None, SLUGS, DOMAINS) == FulfillmentOrigin.DROPSHIP
        assert classify_origin(chain, "Loja", "https://pt.aliexpress.com/store/1", None, SLUGS, DOMAINS) \
            == FulfillmentOrigin.DROPSHIP
        assert classify_origin(chain, "Distribuidora", "", None, SLUGS, DOMAINS) == FulfillmentOrigin.PLATFORM

    def test_seller_and_platform(self):
        chain = [("fones", "Fones")]
        assert classify_origin(chain, "AliExpress", "", "seller-1", SLUGS, DOMAINS) == FulfillmentOrigin.SELLER
        assert classify_origin(chain, None, None, None, SLUGS, DOMAINS) == FulfillmentOrigin.PLATFORM


class TestEstimate:
    def test_free_above_threshold(self):
        quote = estimate_import_freight(Decimal("200"), Decimal("1"))
        assert quote.cost == 0
        assert quote.is_free
        assert quote.method == QuoteMethod.INTERNATIONAL_ESTIMATE
        assert quote.delivery_range == "15-30"
        assert quote.carrier == PUBLIC_CARRIER

    @pytest.mark.parametrize("price,weight,cost,days_range", [
        ("30", "0.1", "23.50", "30-45"),
        ("80", "1", "36.90", "20-40"),
        ("120", "0.5", "35.90", "15-30"),
    ])
    def test_price_tiers(self, price, weight, cost, days_range):
        quote = estimate_import_freight(Decimal(price), Decimal(weight))
        assert quote.cost == Decimal(cost)
        assert quote.delivery_range == days_range
        assert not quote.is_free

    def test_is_deterministic(self):
        a = estimate_import_freight(Decimal("45"), Decimal("0.8"))
        b = estimate_import_freight(Decimal("45"), Decimal("0.8"))
        assert (a.cost, a.delivery_days) == (b.cost, b.delivery_days)


class TestPublicLabels:
    def test_labels_hide_marketplace_names(self):
        assert public_label(FreightOption("AE_EXPRESS", "DHL", Decimal("1"))) == "International Express"
        assert public_label(FreightOption("CAINIAO_ECONOMY", "Cainiao", Decimal("1"))) == "International Economy"
        assert public_label(FreightOption("CAINIAO_STANDARD", "Cainiao", Decimal("1"))) == "International Standard"

    def test_days_from_description(self):
        option = to_shipping_option(
            FreightOption("X", "Y", Decimal("9.90"), description="Entrega em 12-25 dias")
        )
        assert option.delivery_range == "12-25"
        assert option.delivery_days == 25
        assert option.carrier == PUBLIC_CARRIER


def marketplace_handler(freight_options):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "viacep.com.br":
            return httpx.Response(200, json={"uf": "SP", "localidade": "São Paulo"})
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        if form["method"] == "aliexpress.ds.product.get":
            return httpx.Response(200, json={"aliexpress_ds_product_get_response": {"result": {
                "ae_item_sku_info_dtos": {"ae_item_sku_info_d_t_o": [
                    {"sku_id": "111", "sku_available_stock": 0},
                    {"sku_id": "222", "sku_available_stock": 5},
                ]},
            }}})
        request_body = json.loads(form["queryDeliveryReq"])
        assert request_body["selectedSkuId"] == "222"
        assert json.loads(request_body["address"])["province"] == "Sao Paulo"
        return httpx.Response(200, json={"aliexpress_ds_freight_query_response": {"result": {
            "success": True,
            "delivery_options": {"delivery_option_d_t_o": freight_options},
        }}})
    return handler


def service_with(handler) -> DropshipFreightService:
    transport = httpx.MockTransport(handler)
    client = AliExpressClient(Credentials("k", "s", "t"), "https://api-sg.aliexpress.com/sync", transport=transport)
    return DropshipFreightService(client, PostalCodeClient(transport=transport))


class TestDropshipFreightService:
    @pytest.mark.asyncio
    async def test_cheapest_marketplace_option(self):
        service = service_with(marketplace_handler([
            {"code": "AE_EXPRESS", "company": "DHL", "shipping_fee_cent": "8990",
             "min_delivery_days": 5, "max_delivery_days": 9},
            {"code": "CAINIAO_STANDARD", "company": "Cainiao", "shipping_fee_cent": "2590",
             "min_delivery_days": 12, "max_delivery_days": 25},
        ]))
        quote = await service.quote(imported_line(), "01310100")
        assert quote.method == QuoteMethod.INTERNATIONAL
        assert quote.cost == Decimal("25.90")
        assert quote.service == "International Standard"
        assert quote.delivery_range == "12-25"
        assert [o.service for o in quote.options] == ["International Standard", "International Express"]
        assert all(o.carrier == PUBLIC_CARRIER for o in quote.options)

    @pytest.mark.asyncio
    async def test_no_options_estimates(self):
        quote = await service_with(marketplace_handler([])).quote(imported_line(), "01310100")
        assert quote.method == QuoteMethod.INTERNATIONAL_ESTIMATE

    @pytest.mark.asyncio
    async def test_unreachable_marketplace_estimates(self):
        service = service_with(lambda request: httpx.Response(503))
        quote = await service.quote(imported_line(price="200"), "01310100")
        assert quote.method == QuoteMethod.INTERNATIONAL_ESTIMATE
        assert quote.is_free
        assert "marketplace unavailable" in quote.message

    @pytest.mark.asyncio
    async def test_without_credentials(self):
        service = DropshipFreightService(None, PostalCodeClient())
        quote = await service.quote(imported_line(), "01310100")
        assert quote.method == QuoteMethod.INTERNATIONAL_ESTIMATE
        assert quote.cost == Decimal("30.90")

    @pytest.mark.asyncio
    async def test_unlinked_product(self):
        service = service_with(lambda request: httpx.Response(503))
        quote = await service.quote(imported_line(marketplace_id=None), "01310100")
        assert "product not linked" in quote.message
