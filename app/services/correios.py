"""Correios price/term calculator client.

Queries the public (contract-less) calculator once per service and parses
its XML reply.  Used by the quote assembler when no local rule applies and
by the internal carrier proxy endpoint.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence
from xml.parsers.expat import ExpatError

import httpx
import xmltodict

from app.services.regions import clean_cep

logger = logging.getLogger(__name__)


SERVICE_CODES: dict[str, str] = {
    "PAC": "04510",
    "SEDEX": "04014",
    "SEDEX 10": "40215",
    "SEDEX 12": "40169",
    "SEDEX Hoje": "40290",
}
DEFAULT_SERVICES = ("PAC", "SEDEX")

# Carrier minimums
MIN_WEIGHT_KG = Decimal("0.3")
MIN_LENGTH_CM = Decimal("16")
MIN_HEIGHT_CM = Decimal("2")
MIN_WIDTH_CM = Decimal("11")


class CarrierError(Exception):
    """Correios lookup failed (network, HTTP status or unreadable reply)."""


@dataclass
class CarrierRate:
    service: str
    code: str
    price: Decimal
    days: int
    error: Optional[str] = None

    @property
    def usable(self) -> bool:
        return not self.error and self.price > 0

    def to_dict(self) -> dict:
        data = {
            "servico": self.service,
            "codigo": self.code,
            "valor": float(self.price),
            "prazo": self.days,
        }
        if self.error:
            data["erro"] = self.error
        return data


def parse_services(raw: Optional[str]) -> list[str]:
    """Parse the comma separated `correios.services` flag."""
    if not raw:
        return list(DEFAULT_SERVICES)
    names = []
    lookup = {name.upper(): name for name in SERVICE_CODES}
    for part in raw.split(","):
        name = lookup.get(part.strip().upper())
        if name and name not in names:
            names.append(name)
    return names or list(DEFAULT_SERVICES)


def _parse_money(raw: str) -> Decimal:
    text = (raw or "0").strip()
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        price = Decimal(text)
    except InvalidOperation:
        raise CarrierError(f"Unreadable price: {raw!r}")
    if not price.is_finite():
        raise CarrierError(f"Unreadable price: {raw!r}")
    return price


def parse_calculator_xml(xml: str) -> tuple[Decimal, int, Optional[str]]:
    """Return (price, days, error message) from a calculator reply."""
    try:
        doc = xmltodict.parse(xml)
    except ExpatError as e:
        raise CarrierError(f"Invalid XML from Correios: {e}")

    servicos = (doc or {}).get("Servicos") or {}
    entry = servicos.get("cServico")
    if isinstance(entry, list):
        entry = entry[0] if entry else None
    if not isinstance(entry, dict):
        raise CarrierError("Correios reply has no cServico element")

    message = (entry.get("MsgErro") or "").strip()
    error_code = (entry.get("Erro") or "0").strip()
    if message and error_code not in ("0", "010", "011"):
        return Decimal("0"), 0, message

    price = _parse_money(entry.get("Valor") or "0")
    try:
        days = int((entry.get("PrazoEntrega") or "0").strip())
    except ValueError:
        days = 0
    return price, days, None


def estimate_rate(origin_cep: str, destination_cep: str, weight_kg: Decimal, service: str) -> CarrierRate:
    """Distance-band estimate used when the calculator is unreachable."""
    origin, destination = clean_cep(origin_cep), clean_cep(destination_cep)
    express = service != "PAC"
    same_city = origin[:5] == destination[:5]
    same_region = origin[:1] == destination[:1]

    if same_city:
        base, days = (Decimal("15"), 1) if express else (Decimal("12"), 3)
    elif same_region:
        base, days = (Decimal("22"), 2) if express else (Decimal("18"), 5)
    else:
        base, days = (Decimal("35"), 3) if express else (Decimal("28"), 8)

    extra_kg = max(Decimal("0"), weight_kg - 1)
    price = base + extra_kg * (Decimal("8") if express else Decimal("5"))
    return CarrierRate(
        service=service,
        code=SERVICE_CODES.get(service, ""),
        price=price.quantize(Decimal("0.01")),
        days=days,
    )


class CorreiosClient:
    """Async client for the Correios calculator."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    async def _fetch(self, client: httpx.AsyncClient, params: dict) -> str:
        try:
            resp = await client.get(self.base_url, params=params, headers={"Accept": "text/xml"})
        except httpx.HTTPError as e:
            raise CarrierError(f"Correios unreachable: {e}")
        if resp.status_code != 200:
            raise CarrierError(f"Correios HTTP {resp.status_code}")
        return resp.text

    async def quote(
        self,
        origin_cep: str,
        destination_cep: str,
        weight_kg: Decimal,
        length_cm: Decimal,
        width_cm: Decimal,
        height_cm: Decimal,
        declared_value: Decimal = Decimal("0"),
        services: Sequence[str] = DEFAULT_SERVICES,
        estimate_on_failure: bool = False,
    ) -> list[CarrierRate]:
        """Look up every requested service; failed ones carry `error`."""
        origin, destination = clean_cep(origin_cep), clean_cep(destination_cep)
        weight = max(Decimal(str(weight_kg)), MIN_WEIGHT_KG)
        base_params = {
            "nCdEmpresa": "",
            "sDsSenha": "",
            "sCepOrigem": origin,
            "sCepDestino": destination,
            "nVlPeso": str(weight),
            "nCdFormato": "1",
            "nVlComprimento": str(max(Decimal(str(length_cm)), MIN_LENGTH_CM)),
            "nVlAltura": str(max(Decimal(str(height_cm)), MIN_HEIGHT_CM)),
            "nVlLargura": str(max(Decimal(str(width_cm)), MIN_WIDTH_CM)),
            "nVlDiametro": "0",
            "sCdMaoPropria": "N",
            "nVlValorDeclarado": str(declared_value if declared_value > 0 else 0),
            "sCdAvisoRecebimento": "N",
            "StrRetorno": "xml",
        }

        rates: list[CarrierRate] = []
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for service in services:
                code = SERVICE_CODES[service]
                try:
                    xml = await self._fetch(client, {**base_params, "nCdServico": code})
                    price, days, error = parse_calculator_xml(xml)
                    rates.append(CarrierRate(service=service, code=code, price=price, days=days, error=error))
                except CarrierError as e:
                    logger.error(f"Correios {service} lookup failed: {e}")
                    if estimate_on_failure:
                        rates.append(estimate_rate(origin, destination, weight, service))
                    else:
                        rates.append(CarrierRate(service=service, code=code, price=Decimal("0"), days=0, error=str(e)))
        return rates


def cheapest(rates: Sequence[CarrierRate]) -> list[CarrierRate]:
    """Usable rates sorted by price, cheapest first."""
    return sorted((r for r in rates if r.usable), key=lambda r: r.price)
