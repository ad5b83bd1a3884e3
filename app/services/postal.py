"""ViaCEP postal code lookup."""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from app.services.regions import STATE_NAMES, clean_cep, state_for_cep

logger = logging.getLogger(__name__)


class PostalLookupError(Exception):
    """CEP could not be resolved."""


@dataclass
class PostalAddress:
    cep: str
    state: str
    city: str = ""
    district: str = ""
    street: str = ""

    @property
    def province_name(self) -> str:
        return STATE_NAMES.get(self.state, self.state)

    def to_freight_address(self, recipient: str = "Cliente") -> dict[str, str]:
        """Address block in the shape the freight query expects."""
        return {
            "country": "BR",
            "province": self.province_name,
            "city": self.city,
            "district": self.district,
            "zipCode": self.cep,
            "addressLine1": self.street,
            "recipientName": recipient,
        }


class PostalCodeClient:
    def __init__(
        self,
        base_url: str = "https://viacep.com.br/ws",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def lookup(self, cep: str) -> PostalAddress:
        digits = clean_cep(cep)
        if len(digits) != 8:
            raise PostalLookupError(f"Invalid CEP: {cep!r}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(f"{self.base_url}/{digits}/json/")
        except httpx.HTTPError as e:
            raise PostalLookupError(f"ViaCEP unreachable: {e}")
        if resp.status_code != 200:
            raise PostalLookupError(f"ViaCEP HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError:
            raise PostalLookupError("ViaCEP reply is not JSON")
        if not isinstance(data, dict) or data.get("erro"):
            raise PostalLookupError(f"CEP {digits} not found")
        return PostalAddress(
            cep=digits,
            state=(data.get("uf") or "").upper(),
            city=data.get("localidade") or "",
            district=data.get("bairro") or "",
            street=data.get("logradouro") or "",
        )

    async def resolve(self, cep: str) -> PostalAddress:
        """Lookup that degrades to the CEP range table."""
        try:
            return await self.lookup(cep)
        except PostalLookupError as e:
            logger.warning(f"Postal lookup failed, using CEP ranges: {e}")
            return PostalAddress(cep=clean_cep(cep), state=state_for_cep(cep) or "SP")
