"""Packaging selection for domestic shipments.

Picks the smallest catalog box that holds the whole cart and reports the
weights carriers bill on.  Selection never fails: carts that fit no box get
the largest box (flagged) or a custom package sized to the load.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

# Correios floor for any parcel
MIN_WEIGHT_KG = 0.3
MIN_LENGTH_CM = 16.0
MIN_WIDTH_CM = 11.0
MIN_HEIGHT_CM = 2.0

VOLUMETRIC_DIVISOR = 6000
FILL_FACTOR = 0.95
CUSTOM_MARGIN_CM = 2.0
CUSTOM_PACKAGING_WEIGHT_KG = 0.1

# Defaults for products registered without physical data
DEFAULT_ITEM_WEIGHT_KG = 0.1
DEFAULT_ITEM_DIMS_CM = (10.0, 10.0, 5.0)


@dataclass
class PackItem:
    """One cart line as the packer sees it."""
    product_id: str
    quantity: int = 1
    weight_kg: Optional[float] = None
    length_cm: Optional[float] = None
    width_cm: Optional[float] = None
    height_cm: Optional[float] = None

    @property
    def unit_weight(self) -> float:
        return self.weight_kg or DEFAULT_ITEM_WEIGHT_KG

    @property
    def dims(self) -> tuple[float, float, float]:
        dl, dw, dh = DEFAULT_ITEM_DIMS_CM
        return (self.length_cm or dl, self.width_cm or dw, self.height_cm or dh)


@dataclass
class Box:
    """Catalog box, inner and outer dimensions in cm."""
    code: str
    name: str
    inner_length: float
    inner_width: float
    inner_height: float
    outer_length: float
    outer_width: float
    outer_height: float
    max_weight: float = 30.0
    empty_weight: float = 0.1
    cost: Decimal = Decimal("0")
    box_type: str = "BOX"

    @classmethod
    def from_model(cls, row) -> "Box":
        return cls(
            code=row.code,
            name=row.name,
            inner_length=row.inner_length,
            inner_width=row.inner_width,
            inner_height=row.inner_height,
            outer_length=row.outer_length,
            outer_width=row.outer_width,
            outer_height=row.outer_height,
            max_weight=row.max_weight or 0,
            empty_weight=row.empty_weight or 0,
            cost=Decimal(str(row.cost or 0)),
            box_type=row.box_type or "BOX",
        )

    @property
    def inner_volume(self) -> float:
        return self.inner_length * self.inner_width * self.inner_height


@dataclass
class Load:
    """Consolidated cart: items stacked on top of each other."""
    weight_kg: float = 0.0
    volume_cm3: float = 0.0
    length_cm: float = 0.0
    width_cm: float = 0.0
    height_cm: float = 0.0
    largest_item: tuple[float, float, float] = (0.0, 0.0, 0.0)
    item_count: int = 0


@dataclass
class PackagingResult:
    code: str
    name: str
    length_cm: float
    width_cm: float
    height_cm: float
    products_weight_kg: float
    packaging_weight_kg: float
    total_weight_kg: float
    volumetric_weight_kg: float
    utilization_pct: float
    packaging_cost: Decimal = Decimal("0")
    fits: bool = True
    reason: str = ""
    origins: list[str] = field(default_factory=list)

    @property
    def chargeable_weight_kg(self) -> float:
        return max(self.total_weight_kg, self.volumetric_weight_kg)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "dimensions": {
                "length": self.length_cm,
                "width": self.width_cm,
                "height": self.height_cm,
            },
            "productsWeight": round(self.products_weight_kg, 3),
            "totalWeight": round(self.total_weight_kg, 3),
            "volumetricWeight": round(self.volumetric_weight_kg, 3),
            "chargeableWeight": round(self.chargeable_weight_kg, 3),
            "utilization": self.utilization_pct,
            "fits": self.fits,
            "origins": self.origins,
        }


def volumetric_weight(length_cm: float, width_cm: float, height_cm: float,
                      divisor: int = VOLUMETRIC_DIVISOR) -> float:
    """Carrier billing weight from dimensions: L*W*H / divisor."""
    return (length_cm * width_cm * height_cm) / divisor


def consolidate(items: Sequence[PackItem]) -> Load:
    load = Load()
    largest_volume = 0.0
    for item in items:
        qty = max(item.quantity, 1)
        length, width, height = item.dims
        load.weight_kg += item.unit_weight * qty
        load.volume_cm3 += length * width * height * qty
        load.length_cm = max(load.length_cm, length)
        load.width_cm = max(load.width_cm, width)
        load.height_cm += height * qty
        load.item_count += qty
        if length * width * height > largest_volume:
            largest_volume = length * width * height
            load.largest_item = (length, width, height)
    load.weight_kg = round(load.weight_kg, 3)
    return load


def _item_fits(item: tuple[float, float, float], box: Box) -> bool:
    # Any rotation: compare sorted edges
    item_edges = sorted(item, reverse=True)
    box_edges = sorted((box.inner_length, box.inner_width, box.inner_height), reverse=True)
    return all(i <= b for i, b in zip(item_edges, box_edges))


def box_fits(load: Load, box: Box, fill_factor: float = FILL_FACTOR) -> tuple[bool, str]:
    """Check weight, volume and the largest item against a box."""
    if load.weight_kg > box.max_weight:
        return False, f"weight {load.weight_kg}kg > max {box.max_weight}kg"
    if load.volume_cm3 > box.inner_volume * fill_factor:
        return False, f"volume {load.volume_cm3:.0f}cm3 > usable {box.inner_volume * fill_factor:.0f}cm3"
    if not _item_fits(load.largest_item, box):
        return False, "largest item does not fit inner dimensions"
    return True, "fits"


def _floored(length: float, width: float, height: float, weight: float) -> tuple[float, float, float, float]:
    return (
        max(length, MIN_LENGTH_CM),
        max(width, MIN_WIDTH_CM),
        max(height, MIN_HEIGHT_CM),
        max(weight, MIN_WEIGHT_KG),
    )


def _build(code: str, name: str, load: Load, dims: tuple[float, float, float],
           packaging_weight: float, utilization: float, cost: Decimal,
           fits: bool, reason: str) -> PackagingResult:
    length, width, height, total = _floored(*dims, load.weight_kg + packaging_weight)
    return PackagingResult(
        code=code,
        name=name,
        length_cm=round(length, 1),
        width_cm=round(width, 1),
        height_cm=round(height, 1),
        products_weight_kg=load.weight_kg,
        packaging_weight_kg=packaging_weight,
        total_weight_kg=round(total, 3),
        volumetric_weight_kg=round(volumetric_weight(length, width, height), 3),
        utilization_pct=round(utilization, 1),
        packaging_cost=cost,
        fits=fits,
        reason=reason,
    )


def custom_package(load: Load, reason: str) -> PackagingResult:
    """Package sized to the load plus a margin on every side."""
    dims = (
        load.length_cm + CUSTOM_MARGIN_CM,
        load.width_cm + CUSTOM_MARGIN_CM,
        load.height_cm + CUSTOM_MARGIN_CM,
    )
    return _build(
        "CUSTOM", "Custom package", load, dims,
        CUSTOM_PACKAGING_WEIGHT_KG, 0.0, Decimal("0"), True, reason,
    )


def select_packaging(items: Sequence[PackItem], boxes: Sequence[Box]) -> PackagingResult:
    """Choose the smallest box holding every item."""
    load = consolidate(items)
    if not items:
        return custom_package(load, "empty cart")
    if not boxes:
        return custom_package(load, "no packaging registered")

    candidates = sorted(boxes, key=lambda b: (b.inner_volume, b.max_weight))
    for box in candidates:
        fits, reason = box_fits(load, box)
        if not fits:
            logger.debug(f"Box {box.code} rejected: {reason}")
            continue
        utilization = load.volume_cm3 / box.inner_volume * 100 if box.inner_volume else 0.0
        logger.debug(f"Box {box.code} selected ({utilization:.1f}% full)")
        return _build(
            box.code, box.name, load,
            (box.outer_length, box.outer_width, box.outer_height),
            box.empty_weight, utilization, box.cost, True, reason,
        )

    largest = candidates[-1]
    logger.warning(
        f"No packaging holds {load.item_count} items ({load.weight_kg}kg, "
        f"{load.volume_cm3:.0f}cm3); stretching {largest.code}"
    )
    dims = (
        max(largest.outer_length, load.length_cm + CUSTOM_MARGIN_CM),
        max(largest.outer_width, load.width_cm + CUSTOM_MARGIN_CM),
        max(largest.outer_height, load.height_cm + CUSTOM_MARGIN_CM),
    )
    utilization = load.volume_cm3 / largest.inner_volume * 100 if largest.inner_volume else 0.0
    return _build(
        largest.code, f"{largest.name} (exceeds)", load, dims,
        largest.empty_weight, utilization, largest.cost, False,
        "no packaging holds the cart",
    )
