"""Partition resolved cart lines into one group per vendor."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Tuple

from checkout_service.db.schemas import Product
from checkout_service.money import from_minor_units, line_total


@dataclass
class VendorGroup:
    vendor_id: str
    lines: List[Tuple[Product, int]] = field(default_factory=list)
    total_minor: int = 0

    @property
    def total(self) -> Decimal:
        return from_minor_units(self.total_minor)


def split(cart_lines: Mapping[str, int], products: Iterable[Product]) -> Dict[str, VendorGroup]:
    """Group cart lines by the vendor owning each product.

    Groups appear in the order their first line appears in the cart, and
    lines keep cart order inside a group. Lines whose product is not in
    ``products`` are skipped.
    """
    by_id = {product.id: product for product in products}
    groups: Dict[str, VendorGroup] = {}
    for product_id, quantity in cart_lines.items():
        product = by_id.get(product_id)
        if product is None:
            continue
        group = groups.get(product.vendor_id)
        if group is None:
            group = groups[product.vendor_id] = VendorGroup(product.vendor_id)
        group.lines.append((product, quantity))
        group.total_minor += line_total(product.price, quantity)
    return groups
