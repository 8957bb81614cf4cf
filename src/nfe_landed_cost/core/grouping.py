"""Product grouping collaborators used by the comparator.

A grouping collaborator is any callable taking a list of
:class:`ProductInput` and returning :class:`ProductGroup` values, each
with a canonical description and the products it gathered.  A language
model service can be plugged in this way; :class:`SimilarDescriptionGrouper`
is a local implementation based on string similarity.
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .models import ComparisonGroup, Occurrence
from .utils import normalize_text


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductInput:
    code: str
    description: str
    quantity: float
    unit_cost: float
    invoice_id: str
    invoice_number: str
    emitter_name: str
    final_unit_cost: Optional[float] = None


@dataclass
class ProductGroup:
    canonical_description: str
    items: List[ProductInput] = field(default_factory=list)


GroupingFunction = Callable[[List[ProductInput]], List[ProductGroup]]


def occurrence_from_product(product: ProductInput) -> Occurrence:
    return Occurrence(
        invoice_id=product.invoice_id,
        invoice_number=product.invoice_number,
        emitter_name=product.emitter_name,
        code=product.code,
        description=product.description,
        quantity=product.quantity,
        unit_cost=product.unit_cost,
        final_unit_cost=product.final_unit_cost,
    )


def group_from_products(group: ProductGroup) -> ComparisonGroup:
    """Convert a collaborator group into the comparator's output shape."""

    occurrences = [occurrence_from_product(product) for product in group.items]
    code = group.items[0].code if group.items else ""
    description = group.canonical_description or (group.items[0].description if group.items else "")
    return ComparisonGroup(
        code=code,
        description=description,
        total_quantity=sum(product.quantity for product in group.items),
        occurrences=occurrences,
    )


class SimilarDescriptionGrouper:
    """Group products whose normalised descriptions are similar enough.

    Products sharing a code always end up together.  The canonical
    description is the first description seen for the group.
    """

    def __init__(self, threshold: float = 0.85) -> None:
        if not 0 < threshold <= 1:
            raise ValueError("threshold must be in the (0, 1] interval")
        self.threshold = threshold

    def __call__(self, products: List[ProductInput]) -> List[ProductGroup]:
        groups: List[ProductGroup] = []
        keys: List[str] = []
        by_code: Dict[str, int] = {}

        for product in products:
            index = by_code.get(product.code) if product.code else None
            normalized = normalize_text(product.description)
            if index is None:
                index = self._closest(normalized, keys)
            if index is None:
                groups.append(ProductGroup(canonical_description=product.description))
                keys.append(normalized)
                index = len(groups) - 1
            groups[index].items.append(product)
            if product.code:
                by_code.setdefault(product.code, index)

        LOGGER.debug("Grouped %s products into %s groups", len(products), len(groups))
        return groups

    def _closest(self, normalized: str, keys: List[str]) -> Optional[int]:
        best_index: Optional[int] = None
        best_score = 0.0
        for index, key in enumerate(keys):
            score = self._similarity(normalized, key)
            if score > best_score:
                best_score = score
                best_index = index
        if best_index is not None and best_score >= self.threshold:
            return best_index
        return None

    @staticmethod
    def _similarity(a: str, b: str) -> float:
        if not a or not b:
            return 0.0
        return difflib.SequenceMatcher(None, a, b).ratio()


__all__ = [
    "ProductInput",
    "ProductGroup",
    "GroupingFunction",
    "SimilarDescriptionGrouper",
    "group_from_products",
    "occurrence_from_product",
]
