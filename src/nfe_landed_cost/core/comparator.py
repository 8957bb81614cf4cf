"""Cross-invoice comparison of purchased products."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from .grouping import GroupingFunction, ProductInput, group_from_products, occurrence_from_product
from .models import AllocatedInvoice, ComparisonGroup, Invoice


LOGGER = logging.getLogger(__name__)

InvoiceLike = Union[Invoice, AllocatedInvoice]


def _items(invoice: InvoiceLike) -> Sequence:
    return invoice.lines if isinstance(invoice, AllocatedInvoice) else invoice.items


def _invoice_order(invoice: InvoiceLike) -> Tuple:
    content = tuple((item.code or "", item.description, item.quantity, item.total_cost) for item in _items(invoice))
    return (invoice.invoice_id, invoice.header.invoice_number, invoice.header.emitter_name, content)


def _products(invoice: InvoiceLike) -> Iterable[ProductInput]:
    header = invoice.header
    if isinstance(invoice, AllocatedInvoice):
        for line in invoice.lines:
            yield ProductInput(
                code=line.code or "",
                description=line.description,
                quantity=line.quantity,
                unit_cost=line.unit_cost,
                invoice_id=invoice.invoice_id,
                invoice_number=header.invoice_number,
                emitter_name=header.emitter_name,
                final_unit_cost=line.final_unit_cost,
            )
    else:
        for item in invoice.items:
            yield ProductInput(
                code=item.code or "",
                description=item.description,
                quantity=item.quantity,
                unit_cost=item.unit_cost,
                invoice_id=invoice.invoice_id,
                invoice_number=header.invoice_number,
                emitter_name=header.emitter_name,
            )


def _sort_key(group: ComparisonGroup) -> Tuple[int, str, str]:
    return (-group.invoice_count, group.description, group.code)


class CrossInvoiceMatcher:
    """Group line items referring to the same product across invoices.

    Matching is done on the exact product code (``cProd``).  A grouping
    collaborator may be supplied to :meth:`compare` for fuzzy matching.
    """

    def __init__(self, min_invoices: int = 2) -> None:
        if min_invoices < 2:
            raise ValueError("min_invoices must be at least 2")
        self.min_invoices = min_invoices

    def flatten(self, invoices: Iterable[InvoiceLike]) -> List[ProductInput]:
        """All products of ``invoices`` in a deterministic order.

        An invoice id seen more than once is kept only for the first invoice
        in that order.
        """

        products: List[ProductInput] = []
        seen: Set[str] = set()
        for invoice in sorted(invoices, key=_invoice_order):
            if invoice.invoice_id in seen:
                LOGGER.warning("Invoice %s given more than once, ignoring the repeat", invoice.invoice_id)
                continue
            seen.add(invoice.invoice_id)
            products.extend(_products(invoice))
        return products

    def exact_groups(self, invoices: Iterable[InvoiceLike]) -> List[ComparisonGroup]:
        """Every code group, including the ones found in a single invoice."""

        groups: Dict[str, ComparisonGroup] = {}
        for product in self.flatten(invoices):
            group = groups.get(product.code)
            if group is None:
                group = ComparisonGroup(code=product.code, description=product.description)
                groups[product.code] = group
            group.total_quantity += product.quantity
            group.occurrences.append(occurrence_from_product(product))
        return list(groups.values())

    def compare(
        self,
        invoices: Iterable[InvoiceLike],
        grouper: Optional[GroupingFunction] = None,
    ) -> List[ComparisonGroup]:
        invoices = list(invoices)
        if grouper is None:
            groups = self.exact_groups(invoices)
        else:
            groups = [group_from_products(group) for group in grouper(self.flatten(invoices))]
        return self.select(groups)

    def select(self, groups: Sequence[ComparisonGroup]) -> List[ComparisonGroup]:
        """Keep recurring groups and order them for presentation."""

        recurring = [group for group in groups if group.invoice_count >= self.min_invoices]
        recurring.sort(key=_sort_key)
        LOGGER.info("Found %s recurring products out of %s groups", len(recurring), len(groups))
        return recurring


def compare_invoices(
    invoices: Iterable[InvoiceLike],
    grouper: Optional[GroupingFunction] = None,
    *,
    min_invoices: int = 2,
) -> List[ComparisonGroup]:
    return CrossInvoiceMatcher(min_invoices=min_invoices).compare(invoices, grouper=grouper)


__all__ = ["CrossInvoiceMatcher", "compare_invoices"]
