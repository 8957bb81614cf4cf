"""Apportionment of header charges and landed cost per line item.

Each line receives a share of the invoice-level freight, insurance,
discount and "other expenses" proportional to its product value
(``vProd`` of the line over ``vProd`` of ``ICMSTot``).  Taxes are never
apportioned: a line only carries the IPI, ICMS-ST, PIS and COFINS stated
in its own ``imposto`` block.

The landed cost takes the PIS/COFINS credit::

    final = vProd + IPI + ST + freight + insurance + other - discount - PIS - COFINS

and :attr:`AllocatedLineItem.gross_total_cost` gives the figure without
the credit.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .models import AllocatedInvoice, AllocatedLineItem, AllocationTotals, Invoice, InvoiceHeader, LineItem


LOGGER = logging.getLogger(__name__)

DIRECT_OR_PRORATED = "direct_or_prorated"
DIRECT_PLUS_PRORATED = "direct_plus_prorated"
CHARGE_POLICIES = (DIRECT_OR_PRORATED, DIRECT_PLUS_PRORATED)

TOTAL_COLUMNS = (
    "total_cost",
    "ipi",
    "icms_st",
    "freight",
    "insurance",
    "discount",
    "other",
    "pis",
    "cofins",
    "final_total_cost",
)


def item_weight(line_total: float, header_total: float) -> float:
    if header_total > 0:
        return line_total / header_total
    return 0.0


class AllocationEngine:
    """Compute :class:`AllocatedLineItem` values and totals for one invoice."""

    def __init__(self, policy: str = DIRECT_OR_PRORATED) -> None:
        if policy not in CHARGE_POLICIES:
            raise ValueError(f"Unsupported charge policy '{policy}'. Valid values: {list(CHARGE_POLICIES)}")
        self.policy = policy

    def allocate(self, invoice: Invoice) -> AllocatedInvoice:
        lines = [self.allocate_line(item, invoice.header) for item in invoice.items]
        totals = summarize(lines)
        LOGGER.debug(
            "Allocated invoice %s: %s lines, final cost %.2f",
            invoice.invoice_id,
            len(lines),
            totals.final_total_cost,
        )
        return AllocatedInvoice(
            invoice_id=invoice.invoice_id,
            header=invoice.header,
            lines=lines,
            totals=totals,
            source=invoice.source,
        )

    def allocate_line(self, item: LineItem, header: InvoiceHeader) -> AllocatedLineItem:
        weight = item_weight(item.total_cost, header.total_products)

        freight = self._resolve(item.freight, header.total_freight, weight)
        insurance = self._resolve(item.insurance, header.total_insurance, weight)
        discount = self._resolve(item.discount, header.total_discount, weight)
        other = self._resolve(item.other, header.total_other, weight)

        final_total = (
            item.total_cost
            + item.ipi
            + item.icms_st
            + freight
            + insurance
            + other
            - discount
            - item.pis
            - item.cofins
        )
        final_unit = final_total / item.quantity if item.quantity > 0 else 0.0

        return AllocatedLineItem(
            item=item,
            weight=weight,
            freight=freight,
            insurance=insurance,
            discount=discount,
            other=other,
            final_total_cost=final_total,
            final_unit_cost=final_unit,
            conversion_factor=1.0,
            converted_unit_cost=final_unit,
        )

    def _resolve(self, direct: Optional[float], header_total: float, weight: float) -> float:
        prorated = header_total * weight
        if self.policy == DIRECT_PLUS_PRORATED:
            return (direct or 0.0) + prorated
        if direct is not None:
            return direct
        return prorated


def summarize(lines: Iterable[AllocatedLineItem]) -> AllocationTotals:
    """Column-wise sums of every cost component."""

    lines = list(lines)
    return AllocationTotals(**{column: column_total(lines, column) for column in TOTAL_COLUMNS})


def column_total(lines: List[AllocatedLineItem], column: str) -> float:
    return sum(getattr(line, column) for line in lines)


def allocate_invoice(invoice: Invoice, policy: str = DIRECT_OR_PRORATED) -> AllocatedInvoice:
    return AllocationEngine(policy).allocate(invoice)


__all__ = [
    "AllocationEngine",
    "CHARGE_POLICIES",
    "DIRECT_OR_PRORATED",
    "DIRECT_PLUS_PRORATED",
    "allocate_invoice",
    "column_total",
    "item_weight",
    "summarize",
]
