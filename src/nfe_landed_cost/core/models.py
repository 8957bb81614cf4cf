"""Dataclasses describing the core domain objects used by the cost engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class InvoiceHeader:
    """Identification and aggregate totals of one NF-e (``ide``/``emit``/``ICMSTot``)."""

    emitter_name: str
    emitter_cnpj: str
    invoice_number: str
    issue_date: Optional[datetime] = None
    total_products: float = 0.0
    total_freight: float = 0.0
    total_insurance: float = 0.0
    total_discount: float = 0.0
    total_other: float = 0.0
    total_icms_st: float = 0.0
    total_ipi: float = 0.0

    @property
    def total_gross_value(self) -> float:
        """Invoice value before discounts."""

        return (
            self.total_products
            + self.total_freight
            + self.total_insurance
            + self.total_other
            + self.total_icms_st
            + self.total_ipi
        )


@dataclass(frozen=True)
class LineItem:
    """Representation of a ``det`` entry read from an NF-e.

    ``freight``, ``insurance``, ``discount`` and ``other`` are ``None`` when the
    document does not state them for the line.
    """

    item_number: int
    code: str
    description: str
    quantity: float
    unit_cost: float
    total_cost: float
    unit: Optional[str] = None
    ipi: float = 0.0
    icms_st: float = 0.0
    pis: float = 0.0
    cofins: float = 0.0
    freight: Optional[float] = None
    insurance: Optional[float] = None
    discount: Optional[float] = None
    other: Optional[float] = None


@dataclass(frozen=True)
class Invoice:
    invoice_id: str
    header: InvoiceHeader
    items: List[LineItem]
    source: Optional[str] = None


@dataclass(frozen=True)
class AllocatedLineItem:
    """A line item with its apportioned charges and landed cost."""

    item: LineItem
    weight: float
    freight: float
    insurance: float
    discount: float
    other: float
    final_total_cost: float
    final_unit_cost: float
    conversion_factor: float = 1.0
    converted_unit_cost: float = 0.0

    @property
    def item_number(self) -> int:
        return self.item.item_number

    @property
    def code(self) -> str:
        return self.item.code

    @property
    def description(self) -> str:
        return self.item.description

    @property
    def quantity(self) -> float:
        return self.item.quantity

    @property
    def unit_cost(self) -> float:
        return self.item.unit_cost

    @property
    def total_cost(self) -> float:
        return self.item.total_cost

    @property
    def ipi(self) -> float:
        return self.item.ipi

    @property
    def icms_st(self) -> float:
        return self.item.icms_st

    @property
    def pis(self) -> float:
        return self.item.pis

    @property
    def cofins(self) -> float:
        return self.item.cofins

    @property
    def gross_total_cost(self) -> float:
        """Landed cost without taking the PIS/COFINS credit."""

        return self.final_total_cost + self.pis + self.cofins

    @property
    def gross_unit_cost(self) -> float:
        if self.quantity > 0:
            return self.gross_total_cost / self.quantity
        return 0.0


@dataclass(frozen=True)
class AllocationTotals:
    total_cost: float = 0.0
    ipi: float = 0.0
    icms_st: float = 0.0
    freight: float = 0.0
    insurance: float = 0.0
    discount: float = 0.0
    other: float = 0.0
    pis: float = 0.0
    cofins: float = 0.0
    final_total_cost: float = 0.0

    @property
    def gross_total_cost(self) -> float:
        return self.final_total_cost + self.pis + self.cofins


@dataclass(frozen=True)
class AllocatedInvoice:
    invoice_id: str
    header: InvoiceHeader
    lines: List[AllocatedLineItem]
    totals: AllocationTotals
    source: Optional[str] = None

    def line(self, item_number: int) -> AllocatedLineItem:
        for line in self.lines:
            if line.item_number == item_number:
                return line
        raise KeyError(f"Item {item_number} not found in invoice {self.invoice_id}")


@dataclass(frozen=True)
class Occurrence:
    invoice_id: str
    invoice_number: str
    emitter_name: str
    code: str
    description: str
    quantity: float
    unit_cost: float
    final_unit_cost: Optional[float] = None


@dataclass
class ComparisonGroup:
    """Occurrences of one product across several invoices."""

    code: str
    description: str
    total_quantity: float = 0.0
    occurrences: List[Occurrence] = field(default_factory=list)

    @property
    def invoice_count(self) -> int:
        return len({occurrence.invoice_id for occurrence in self.occurrences})

    @property
    def is_reportable(self) -> bool:
        return self.invoice_count >= 2

    @property
    def codes(self) -> List[str]:
        return sorted({occurrence.code for occurrence in self.occurrences})

    @property
    def min_unit_cost(self) -> float:
        return min((occurrence.unit_cost for occurrence in self.occurrences), default=0.0)

    @property
    def max_unit_cost(self) -> float:
        return max((occurrence.unit_cost for occurrence in self.occurrences), default=0.0)

    @property
    def average_unit_cost(self) -> float:
        """Quantity weighted average of the purchased unit cost."""

        if self.total_quantity <= 0:
            return 0.0
        spent = sum(occurrence.unit_cost * occurrence.quantity for occurrence in self.occurrences)
        return spent / self.total_quantity


@dataclass
class DocumentOutcome:
    source: str
    status: str
    invoice: Optional[AllocatedInvoice] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass
class BatchResult:
    outcomes: List[DocumentOutcome] = field(default_factory=list)

    @property
    def invoices(self) -> List[AllocatedInvoice]:
        return [outcome.invoice for outcome in self.outcomes if outcome.ok and outcome.invoice is not None]

    @property
    def failures(self) -> List[DocumentOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == "failed"]

    @property
    def skipped(self) -> List[DocumentOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == "skipped"]


__all__ = [
    "InvoiceHeader",
    "LineItem",
    "Invoice",
    "AllocatedLineItem",
    "AllocationTotals",
    "AllocatedInvoice",
    "Occurrence",
    "ComparisonGroup",
    "DocumentOutcome",
    "BatchResult",
]
