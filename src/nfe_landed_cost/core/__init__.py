"""Cost allocation and comparison engine."""

from .allocation import AllocationEngine, allocate_invoice
from .comparator import CrossInvoiceMatcher, compare_invoices
from .conversion import UnitConversionAdapter, parse_conversion_factor
from .normalizer import InvoiceNormalizer, MalformedInvoice, normalize_invoice

__all__ = [
    "AllocationEngine",
    "CrossInvoiceMatcher",
    "InvoiceNormalizer",
    "MalformedInvoice",
    "UnitConversionAdapter",
    "allocate_invoice",
    "compare_invoices",
    "normalize_invoice",
    "parse_conversion_factor",
]
