"""Cost per inner unit (e.g. per item inside a case of 12)."""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Union

from .models import AllocatedInvoice, AllocatedLineItem


LOGGER = logging.getLogger(__name__)

DEFAULT_FACTOR = 1.0

RawFactor = Union[str, int, float, None]


def parse_conversion_factor(raw: RawFactor) -> float:
    """Parse user input into a positive factor, falling back to ``1``.

    Accepts numbers and strings using either ``.`` or ``,`` as decimal
    separator.  Empty, non-numeric, non-finite and non-positive input
    never raises.
    """

    if raw is None or isinstance(raw, bool):
        return DEFAULT_FACTOR
    if isinstance(raw, str):
        raw = raw.strip().replace(",", ".")
        if not raw:
            return DEFAULT_FACTOR
    try:
        factor = float(raw)
    except (TypeError, ValueError):
        LOGGER.debug("Ignoring non-numeric conversion factor %r", raw)
        return DEFAULT_FACTOR
    if math.isnan(factor) or math.isinf(factor) or factor <= 0:
        return DEFAULT_FACTOR
    return factor


def converted_cost(final_unit_cost: float, raw_factor: RawFactor) -> float:
    return final_unit_cost / parse_conversion_factor(raw_factor)


class UnitConversionAdapter:
    """Recompute ``converted_unit_cost`` without touching the allocation."""

    def apply(self, line: AllocatedLineItem, raw_factor: RawFactor) -> AllocatedLineItem:
        factor = parse_conversion_factor(raw_factor)
        return replace(
            line,
            conversion_factor=factor,
            converted_unit_cost=line.final_unit_cost / factor,
        )

    def apply_to_invoice(self, invoice: AllocatedInvoice, item_number: int, raw_factor: RawFactor) -> AllocatedInvoice:
        """Return ``invoice`` with one line converted.

        Totals are kept as they are: conversion only changes a display figure.
        """

        target = invoice.line(item_number)
        updated = self.apply(target, raw_factor)
        lines = [updated if line is target else line for line in invoice.lines]
        return replace(invoice, lines=lines)


__all__ = ["UnitConversionAdapter", "parse_conversion_factor", "converted_cost", "DEFAULT_FACTOR"]
