"""Tabular views and CSV exports of allocations and comparisons."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List

import pandas as pd

from ..config import Settings
from .models import AllocatedInvoice, AllocatedLineItem, ComparisonGroup
from .utils import ensure_directory, now_timestamp


LOGGER = logging.getLogger(__name__)

ALLOCATION_COLUMNS = [
    "item_number",
    "code",
    "description",
    "quantity",
    "conversion_factor",
    "unit_cost",
    "total_cost",
    "ipi",
    "icms_st",
    "freight",
    "insurance",
    "discount",
    "other",
    "pis",
    "cofins",
    "final_unit_cost",
    "converted_unit_cost",
    "final_total_cost",
    "gross_total_cost",
]

COMPARISON_COLUMNS = [
    "code",
    "description",
    "invoice_count",
    "total_quantity",
    "invoice_id",
    "invoice_number",
    "emitter_name",
    "item_code",
    "item_description",
    "quantity",
    "unit_cost",
    "final_unit_cost",
]


def line_row(line: AllocatedLineItem) -> Dict[str, object]:
    return {column: getattr(line, column) for column in ALLOCATION_COLUMNS}


def allocation_rows(invoice: AllocatedInvoice) -> List[Dict[str, object]]:
    return [line_row(line) for line in invoice.lines]


def totals_row(invoice: AllocatedInvoice) -> Dict[str, object]:
    totals = invoice.totals
    return {
        "total_cost": totals.total_cost,
        "ipi": totals.ipi,
        "icms_st": totals.icms_st,
        "freight": totals.freight,
        "insurance": totals.insurance,
        "discount": totals.discount,
        "other": totals.other,
        "pis": totals.pis,
        "cofins": totals.cofins,
        "final_total_cost": totals.final_total_cost,
        "gross_total_cost": totals.gross_total_cost,
    }


def invoice_summary(invoice: AllocatedInvoice) -> Dict[str, object]:
    header = invoice.header
    return {
        "invoice_id": invoice.invoice_id,
        "source": invoice.source,
        "invoice_number": header.invoice_number,
        "emitter_name": header.emitter_name,
        "emitter_cnpj": header.emitter_cnpj,
        "issue_date": header.issue_date.isoformat() if header.issue_date else None,
        "total_products": header.total_products,
        "total_gross_value": header.total_gross_value,
        "net_cost": invoice.totals.final_total_cost,
        "gross_cost": invoice.totals.gross_total_cost,
        "items": len(invoice.lines),
    }


def allocation_dataframe(invoice: AllocatedInvoice) -> pd.DataFrame:
    return pd.DataFrame(allocation_rows(invoice), columns=ALLOCATION_COLUMNS)


def comparison_rows(groups: Iterable[ComparisonGroup]) -> List[Dict[str, object]]:
    rows: List[Dict[str, object]] = []
    for group in groups:
        for occurrence in group.occurrences:
            rows.append(
                {
                    "code": group.code,
                    "description": group.description,
                    "invoice_count": group.invoice_count,
                    "total_quantity": group.total_quantity,
                    "invoice_id": occurrence.invoice_id,
                    "invoice_number": occurrence.invoice_number,
                    "emitter_name": occurrence.emitter_name,
                    "item_code": occurrence.code,
                    "item_description": occurrence.description,
                    "quantity": occurrence.quantity,
                    "unit_cost": occurrence.unit_cost,
                    "final_unit_cost": occurrence.final_unit_cost,
                }
            )
    return rows


def comparison_dataframe(groups: Iterable[ComparisonGroup]) -> pd.DataFrame:
    return pd.DataFrame(comparison_rows(groups), columns=COMPARISON_COLUMNS)


def group_payload(group: ComparisonGroup) -> Dict[str, object]:
    return {
        "code": group.code,
        "description": group.description,
        "invoice_count": group.invoice_count,
        "total_quantity": group.total_quantity,
        "min_unit_cost": group.min_unit_cost,
        "max_unit_cost": group.max_unit_cost,
        "average_unit_cost": group.average_unit_cost,
        "occurrences": [
            {
                "invoice_id": occurrence.invoice_id,
                "invoice_number": occurrence.invoice_number,
                "emitter_name": occurrence.emitter_name,
                "code": occurrence.code,
                "description": occurrence.description,
                "quantity": occurrence.quantity,
                "unit_cost": occurrence.unit_cost,
                "final_unit_cost": occurrence.final_unit_cost,
            }
            for occurrence in group.occurrences
        ],
    }


class ReportWriter:
    """Write CSV exports under the configured output folder."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def write_allocation(self, invoice: AllocatedInvoice) -> Path:
        df = allocation_dataframe(invoice)
        number = invoice.header.invoice_number if invoice.header.invoice_number != "N/A" else "sem_numero"
        return self._write(df, f"analise_{number}")

    def write_comparison(self, groups: Iterable[ComparisonGroup]) -> Path:
        return self._write(comparison_dataframe(groups), "comparativo")

    def _write(self, df: pd.DataFrame, name: str) -> Path:
        config = self.settings.report
        output_folder = self.settings.paths.output_folder
        ensure_directory(output_folder)
        path = output_folder / f"{config.filename_prefix}{name}_{now_timestamp()}.csv"
        df.to_csv(path, index=False, sep=config.delimiter, decimal=config.decimal, encoding="utf-8-sig")
        LOGGER.info("Wrote %s rows to %s", len(df), path)
        return path


__all__ = [
    "ALLOCATION_COLUMNS",
    "COMPARISON_COLUMNS",
    "ReportWriter",
    "allocation_dataframe",
    "allocation_rows",
    "comparison_dataframe",
    "comparison_rows",
    "group_payload",
    "invoice_summary",
    "line_row",
    "totals_row",
]
