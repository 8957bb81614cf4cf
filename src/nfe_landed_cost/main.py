"""Command line interface for the NF-e landed cost engine."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

import pandas as pd

from .config import Settings
from .core.conversion import UnitConversionAdapter
from .core.models import AllocatedInvoice
from .core.pipeline import BatchProcessor, DocumentSource
from .core.report import ReportWriter, allocation_dataframe, comparison_dataframe
from .core.utils import format_currency, safe_int


LOGGER = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def load_settings(config_path: str) -> Settings:
    path = Path(config_path)
    if not path.exists():
        LOGGER.info("Configuration %s not found, using defaults", path)
        return Settings.defaults()
    return Settings.load(path)


def parse_factors(values: Optional[Iterable[str]]) -> Dict[int, str]:
    """Parse ``ITEM=FACTOR`` pairs given on the command line."""

    factors: Dict[int, str] = {}
    for value in values or []:
        item, separator, factor = value.partition("=")
        item_number = safe_int(item.strip(), default=-1)
        if item_number < 0 or not separator:
            raise argparse.ArgumentTypeError(f"Invalid --factor '{value}', expected ITEM=FACTOR")
        factors[item_number] = factor
    return factors


def apply_factors(invoice: AllocatedInvoice, factors: Dict[int, str]) -> AllocatedInvoice:
    adapter = UnitConversionAdapter()
    for item_number, factor in factors.items():
        invoice = adapter.apply_to_invoice(invoice, item_number, factor)
    return invoice


def print_invoice(invoice: AllocatedInvoice) -> None:
    header = invoice.header
    print(f"NF-e: {header.invoice_number}")
    print(f"Emitente: {header.emitter_name} ({header.emitter_cnpj})")
    print(f"Total bruto (s/ desc): {format_currency(header.total_gross_value)}")
    print(f"Custo total (s/ crédito PIS/COFINS): {format_currency(invoice.totals.gross_total_cost)}")
    print(f"Custo líquido (c/ crédito PIS/COFINS): {format_currency(invoice.totals.final_total_cost)}")
    with pd.option_context("display.max_columns", None, "display.width", 200):
        print(allocation_dataframe(invoice).to_string(index=False))


def command_analyze(args: argparse.Namespace) -> None:
    settings = load_settings(args.config)
    processor = BatchProcessor(settings)
    try:
        source = DocumentSource.from_path(Path(args.file))
    except OSError as exc:
        LOGGER.warning("Unable to read %s: %s", args.file, exc)
        print(f"Erro de importação: {exc}")
        raise SystemExit(1)
    outcome = processor.process_document(source)
    if not outcome.ok or outcome.invoice is None:
        print(f"Erro de importação: {outcome.error}")
        raise SystemExit(1)

    try:
        invoice = apply_factors(outcome.invoice, parse_factors(args.factor))
    except (KeyError, argparse.ArgumentTypeError) as exc:
        print(f"Fator de conversão inválido: {exc}")
        raise SystemExit(2)
    print_invoice(invoice)
    if args.export:
        path = ReportWriter(settings).write_allocation(invoice)
        print(f"CSV gerado: {path}")


def command_compare(args: argparse.Namespace) -> None:
    settings = load_settings(args.config)
    processor = BatchProcessor(settings)

    if args.files:
        batch = processor.process_files([Path(file) for file in args.files])
    else:
        batch = processor.process_directory()
        if batch is None:
            print("Nenhum arquivo encontrado para processamento.")
            return

    for failure in batch.failures:
        print(f"Falha ao processar {failure.source}: {failure.error}")
    for skipped in batch.skipped:
        print(f"Ignorado {skipped.source}: {skipped.error}")

    grouper = processor.similarity_grouper() if args.similar else None
    groups = processor.compare(batch, grouper=grouper)
    print(f"Notas carregadas: {len(batch.invoices)}")
    print(f"Produtos recorrentes: {len(groups)}")
    if groups:
        with pd.option_context("display.max_columns", None, "display.width", 200):
            print(comparison_dataframe(groups).to_string(index=False))
    if args.export:
        path = ReportWriter(settings).write_comparison(groups)
        print(f"CSV gerado: {path}")


def command_api(args: argparse.Namespace) -> None:
    from .api.server import create_app

    settings = load_settings(args.config)
    app = create_app(settings)
    import uvicorn

    uvicorn.run(app, host=args.host, port=args.port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="NF-e landed cost analysis")
    parser.add_argument("--config", default="config.yaml", help="Path to the configuration YAML file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser("analyze", help="Landed cost of every item of one NF-e")
    analyze_parser.add_argument("file", help="NF-e XML file")
    analyze_parser.add_argument(
        "--factor",
        action="append",
        metavar="ITEM=FACTOR",
        help="Conversion factor for an item (e.g. 3=12 for a case of 12). May be repeated",
    )
    analyze_parser.add_argument("--export", action="store_true", help="Write the analysis as CSV")
    analyze_parser.set_defaults(func=command_analyze)

    compare_parser = subparsers.add_parser("compare", help="Compare products across several NF-e")
    compare_parser.add_argument("files", nargs="*", help="XML files (defaults to the input folder)")
    compare_parser.add_argument("--similar", action="store_true", help="Group by description similarity")
    compare_parser.add_argument("--export", action="store_true", help="Write the comparison as CSV")
    compare_parser.set_defaults(func=command_compare)

    api_parser = subparsers.add_parser("api", help="Start the FastAPI server")
    api_parser.add_argument("--host", default="0.0.0.0")
    api_parser.add_argument("--port", type=int, default=8000)
    api_parser.set_defaults(func=command_api)

    return parser


def main(argv: Optional[Iterable[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
