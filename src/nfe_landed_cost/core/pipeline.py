"""High level orchestration: documents in, allocated invoices and comparisons out."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from lxml import etree

from ..config import Settings
from .allocation import AllocationEngine
from .comparator import CrossInvoiceMatcher
from .grouping import GroupingFunction, SimilarDescriptionGrouper
from .models import BatchResult, ComparisonGroup, DocumentOutcome
from .normalizer import InvoiceNormalizer
from .xmltree import DocumentReader


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentSource:
    """Raw content of one uploaded or on-disk NF-e."""

    name: str
    content: bytes

    @classmethod
    def from_path(cls, path: Path) -> "DocumentSource":
        path = Path(path)
        return cls(name=path.name, content=path.read_bytes())


class BatchProcessor:
    """Coordinates reading, normalization, allocation and comparison.

    Every document is an independent task; a failing document produces a
    ``failed`` outcome and never affects its siblings.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.reader = DocumentReader()
        self.normalizer = InvoiceNormalizer()
        self.engine = AllocationEngine(settings.allocation.charge_policy)
        self.matcher = CrossInvoiceMatcher(min_invoices=settings.comparison.min_invoices)

    def process_document(self, source: DocumentSource) -> DocumentOutcome:
        try:
            tree = self.reader.read_bytes(source.content)
            invoice = self.normalizer.normalize(tree, source=source.name)
            allocated = self.engine.allocate(invoice)
        except (etree.XMLSyntaxError, ValueError) as exc:
            LOGGER.warning("Failed to process NF-e %s: %s", source.name, exc)
            return DocumentOutcome(source=source.name, status="failed", error=str(exc))
        return DocumentOutcome(source=source.name, status="ok", invoice=allocated)

    def process_sources(self, sources: Iterable[DocumentSource]) -> BatchResult:
        sources = list(sources)
        if not sources:
            return BatchResult()

        workers = min(self.settings.processing.max_workers, len(sources))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self.process_document, source) for source in sources]
            # Joined in submission order: completion order never leaks into the result.
            outcomes = [future.result() for future in futures]

        result = BatchResult(outcomes=self._skip_duplicates(outcomes))
        LOGGER.info(
            "Batch settled: %s processed, %s failed, %s skipped",
            len(result.invoices),
            len(result.failures),
            len(result.skipped),
        )
        return result

    def process_files(self, files: Iterable[Path]) -> BatchResult:
        sources: List[DocumentSource] = []
        unreadable: Dict[int, DocumentOutcome] = {}
        for position, file_path in enumerate(files):
            try:
                sources.append(DocumentSource.from_path(Path(file_path)))
            except OSError as exc:
                LOGGER.warning("Unable to read %s: %s", file_path, exc)
                unreadable[position] = DocumentOutcome(source=Path(file_path).name, status="failed", error=str(exc))
        processed = iter(self.process_sources(sources).outcomes)
        outcomes = [
            unreadable[position] if position in unreadable else next(processed)
            for position in range(len(sources) + len(unreadable))
        ]
        return BatchResult(outcomes=outcomes)

    def process_directory(self) -> Optional[BatchResult]:
        xml_files = sorted(Path(self.settings.paths.input_folder).glob("*.xml"))
        if not xml_files:
            LOGGER.info("No XML files found in %s", self.settings.paths.input_folder)
            return None
        return self.process_files(xml_files)

    def compare(self, batch: BatchResult, grouper: Optional[GroupingFunction] = None) -> List[ComparisonGroup]:
        return self.matcher.compare(batch.invoices, grouper=grouper)

    def similarity_grouper(self) -> SimilarDescriptionGrouper:
        return SimilarDescriptionGrouper(self.settings.comparison.similarity_threshold)

    @staticmethod
    def _skip_duplicates(outcomes: List[DocumentOutcome]) -> List[DocumentOutcome]:
        seen: Set[str] = set()
        result: List[DocumentOutcome] = []
        for outcome in outcomes:
            if outcome.ok and outcome.invoice is not None:
                invoice_id = outcome.invoice.invoice_id
                if invoice_id in seen:
                    LOGGER.info("Invoice %s from %s already loaded, ignoring", invoice_id, outcome.source)
                    outcome = DocumentOutcome(
                        source=outcome.source,
                        status="skipped",
                        error=f"Invoice {invoice_id} already loaded",
                    )
                else:
                    seen.add(invoice_id)
            result.append(outcome)
        return result


__all__ = ["BatchProcessor", "DocumentSource"]
