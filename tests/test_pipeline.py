import shutil
from pathlib import Path

import pytest

from nfe_landed_cost.config import Settings
from nfe_landed_cost.core.pipeline import BatchProcessor, DocumentSource


EXAMPLES = Path(__file__).resolve().parents[1] / "example_docs"
VALID = ["nfe_alfa_1001.xml", "nfe_beta_2002.xml", "nfe_alfa_1050.xml"]


def make_settings(tmp_path: Path, **overrides) -> Settings:
    cfg = {
        "paths": {
            "input_folder": str(tmp_path / "input"),
            "output_folder": str(tmp_path / "output"),
        },
        "processing": {"max_workers": 3},
    }
    cfg.update(overrides)
    settings = Settings.model_validate(cfg)
    settings.ensure_folders()
    return settings


def load_source(name: str) -> DocumentSource:
    return DocumentSource.from_path(EXAMPLES / name)


def test_process_document_allocates_costs(tmp_path):
    processor = BatchProcessor(make_settings(tmp_path))
    outcome = processor.process_document(load_source("nfe_alfa_1001.xml"))

    assert outcome.ok
    invoice = outcome.invoice
    assert invoice.invoice_id == "35250811111111000111550010000010011000000011"
    first, second = invoice.lines
    assert first.freight == pytest.approx(10.0)
    assert first.discount == pytest.approx(2.0)
    assert first.final_total_cost == pytest.approx(103.75)
    assert first.final_unit_cost == pytest.approx(10.375)
    assert second.final_total_cost == pytest.approx(56.0)
    assert invoice.totals.final_total_cost == pytest.approx(159.75)
    assert invoice.totals.gross_total_cost == pytest.approx(169.0)


def test_stated_line_charge_is_used(tmp_path):
    processor = BatchProcessor(make_settings(tmp_path))
    invoice = processor.process_document(load_source("nfe_alfa_1050.xml")).invoice
    line = invoice.lines[0]
    assert line.other == 2.5
    assert line.final_total_cost == pytest.approx(30.0)
    assert line.final_unit_cost == pytest.approx(0.6)


def test_configured_policy_reaches_the_engine(tmp_path):
    settings = make_settings(tmp_path, allocation={"charge_policy": "direct_plus_prorated"})
    invoice = BatchProcessor(settings).process_document(load_source("nfe_alfa_1050.xml")).invoice
    assert invoice.lines[0].other == pytest.approx(5.0)


def test_malformed_document_fails_alone(tmp_path):
    processor = BatchProcessor(make_settings(tmp_path))
    sources = [load_source(name) for name in VALID]
    sources.insert(1, load_source("nfe_sem_totais.xml"))
    sources.append(DocumentSource(name="lixo.xml", content=b"isto nao e xml"))

    batch = processor.process_sources(sources)

    assert [outcome.source for outcome in batch.outcomes] == [source.name for source in sources]
    assert [outcome.status for outcome in batch.outcomes] == ["ok", "failed", "ok", "ok", "failed"]
    assert "ICMSTot" in batch.failures[0].error
    assert len(batch.invoices) == 3


def test_duplicate_invoice_is_skipped(tmp_path):
    processor = BatchProcessor(make_settings(tmp_path))
    source = load_source("nfe_alfa_1001.xml")
    copy = DocumentSource(name="copia.xml", content=source.content)

    batch = processor.process_sources([source, copy])

    assert [outcome.status for outcome in batch.outcomes] == ["ok", "skipped"]
    assert len(batch.invoices) == 1
    assert batch.skipped[0].source == "copia.xml"


def test_empty_batch(tmp_path):
    batch = BatchProcessor(make_settings(tmp_path)).process_sources([])
    assert batch.outcomes == []
    assert batch.invoices == []


def test_process_files_reports_unreadable_paths(tmp_path):
    processor = BatchProcessor(make_settings(tmp_path))
    batch = processor.process_files([EXAMPLES / "nfe_alfa_1001.xml", tmp_path / "missing.xml"])
    assert [outcome.status for outcome in batch.outcomes] == ["ok", "failed"]
    assert batch.failures[0].source == "missing.xml"


def test_process_files_keeps_input_positions(tmp_path):
    processor = BatchProcessor(make_settings(tmp_path))
    files = [EXAMPLES / "nfe_alfa_1001.xml", tmp_path / "missing.xml", EXAMPLES / "nfe_beta_2002.xml", tmp_path / "other.xml"]
    batch = processor.process_files(files)

    assert [outcome.source for outcome in batch.outcomes] == ["nfe_alfa_1001.xml", "missing.xml", "nfe_beta_2002.xml", "other.xml"]
    assert [outcome.status for outcome in batch.outcomes] == ["ok", "failed", "ok", "failed"]


def test_process_directory(tmp_path):
    settings = make_settings(tmp_path)
    processor = BatchProcessor(settings)
    assert processor.process_directory() is None

    for name in VALID + ["nfe_sem_totais.xml"]:
        shutil.copy(EXAMPLES / name, settings.paths.input_folder / name)

    batch = processor.process_directory()
    assert len(batch.outcomes) == 4
    assert len(batch.invoices) == 3
    assert len(batch.failures) == 1


def test_compare_uses_only_settled_invoices(tmp_path):
    processor = BatchProcessor(make_settings(tmp_path))
    sources = [load_source(name) for name in VALID + ["nfe_sem_totais.xml"]]
    batch = processor.process_sources(sources)

    groups = processor.compare(batch)

    assert [(group.code, group.invoice_count) for group in groups] == [("001", 2), ("002", 2)]
    assert groups[0].description == "PARAFUSO SEXTAVADO 1/4"
    assert groups[0].total_quantity == 15.0
    assert groups[1].total_quantity == 150.0

    reversed_batch = processor.process_sources(list(reversed(sources)))
    assert processor.compare(reversed_batch) == groups


def test_compare_with_similarity_grouper(tmp_path):
    processor = BatchProcessor(make_settings(tmp_path))
    batch = processor.process_sources([load_source(name) for name in VALID])
    groups = processor.compare(batch, grouper=processor.similarity_grouper())
    assert [group.description for group in groups] == ["PARAFUSO SEXTAVADO 1/4", "PORCA SEXTAVADA 1/4"]
