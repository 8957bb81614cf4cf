from pathlib import Path

import pytest
import yaml

from nfe_landed_cost.main import build_parser, main, parse_factors


EXAMPLES = Path(__file__).resolve().parents[1] / "example_docs"


def write_config(tmp_path: Path) -> Path:
    data = {
        "paths": {"input_folder": str(tmp_path / "input"), "output_folder": str(tmp_path / "output")},
        "report": {"filename_prefix": "cli_"},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_parse_factors():
    assert parse_factors(["1=12", "2=2,5"]) == {1: "12", 2: "2,5"}
    assert parse_factors(None) == {}


@pytest.mark.parametrize("value", ["12", "x=3", "=3"])
def test_parse_factors_rejects_bad_pairs(value):
    import argparse

    with pytest.raises(argparse.ArgumentTypeError):
        parse_factors([value])


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_analyze_prints_and_exports(tmp_path, capsys):
    config = write_config(tmp_path)
    main(["--config", str(config), "analyze", str(EXAMPLES / "nfe_alfa_1001.xml"), "--factor", "1=10", "--export"])

    out = capsys.readouterr().out
    assert "NF-e: 1001" in out
    assert "DISTRIBUIDORA ALFA LTDA" in out
    assert "R$ 159,75" in out
    assert "10.375" in out
    exports = list((tmp_path / "output").glob("cli_analise_1001_*.csv"))
    assert len(exports) == 1


def test_analyze_malformed_exits_with_error(tmp_path, capsys):
    config = write_config(tmp_path)
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config), "analyze", str(EXAMPLES / "nfe_sem_totais.xml")])
    assert excinfo.value.code == 1
    assert "Erro de importação" in capsys.readouterr().out


def test_analyze_missing_file_exits_with_error(tmp_path, capsys):
    config = write_config(tmp_path)
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config), "analyze", str(tmp_path / "nao_existe.xml")])
    assert excinfo.value.code == 1
    assert "Erro de importação" in capsys.readouterr().out


def test_analyze_unknown_item_factor(tmp_path, capsys):
    config = write_config(tmp_path)
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config), "analyze", str(EXAMPLES / "nfe_alfa_1001.xml"), "--factor", "9=2"])
    assert excinfo.value.code == 2


def test_compare_files(tmp_path, capsys):
    config = write_config(tmp_path)
    files = [str(EXAMPLES / name) for name in ("nfe_alfa_1001.xml", "nfe_beta_2002.xml", "nfe_alfa_1050.xml")]
    main(["--config", str(config), "compare", *files, "--export"])

    out = capsys.readouterr().out
    assert "Notas carregadas: 3" in out
    assert "Produtos recorrentes: 2" in out
    assert list((tmp_path / "output").glob("cli_comparativo_*.csv"))


def test_compare_empty_input_folder(tmp_path, capsys):
    config = write_config(tmp_path)
    main(["--config", str(config), "compare"])
    assert "Nenhum arquivo encontrado" in capsys.readouterr().out
