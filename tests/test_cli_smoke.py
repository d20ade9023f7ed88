"""Smoke tests for the CLI entry point."""
from __future__ import annotations

import json

import pandas as pd
import pytest

from mailing_dispatch import __main__
from mailing_dispatch.cli import main, parse_agent, parse_manual


def _write_upload(tmp_path):
    input_path = tmp_path / "leads.csv"
    input_path.write_text(
        "Nome;Telefone;Cidade\nAna;11 99999-8888;SP\nBia;(21) 98888-7777;RJ\nCaio;31 3333-4444;BH\n",
        encoding="utf-8",
    )
    return input_path


def test_cli_smoke_distributes_between_agents(tmp_path) -> None:
    input_path = _write_upload(tmp_path)
    output_path = tmp_path / "assignment.csv"

    exit_code = main(
        [
            str(input_path),
            str(output_path),
            "--agent",
            "a:Ana:1001",
            "--agent",
            "b",
            "--add-country-code",
        ]
    )

    assert exit_code == 0
    frame = pd.read_csv(output_path, dtype=str)
    assert list(frame["agent_id"]) == ["a", "a", "b"]
    assert frame.loc[0, "phone"] == "5511999998888"


def test_cli_manual_quantities_and_config(tmp_path) -> None:
    input_path = _write_upload(tmp_path)
    output_path = tmp_path / "assignment.csv"
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"distribution": {"contact_ceiling": 2}}), encoding="utf-8")

    exit_code = main(
        [
            str(input_path),
            str(output_path),
            "--agent",
            "a",
            "--agent",
            "b",
            "--manual",
            "b=2",
            "--config",
            str(config_path),
            "--extra-column",
            "2",
        ]
    )

    assert exit_code == 0
    frame = pd.read_csv(output_path, dtype=str)
    assert list(frame["name"]) == ["Ana", "Bia"]
    assert set(frame["agent_id"]) == {"b"}
    assert list(frame["Cidade"]) == ["SP", "RJ"]


def test_cli_reports_distribution_errors(tmp_path) -> None:
    input_path = _write_upload(tmp_path)

    exit_code = main([str(input_path), str(tmp_path / "out.csv"), "--agent", "a", "--mode", "multiple", "--manual", "a=99"])

    assert exit_code == 1
    assert not (tmp_path / "out.csv").exists()


def test_cli_reports_unsupported_output_suffix(tmp_path) -> None:
    input_path = _write_upload(tmp_path)

    assert main([str(input_path), str(tmp_path / "out.json"), "--agent", "a"]) == 1
    assert not (tmp_path / "out.json").exists()


def test_cli_reports_unwritable_output(tmp_path) -> None:
    input_path = _write_upload(tmp_path)
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    assert main([str(input_path), str(blocker / "out.csv"), "--agent", "a"]) == 1


def test_cli_reports_missing_input(tmp_path) -> None:
    assert main([str(tmp_path / "missing.csv"), str(tmp_path / "out.csv"), "--agent", "a"]) == 1


def test_cli_rejects_malformed_manual_quantity(tmp_path) -> None:
    input_path = _write_upload(tmp_path)

    assert main([str(input_path), str(tmp_path / "out.csv"), "--agent", "a", "--manual", "a"]) == 2


def test_argument_parsers() -> None:
    agent = parse_agent("7:Maria Souza:2001")

    assert (agent.id, agent.display_name, agent.extension) == ("7", "Maria Souza", "2001")
    assert parse_manual(["a=3", " b = 4"]) == {"a": 3, "b": 4}


def test_module_entry_point_delegates_to_cli(tmp_path) -> None:
    input_path = _write_upload(tmp_path)
    output_path = tmp_path / "assignment.xlsx"

    exit_code = __main__.main([str(input_path), str(output_path), "--agent", "a"])

    assert exit_code == 0
    assert output_path.exists()


def test_module_entry_point_without_arguments_shows_help(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = __main__.main([])

    captured = capsys.readouterr()
    assert "python -m mailing_dispatch" in captured.out
    assert exit_code == 2


def test_module_entry_point_names_itself_in_usage_errors(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        __main__.main(["leads.csv", "out.csv"])

    assert excinfo.value.code == 2
    assert "python -m mailing_dispatch" in capsys.readouterr().err
