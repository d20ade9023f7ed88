import pandas as pd
import pytest

from mailing_dispatch.distribution import plan_distribution
from mailing_dispatch.ingestion.analyzer import build_table
from mailing_dispatch.ingestion.exporters import (
    contacts_to_dataframe,
    export_contacts,
    export_raw_table,
    plan_summary_dataframe,
)
from mailing_dispatch.ingestion.normalizer import normalize_contacts
from mailing_dispatch.models import AgentRef, ColumnMapping

HEADERS = ("Nome", "Fone", "Cidade")
ROWS = (
    ("Ana", "11 99999-8888", "SP"),
    ("Bia", "(21) 98888-7777", "RJ"),
    ("Caio", "31 3333-4444", "BH"),
)
MAPPING = ColumnMapping(name=0, phone=1, extra1=2)


def _build_contacts():
    return normalize_contacts(ROWS, MAPPING, True, HEADERS)


def test_contacts_to_dataframe_includes_agents_and_labelled_extras():
    plan = plan_distribution(3, "multiple", [AgentRef("a"), AgentRef("b")])

    dataframe = contacts_to_dataframe(_build_contacts(), plan=plan, headers=HEADERS, mapping=MAPPING)

    assert {"row_index", "name", "phone", "Cidade", "agent_id"}.issubset(dataframe.columns)
    assert list(dataframe["agent_id"]) == ["a", "a", "b"]
    assert dataframe.loc[0, "phone"] == "5511999998888"


def test_extra_headers_never_overwrite_normalised_columns():
    headers = ("Nome", "phone", "Fone", "Fone")
    rows = [("Ana", "fixo", "11 99999-8888", "SP")]
    mapping = ColumnMapping(name=0, phone=2, extra1=1, extra2=3, extra3=2)
    plan = plan_distribution(1, "single", [AgentRef("a")])

    contacts = normalize_contacts(rows, mapping, True, headers)
    dataframe = contacts_to_dataframe(contacts, plan=plan, headers=headers, mapping=mapping)

    row = dataframe.iloc[0]
    assert row["phone"] == "5511999998888"
    assert row["phone_2"] == "fixo"
    assert row["Fone"] == "SP"
    assert row["Fone_2"] == "11 99999-8888"
    assert row["agent_id"] == "a"


def test_assigned_only_skips_contacts_outside_the_plan():
    plan = plan_distribution(3, "multiple", [AgentRef("a"), AgentRef("b")], "manual", {"b": 1})

    dataframe = contacts_to_dataframe(_build_contacts(), plan=plan, assigned_only=True)

    assert list(dataframe["name"]) == ["Ana"]
    assert list(dataframe["agent_id"]) == ["b"]


def test_export_contacts_to_csv_and_excel(tmp_path):
    pytest.importorskip("openpyxl")
    contacts = _build_contacts()
    plan = plan_distribution(len(contacts), "single", [AgentRef("a", "Ana")])

    csv_path = tmp_path / "out" / "contacts.csv"
    excel_path = tmp_path / "contacts.xlsx"

    export_contacts(contacts, csv_path, plan=plan, headers=HEADERS, mapping=MAPPING)
    export_contacts(contacts, excel_path, plan=plan)

    csv_frame = pd.read_csv(csv_path, dtype=str)
    excel_frame = pd.read_excel(excel_path, dtype=str)

    assert csv_frame.loc[2, "Cidade"] == "BH"
    assert csv_frame.loc[1, "phone"] == "5521988887777"
    assert excel_frame.loc[0, "extra1"] == "SP"
    assert set(excel_frame["agent_id"]) == {"a"}


def test_export_rejects_unknown_extension(tmp_path):
    with pytest.raises(ValueError):
        export_contacts(_build_contacts(), tmp_path / "contacts.json")


def test_export_raw_table_keeps_every_column(tmp_path):
    table = build_table([["Nome", "Nome", "Região"], ["Ana", "Silva", "Sul"]])

    path = export_raw_table(table, tmp_path / "upload.csv", slug=True)

    frame = pd.read_csv(path, dtype=str)
    assert list(frame.columns) == ["nome", "nome_2", "regiao"]
    assert frame.loc[0, "nome_2"] == "Silva"


def test_plan_summary_lists_ranges():
    plan = plan_distribution(10, "multiple", [AgentRef("a", "Ana", "1001"), AgentRef("b")])

    summary = plan_summary_dataframe(plan)

    assert list(summary["quantity"]) == [5, 5]
    assert summary.loc[0, "agent"] == "Ana (1001)"
    assert summary.loc[1, "ranges"] == "5-9"
