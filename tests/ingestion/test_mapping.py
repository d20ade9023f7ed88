import pytest

from mailing_dispatch.ingestion.mapping import looks_like_phone, sanitize_mapping, suggest_mapping
from mailing_dispatch.models import ColumnMapping


def test_suggests_name_and_phone_from_headers_and_values():
    headers = ["Telefone", "Cidade", "Nome Completo"]
    rows = [["11999998888", "SP", "Ana"], ["(21) 98888-7777", "RJ", "Bia"]]

    assert suggest_mapping(headers, rows) == ColumnMapping(name=2, phone=0)


def test_phone_column_found_by_values_when_headers_are_generic():
    headers = ["A", "B"]
    rows = [["Ana", "+55 11 99999-8888"], ["Bia", "21988887777"], ["Caio", "3133334444"]]

    assert suggest_mapping(headers, rows) == ColumnMapping(name=0, phone=1)


def test_no_phone_like_column_leaves_phone_unmapped():
    headers = ["Nome", "Cidade"]
    rows = [["Ana", "SP"], ["Bia", "RJ"]]

    mapping = suggest_mapping(headers, rows)

    assert mapping.phone is None
    assert mapping.name == 0


def test_ties_go_to_the_leftmost_column():
    headers = ["Col1", "Col2"]
    rows = [["11999998888", "21988887777"]]

    assert suggest_mapping(headers, rows) == ColumnMapping(name=1, phone=0)


def test_header_matching_ignores_accents_and_case():
    headers = ["Razão Social", "Número de Celular"]
    rows = [["ACME LTDA", "11 3333-4444"]]

    assert suggest_mapping(headers, rows) == ColumnMapping(name=0, phone=1)


def test_phone_header_alone_is_not_enough_without_phone_values():
    headers = ["Nome", "Telefone"]
    rows = [["Ana", "n/a"], ["Bia", "-"]]

    assert suggest_mapping(headers, rows).phone is None


def test_extras_are_never_suggested():
    headers = ["Nome", "Fone", "Cidade", "Produto"]
    rows = [["Ana", "11999998888", "SP", "Plano A"]]

    mapping = suggest_mapping(headers, rows)

    assert list(mapping.extras()) == []


@pytest.mark.parametrize(
    "value, expected",
    [
        ("+55 (11) 99999-8888", True),
        ("3333.4444", True),
        ("123", False),
        ("abc", False),
        ("", False),
        ("12345678901234", False),
    ],
)
def test_looks_like_phone(value, expected):
    assert looks_like_phone(value) is expected


def test_sanitize_mapping_drops_out_of_range_indices(caplog):
    mapping = ColumnMapping(name=5, phone=-1, extra1=1)

    with caplog.at_level("WARNING"):
        cleaned = sanitize_mapping(mapping, column_count=3)

    assert cleaned == ColumnMapping(extra1=1)
    assert "name=5" in caplog.text
