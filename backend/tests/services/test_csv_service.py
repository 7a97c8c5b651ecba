"""CSV parsing and generation tests."""

from __future__ import annotations

import pytest

from secura.core.errors import ValidationError
from secura.services import csv_service


def test_parse_comma_csv_trims_headers_and_values() -> None:
    rows = csv_service.parse_csv(" firstName , email \n Jean , j@x.com \n")
    assert rows == [{"firstName": "Jean", "email": "j@x.com"}]


def test_parse_semicolon_csv_with_bom() -> None:
    content = "\ufeffPrénom;Nom;Email\nJean;Dupont;j@x.com\n".encode("utf-8")
    rows = csv_service.parse_csv(content)
    assert rows == [{"Prénom": "Jean", "Nom": "Dupont", "Email": "j@x.com"}]


def test_parse_skips_blank_lines_and_pads_short_rows() -> None:
    rows = csv_service.parse_csv("firstName,lastName,email\n\nJean\n,,\nAnne,Roy\n")
    assert rows == [
        {"firstName": "Jean", "lastName": "", "email": ""},
        {"firstName": "Anne", "lastName": "Roy", "email": ""},
    ]


def test_parse_keeps_quoted_delimiters() -> None:
    rows = csv_service.parse_csv('firstName,notes\nJean,"Table 3, près de la scène"\n')
    assert rows[0]["notes"] == "Table 3, près de la scène"


def test_parse_header_only_returns_no_rows() -> None:
    assert csv_service.parse_csv("firstName,lastName\n") == []


@pytest.mark.parametrize("content", ["", "\n\n", b""])
def test_parse_requires_header(content: str | bytes) -> None:
    with pytest.raises(ValidationError, match="no header row"):
        csv_service.parse_csv(content)


def test_parse_rejects_non_utf8_bytes() -> None:
    with pytest.raises(ValidationError, match="UTF-8"):
        csv_service.parse_csv("Prénom\nZoé\n".encode("latin-1"))


def test_generate_csv_formats_cells() -> None:
    content = csv_service.generate_csv(
        [{"name": "Jean", "scanned": True, "table": None}],
        columns=("name", "scanned", "table"),
    )
    assert content.splitlines() == ["name,scanned,table", "Jean,true,"]


def test_iter_csv_yields_header_first() -> None:
    chunks = list(csv_service.iter_csv([{"a": 1}, {"a": 2}], columns=("a",)))
    assert [chunk.strip() for chunk in chunks] == ["a", "1", "2"]
