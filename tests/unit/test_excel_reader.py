from __future__ import annotations

import datetime as dt

import pytest

from course_import.excel.reader import (
    ParseError,
    detect_delimiter,
    detect_format,
    read_tabular,
)


def test_detect_format_from_suffix():
    assert detect_format("aziende.xlsx") == "xlsx"
    assert detect_format("STUDENTI.XLSX") == "xlsx"
    assert detect_format("iscrizioni.csv") == "csv"


def test_detect_format_rejects_unknown_suffix():
    with pytest.raises(ParseError, match="non supportato"):
        detect_format("documento.pdf")


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Nome;Cognome;Codice Fiscale\nMario;Rossi;RSSMRA80A01H501Z\n", ";"),
        ("Nome,Cognome\nMario,Rossi\n", ","),
        ("Nome\tCognome\nMario\tRossi\n", "\t"),
        ("Nome|Cognome\n", "|"),
        ("Nome\n", ","),
    ],
)
def test_detect_delimiter(text: str, expected: str):
    assert detect_delimiter(text) == expected


def test_read_csv_semicolon(make_csv):
    data = make_csv([["Nome", "Cognome"], ["Mario", "Rossi"], ["Laura", "Bianchi"]])
    table = read_tabular(data, "csv")
    assert table.header == ["Nome", "Cognome"]
    assert table.rows == [["Mario", "Rossi"], ["Laura", "Bianchi"]]
    assert table.row_count == 2
    assert table.date_system == 1900
    assert table.source_format == "csv"


def test_read_csv_keeps_leading_zeros_and_na_province(make_csv):
    """CAP '00100' stays text and the province code 'NA' is not read as missing."""
    data = make_csv([["CAP", "Provincia"], ["00100", "NA"]])
    table = read_tabular(data, "csv")
    assert table.rows == [["00100", "NA"]]


def test_read_csv_latin1_fallback():
    data = "Nome;Città\nMario;Forlì\n".encode("latin-1")
    table = read_tabular(data, "csv")
    assert table.header == ["Nome", "Città"]
    assert table.rows[0][1] == "Forlì"


def test_read_csv_drops_trailing_blank_rows_keeps_interior_ones():
    data = b"Nome;Cognome\nMario;Rossi\n;\nLuca;Verdi\n;\n\n"
    table = read_tabular(data, "csv")
    assert table.row_count == 3
    assert all(v in (None, "") for v in table.rows[1])
    assert table.rows[2] == ["Luca", "Verdi"]


def test_read_xlsx_first_sheet(make_xlsx):
    data = make_xlsx([
        ["Nome", "Cognome", "Data di nascita"],
        ["Mario", "Rossi", dt.datetime(1980, 2, 1)],
    ])
    table = read_tabular(data, "xlsx")
    assert table.header == ["Nome", "Cognome", "Data di nascita"]
    assert table.rows[0][0] == "Mario"
    assert table.rows[0][2].date() == dt.date(1980, 2, 1)
    assert table.date_system == 1900


def test_read_xlsx_numbers_become_python_scalars(make_xlsx):
    data = make_xlsx([["ID Edizione", "Prezzo"], [3, 150.5]])
    table = read_tabular(data, "xlsx")
    assert table.rows == [[3, 150.5]]
    assert type(table.rows[0][0]) is int


def test_read_header_only_is_parse_error(make_csv):
    with pytest.raises(ParseError, match="almeno una riga di dati"):
        read_tabular(make_csv([["Nome", "Cognome"]]), "csv")


def test_read_garbage_xlsx_is_parse_error():
    with pytest.raises(ParseError, match="file Excel non valido"):
        read_tabular(b"not a zip archive", "xlsx")


def test_read_empty_csv_is_parse_error():
    with pytest.raises(ParseError):
        read_tabular(b"   \n", "csv")


def test_read_unknown_format():
    with pytest.raises(ParseError):
        read_tabular(b"x", "ods")
