from datetime import datetime

import pytest

from clinic_feedback.core.errors import ImportRejected
from clinic_feedback.services.patient_import.grid import cell_to_text, read_grid


def test_cell_to_text_normalizes_spreadsheet_values():
    assert cell_to_text(None) == ""
    assert cell_to_text(998901234567.0) == "998901234567"
    assert cell_to_text(datetime(2024, 5, 1)) == "2024-05-01"
    assert cell_to_text("Иванов\xa0Иван ") == "Иванов Иван"


def test_read_grid_xlsx(xlsx_factory):
    buffer = xlsx_factory(
        [
            ["ФИО", "Телефон", "Филиал"],
            [datetime(2024, 5, 1)],
            ["Иванов Иван", 998901234567, "Ташкент"],
        ]
    )
    grid = read_grid(buffer, "patients.xlsx")
    assert grid[0] == ["ФИО", "Телефон", "Филиал"]
    assert grid[1][0] == "2024-05-01"
    assert grid[2] == ["Иванов Иван", "998901234567", "Ташкент"]


def test_read_grid_csv():
    buffer = "ФИО,Телефон,Филиал\nИванов Иван,998901234567,Ташкент\nПетров Петр,998907654321,Нукус\n".encode()
    grid = read_grid(buffer, "patients.csv")
    assert grid == [
        ["ФИО", "Телефон", "Филиал"],
        ["Иванов Иван", "998901234567", "Ташкент"],
        ["Петров Петр", "998907654321", "Нукус"],
    ]


def test_read_grid_rejects_empty_buffer():
    with pytest.raises(ImportRejected) as exc_info:
        read_grid(b"", "patients.xlsx")
    assert "empty" in exc_info.value.message


def test_read_grid_rejects_broken_workbook():
    with pytest.raises(ImportRejected):
        read_grid(b"PK\x03\x04not really a zip", "patients.xlsx")


def test_read_grid_rejects_legacy_xls():
    with pytest.raises(ImportRejected) as exc_info:
        read_grid(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1rest", "old.xls")
    assert exc_info.value.message.startswith("Unsupported file format")
