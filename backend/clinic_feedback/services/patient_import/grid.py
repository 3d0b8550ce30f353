"""Read uploaded spreadsheets into a grid of string cells."""

from __future__ import annotations

import csv
import io
from datetime import date, datetime, time

from openpyxl import load_workbook

from clinic_feedback.core.errors import ImportRejected

XLSX_MAGIC = b"PK\x03\x04"
XLS_MAGIC = b"\xd0\xcf\x11\xe0"


def cell_to_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).replace("\xa0", " ").strip()


def _trim(rows: list[list[str]]) -> list[list[str]]:
    while rows and not any(rows[-1]):
        rows.pop()
    return rows


def read_xlsx(buffer: bytes) -> list[list[str]]:
    try:
        workbook = load_workbook(io.BytesIO(buffer), read_only=True, data_only=True)
    except Exception as exc:
        raise ImportRejected(f"Unable to read spreadsheet: {exc}") from exc
    try:
        sheet = workbook.worksheets[0]
        rows = [[cell_to_text(value) for value in row] for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()
    return _trim(rows)


def read_csv(buffer: bytes) -> list[list[str]]:
    text = buffer.decode("utf-8-sig", errors="replace")
    try:
        dialect = csv.Sniffer().sniff(text[:4096], delimiters=",;\t")
    except csv.Error:
        dialect = csv.excel
    rows = [[cell.strip() for cell in row] for row in csv.reader(io.StringIO(text), dialect)]
    return _trim(rows)


def read_grid(buffer: bytes, filename: str | None = None) -> list[list[str]]:
    if not buffer:
        raise ImportRejected("The uploaded file is empty")
    name = (filename or "").lower()
    if name.endswith(".xls") or buffer.startswith(XLS_MAGIC):
        raise ImportRejected("Unsupported file format: save the workbook as .xlsx or .csv")
    if name.endswith(".csv"):
        return read_csv(buffer)
    if buffer.startswith(XLSX_MAGIC) or name.endswith(".xlsx"):
        return read_xlsx(buffer)
    return read_csv(buffer)
