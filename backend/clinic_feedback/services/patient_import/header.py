from __future__ import annotations

import re

from clinic_feedback.services.patient_import.types import HeaderLocation

DEFAULT_SCAN_ROWS = 10

# Checked in this order; a cell is assigned to the first role it matches.
ROLE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    (
        "phone",
        re.compile(r"телефон|тел\b|тел\.|номер|phone|mobile|number|raqam|telefon", re.IGNORECASE),
    ),
    (
        "branch",
        re.compile(r"филиал|отделени|branch|filial|клиника", re.IGNORECASE),
    ),
    (
        "name",
        re.compile(
            r"ф\.?\s*и\.?\s*о|фамилия|имя|пациент|name|ism|familiya|bemor", re.IGNORECASE
        ),
    ),
)


def classify_header_cell(value: str) -> str | None:
    text = value.strip()
    if not text:
        return None
    for role, pattern in ROLE_PATTERNS:
        if pattern.search(text):
            return role
    return None


def match_header_row(row: list[str], row_index: int) -> HeaderLocation | None:
    columns: dict[str, int] = {}
    for col, value in enumerate(row):
        role = classify_header_cell(value)
        if role and role not in columns:
            columns[role] = col
    if len(columns) < 2:
        return None
    return HeaderLocation(
        row_index=row_index,
        name_col=columns.get("name"),
        phone_col=columns.get("phone"),
        branch_col=columns.get("branch"),
    )


def locate_header(grid: list[list[str]], scan_rows: int = DEFAULT_SCAN_ROWS) -> HeaderLocation | None:
    """Find the first row among the top ``scan_rows`` naming at least two column roles."""
    for index, row in enumerate(grid[:scan_rows]):
        location = match_header_row(row, index)
        if location is not None:
            return location
    return None
