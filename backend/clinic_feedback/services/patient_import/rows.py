from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from datetime import date, timedelta

# Day zero of the 1900 spreadsheet date system (accounts for the 1900 leap-year bug).
SPREADSHEET_EPOCH = date(1899, 12, 30)
# Serial day numbers accepted as dates: 1954-10-04 .. 2119-01-09.
MIN_SERIAL = 20000
MAX_SERIAL = 80000

_DMY_RE = re.compile(r"^(\d{1,2})\s*[./\-\s]\s*(\d{1,2})\s*[./\-\s]\s*(\d{2}|\d{4})(?:[ T].*)?$")
_YMD_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[ T].*)?$")
_SERIAL_RE = re.compile(r"^\d{5}(?:\.0+)?$")


class RowKind(str, enum.Enum):
    data = "data"
    date_separator = "date_separator"
    blank = "blank"


@dataclass(frozen=True)
class RowClassification:
    kind: RowKind
    checkout_date: str | None = None


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_separator_date(value: str) -> date | None:
    text = value.strip()
    if not text:
        return None
    match = _YMD_RE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _safe_date(year, month, day)
    match = _DMY_RE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        if year < 100:
            year += 2000
        return _safe_date(year, month, day)
    if _SERIAL_RE.match(text):
        serial = int(float(text))
        if MIN_SERIAL <= serial <= MAX_SERIAL:
            return SPREADSHEET_EPOCH + timedelta(days=serial)
    return None


def classify_row(row: list[str]) -> RowClassification:
    filled = [cell.strip() for cell in row if cell and cell.strip()]
    if not filled:
        return RowClassification(RowKind.blank)
    if len(filled) == 1:
        parsed = parse_separator_date(filled[0])
        if parsed is not None:
            return RowClassification(RowKind.date_separator, parsed.isoformat())
    return RowClassification(RowKind.data)


def split_full_name(full_name: str) -> tuple[str, str]:
    tokens = full_name.split()
    if not tokens:
        return "", ""
    return tokens[0], " ".join(tokens[1:])
