from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from clinic_feedback.core.errors import BranchNotRecognized, ImportRejected, InvalidPhoneError
from clinic_feedback.models.patient import Patient, PatientStatus
from clinic_feedback.services.branches import DEFAULT_THRESHOLD, match_branch
from clinic_feedback.services.patient_import.grid import read_grid
from clinic_feedback.services.patient_import.header import DEFAULT_SCAN_ROWS, locate_header
from clinic_feedback.services.patient_import.rows import RowKind, classify_row, split_full_name
from clinic_feedback.services.patient_import.types import (
    HeaderLocation,
    ImportReport,
    PatientCandidate,
)
from clinic_feedback.services.phone import normalize_phone

logger = logging.getLogger("clinic_feedback.import")


@dataclass(frozen=True)
class ImportConfig:
    branch_threshold: float = DEFAULT_THRESHOLD
    header_scan_rows: int = DEFAULT_SCAN_ROWS

    @classmethod
    def from_settings(cls, settings) -> "ImportConfig":
        return cls(
            branch_threshold=settings.branch_match_threshold,
            header_scan_rows=settings.header_scan_rows,
        )


def _cell(row: list[str], col: int | None) -> str:
    if col is None or col >= len(row):
        return ""
    return row[col].strip()


def _parse_data_row(
    row: list[str],
    line: int,
    header: HeaderLocation,
    checkout_date: str | None,
    report: ImportReport,
    config: ImportConfig,
) -> PatientCandidate | None:
    full_name = _cell(row, header.name_col)
    raw_phone = _cell(row, header.phone_col)
    raw_branch = _cell(row, header.branch_col)

    if not full_name or not raw_phone:
        report.add_error(line, "missing name or phone number")
        return None
    if header.branch_col is not None and not raw_branch:
        report.add_error(line, "missing branch")
        return None

    try:
        phone = normalize_phone(raw_phone)
    except InvalidPhoneError as exc:
        report.add_error(line, f"phone {raw_phone!r}: {exc.reason}")
        return None

    branch = None
    if header.branch_col is not None:
        try:
            branch = match_branch(raw_branch, threshold=config.branch_threshold)
        except BranchNotRecognized as exc:
            report.add_error(line, exc.message)
            return None

    first_name, last_name = split_full_name(full_name)
    return PatientCandidate(
        line=line,
        phone_number=phone,
        first_name=first_name,
        last_name=last_name,
        branch=branch,
        checkout_date=checkout_date,
    )


def collect_candidates(
    grid: list[list[str]],
    config: ImportConfig | None = None,
) -> tuple[list[PatientCandidate], ImportReport]:
    """Single forward pass over the grid; never touches storage."""
    config = config or ImportConfig()
    report = ImportReport(total_rows=len(grid))
    if not grid:
        raise ImportRejected("The spreadsheet contains no rows")

    header = locate_header(grid, config.header_scan_rows)
    if header is None:
        raise ImportRejected(
            f"Header row not found in the first {config.header_scan_rows} rows "
            "(expected name, phone and branch columns)"
        )
    if header.name_col is None or header.phone_col is None:
        raise ImportRejected("Header row must contain both a name and a phone column")
    report.header_row = header.row_index + 1

    candidates: list[PatientCandidate] = []
    seen: set[tuple[str, str | None]] = set()
    checkout_date: str | None = None

    for index in range(header.row_index + 1, len(grid)):
        row = grid[index]
        line = index + 1
        classification = classify_row(row)
        if classification.kind is RowKind.blank:
            continue
        if classification.kind is RowKind.date_separator:
            checkout_date = classification.checkout_date
            continue

        candidate = _parse_data_row(row, line, header, checkout_date, report, config)
        if candidate is None:
            continue
        if candidate.dedup_key in seen:
            continue
        seen.add(candidate.dedup_key)
        candidates.append(candidate)

    return candidates, report


def _existing_keys(session: Session, phones: set[str]) -> set[tuple[str, str | None]]:
    if not phones:
        return set()
    rows = session.execute(
        select(Patient.phone_number, Patient.checkout_date).where(Patient.phone_number.in_(phones))
    ).all()
    return {(phone, checkout_date) for phone, checkout_date in rows}


def import_patients(
    session: Session,
    grid: list[list[str]],
    config: ImportConfig | None = None,
    *,
    dry_run: bool = False,
) -> ImportReport:
    """Import walk-in patients from a grid of cells as NEW patients.

    Row-level problems are collected on the report. The import is rejected only
    when the grid is structurally unusable, or when nothing was imported and at
    least one row failed.
    """
    candidates, report = collect_candidates(grid, config)

    existing = _existing_keys(session, {candidate.phone_number for candidate in candidates})
    fresh: list[PatientCandidate] = []
    for candidate in candidates:
        if candidate.dedup_key in existing:
            report.skipped_duplicates += 1
            continue
        fresh.append(candidate)

    if not fresh and report.errors:
        first = report.errors[0]
        raise ImportRejected(
            f"Row {first.line}: {first.reason} ({len(report.errors)} error(s) in total)",
            error_count=len(report.errors),
        )

    if not dry_run:
        session.add_all(
            [
                Patient(
                    phone_number=candidate.phone_number,
                    first_name=candidate.first_name,
                    last_name=candidate.last_name,
                    branch=candidate.branch,
                    status=PatientStatus.new,
                    checkout_date=candidate.checkout_date,
                )
                for candidate in fresh
            ]
        )
        session.flush()
    report.imported = len(fresh)

    logger.info(
        "Patient import: rows=%s header_row=%s imported=%s skipped=%s errors=%s dry_run=%s",
        report.total_rows,
        report.header_row,
        report.imported,
        report.skipped_duplicates,
        len(report.errors),
        dry_run,
    )
    return report


def import_patients_from_file(
    session: Session,
    buffer: bytes,
    filename: str | None = None,
    config: ImportConfig | None = None,
    *,
    dry_run: bool = False,
) -> ImportReport:
    return import_patients(session, read_grid(buffer, filename), config, dry_run=dry_run)
