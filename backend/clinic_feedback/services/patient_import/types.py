from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from clinic_feedback.models.branch import Branch


class ImportRowError(BaseModel):
    line: int = Field(..., ge=1)
    reason: str


class PatientCandidate(BaseModel):
    line: int = Field(..., ge=1)
    phone_number: str
    first_name: str
    last_name: str = ""
    branch: Branch | None = None
    checkout_date: str | None = None

    @property
    def dedup_key(self) -> tuple[str, str | None]:
        return (self.phone_number, self.checkout_date)


@dataclass(frozen=True)
class HeaderLocation:
    row_index: int
    name_col: int | None
    phone_col: int | None
    branch_col: int | None


@dataclass
class ImportReport:
    total_rows: int = 0
    header_row: int | None = None
    imported: int = 0
    skipped_duplicates: int = 0
    errors: list[ImportRowError] = field(default_factory=list)

    def add_error(self, line: int, reason: str) -> None:
        self.errors.append(ImportRowError(line=line, reason=reason))

    def as_dict(self) -> dict[str, object]:
        return {
            "total_rows": self.total_rows,
            "header_row": self.header_row,
            "imported": self.imported,
            "skipped_duplicates": self.skipped_duplicates,
            "errors": [error.model_dump() for error in self.errors],
        }
