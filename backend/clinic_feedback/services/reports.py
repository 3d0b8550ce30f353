"""Per-branch summary of patients, callbacks and ratings, exported as xlsx."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clinic_feedback.core.errors import ValidationFailed
from clinic_feedback.models.branch import Branch
from clinic_feedback.models.call_status import CallOutcome, CallStatus
from clinic_feedback.models.patient import Patient
from clinic_feedback.models.rating import RATING_SCORES, Rating, RatingCategory

HEADER_FILL = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")


@dataclass
class BranchSummary:
    branch: Branch
    patients: int = 0
    calls: dict[CallOutcome, int] = field(default_factory=lambda: {outcome: 0 for outcome in CallOutcome})
    ratings_by_category: dict[RatingCategory, int] = field(
        default_factory=lambda: {category: 0 for category in RatingCategory}
    )
    ratings_by_score: dict[int, int] = field(default_factory=lambda: {score: 0 for score in RATING_SCORES})

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    @property
    def answered(self) -> int:
        return self.calls[CallOutcome.answered]

    @property
    def not_reached(self) -> int:
        return self.total_calls - self.answered

    @property
    def total_ratings(self) -> int:
        return sum(self.ratings_by_score.values())


def percent(part: int, total: int) -> float:
    if not total:
        return 0.0
    return round(part * 100.0 / total, 1)


def _bounds(date_from: date, date_to: date) -> tuple[datetime, datetime]:
    if date_to < date_from:
        raise ValidationFailed("date_to must not be before date_from")
    start = datetime.combine(date_from, time.min, tzinfo=timezone.utc)
    end = datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return start, end


def build_branch_summary(db: Session, date_from: date, date_to: date) -> list[BranchSummary]:
    start, end = _bounds(date_from, date_to)
    summaries = {branch: BranchSummary(branch=branch) for branch in Branch}

    patient_rows = db.execute(
        select(Patient.branch, func.count(Patient.id))
        .where(Patient.branch.is_not(None), Patient.created_at >= start, Patient.created_at < end)
        .group_by(Patient.branch)
    ).all()
    for branch, count in patient_rows:
        summaries[branch].patients = count

    call_rows = db.execute(
        select(CallStatus.branch, CallStatus.status, func.count(CallStatus.id))
        .where(CallStatus.created_at >= start, CallStatus.created_at < end)
        .group_by(CallStatus.branch, CallStatus.status)
    ).all()
    for branch, outcome, count in call_rows:
        summaries[branch].calls[outcome] = count

    rating_rows = db.execute(
        select(Rating.branch, Rating.category, Rating.score, func.count(Rating.id))
        .where(Rating.created_at >= start, Rating.created_at < end)
        .group_by(Rating.branch, Rating.category, Rating.score)
    ).all()
    for branch, category, score, count in rating_rows:
        summary = summaries[branch]
        summary.ratings_by_category[category] += count
        summary.ratings_by_score[score] = summary.ratings_by_score.get(score, 0) + count

    return [summaries[branch] for branch in Branch]


def summary_headers() -> list[str]:
    headers = [
        "Branch",
        "Patients",
        "Answered",
        "Answered %",
        "Not reached",
        "Not reached %",
    ]
    headers += [f"Calls: {outcome.value}" for outcome in CallOutcome]
    headers += [f"Ratings: {category.value}" for category in RatingCategory]
    for score in RATING_SCORES:
        headers += [f"Score {score}", f"Score {score} %"]
    return headers


def summary_row(summary: BranchSummary) -> list[object]:
    row: list[object] = [
        summary.branch.value,
        summary.patients,
        summary.answered,
        percent(summary.answered, summary.total_calls),
        summary.not_reached,
        percent(summary.not_reached, summary.total_calls),
    ]
    row += [summary.calls[outcome] for outcome in CallOutcome]
    row += [summary.ratings_by_category[category] for category in RatingCategory]
    for score in RATING_SCORES:
        count = summary.ratings_by_score.get(score, 0)
        row += [count, percent(count, summary.total_ratings)]
    return row


def render_branch_summary(summaries: list[BranchSummary], date_from: date, date_to: date) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Branches"
    sheet.append([f"Period: {date_from.isoformat()} - {date_to.isoformat()}"])
    sheet.append(summary_headers())
    for cell in sheet[2]:
        cell.font = Font(bold=True)
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center", wrap_text=True)
    for summary in summaries:
        sheet.append(summary_row(summary))
    sheet.column_dimensions["A"].width = 16
    sheet.freeze_panes = "B3"

    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
