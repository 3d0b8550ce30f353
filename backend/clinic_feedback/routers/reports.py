from datetime import date

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from clinic_feedback.db.session import get_db
from clinic_feedback.deps import require_admin
from clinic_feedback.models.user import User
from clinic_feedback.services.reports import build_branch_summary, render_branch_summary

router = APIRouter(prefix="/reports", tags=["reports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/branches.xlsx")
def branch_summary_report(
    date_from: date = Query(...),
    date_to: date = Query(...),
    db: Session = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    summaries = build_branch_summary(db, date_from, date_to)
    content = render_branch_summary(summaries, date_from, date_to)
    filename = f"branches_{date_from.isoformat()}_{date_to.isoformat()}.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
