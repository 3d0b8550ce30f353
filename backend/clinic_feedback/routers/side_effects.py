from fastapi import APIRouter, Depends

from clinic_feedback.deps import require_admin
from clinic_feedback.models.user import User
from clinic_feedback.schemas.side_effect import FailedJobOut, RetryResult, SideEffectStatus
from clinic_feedback.services.side_effects import get_dispatcher

router = APIRouter(prefix="/side-effects", tags=["side-effects"])


@router.get("", response_model=SideEffectStatus)
def side_effect_status(_admin: User = Depends(require_admin)):
    dispatcher = get_dispatcher()
    return SideEffectStatus(
        **dispatcher.stats,
        failed_jobs=[FailedJobOut.model_validate(job) for job in list(dispatcher.failed)],
    )


@router.post("/retry", response_model=RetryResult)
def retry_side_effects(_admin: User = Depends(require_admin)):
    dispatcher = get_dispatcher()
    retried = len(dispatcher.failed)
    succeeded = dispatcher.retry_failed()
    return RetryResult(retried=retried, succeeded=succeeded, still_failing=len(dispatcher.failed))
