"""
Feedback API endpoint - did the fix script work?
"""
from fastapi import APIRouter, Depends, status

from clawfix.api.v1.dependencies import get_diagnosis_service
from clawfix.schemas.diagnosis import FeedbackCreate, FeedbackResponse, ErrorResponse
from clawfix.services.diagnosis import DiagnosisService

router = APIRouter(tags=["Feedback"])


@router.post(
    "/feedback",
    response_model=FeedbackResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={404: {"model": ErrorResponse}},
)
async def submit_feedback(
    feedback: FeedbackCreate,
    service: DiagnosisService = Depends(get_diagnosis_service),
):
    """
    Report the outcome of a fix script.

    `recorded` is false when the fix is known but there is no durable
    storage to record the outcome in.
    """
    recorded = await service.record_feedback(
        feedback.fix_id,
        success=feedback.success,
        issues_remaining=feedback.issues_remaining,
        comment=feedback.comment,
    )
    return FeedbackResponse(recorded=recorded)
