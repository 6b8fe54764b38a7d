from fastapi import APIRouter, Depends

from clawfix.api.v1.dependencies import get_diagnosis_service
from clawfix.schemas.diagnosis import StatsResponse, ErrorResponse
from clawfix.services.diagnosis import DiagnosisService

router = APIRouter(tags=["Stats"])


@router.get("/stats", response_model=StatsResponse, responses={503: {"model": ErrorResponse}})
async def get_stats(service: DiagnosisService = Depends(get_diagnosis_service)):
    """Aggregate diagnosis statistics (requires DATABASE_URL)"""
    return await service.get_stats()
