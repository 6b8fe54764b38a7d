from typing import List

from fastapi import APIRouter

from clawfix.schemas.diagnosis import PatternResponse
from clawfix.services.diagnosis.catalog import list_issues

router = APIRouter(tags=["Patterns"])


@router.get("/patterns", response_model=List[PatternResponse])
async def get_patterns():
    """Known issue catalog, in detection order"""
    return list_issues()
