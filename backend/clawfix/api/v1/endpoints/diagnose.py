"""
Diagnose Endpoints

POST /diagnose  - analyze a diagnostic payload, returns the result with its fix script
GET  /fix/{id}  - retrieve a stored result (JSON, or the bare script as text/plain)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from clawfix.api.v1.dependencies import get_diagnosis_service
from clawfix.core.config import settings
from clawfix.core.exceptions import ClawFixError, InvalidDiagnosticPayloadError
from clawfix.core.logging_config import logger
from clawfix.core.rate_limiter import diagnose_rate_limit
from clawfix.schemas.diagnosis import DiagnoseResponse, ErrorResponse
from clawfix.services.diagnosis import DiagnosisService

router = APIRouter(tags=["Diagnosis"])


@router.post(
    "/diagnose",
    response_model=DiagnoseResponse,
    responses={400: {"model": ErrorResponse}},
)
@diagnose_rate_limit()
async def diagnose(
    request: Request,
    x_clawfix_source: Optional[str] = Header(None, max_length=20),
    service: DiagnosisService = Depends(get_diagnosis_service),
):
    """
    Analyze an OpenClaw diagnostic payload.

    The body is the JSON produced by the collection script. Only the
    `system` section is required; every other section is optional.
    """
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidDiagnosticPayloadError(hint=settings.COLLECTOR_HINT)

    try:
        result = await service.diagnose(payload, source=x_clawfix_source or "cli")
    except ClawFixError:
        raise
    except Exception as e:
        logger.log_error_with_context(e, context="diagnose")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Diagnosis failed",
                "message": str(e) if settings.DEBUG else "An error occurred",
                "hint": f"If this persists, report at {settings.ISSUES_URL}",
            },
        )

    return result.to_dict()


@router.get(
    "/fix/{fix_id}",
    response_model=DiagnoseResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_fix(
    fix_id: str,
    request: Request,
    output_format: Optional[str] = Query(None, alias="format", description="Use 'script' for the bare bash script"),
    service: DiagnosisService = Depends(get_diagnosis_service),
):
    """Retrieve a previously generated fix"""
    result = service.get_fix(fix_id)

    accept = request.headers.get("accept", "")
    if output_format == "script" or "text/plain" in accept:
        return PlainTextResponse(result.fix_script)

    return result.to_dict()
