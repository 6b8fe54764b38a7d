"""FastAPI dependencies shared by the v1 endpoints"""
from fastapi import Request

from clawfix.services.diagnosis import DiagnosisService


def get_diagnosis_service(request: Request) -> DiagnosisService:
    """The process-wide service built by the app module"""
    return request.app.state.diagnosis_service
