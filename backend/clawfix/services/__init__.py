from clawfix.services.diagnosis import DiagnosisService, build_diagnosis_service
from clawfix.services.persistence import DiagnosisRepository

__all__ = [
    "DiagnosisService",
    "build_diagnosis_service",
    "DiagnosisRepository",
]
