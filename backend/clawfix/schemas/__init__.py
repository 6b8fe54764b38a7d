# Pydantic schemas
from clawfix.schemas.diagnosis import (
    KnownIssueSummary,
    DiagnoseResponse,
    FeedbackCreate,
    FeedbackResponse,
    PatternResponse,
    ErrorResponse,
    StatsResponse,
)

__all__ = [
    "KnownIssueSummary",
    "DiagnoseResponse",
    "FeedbackCreate",
    "FeedbackResponse",
    "PatternResponse",
    "ErrorResponse",
    "StatsResponse",
]
