"""Pydantic schemas for the diagnosis API (camelCase on the wire)"""
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class KnownIssueSummary(CamelModel):
    """Catalog match without its fix body"""
    id: str
    severity: str
    title: str
    description: str


class DiagnoseResponse(CamelModel):
    """Result of POST /diagnose and GET /fix/{fix_id}"""
    fix_id: str
    timestamp: str
    issues_found: int
    known_issues: List[KnownIssueSummary]
    analysis: str
    fix_script: str
    ai_insights: str = ""
    partial: bool = False


class FeedbackCreate(CamelModel):
    """User report on a fix script"""
    fix_id: str = Field(..., min_length=1, max_length=32)
    success: Optional[bool] = None
    issues_remaining: Optional[int] = Field(None, ge=0)
    comment: Optional[str] = Field(None, max_length=2000)


class FeedbackResponse(CamelModel):
    recorded: bool


class PatternResponse(CamelModel):
    """Catalog entry as listed by GET /patterns"""
    id: str
    severity: str
    title: str
    description: str


class ErrorResponse(BaseModel):
    error: str
    hint: Optional[str] = None


class StatsResponse(CamelModel):
    total_diagnoses: int
    last24h: int
    top_issues: List[Dict[str, Any]]
    versions: List[Dict[str, Any]]
    outcomes: Dict[str, int]
    ai_discoveries: int
    store: Dict[str, Any] = Field(default_factory=dict)
