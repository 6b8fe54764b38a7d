"""
Diagnosis - single entry point for analyzing an OpenClaw installation

Pipeline:
- Detector: deterministic pattern matching against the issue catalog (no I/O)
- Augmentor: optional AI pass, bounded by a caller-enforced timeout
- Composer: one reviewable bash script from catalog + AI fixes
- Store: bounded in-memory map of fix id -> result
- Repository: optional durable record (best-effort)

Only an invalid payload or an unknown fix id reach the caller; AI and
storage faults degrade the result instead.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

from clawfix.core.config import settings
from clawfix.core.exceptions import (
    InvalidDiagnosticPayloadError,
    FixNotFoundError,
    PersistenceDisabledError,
)
from clawfix.core.logging_config import logger, set_fix_id
from clawfix.services.diagnosis.augmentor import (
    AIAnalysis, Augmentor, NullAugmentor, ClaudeAugmentor
)
from clawfix.services.diagnosis.catalog import KNOWN_ISSUES, IssueDefinition, Severity
from clawfix.services.diagnosis.composer import compose_fix_script
from clawfix.services.diagnosis.detector import DetectionResult, detect_issues
from clawfix.services.diagnosis.result import AnalysisResult, generate_fix_id
from clawfix.services.diagnosis.store import ResultStore

if TYPE_CHECKING:
    from clawfix.services.persistence import DiagnosisRepository


def _is_missing(section: Any) -> bool:
    if section is None or isinstance(section, bool):
        return not section
    if isinstance(section, (int, float)):
        return section == 0
    return section == ""


class DiagnosisService:
    """
    Orchestrates detect -> augment -> compose -> store.

    Usage:
        service = DiagnosisService(ResultStore(), NullAugmentor())
        result = await service.diagnose(payload)
        script = service.get_fix(result.fix_id).fix_script
    """

    def __init__(
        self,
        store: ResultStore,
        augmentor: Augmentor,
        repository: Optional["DiagnosisRepository"] = None,
        ai_timeout: Optional[float] = None,
        catalog=KNOWN_ISSUES
    ):
        self.store = store
        self.augmentor = augmentor
        self.repository = repository
        self.ai_timeout = ai_timeout if ai_timeout is not None else settings.AI_ANALYSIS_TIMEOUT_SECONDS
        self.catalog = catalog

    @staticmethod
    def validate_payload(payload: Any) -> Mapping[str, Any]:
        """Reject payloads without a system section before any rule runs

        An empty section still counts as present; only a missing, null,
        false, zero or empty-string value is rejected.
        """
        if not isinstance(payload, Mapping) or _is_missing(payload.get("system")):
            raise InvalidDiagnosticPayloadError(hint=settings.COLLECTOR_HINT)
        return payload

    async def _augment_safely(
        self,
        payload: Mapping[str, Any],
        detections: List[DetectionResult]
    ) -> AIAnalysis:
        """AI pass under timeout; any failure yields the pattern-only analysis"""
        known_ids = [d.id for d in detections]
        try:
            analysis = await asyncio.wait_for(
                self.augmentor.analyze(payload, known_ids),
                timeout=self.ai_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[Diagnosis] AI analysis timed out after {self.ai_timeout:g}s")
            return AIAnalysis.pattern_only(len(detections), "timed out")
        except Exception as e:
            logger.warning(f"[Diagnosis] AI analysis failed: {type(e).__name__}: {e}")
            return AIAnalysis.pattern_only(len(detections), "error")

        if not isinstance(analysis, AIAnalysis):
            logger.warning(f"[Diagnosis] Augmentor returned {type(analysis).__name__}, ignoring")
            return AIAnalysis.pattern_only(len(detections), "invalid response")
        return analysis

    async def diagnose(self, payload: Any, source: str = "cli") -> AnalysisResult:
        """
        Analyze a diagnostic payload.

        Args:
            payload: Untrusted diagnostic JSON (must carry a `system` section)
            source: Where the payload came from, recorded for statistics

        Returns:
            The stored AnalysisResult

        Raises:
            InvalidDiagnosticPayloadError: payload has no `system` section
        """
        payload = self.validate_payload(payload)
        started = time.perf_counter()

        fix_id = generate_fix_id()
        set_fix_id(fix_id)

        detections = detect_issues(payload, self.catalog)
        logger.info(
            f"[Diagnosis] {fix_id}: {len(detections)} known issue(s)"
            + (f" [{', '.join(d.id for d in detections)}]" if detections else "")
        )

        analysis = await self._augment_safely(payload, detections)

        timestamp = datetime.now(timezone.utc).isoformat()
        fix_script = compose_fix_script(detections, analysis, fix_id, generated_at=timestamp)

        result = AnalysisResult(
            fix_id=fix_id,
            timestamp=timestamp,
            issues_found=len(detections) + len(analysis.additional_issues),
            known_issues=tuple(d.summary() for d in detections),
            analysis=analysis.summary,
            fix_script=fix_script,
            ai_insights=analysis.insights,
            partial=analysis.degraded,
            additional_issues=tuple(analysis.additional_issues),
            ai_model=analysis.model or "",
            ai_tokens=analysis.tokens,
        )
        self.store.put(result)

        await self._persist_safely(result, detections, payload, source)

        logger.log_performance("diagnose", (time.perf_counter() - started) * 1000,
                               threshold_ms=self.ai_timeout * 1000, fix_id=fix_id)
        return result

    async def _persist_safely(
        self,
        result: AnalysisResult,
        detections: List[DetectionResult],
        payload: Mapping[str, Any],
        source: str
    ) -> None:
        if self.repository is None:
            return
        # best-effort: the result is already in the store
        try:
            await self.repository.store_diagnosis(result, detections, payload, source=source)
        except Exception as e:
            logger.log_error_with_context(e, context="store_diagnosis", fix_id=result.fix_id)

    def get_fix(self, fix_id: str) -> AnalysisResult:
        """Stored result for a fix id; FixNotFoundError when unknown or evicted"""
        result = self.store.get(fix_id)
        if result is None:
            raise FixNotFoundError(fix_id)
        return result

    async def record_feedback(
        self,
        fix_id: str,
        success: Optional[bool] = None,
        issues_remaining: Optional[int] = None,
        comment: Optional[str] = None
    ) -> bool:
        """
        Record whether a fix worked.

        Returns:
            True when the feedback reached durable storage

        Raises:
            FixNotFoundError: neither the store nor the database knows the id
        """
        in_store = fix_id in self.store

        if self.repository is None:
            if not in_store:
                raise FixNotFoundError(fix_id)
            logger.info(f"[Diagnosis] Feedback for {fix_id} not recorded (persistence disabled)")
            return False

        try:
            recorded = await self.repository.store_feedback(
                fix_id,
                success=success,
                issues_remaining=issues_remaining,
                comment=comment,
            )
        except Exception as e:
            logger.log_error_with_context(e, context="store_feedback", fix_id=fix_id)
            if not in_store:
                raise FixNotFoundError(fix_id) from e
            return False

        if not recorded and not in_store:
            raise FixNotFoundError(fix_id)
        return recorded

    async def get_stats(self) -> Dict[str, Any]:
        """Aggregate statistics; PersistenceDisabledError without a database"""
        if self.repository is None:
            raise PersistenceDisabledError()
        stats = await self.repository.get_stats()
        stats["store"] = self.store.get_stats()
        return stats


def build_augmentor() -> Augmentor:
    """Claude when configured, otherwise the pattern-only augmentor"""
    if not settings.ai_enabled:
        reason = "disabled" if not settings.AI_ANALYSIS_ENABLED else "no API key"
        logger.info(f"[Diagnosis] AI analysis off ({reason})")
        return NullAugmentor(reason=reason)

    from clawfix.utils.claude_client import ClaudeClient
    return ClaudeAugmentor(ClaudeClient(), max_tokens=settings.CLAUDE_MAX_TOKENS)


def build_diagnosis_service() -> DiagnosisService:
    """Service wired from settings (used by the FastAPI app)"""
    repository = None
    if settings.persistence_enabled:
        from clawfix.services.persistence import DiagnosisRepository
        repository = DiagnosisRepository.from_url(settings.DATABASE_URL)

    return DiagnosisService(
        store=ResultStore(capacity=settings.FIX_STORE_MAX_ENTRIES),
        augmentor=build_augmentor(),
        repository=repository,
        ai_timeout=settings.AI_ANALYSIS_TIMEOUT_SECONDS,
    )


__all__ = [
    "DiagnosisService",
    "build_diagnosis_service",
    "build_augmentor",
    "AIAnalysis",
    "AnalysisResult",
    "DetectionResult",
    "IssueDefinition",
    "ResultStore",
    "Severity",
    "KNOWN_ISSUES",
    "detect_issues",
    "compose_fix_script",
]
