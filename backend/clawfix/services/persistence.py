"""
Diagnosis Repository
====================
Durable record of diagnoses, pattern counters, AI discoveries and feedback.

Usage:
    from clawfix.services.persistence import DiagnosisRepository

    repository = DiagnosisRepository.from_url("sqlite+aiosqlite:///clawfix.db")
    await repository.init_schema()

    await repository.store_diagnosis(result, detections, payload, source="cli")
    await repository.store_feedback(fix_id, success=True)
    stats = await repository.get_stats()

Every public operation wraps database and connection failures in
PersistenceError; callers decide whether that is fatal (the diagnosis
path treats it as best-effort).
"""

import hashlib
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import select, func, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from clawfix.core.database import Base, create_engine_for, create_session_factory
from clawfix.core.exceptions import PersistenceError
from clawfix.core.logging_config import logger
from clawfix.models.diagnosis import Diagnosis, Pattern, AIDiscovery, Feedback, utcnow
from clawfix.services.diagnosis.catalog import dig
from clawfix.services.diagnosis.detector import DetectionResult
from clawfix.services.diagnosis.result import AnalysisResult


HOST_HASH_LENGTH = 16
TOP_PATTERNS_LIMIT = 10
TOP_VERSIONS_LIMIT = 5

# asyncpg connection failures surface as raw OSError, not wrapped by SQLAlchemy
STORAGE_ERRORS = (SQLAlchemyError, OSError)


def hash_host(hostname: Optional[str]) -> Optional[str]:
    """Truncated SHA-256 of a hostname; None when unknown"""
    if not hostname:
        return None
    return hashlib.sha256(str(hostname).encode("utf-8")).hexdigest()[:HOST_HASH_LENGTH]


def hash_discovery(summary: str) -> str:
    """Stable key for an AI-reported issue (case and whitespace insensitive)"""
    normalized = " ".join(summary.lower().split())
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def _short(value: Any, limit: int) -> Optional[str]:
    if value is None:
        return None
    return str(value)[:limit]


class DiagnosisRepository:
    """
    Async SQLAlchemy access to the ClawFix tables.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: Optional[AsyncEngine] = None
    ):
        self._session_factory = session_factory
        self._engine = engine

    @classmethod
    def from_url(cls, db_url: str) -> "DiagnosisRepository":
        engine = create_engine_for(db_url)
        return cls(create_session_factory(engine), engine=engine)

    async def init_schema(self) -> None:
        """Create missing tables (no-op for existing ones)"""
        if self._engine is None:
            raise PersistenceError("No engine bound to repository", operation="init_schema")
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except STORAGE_ERRORS as e:
            raise PersistenceError(f"Schema initialization failed: {e}", operation="init_schema") from e
        logger.info("[Persistence] Schema ready")

    async def ping(self) -> bool:
        """True when the database answers and the diagnoses table exists"""
        try:
            async with self._session_factory() as db:
                await db.execute(select(func.count()).select_from(Diagnosis))
            return True
        except STORAGE_ERRORS as e:
            logger.warning(f"[Persistence] Health probe failed: {e}")
            return False

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    async def store_diagnosis(
        self,
        result: AnalysisResult,
        detections: Iterable[DetectionResult],
        payload: Mapping[str, Any],
        source: str = "cli"
    ) -> None:
        """
        Record one diagnosis and bump the aggregate counters.

        Args:
            result: The stored analysis result
            detections: Catalog matches in detector order
            payload: The diagnostic payload (only system/openclaw fields are kept)
            source: Where the payload came from (cli, web, ...)
        """
        detections = list(detections)
        now = utcnow()

        diagnosis = Diagnosis(
            id=result.fix_id,
            created_at=now,
            host_hash=hash_host(dig(payload, "system", "hostname")),
            os=_short(dig(payload, "system", "os"), 64),
            arch=_short(dig(payload, "system", "arch"), 32),
            node_version=_short(dig(payload, "system", "nodeVersion"), 32),
            openclaw_version=_short(dig(payload, "openclaw", "version"), 32),
            issues_pattern=[d.id for d in detections],
            issues_ai=list(result.additional_issues),
            issues_count=result.issues_found,
            ai_model=result.ai_model or None,
            ai_tokens=result.ai_tokens or None,
            fix_script=result.fix_script,
            ai_summary=result.analysis,
            outcome="unknown",
            source=source,
        )

        try:
            async with self._session_factory() as db:
                db.add(diagnosis)

                for detection in detections:
                    pattern = await db.get(Pattern, detection.id)
                    if pattern is None:
                        pattern = Pattern(
                            id=detection.id,
                            title=detection.title,
                            severity=detection.severity.value,
                            times_detected=0,
                            times_fixed=0,
                            first_seen=now,
                            source="manual",
                        )
                        db.add(pattern)
                    pattern.times_detected = (pattern.times_detected or 0) + 1
                    pattern.last_seen = now

                for summary in result.additional_issues:
                    issue_hash = hash_discovery(summary)
                    existing = await db.execute(
                        select(AIDiscovery).where(AIDiscovery.issue_hash == issue_hash)
                    )
                    discovery = existing.scalars().first()
                    if discovery is None:
                        db.add(AIDiscovery(
                            issue_hash=issue_hash,
                            issue_summary=summary,
                            similar_count=1,
                            first_seen=now,
                            last_seen=now,
                        ))
                    else:
                        discovery.similar_count = (discovery.similar_count or 0) + 1
                        discovery.last_seen = now

                await db.commit()
        except STORAGE_ERRORS as e:
            raise PersistenceError(f"Failed to store diagnosis {result.fix_id}: {e}",
                                   operation="store_diagnosis") from e

        logger.debug(
            f"[Persistence] Stored diagnosis {result.fix_id} "
            f"| {len(detections)} pattern(s) | {len(result.additional_issues)} AI issue(s)"
        )

    async def has_diagnosis(self, fix_id: str) -> bool:
        try:
            async with self._session_factory() as db:
                return await db.get(Diagnosis, fix_id) is not None
        except STORAGE_ERRORS as e:
            raise PersistenceError(f"Lookup failed for {fix_id}: {e}", operation="has_diagnosis") from e

    async def store_feedback(
        self,
        fix_id: str,
        success: Optional[bool] = None,
        issues_remaining: Optional[int] = None,
        comment: Optional[str] = None
    ) -> bool:
        """
        Record feedback for a diagnosis.

        Returns:
            False when the diagnosis is not in the database
        """
        now = utcnow()
        try:
            async with self._session_factory() as db:
                diagnosis = await db.get(Diagnosis, fix_id)
                if diagnosis is None:
                    return False

                db.add(Feedback(
                    fix_id=fix_id,
                    created_at=now,
                    success=success,
                    issues_remaining=issues_remaining,
                    comment=comment,
                ))

                if success is not None:
                    diagnosis.outcome = "success" if success else "failed"

                if success:
                    for pattern_id in diagnosis.issues_pattern or []:
                        pattern = await db.get(Pattern, pattern_id)
                        if pattern is None:
                            continue
                        pattern.times_fixed = (pattern.times_fixed or 0) + 1
                        pattern.success_rate = pattern.times_fixed / max(pattern.times_detected or 0, 1)

                await db.commit()
        except STORAGE_ERRORS as e:
            raise PersistenceError(f"Failed to store feedback for {fix_id}: {e}",
                                   operation="store_feedback") from e

        logger.info(f"[Persistence] Feedback for {fix_id}: success={success}")
        return True

    async def get_stats(self) -> Dict[str, Any]:
        """Totals, last-24h count, top issues, version breakdown and outcomes"""
        since = utcnow() - timedelta(hours=24)
        try:
            async with self._session_factory() as db:
                total = await db.scalar(select(func.count()).select_from(Diagnosis))
                last_24h = await db.scalar(
                    select(func.count()).select_from(Diagnosis).where(Diagnosis.created_at > since)
                )

                patterns = (await db.execute(
                    select(Pattern)
                    .order_by(desc(Pattern.times_detected), Pattern.id)
                    .limit(TOP_PATTERNS_LIMIT)
                )).scalars().all()

                versions = (await db.execute(
                    select(Diagnosis.openclaw_version, func.count().label("count"))
                    .where(Diagnosis.openclaw_version.is_not(None))
                    .group_by(Diagnosis.openclaw_version)
                    .order_by(desc("count"))
                    .limit(TOP_VERSIONS_LIMIT)
                )).all()

                outcomes = (await db.execute(
                    select(Diagnosis.outcome, func.count().label("count"))
                    .group_by(Diagnosis.outcome)
                )).all()

                discoveries = await db.scalar(select(func.count()).select_from(AIDiscovery))
        except STORAGE_ERRORS as e:
            raise PersistenceError(f"Failed to load stats: {e}", operation="get_stats") from e

        top_issues: List[Dict[str, Any]] = [
            {
                "id": p.id,
                "title": p.title,
                "severity": p.severity,
                "timesDetected": p.times_detected or 0,
                "timesFixed": p.times_fixed or 0,
                "successRate": p.success_rate,
            }
            for p in patterns
        ]

        return {
            "totalDiagnoses": total or 0,
            "last24h": last_24h or 0,
            "topIssues": top_issues,
            "versions": [{"version": v, "count": c} for v, c in versions],
            "outcomes": {outcome or "unknown": c for outcome, c in outcomes},
            "aiDiscoveries": discoveries or 0,
        }
