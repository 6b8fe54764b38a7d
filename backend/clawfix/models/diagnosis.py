from sqlalchemy import Column, String, DateTime, Integer, Float, Boolean, ForeignKey, JSON, Text, Index
from datetime import datetime, timezone

from clawfix.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Diagnosis(Base):
    """One diagnose call, keyed by fix id"""
    __tablename__ = "diagnoses"

    id = Column(String(32), primary_key=True)  # fix id
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Target machine (no raw hostnames are stored)
    host_hash = Column(String(64), nullable=True)
    os = Column(String(64), nullable=True)
    arch = Column(String(32), nullable=True)
    node_version = Column(String(32), nullable=True)
    openclaw_version = Column(String(32), nullable=True)

    # Findings
    issues_pattern = Column(JSON, default=list)  # catalog ids, detector order
    issues_ai = Column(JSON, default=list)  # AI-reported issue titles
    issues_count = Column(Integer, default=0)

    # AI usage
    ai_model = Column(String(100), nullable=True)
    ai_tokens = Column(Integer, nullable=True)

    fix_script = Column(Text, nullable=True)
    ai_summary = Column(Text, nullable=True)

    outcome = Column(String(20), default="unknown")  # unknown, success, failed
    source = Column(String(20), default="unknown")

    __table_args__ = (
        Index('idx_diagnoses_created', 'created_at'),
        Index('idx_diagnoses_host', 'host_hash'),
        Index('idx_diagnoses_version', 'openclaw_version'),
    )

    def __repr__(self):
        return f"<Diagnosis {self.id} issues={self.issues_count} outcome={self.outcome}>"


class Pattern(Base):
    """Aggregate counters per catalog issue id"""
    __tablename__ = "patterns"

    id = Column(String(64), primary_key=True)  # catalog issue id
    title = Column(String(255), nullable=False)
    severity = Column(String(20), nullable=False)
    times_detected = Column(Integer, default=0)
    times_fixed = Column(Integer, default=0)
    success_rate = Column(Float, nullable=True)
    first_seen = Column(DateTime(timezone=True), default=utcnow)
    last_seen = Column(DateTime(timezone=True), default=utcnow)
    source = Column(String(20), default="manual")

    def __repr__(self):
        return f"<Pattern {self.id} detected={self.times_detected} fixed={self.times_fixed}>"


class AIDiscovery(Base):
    """Issues reported by the AI that the catalog does not cover yet"""
    __tablename__ = "ai_discoveries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    issue_hash = Column(String(64), nullable=False)
    issue_summary = Column(Text, nullable=False)
    similar_count = Column(Integer, default=1)
    first_seen = Column(DateTime(timezone=True), default=utcnow)
    last_seen = Column(DateTime(timezone=True), default=utcnow)
    graduated = Column(Boolean, default=False)  # promoted into the catalog
    pattern_id = Column(String(64), ForeignKey("patterns.id"), nullable=True)

    __table_args__ = (
        Index('idx_ai_discoveries_hash', 'issue_hash'),
    )


class Feedback(Base):
    """User report on whether a fix script worked"""
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, autoincrement=True)
    fix_id = Column(String(32), ForeignKey("diagnoses.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    success = Column(Boolean, nullable=True)
    issues_remaining = Column(Integer, nullable=True)
    comment = Column(Text, nullable=True)
