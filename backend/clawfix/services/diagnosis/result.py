"""Analysis result record returned by diagnose and kept in the result store"""

import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


FIX_ID_BYTES = 9  # 12 URL-safe characters


def generate_fix_id() -> str:
    """Fresh, URL-safe fix identifier"""
    return secrets.token_urlsafe(FIX_ID_BYTES)


@dataclass(frozen=True)
class AnalysisResult:
    """Immutable outcome of one diagnose call"""
    fix_id: str
    timestamp: str
    issues_found: int
    known_issues: Tuple[Dict[str, str], ...]
    analysis: str
    fix_script: str
    ai_insights: str = ""
    partial: bool = False
    additional_issues: Tuple[str, ...] = field(default_factory=tuple)
    ai_model: str = ""
    ai_tokens: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (camelCase keys)"""
        return {
            "fixId": self.fix_id,
            "timestamp": self.timestamp,
            "issuesFound": self.issues_found,
            "knownIssues": [dict(issue) for issue in self.known_issues],
            "analysis": self.analysis,
            "fixScript": self.fix_script,
            "aiInsights": self.ai_insights,
            "partial": self.partial,
        }
