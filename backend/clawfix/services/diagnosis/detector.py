"""
Issue Detector - Rule-based issue detection (NO AI)

Runs every catalog predicate against one diagnostic payload, in catalog
order. A predicate that raises is a rule fault: it is logged and counts
as "not detected", and the remaining rules still run.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence

from clawfix.core.logging_config import logger
from clawfix.services.diagnosis.catalog import IssueDefinition, KNOWN_ISSUES, Severity


@dataclass(frozen=True)
class DetectionResult:
    """A catalog issue matched against a specific payload"""
    id: str
    severity: Severity
    title: str
    description: str
    fix: str
    mutates_config: bool = False

    @classmethod
    def from_issue(cls, issue: IssueDefinition) -> "DetectionResult":
        return cls(
            id=issue.id,
            severity=issue.severity,
            title=issue.title,
            description=issue.description,
            fix=issue.fix(),
            mutates_config=issue.mutates_config,
        )

    def summary(self) -> Dict[str, str]:
        """Public view without the fix body"""
        return {
            "id": self.id,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
        }


def evaluate_safely(issue: IssueDefinition, payload: Mapping[str, Any]) -> bool:
    """
    Evaluate one predicate, defaulting to no match.

    Any exception from the predicate (missing branch, wrong type,
    bad regex input) is logged as a rule fault and swallowed here so
    that it can never affect sibling rules.
    """
    try:
        return bool(issue.detect(payload))
    except Exception as e:
        logger.log_rule_fault(issue.id, e)
        return False


def detect_issues(
    payload: Mapping[str, Any],
    catalog: Sequence[IssueDefinition] = KNOWN_ISSUES
) -> List[DetectionResult]:
    """
    Run all pattern detections against a diagnostic payload.

    Returns matches in catalog order. Pure and synchronous: no I/O.
    """
    results: List[DetectionResult] = []
    for issue in catalog:
        if evaluate_safely(issue, payload):
            results.append(DetectionResult.from_issue(issue))

    logger.debug(
        f"[Detector] {len(results)}/{len(catalog)} rules matched",
        extra={"event_type": "detection", "matched": [r.id for r in results]}
    )
    return results
