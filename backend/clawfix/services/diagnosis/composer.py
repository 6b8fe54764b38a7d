"""
Fix Script Composer

Builds one bash script from the detected issues and the AI's extra fixes:

    header + config backup
    one block per detection (detector order, i.e. catalog order)
    AI-recommended block (if any)
    gateway restart (only if something rewrote the config)
    completion banner with the fix id

The composer has no hidden state: same inputs and timestamp, same script.
"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from clawfix.services.diagnosis.augmentor import AIAnalysis
from clawfix.services.diagnosis.catalog import OPENCLAW_CONFIG, OPENCLAW_CONFIG_MARKER
from clawfix.services.diagnosis.detector import DetectionResult


RULE = "───"


def _header(fix_id: str, generated_at: str) -> List[str]:
    return [
        '#!/usr/bin/env bash',
        f'# ClawFix Fix Script — {fix_id}',
        f'# Generated: {generated_at}',
        '# Review each step before running!',
        '#',
        '# Usage: bash fix.sh',
        '',
        'set -euo pipefail',
        '',
        '# Backup current config',
        f'if [ -f {OPENCLAW_CONFIG} ]; then',
        f'  cp {OPENCLAW_CONFIG} {OPENCLAW_CONFIG}.bak.$(date +%s)',
        '  echo "✅ Config backed up"',
        'fi',
        '',
    ]


def _issue_block(result: DetectionResult) -> List[str]:
    return [
        f'# {RULE} Fix: {result.title} ({result.severity.value}) {RULE}',
        f'# {result.description}',
        result.fix,
        '',
    ]


def needs_restart(detections: Sequence[DetectionResult], ai_fixes: str = "") -> bool:
    """
    True when at least one emitted fix rewrites the persisted config.

    Catalog entries declare this with mutates_config; free-form AI text
    has no flag, so it is checked for the config file name instead.
    """
    if any(d.mutates_config for d in detections):
        return True
    return OPENCLAW_CONFIG_MARKER in (ai_fixes or "")


def compose_fix_script(
    detections: Sequence[DetectionResult],
    ai_analysis: Optional[AIAnalysis],
    fix_id: str,
    generated_at: Optional[str] = None
) -> str:
    """
    Combine known fixes + AI fixes into a single script.

    Detections are emitted in the order given, never re-sorted by severity.
    """
    generated_at = generated_at or datetime.now(timezone.utc).isoformat()
    ai_fixes = (ai_analysis.additional_fixes if ai_analysis else "") or ""

    lines = _header(fix_id, generated_at)

    for result in detections:
        lines.extend(_issue_block(result))

    if ai_fixes.strip():
        lines.append(f'# {RULE} Additional AI-Recommended Fixes {RULE}')
        lines.append(ai_fixes)
        lines.append('')

    if needs_restart(detections, ai_fixes):
        lines.append(f'# {RULE} Restart Gateway to Apply Changes {RULE}')
        lines.append('echo "Restarting OpenClaw gateway..."')
        lines.append(
            'openclaw gateway restart 2>/dev/null || '
            'echo "⚠️  Could not restart gateway automatically. Run: openclaw gateway restart"'
        )
        lines.append('')

    lines.append('echo ""')
    lines.append('echo "🦞 All fixes applied! Run \'openclaw status\' to verify."')
    lines.append(f'echo "Fix ID: {fix_id}"')

    return '\n'.join(lines)
