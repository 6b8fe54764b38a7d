"""
Unit Tests for the Fix Script Composer
"""
import shutil
import subprocess

import pytest

from clawfix.services.diagnosis.augmentor import AIAnalysis
from clawfix.services.diagnosis.catalog import KNOWN_ISSUES, get_issue
from clawfix.services.diagnosis.composer import compose_fix_script, needs_restart
from clawfix.services.diagnosis.detector import DetectionResult, detect_issues


GENERATED_AT = '2026-02-10T12:00:00+00:00'
RESTART_HEADER = '# ─── Restart Gateway to Apply Changes ───'
AI_HEADER = '# ─── Additional AI-Recommended Fixes ───'


def _detections(*issue_ids):
    return [DetectionResult.from_issue(get_issue(issue_id)) for issue_id in issue_ids]


class TestScriptStructure:

    def test_zero_issue_script_is_valid(self):
        script = compose_fix_script([], None, 'fix123', generated_at=GENERATED_AT)
        lines = script.split('\n')

        assert lines[0] == '#!/usr/bin/env bash'
        assert '# ClawFix Fix Script — fix123' in lines
        assert f'# Generated: {GENERATED_AT}' in lines
        assert 'set -euo pipefail' in lines
        assert '# ─── Fix:' not in script
        assert RESTART_HEADER not in script
        assert lines[-1] == 'echo "Fix ID: fix123"'

    def test_backup_is_guarded(self):
        script = compose_fix_script([], None, 'fix123', generated_at=GENERATED_AT)

        assert 'if [ -f ~/.openclaw/openclaw.json ]; then' in script
        assert 'cp ~/.openclaw/openclaw.json ~/.openclaw/openclaw.json.bak.$(date +%s)' in script

    def test_block_format(self):
        detection = _detections('port-conflict')[0]
        script = compose_fix_script([detection], None, 'fix123', generated_at=GENERATED_AT)

        assert f'# ─── Fix: {detection.title} (critical) ───\n# {detection.description}\n{detection.fix}\n' in script

    def test_blocks_follow_input_order(self):
        detections = _detections('no-soul', 'mem0-graph-free', 'port-conflict')
        script = compose_fix_script(detections, None, 'fix123', generated_at=GENERATED_AT)

        positions = [script.index(f'Fix: {d.title}') for d in detections]
        assert positions == sorted(positions)

    def test_catalog_order_is_preserved_end_to_end(self, minimal_payload):
        detections = detect_issues(minimal_payload)
        script = compose_fix_script(detections, None, 'fix123', generated_at=GENERATED_AT)

        positions = [script.index(f'Fix: {d.title}') for d in detections]
        assert positions == sorted(positions)

    def test_every_detection_is_emitted(self):
        detections = [DetectionResult.from_issue(issue) for issue in KNOWN_ISSUES]
        script = compose_fix_script(detections, None, 'fix123', generated_at=GENERATED_AT)

        assert script.count('# ─── Fix:') == len(KNOWN_ISSUES)
        for detection in detections:
            assert detection.fix in script

    def test_deterministic_for_fixed_timestamp(self):
        detections = _detections('mem0-graph-free', 'no-soul')
        analysis = AIAnalysis(summary='s', additional_fixes='echo extra')

        first = compose_fix_script(detections, analysis, 'fix123', generated_at=GENERATED_AT)
        second = compose_fix_script(detections, analysis, 'fix123', generated_at=GENERATED_AT)

        assert first == second

    def test_banner_is_last(self):
        script = compose_fix_script(_detections('mem0-graph-free'), None, 'abc', generated_at=GENERATED_AT)
        tail = script.split('\n')[-3:]

        assert tail[0] == 'echo ""'
        assert 'All fixes applied' in tail[1]
        assert tail[2] == 'echo "Fix ID: abc"'


class TestAIBlock:

    def test_ai_fixes_appended_after_catalog_fixes(self):
        detections = _detections('no-soul')
        analysis = AIAnalysis(summary='s', additional_fixes='rm -f ~/.openclaw/run/gateway.lock')

        script = compose_fix_script(detections, analysis, 'fix123', generated_at=GENERATED_AT)

        assert AI_HEADER in script
        assert script.index(AI_HEADER) > script.index('Fix: No SOUL.md found')
        assert 'rm -f ~/.openclaw/run/gateway.lock' in script

    def test_ai_fixes_appended_verbatim(self):
        fixes = '  # keep indentation\n  openclaw doctor --fix\n\n'
        analysis = AIAnalysis(summary='s', additional_fixes=fixes)

        script = compose_fix_script([], analysis, 'fix123', generated_at=GENERATED_AT)

        assert f'{AI_HEADER}\n{fixes}\n' in script

    def test_blank_ai_fixes_are_omitted(self):
        analysis = AIAnalysis(summary='s', additional_fixes='   \n')
        script = compose_fix_script([], analysis, 'fix123', generated_at=GENERATED_AT)

        assert AI_HEADER not in script

    def test_degraded_analysis_adds_nothing(self):
        analysis = AIAnalysis.pattern_only(0, 'timed out')
        script = compose_fix_script([], analysis, 'fix123', generated_at=GENERATED_AT)

        assert script == compose_fix_script([], None, 'fix123', generated_at=GENERATED_AT)


class TestRestartGate:

    def test_restart_when_config_mutated(self):
        script = compose_fix_script(_detections('no-hybrid-search'), None, 'f', generated_at=GENERATED_AT)
        assert RESTART_HEADER in script
        assert script.index(RESTART_HEADER) < script.index('echo "Fix ID: f"')

    def test_no_restart_for_non_mutating_fixes(self):
        script = compose_fix_script(_detections('no-soul', 'no-memory-files'), None, 'f', generated_at=GENERATED_AT)
        assert RESTART_HEADER not in script

    def test_restart_when_ai_fix_touches_config(self):
        analysis = AIAnalysis(
            summary='s',
            additional_fixes="jq '.gateway.bind = \"loopback\"' ~/.openclaw/openclaw.json > /tmp/x",
        )
        script = compose_fix_script([], analysis, 'f', generated_at=GENERATED_AT)
        assert RESTART_HEADER in script

    def test_needs_restart(self):
        assert needs_restart(_detections('mem0-graph-free'))
        assert not needs_restart(_detections('gateway-not-running'))
        assert needs_restart([], 'edit ~/.openclaw/openclaw.json')
        assert not needs_restart([], '')
        assert not needs_restart([], None)


@pytest.mark.skipif(shutil.which('bash') is None, reason='bash not available')
class TestBashSyntax:

    def _check(self, script, tmp_path):
        path = tmp_path / 'fix.sh'
        path.write_text(script)
        completed = subprocess.run(['bash', '-n', str(path)], capture_output=True, text=True)
        assert completed.returncode == 0, completed.stderr

    def test_zero_issue_script_parses(self, tmp_path):
        self._check(compose_fix_script([], None, 'fix123', generated_at=GENERATED_AT), tmp_path)

    def test_full_catalog_script_parses(self, tmp_path):
        detections = [DetectionResult.from_issue(issue) for issue in KNOWN_ISSUES]
        analysis = AIAnalysis(summary='s', additional_fixes='echo "extra step"')

        script = compose_fix_script(detections, analysis, 'fix123', generated_at=GENERATED_AT)

        self._check(script, tmp_path)
