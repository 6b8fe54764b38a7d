"""
Unit Tests for the AI Augmentor and its response parsing
"""
import json

import pytest

from clawfix.core.exceptions import AIResponseParseError
from clawfix.services.diagnosis.augmentor import (
    AIAnalysis,
    Augmentor,
    ClaudeAugmentor,
    NullAugmentor,
    SUMMARY_FALLBACK_CHARS,
    SYSTEM_PROMPT,
    build_user_prompt,
    parse_analysis,
)
from clawfix.utils.response_parser import PlainTextParser
from tests.mocks.mock_claude import ANALYSIS_RESPONSE, MockClaudeClient


class TestPlainTextParser:

    def test_parse_xml_tags_with_attributes(self):
        tags = PlainTextParser.parse_xml_tags('<issue severity="high">Lock file</issue>', 'issue')
        assert tags == [{'content': 'Lock file', 'severity': 'high'}]

    def test_first_tag_missing(self):
        assert PlainTextParser.first_tag('no tags here', 'summary') == ''

    def test_strip_code_fences(self):
        text = "```bash\necho one\n```\nprose\n```sh\necho two\n```"
        assert PlainTextParser.strip_code_fences(text) == 'echo one\n\necho two'

    def test_strip_code_fences_without_fences(self):
        assert PlainTextParser.strip_code_fences('  echo plain \n') == 'echo plain'

    def test_parse_analysis_response(self):
        parsed = PlainTextParser.parse_analysis_response(ANALYSIS_RESPONSE)

        assert parsed['summary'].startswith('Your gateway cannot bind')
        assert parsed['issues'] == ['Stale lock file in ~/.openclaw/run', 'Workspace larger than 50MB']
        assert 'large reference files' in parsed['insights']
        assert parsed['fixes'] == '# Fix: Remove stale lock file\nrm -f ~/.openclaw/run/gateway.lock'

    def test_bash_comments_do_not_end_sections(self):
        response = '<fixes>\n# Step 1\necho a\n## Step 2\necho b\n</fixes>'
        assert PlainTextParser.parse_analysis_response(response)['fixes'] == '# Step 1\necho a\n## Step 2\necho b'


class TestParseAnalysis:

    def test_full_response(self):
        analysis = parse_analysis(ANALYSIS_RESPONSE, model='claude-test', tokens=1500)

        assert analysis.additional_issues == (
            'Stale lock file in ~/.openclaw/run',
            'Workspace larger than 50MB',
        )
        assert analysis.model == 'claude-test'
        assert analysis.tokens == 1500
        assert analysis.degraded is False

    def test_missing_summary_falls_back_to_raw_text(self):
        raw = 'x' * (SUMMARY_FALLBACK_CHARS + 100)
        analysis = parse_analysis(raw)

        assert analysis.summary == 'x' * SUMMARY_FALLBACK_CHARS
        assert analysis.additional_issues == ()
        assert analysis.additional_fixes == ''

    def test_empty_response_raises(self):
        with pytest.raises(AIResponseParseError):
            parse_analysis('   ')


class TestAIAnalysis:

    def test_pattern_only(self):
        analysis = AIAnalysis.pattern_only(3, 'timed out')

        assert analysis.summary == 'Pattern matching found 3 issue(s). AI analysis unavailable (timed out).'
        assert analysis.insights == ''
        assert analysis.additional_fixes == ''
        assert analysis.additional_issues == ()
        assert analysis.degraded is True


class TestNullAugmentor:

    async def test_returns_pattern_only(self):
        augmentor = NullAugmentor(reason='disabled')
        analysis = await augmentor.analyze({'system': {}}, ['no-soul', 'no-hybrid-search'])

        assert analysis.degraded is True
        assert 'found 2 issue(s)' in analysis.summary
        assert '(disabled)' in analysis.summary

    def test_satisfies_protocol(self):
        assert isinstance(NullAugmentor(), Augmentor)


class TestClaudeAugmentor:

    def test_build_user_prompt(self):
        prompt = build_user_prompt({'system': {'os': 'Darwin'}}, ['port-conflict', 'no-soul'])

        assert 'port-conflict, no-soul' in prompt
        assert json.dumps({'system': {'os': 'Darwin'}}, indent=2) in prompt

    def test_build_user_prompt_without_matches(self):
        assert 'pattern matching: none' in build_user_prompt({'system': {}}, [])

    async def test_analyze_uses_client(self):
        client = MockClaudeClient()
        augmentor = ClaudeAugmentor(client, max_tokens=2000)

        analysis = await augmentor.analyze({'system': {'os': 'Linux'}}, ['port-conflict'])

        assert client.call_count == 1
        assert client.last_system == SYSTEM_PROMPT
        assert 'port-conflict' in client.last_prompt
        assert analysis.model == 'claude-test'
        assert analysis.tokens == 1500
        assert len(analysis.additional_issues) == 2

    async def test_empty_content_raises(self):
        augmentor = ClaudeAugmentor(MockClaudeClient(content=''))

        with pytest.raises(AIResponseParseError):
            await augmentor.analyze({'system': {}}, [])

    def test_satisfies_protocol(self):
        assert isinstance(ClaudeAugmentor(MockClaudeClient()), Augmentor)
