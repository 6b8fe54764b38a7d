"""
Unit Tests for the Known Issues Catalog

Covers catalog shape, payload access, individual predicates and the
conventions every fix fragment follows.
"""
import re

import pytest

from clawfix.services.diagnosis.catalog import (
    KNOWN_ISSUES,
    IssueDefinition,
    Severity,
    OPENCLAW_CONFIG,
    MIN_HEARTBEAT_MINUTES,
    dig,
    get_issue,
    list_issues,
)


EXPECTED_ORDER = [
    ('mem0-graph-free', Severity.CRITICAL),
    ('gateway-not-running', Severity.CRITICAL),
    ('port-conflict', Severity.CRITICAL),
    ('browser-port-binding', Severity.HIGH),
    ('no-hybrid-search', Severity.MEDIUM),
    ('no-context-pruning', Severity.MEDIUM),
    ('no-memory-flush', Severity.HIGH),
    ('no-soul', Severity.LOW),
    ('no-memory-files', Severity.LOW),
    ('ggml-metal-crash', Severity.HIGH),
    ('orphan-tool-calls', Severity.MEDIUM),
    ('high-token-usage', Severity.MEDIUM),
]


class TestCatalogShape:
    """Test the catalog as a whole"""

    def test_twelve_entries_in_order(self):
        assert [(i.id, i.severity) for i in KNOWN_ISSUES] == EXPECTED_ORDER

    def test_ids_are_unique(self):
        ids = [i.id for i in KNOWN_ISSUES]
        assert len(ids) == len(set(ids))

    def test_entries_are_immutable(self):
        issue = KNOWN_ISSUES[0]
        with pytest.raises(AttributeError):
            issue.id = 'renamed'

    def test_every_entry_has_text(self):
        for issue in KNOWN_ISSUES:
            assert issue.title
            assert issue.description
            assert issue.fix().strip()

    def test_fixes_are_payload_independent(self):
        """Fix generators take no input and are stable"""
        for issue in KNOWN_ISSUES:
            assert issue.fix() == issue.fix()

    def test_get_issue(self):
        assert get_issue('port-conflict').severity == Severity.CRITICAL
        assert get_issue('does-not-exist') is None

    def test_list_issues_has_no_behaviour(self):
        listing = list_issues()
        assert [entry['id'] for entry in listing] == [issue_id for issue_id, _ in EXPECTED_ORDER]
        assert set(listing[0].keys()) == {'id', 'severity', 'title', 'description'}
        assert listing[0]['severity'] == 'critical'


class TestSeverity:

    def test_rank_order(self):
        assert Severity.CRITICAL.rank > Severity.HIGH.rank > Severity.MEDIUM.rank > Severity.LOW.rank

    def test_is_string_valued(self):
        assert Severity('high') is Severity.HIGH
        assert Severity.LOW.value == 'low'


class TestDig:
    """Test safe payload access"""

    def test_nested_value(self):
        assert dig({'a': {'b': {'c': 1}}}, 'a', 'b', 'c') == 1

    def test_missing_key(self):
        assert dig({'a': {}}, 'a', 'b', 'c') is None

    def test_non_mapping_intermediate(self):
        assert dig({'a': 'string'}, 'a', 'b') is None
        assert dig({'a': [1, 2]}, 'a', 'b') is None

    def test_non_mapping_root(self):
        assert dig(None, 'a') is None
        assert dig(42, 'a') is None

    def test_falsy_values_survive(self):
        assert dig({'a': {'b': 0}}, 'a', 'b') == 0
        assert dig({'a': {'b': False}}, 'a', 'b') is False


class TestPredicates:
    """Test individual detection rules against focused payloads"""

    def detect(self, issue_id, payload):
        return get_issue(issue_id).detect(payload)

    def test_mem0_graph_either_key(self):
        for key in ('mem0', 'openclaw-mem0'):
            payload = {'config': {'plugins': {'entries': {key: {'config': {'enableGraph': True}}}}}}
            assert self.detect('mem0-graph-free', payload)

    def test_mem0_graph_requires_literal_true(self):
        payload = {'config': {'plugins': {'entries': {'mem0': {'config': {'enableGraph': 'true'}}}}}}
        assert not self.detect('mem0-graph-free', payload)
        payload['config']['plugins']['entries']['mem0']['config']['enableGraph'] = False
        assert not self.detect('mem0-graph-free', payload)

    @pytest.mark.parametrize('status', ['not running', 'Error: config invalid', 'FAILED', 'stopped'])
    def test_gateway_down_statuses(self, status):
        assert self.detect('gateway-not-running', {'openclaw': {'gatewayStatus': status}})

    def test_gateway_down_with_pid_is_not_down(self):
        payload = {'openclaw': {'gatewayStatus': 'error', 'gatewayPid': 4242}}
        assert not self.detect('gateway-not-running', payload)

    def test_gateway_running(self):
        assert not self.detect('gateway-not-running', {'openclaw': {'gatewayStatus': 'running'}})

    def test_port_conflict_case_insensitive(self):
        assert self.detect('port-conflict', {'logs': {'errors': 'listen eaddrinuse :::18789'}})
        assert not self.detect('port-conflict', {'logs': {'errors': 'all good'}})

    @pytest.mark.parametrize('log', [
        'port 18791 bind failed: EADDRINUSE',
        'Browser control server failed to bind',
        'browser service could not start',
    ])
    def test_browser_port_binding(self, log):
        assert self.detect('browser-port-binding', {'logs': {'errors': log}})

    def test_feature_absent_rules_on_empty_config(self):
        for issue_id in ('no-hybrid-search', 'no-context-pruning', 'no-memory-flush', 'no-soul'):
            assert self.detect(issue_id, {'system': {}})

    def test_memory_files_requires_explicit_zero(self):
        assert self.detect('no-memory-files', {'workspace': {'memoryFiles': 0}})
        assert not self.detect('no-memory-files', {'workspace': {}})
        assert not self.detect('no-memory-files', {'workspace': {'memoryFiles': 2}})

    def test_ggml_metal_checks_stderr_too(self):
        payload = {'logs': {'errors': '', 'stderr': 'GGML_ASSERT failed in ggml-metal.m:1234'}}
        assert self.detect('ggml-metal-crash', payload)

    def test_orphan_tool_calls(self):
        payload = {'logs': {'errors': 'Error: tool_call_id toolu_01 is not found'}}
        assert self.detect('orphan-tool-calls', payload)

    @pytest.mark.parametrize('every,expected', [
        ('5m', True),
        (f'{MIN_HEARTBEAT_MINUTES - 1}m', True),
        (f'{MIN_HEARTBEAT_MINUTES}m', False),
        ('1h', False),
        ('15min', False),
    ])
    def test_token_burn_heartbeat(self, every, expected):
        payload = {'config': {'agents': {'defaults': {'heartbeat': {'every': every}}}}}
        assert bool(self.detect('high-token-usage', payload)) is expected

    def test_token_burn_not_with_pruning(self):
        payload = {'config': {'agents': {'defaults': {
            'contextPruning': {'mode': 'cache-ttl'},
            'heartbeat': {'every': '5m'},
        }}}}
        assert not self.detect('high-token-usage', payload)


class TestFixConventions:
    """Test conventions shared by all fix fragments"""

    def test_config_rewrites_go_through_temp_file(self):
        for issue in KNOWN_ISSUES:
            fix = issue.fix()
            for line in fix.splitlines():
                if line.startswith("jq '"):
                    assert f'mv /tmp/oc-fix.json {OPENCLAW_CONFIG}' in fix

    def test_mutating_fixes_use_jq(self):
        for issue in KNOWN_ISSUES:
            if issue.mutates_config:
                assert re.search(r"^jq '", issue.fix(), re.M), issue.id

    def test_appends_are_guarded(self):
        for issue in KNOWN_ISSUES:
            for line in issue.fix().splitlines():
                if '>>' in line and not line.lstrip().startswith('#'):
                    assert 'grep -q' in line, f'{issue.id}: unguarded append: {line}'

    def test_file_creation_is_guarded(self):
        soul = get_issue('no-soul').fix()
        assert 'if [ ! -f "$WORKSPACE/SOUL.md" ]' in soul
        memory = get_issue('no-memory-files').fix()
        assert '[ -f "$WORKSPACE/MEMORY.md" ] ||' in memory

    def test_port_conflict_fix_looks_up_and_restarts(self):
        fix = get_issue('port-conflict').fix()
        assert 'lsof -ti :$PORT' in fix
        assert '.gateway.port // 18789' in fix
        assert 'openclaw gateway restart' in fix

    def test_mem0_fix_disables_graph_for_both_keys(self):
        fix = get_issue('mem0-graph-free').fix()
        assert '"openclaw-mem0","mem0"' in fix
        assert 'enableGraph = false' in fix

    def test_mutates_config_flags(self):
        mutating = {i.id for i in KNOWN_ISSUES if i.mutates_config}
        assert mutating == {
            'mem0-graph-free', 'no-hybrid-search', 'no-context-pruning',
            'no-memory-flush', 'ggml-metal-crash', 'high-token-usage',
        }


class TestCustomCatalog:

    def test_definition_is_plain_data(self):
        issue = IssueDefinition(
            id='custom',
            severity=Severity.LOW,
            title='Custom',
            description='Custom rule',
            detect=lambda payload: True,
            fix=lambda: 'echo custom',
        )
        assert issue.mutates_config is False
        assert issue.detect({}) is True
