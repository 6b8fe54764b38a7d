"""
Known OpenClaw issues catalog

Each entry pairs a detection predicate with a fix generator. Predicates
read the untrusted diagnostic payload through dig() and must never assume
a branch exists; the detector still wraps every call.

Fix generators take no arguments: they render shell fragments from the
recommended values declared in this module, never from the payload, so a
fix can be reviewed without knowing who asked for it.

Adding an issue means appending an IssueDefinition to KNOWN_ISSUES.
Order matters: it is the order fixes appear in the generated script.
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple


OPENCLAW_CONFIG = "~/.openclaw/openclaw.json"
OPENCLAW_CONFIG_MARKER = "openclaw.json"
TMP_CONFIG = "/tmp/oc-fix.json"
DEFAULT_WORKSPACE = "~/.openclaw/workspace"
DEFAULT_GATEWAY_PORT = 18789
BROWSER_CONTROL_PORT = 18791
BROWSER_CDP_PORT = 18800

# Recommended values rendered into fixes
HYBRID_SEARCH_DEFAULTS: Dict[str, Any] = {
    "enabled": True,
    "vectorWeight": 0.6,
    "textWeight": 0.4,
    "temporalDecay": {"enabled": True, "halfLifeDays": 14},
}

CONTEXT_PRUNING_DEFAULTS: Dict[str, Any] = {
    "mode": "cache-ttl",
    "ttl": "6h",
    "keepLastAssistants": 3,
}

MEMORY_FLUSH_PROMPT = (
    "Distill this session to memory/YYYY-MM-DD.md (use today's date, APPEND only). "
    "Focus on: decisions made, state changes, lessons learned, blockers hit, "
    "tasks completed/started. Include specific details (IDs, URLs, amounts, "
    "error messages). If nothing worth saving, reply NO_REPLY."
)

COMPACTION_DEFAULTS: Dict[str, Any] = {
    "mode": "safeguard",
    "reserveTokensFloor": 32000,
    "memoryFlush": {
        "enabled": True,
        "softThresholdTokens": 40000,
        "prompt": MEMORY_FLUSH_PROMPT,
    },
}

MIN_HEARTBEAT_MINUTES = 30
HEARTBEAT_MODEL = "anthropic/claude-sonnet-4-6"

MEM0_PLUGIN_KEYS = ("openclaw-mem0", "mem0")


class Severity(str, Enum):
    """Issue severity, critical first"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Higher rank means more urgent"""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 3,
    Severity.HIGH: 2,
    Severity.MEDIUM: 1,
    Severity.LOW: 0,
}


@dataclass(frozen=True)
class IssueDefinition:
    """A catalog entry: how to spot an issue and how to fix it"""
    id: str
    severity: Severity
    title: str
    description: str
    detect: Callable[[Mapping[str, Any]], bool]
    fix: Callable[[], str]
    mutates_config: bool = False  # fix rewrites OPENCLAW_CONFIG


# ============================================
# Payload access helpers
# ============================================

def dig(payload: Any, *path: str) -> Any:
    """
    Walk nested mappings, returning None as soon as a key is missing
    or an intermediate value is not a mapping.

    dig(diag, "config", "agents", "defaults") never raises.
    """
    current = payload
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def _text(payload: Any, *path: str) -> str:
    """String at path, or '' when absent"""
    value = dig(payload, *path)
    return value or ''


def _log_text(payload: Any) -> str:
    return _text(payload, "logs", "errors")


def _defaults(payload: Any, *path: str) -> Any:
    return dig(payload, "config", "agents", "defaults", *path)


# ============================================
# Fix fragment helpers
# ============================================

def _jq_update(jq_filter: str, done_message: str) -> str:
    """Rewrite the OpenClaw config through jq, atomically via a temp file"""
    return (
        f"jq '{jq_filter}' \\\n"
        f"  {OPENCLAW_CONFIG} > {TMP_CONFIG} && \\\n"
        f"  mv {TMP_CONFIG} {OPENCLAW_CONFIG}\n"
        f'echo "✅ {done_message}"'
    )


def _jq_json(value: Any) -> str:
    """Render a JSON value for use inside a single-quoted jq filter"""
    rendered = json.dumps(value, indent=2, ensure_ascii=False)
    # close the single quote, emit an escaped quote, reopen
    return rendered.replace("'", "'\"'\"'")


def _workspace_lookup() -> str:
    return (
        f"WORKSPACE=$(jq -r '.agents.defaults.workspace // \"{DEFAULT_WORKSPACE}\"' "
        f"{OPENCLAW_CONFIG})\n"
        'WORKSPACE="${WORKSPACE/#\\~/$HOME}"'
    )


def _kill_port(port: str) -> str:
    return (
        f"PID=$(lsof -ti :{port} 2>/dev/null || true)\n"
        f'[ -n "$PID" ] && kill $PID || true'
    )


# ============================================
# Predicates
# ============================================

def _detect_mem0_graph(diag: Mapping[str, Any]) -> bool:
    for key in MEM0_PLUGIN_KEYS:
        if dig(diag, "config", "plugins", "entries", key, "config", "enableGraph") is True:
            return True
    return False


def _detect_gateway_down(diag: Mapping[str, Any]) -> bool:
    status = _text(diag, "openclaw", "gatewayStatus")
    running = re.search(r"not running|error|failed|stopped", status, re.I)
    return bool(running) and not dig(diag, "openclaw", "gatewayPid")


def _detect_port_conflict(diag: Mapping[str, Any]) -> bool:
    return bool(re.search(r"EADDRINUSE", _log_text(diag), re.I))


def _detect_browser_port(diag: Mapping[str, Any]) -> bool:
    pattern = (
        rf"{BROWSER_CONTROL_PORT}.*EADDRINUSE"
        r"|browser.*control.*fail|browser.*service.*start"
    )
    return bool(re.search(pattern, _log_text(diag), re.I))


def _detect_no_hybrid(diag: Mapping[str, Any]) -> bool:
    return not _defaults(diag, "memorySearch", "query", "hybrid", "enabled")


def _detect_no_pruning(diag: Mapping[str, Any]) -> bool:
    return not _defaults(diag, "contextPruning")


def _detect_no_flush(diag: Mapping[str, Any]) -> bool:
    return not _defaults(diag, "compaction", "memoryFlush", "enabled")


def _detect_no_soul(diag: Mapping[str, Any]) -> bool:
    return not dig(diag, "workspace", "hasSoul")


def _detect_no_memory_files(diag: Mapping[str, Any]) -> bool:
    return dig(diag, "workspace", "memoryFiles") == 0


def _detect_ggml_metal(diag: Mapping[str, Any]) -> bool:
    combined = _log_text(diag) + _text(diag, "logs", "stderr")
    return bool(re.search(r"GGML_ASSERT.*ggml-metal|ggml-metal.*ASSERT", combined, re.I))


def _detect_orphan_tool_calls(diag: Mapping[str, Any]) -> bool:
    return bool(re.search(r"tool_call_id.*not found|orphan.*tool", _log_text(diag), re.I))


def _detect_token_burn(diag: Mapping[str, Any]) -> bool:
    # No pruning + frequent heartbeat = token burn
    if _defaults(diag, "contextPruning"):
        return False
    every = _defaults(diag, "heartbeat", "every")
    if not every:
        return False
    match = re.fullmatch(r"(\d+)m", every)
    return bool(match) and int(match.group(1)) < MIN_HEARTBEAT_MINUTES


# ============================================
# Fix generators
# ============================================

def _fix_mem0_graph() -> str:
    keys = ",".join(f'"{key}"' for key in MEM0_PLUGIN_KEYS)
    return (
        "# Fix: Disable Mem0 graph (requires Pro plan)\n"
        + _jq_update(
            f"reduce ({keys}) as $k (.; if .plugins.entries[$k] "
            f"then .plugins.entries[$k].config.enableGraph = false else . end)",
            "Mem0 graph disabled - autoCapture will now work on Free plan",
        )
    )


def _fix_gateway_down() -> str:
    return (
        "# Fix: Restart the gateway\n"
        'openclaw gateway restart || echo "⚠️  Gateway restart failed"\n'
        "# If that fails, check logs:\n"
        "# tail -20 ~/.openclaw/logs/gateway.err.log"
    )


def _fix_port_conflict() -> str:
    return (
        "# Fix: Kill the process using the gateway port and restart\n"
        f"PORT=$(jq -r '.gateway.port // {DEFAULT_GATEWAY_PORT}' {OPENCLAW_CONFIG})\n"
        "PID=$(lsof -ti :$PORT 2>/dev/null || true)\n"
        'if [ -n "$PID" ]; then\n'
        '  echo "Killing process $PID on port $PORT"\n'
        "  kill $PID || true\n"
        "  sleep 1\n"
        "fi\n"
        "openclaw gateway restart\n"
        'echo "✅ Port conflict resolved"'
    )


def _fix_browser_port() -> str:
    return (
        "# Fix: Kill stale browser processes and restart\n"
        'pkill -f "chrome.*--remote-debugging-port" 2>/dev/null || true\n'
        f"{_kill_port(str(BROWSER_CONTROL_PORT))}\n"
        f"{_kill_port(str(BROWSER_CDP_PORT))}\n"
        "sleep 1\n"
        "openclaw gateway restart\n"
        'echo "✅ Browser ports cleared"'
    )


def _fix_no_hybrid() -> str:
    weights = HYBRID_SEARCH_DEFAULTS
    decay = weights["temporalDecay"]["halfLifeDays"]
    return (
        "# Fix: Enable hybrid search with recommended weights\n"
        + _jq_update(
            f".agents.defaults.memorySearch.query.hybrid = {_jq_json(weights)}",
            f"Hybrid search enabled (vector {weights['vectorWeight']} + "
            f"BM25 {weights['textWeight']} + {decay}d temporal decay)",
        )
    )


def _fix_no_pruning() -> str:
    pruning = CONTEXT_PRUNING_DEFAULTS
    return (
        f"# Fix: Enable context pruning ({pruning['mode']} mode, {pruning['ttl']} TTL)\n"
        + _jq_update(
            f".agents.defaults.contextPruning = {_jq_json(pruning)}",
            f"Context pruning enabled ({pruning['ttl']} TTL, keeps last "
            f"{pruning['keepLastAssistants']} assistant messages)",
        )
    )


def _fix_no_flush() -> str:
    return (
        "# Fix: Enable memory flush with smart prompt\n"
        + _jq_update(
            f".agents.defaults.compaction = {_jq_json(COMPACTION_DEFAULTS)}",
            "Memory flush enabled - context compaction will save summaries",
        )
    )


def _fix_no_soul() -> str:
    return (
        "# Fix: Create a basic SOUL.md\n"
        f"{_workspace_lookup()}\n"
        'mkdir -p "$WORKSPACE"\n'
        'if [ ! -f "$WORKSPACE/SOUL.md" ]; then\n'
        "cat > \"$WORKSPACE/SOUL.md\" << 'SOUL'\n"
        "# SOUL.md - Who You Are\n"
        "\n"
        "You are a helpful AI assistant. Be concise, direct, and genuinely useful.\n"
        "Have opinions. Be resourceful. Earn trust through competence.\n"
        "\n"
        "Customize this file to give your agent personality!\n"
        "SOUL\n"
        "fi\n"
        'echo "✅ SOUL.md present at $WORKSPACE/SOUL.md"'
    )


def _fix_no_memory_files() -> str:
    return (
        "# Fix: Create memory directory\n"
        f"{_workspace_lookup()}\n"
        'mkdir -p "$WORKSPACE/memory"\n'
        '[ -f "$WORKSPACE/MEMORY.md" ] || echo "# Memory" > "$WORKSPACE/MEMORY.md"\n'
        'echo "✅ Memory directory ready at $WORKSPACE/memory/"'
    )


def _fix_ggml_metal() -> str:
    return (
        "# Fix: Disable Metal GPU for GGML (use CPU instead)\n"
        "# Add to ~/.zshrc\n"
        "grep -qxF 'export GGML_NO_METAL=1' ~/.zshrc 2>/dev/null || "
        "echo 'export GGML_NO_METAL=1' >> ~/.zshrc\n"
        "# Also add to OpenClaw env\n"
        + _jq_update(
            '.env.GGML_NO_METAL = "1"',
            "GGML Metal disabled - CPU mode active (fixes QMD crashes)",
        )
    )


def _fix_orphan_tool_calls() -> str:
    return (
        "# Fix: This is a known OpenClaw bug (#11187).\n"
        "# Workaround: clear the affected session file\n"
        "# Session files that mention tool calls:\n"
        "find ~/.openclaw/sessions -name \"*.jsonl\" -exec grep -l \"tool_call\" {} \\; "
        "2>/dev/null | while read f; do\n"
        '  echo "Checking: $f"\n'
        "done || true\n"
        'echo "⚠️  If issues persist, try: openclaw gateway restart"\n'
        'echo "This bug is tracked at: https://github.com/openclaw/openclaw/issues/11187"'
    )


def _fix_token_burn() -> str:
    return (
        "# Fix: Reduce token usage\n"
        "# 1. Enable context pruning (see fix above)\n"
        f"# 2. Increase heartbeat interval to {MIN_HEARTBEAT_MINUTES}+ minutes\n"
        + _jq_update(
            f'.agents.defaults.heartbeat.every = "{MIN_HEARTBEAT_MINUTES}m"',
            f"Heartbeat interval set to {MIN_HEARTBEAT_MINUTES}m",
        )
        + "\n# 3. Use a cheaper model for heartbeats\n"
        + _jq_update(
            f'.agents.defaults.heartbeat.model = "{HEARTBEAT_MODEL}"',
            f"Heartbeat model set to {HEARTBEAT_MODEL}",
        )
    )


# ============================================
# Catalog
# ============================================

KNOWN_ISSUES: Tuple[IssueDefinition, ...] = (
    IssueDefinition(
        id="mem0-graph-free",
        severity=Severity.CRITICAL,
        title="Mem0 enableGraph on Free plan",
        description=(
            "Mem0 plugin has enableGraph: true but this requires the Pro plan ($99/mo). "
            "Every autoCapture and autoRecall call silently fails, meaning zero memories are stored."
        ),
        detect=_detect_mem0_graph,
        fix=_fix_mem0_graph,
        mutates_config=True,
    ),
    IssueDefinition(
        id="gateway-not-running",
        severity=Severity.CRITICAL,
        title="Gateway is not running",
        description=(
            "The OpenClaw gateway process is not running. This could be due to a config "
            "error, port conflict, or crash."
        ),
        detect=_detect_gateway_down,
        fix=_fix_gateway_down,
    ),
    IssueDefinition(
        id="port-conflict",
        severity=Severity.CRITICAL,
        title="Port conflict (EADDRINUSE)",
        description=(
            "The gateway port is already in use by another process. "
            "This prevents OpenClaw from starting."
        ),
        detect=_detect_port_conflict,
        fix=_fix_port_conflict,
    ),
    IssueDefinition(
        id="browser-port-binding",
        severity=Severity.HIGH,
        title=f"Browser control port not binding ({BROWSER_CONTROL_PORT})",
        description=(
            f"The browser control HTTP server on port {BROWSER_CONTROL_PORT} won't start. "
            "This prevents browser automation from working."
        ),
        detect=_detect_browser_port,
        fix=_fix_browser_port,
    ),
    IssueDefinition(
        id="no-hybrid-search",
        severity=Severity.MEDIUM,
        title="Hybrid search not enabled",
        description=(
            "Your memory search is using basic vector search only. Enabling hybrid search "
            "(vector + BM25) significantly improves recall, especially for exact matches "
            "like wallet addresses, error codes, and names."
        ),
        detect=_detect_no_hybrid,
        fix=_fix_no_hybrid,
        mutates_config=True,
    ),
    IssueDefinition(
        id="no-context-pruning",
        severity=Severity.MEDIUM,
        title="No context pruning configured",
        description=(
            "Without context pruning, old messages pile up and waste your context window. "
            "This makes conversations more expensive and can cause compactions to happen "
            "more often."
        ),
        detect=_detect_no_pruning,
        fix=_fix_no_pruning,
        mutates_config=True,
    ),
    IssueDefinition(
        id="no-memory-flush",
        severity=Severity.HIGH,
        title="Memory flush not enabled",
        description=(
            "When your context window fills up and compaction happens, important information "
            "will be lost. Memory flush automatically saves a summary before compacting."
        ),
        detect=_detect_no_flush,
        fix=_fix_no_flush,
        mutates_config=True,
    ),
    IssueDefinition(
        id="no-soul",
        severity=Severity.LOW,
        title="No SOUL.md found",
        description=(
            "SOUL.md defines your agent's personality and behavior. Without it, your agent "
            "is generic and lacks character."
        ),
        detect=_detect_no_soul,
        fix=_fix_no_soul,
    ),
    IssueDefinition(
        id="no-memory-files",
        severity=Severity.LOW,
        title="No memory files found",
        description=(
            "Your agent has no memory directory or daily note files. This means it can't "
            "persist knowledge across sessions."
        ),
        detect=_detect_no_memory_files,
        fix=_fix_no_memory_files,
    ),
    IssueDefinition(
        id="ggml-metal-crash",
        severity=Severity.HIGH,
        title="GGML Metal GPU crash (macOS)",
        description=(
            "QMD or other GGML-based tools crash with GGML_ASSERT on macOS with Apple Silicon. "
            "This is a known Metal GPU bug. Fix: use CPU mode."
        ),
        detect=_detect_ggml_metal,
        fix=_fix_ggml_metal,
        mutates_config=True,
    ),
    IssueDefinition(
        id="orphan-tool-calls",
        severity=Severity.MEDIUM,
        title="Orphan tool_calls in session history",
        description=(
            "Session JSONL files contain tool_call entries without matching tool_result "
            "entries. This causes \"tool_call_id is not found\" errors. Known OpenClaw bug #11187."
        ),
        detect=_detect_orphan_tool_calls,
        fix=_fix_orphan_tool_calls,
    ),
    IssueDefinition(
        id="high-token-usage",
        severity=Severity.MEDIUM,
        title="High token consumption detected",
        description=(
            "Your configuration may be causing excessive token usage. Common causes: no "
            "context pruning, large workspace files being loaded every turn, or aggressive "
            "heartbeat intervals."
        ),
        detect=_detect_token_burn,
        fix=_fix_token_burn,
        mutates_config=True,
    ),
)


def get_issue(issue_id: str, catalog: Tuple[IssueDefinition, ...] = KNOWN_ISSUES) -> Optional[IssueDefinition]:
    """Look up a catalog entry by id"""
    for issue in catalog:
        if issue.id == issue_id:
            return issue
    return None


def list_issues(catalog: Tuple[IssueDefinition, ...] = KNOWN_ISSUES) -> List[Dict[str, str]]:
    """Catalog listing without behaviour, in declaration order"""
    return [
        {
            "id": issue.id,
            "severity": issue.severity.value,
            "title": issue.title,
            "description": issue.description,
        }
        for issue in catalog
    ]
