"""
AI Augmentor - optional second opinion on a diagnostic payload

The static catalog runs first; the augmentor is told which issue ids were
already matched and is asked only for novel issues, a plain-language
summary and optimization insights.

Providers implement the Augmentor protocol. Timeouts and fallbacks are
the caller's job (see DiagnosisService), so a provider may simply raise.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence, Tuple, runtime_checkable

from clawfix.core.exceptions import AIResponseParseError
from clawfix.core.logging_config import logger
from clawfix.utils.response_parser import PlainTextParser


SUMMARY_FALLBACK_CHARS = 500

SYSTEM_PROMPT = """You are ClawFix, an expert AI diagnostician for OpenClaw installations.
You analyze diagnostic data from users' OpenClaw setups and generate precise fix scripts.

Your expertise comes from real-world experience running OpenClaw in production:
- Memory configuration (hybrid search, context pruning, compaction, Mem0)
- Gateway issues (port conflicts, crashes, restarts)
- Browser automation (Chrome relay, managed browser, headless deployments)
- Plugin configuration (Mem0, LanceDB, Matrix, Discord)
- Token usage optimization (heartbeat intervals, model selection, pruning)
- VPS and headless deployment issues
- macOS-specific issues (Metal GPU, Peekaboo, Apple Silicon)

Rules:
1. Generate bash fix scripts that are safe, idempotent, and well-commented
2. ALWAYS create a backup before modifying any file
3. Explain each fix in plain language
4. If you're not sure about something, say so - don't guess
5. Never include secrets, tokens, or API keys in your output
6. Prioritize fixes by severity (critical > high > medium > low)
7. Each fix should be independently runnable
8. Test commands should be included so users can verify the fix worked

Respond using exactly these XML tags:
<summary>Brief plain-language summary of overall health</summary>
<issues>
<issue>One-line title of each NEW issue not already detected</issue>
</issues>
<insights>Optimization suggestions</insights>
<fixes>
```bash
# bash fix script for the new issues only (empty if none)
```
</fixes>"""


@dataclass(frozen=True)
class AIAnalysis:
    """What the augmentor contributes to a diagnosis"""
    summary: str
    insights: str = ""
    additional_fixes: str = ""
    additional_issues: Tuple[str, ...] = field(default_factory=tuple)
    model: Optional[str] = None
    tokens: int = 0
    degraded: bool = False

    @classmethod
    def pattern_only(cls, issue_count: int, reason: str) -> "AIAnalysis":
        """Safe default used whenever the AI pass is unavailable"""
        return cls(
            summary=(
                f"Pattern matching found {issue_count} issue(s). "
                f"AI analysis unavailable ({reason})."
            ),
            degraded=True,
        )


@runtime_checkable
class Augmentor(Protocol):
    """Anything that can analyze a payload given the already-matched ids"""

    async def analyze(
        self,
        payload: Mapping[str, Any],
        known_issue_ids: Sequence[str]
    ) -> AIAnalysis:
        ...


class NullAugmentor:
    """Used when AI analysis is disabled or no API key is configured"""

    def __init__(self, reason: str = "disabled"):
        self.reason = reason

    async def analyze(
        self,
        payload: Mapping[str, Any],
        known_issue_ids: Sequence[str]
    ) -> AIAnalysis:
        return AIAnalysis.pattern_only(len(known_issue_ids), self.reason)


def build_user_prompt(payload: Mapping[str, Any], known_issue_ids: Sequence[str]) -> str:
    """User message carrying the payload and the already-detected ids"""
    known = ", ".join(known_issue_ids) or "none"
    return (
        "Analyze this OpenClaw diagnostic data.\n\n"
        f"Known issues already detected by pattern matching: {known}\n\n"
        "Look for ADDITIONAL issues not covered by the known patterns. Also provide:\n"
        "1. A brief plain-language summary of the overall health\n"
        "2. Any optimization suggestions\n"
        "3. Fix scripts for any new issues you find\n\n"
        "Diagnostic data:\n"
        f"{json.dumps(payload, indent=2, default=str)}"
    )


def parse_analysis(content: str, model: Optional[str] = None, tokens: int = 0) -> AIAnalysis:
    """Turn a raw Claude response into an AIAnalysis"""
    if not content or not content.strip():
        raise AIResponseParseError("Empty response from AI provider")

    parsed = PlainTextParser.parse_analysis_response(content)
    summary = parsed['summary'] or content.strip()[:SUMMARY_FALLBACK_CHARS]

    return AIAnalysis(
        summary=summary,
        insights=parsed['insights'],
        additional_fixes=parsed['fixes'],
        additional_issues=tuple(parsed['issues']),
        model=model,
        tokens=tokens,
    )


class ClaudeAugmentor:
    """
    Augmentor backed by Anthropic Claude.

    Usage:
        augmentor = ClaudeAugmentor(ClaudeClient())
        analysis = await augmentor.analyze(payload, ["port-conflict"])
    """

    def __init__(self, client, max_tokens: Optional[int] = None):
        self.client = client
        self.max_tokens = max_tokens

    async def analyze(
        self,
        payload: Mapping[str, Any],
        known_issue_ids: Sequence[str]
    ) -> AIAnalysis:
        response = await self.client.generate(
            prompt=build_user_prompt(payload, known_issue_ids),
            system_prompt=SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
        )

        analysis = parse_analysis(
            response.get("content", ""),
            model=response.get("model"),
            tokens=response.get("total_tokens", 0),
        )
        logger.log_ai_event(
            "analysis complete",
            model=analysis.model,
            tokens_used=analysis.tokens,
            new_issues=len(analysis.additional_issues),
        )
        return analysis
