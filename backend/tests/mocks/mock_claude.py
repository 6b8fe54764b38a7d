"""
Mock Claude Client and Augmentors for Testing
Provides canned responses without calling the actual API
"""
import asyncio
from typing import Any, Dict, List, Mapping, Optional, Sequence

from clawfix.services.diagnosis.augmentor import AIAnalysis


ANALYSIS_RESPONSE = """<summary>
Your gateway cannot bind its port and the Mem0 plugin is misconfigured.
</summary>

<issues>
<issue>Stale lock file in ~/.openclaw/run</issue>
<issue>Workspace larger than 50MB</issue>
</issues>

<insights>
Consider moving large reference files out of the workspace.
</insights>

<fixes>
```bash
# Fix: Remove stale lock file
rm -f ~/.openclaw/run/gateway.lock
```
</fixes>
"""


class MockClaudeClient:
    """Mock Claude client that returns a predefined response"""

    def __init__(self, content: str = ANALYSIS_RESPONSE, model: str = 'claude-test'):
        self.content = content
        self.model = model
        self.call_count = 0
        self.last_prompt = None
        self.last_system = None

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None
    ) -> Dict[str, Any]:
        """Mock generate method (same shape as ClaudeClient.generate)"""
        self.call_count += 1
        self.last_prompt = prompt
        self.last_system = system_prompt
        return {
            'content': self.content,
            'model': self.model,
            'input_tokens': 1200,
            'output_tokens': 300,
            'total_tokens': 1500,
            'stop_reason': 'end_turn',
            'id': 'msg_test',
        }


class StubAugmentor:
    """Returns a fixed analysis and records what it was asked"""

    def __init__(self, analysis: AIAnalysis):
        self.analysis = analysis
        self.calls: List[Sequence[str]] = []

    async def analyze(self, payload: Mapping[str, Any], known_issue_ids: Sequence[str]) -> AIAnalysis:
        self.calls.append(list(known_issue_ids))
        return self.analysis


class FailingAugmentor:
    """Raises on every call"""

    def __init__(self, error: Exception = None):
        self.error = error or RuntimeError('provider unavailable')
        self.call_count = 0

    async def analyze(self, payload: Mapping[str, Any], known_issue_ids: Sequence[str]) -> AIAnalysis:
        self.call_count += 1
        raise self.error


class SlowAugmentor:
    """Never finishes within a short timeout"""

    def __init__(self, delay: float = 5.0):
        self.delay = delay

    async def analyze(self, payload: Mapping[str, Any], known_issue_ids: Sequence[str]) -> AIAnalysis:
        await asyncio.sleep(self.delay)
        return AIAnalysis(summary='too late')


class WrongTypeAugmentor:
    """Returns something that is not an AIAnalysis"""

    async def analyze(self, payload: Mapping[str, Any], known_issue_ids: Sequence[str]):
        return {'summary': 'not an AIAnalysis'}
