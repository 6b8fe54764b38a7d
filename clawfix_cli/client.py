"""
HTTP client for a ClawFix server
"""

from typing import Any, Dict, List, Optional

import httpx


class ClawFixAPIError(Exception):
    """Server answered with an error status"""

    def __init__(self, status_code: int, message: str, hint: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.hint = hint
        super().__init__(f"{status_code}: {message}")


class ClawFixAPIClient:
    """
    Thin async wrapper over the ClawFix REST API.

    Usage:
        async with ClawFixAPIClient("http://localhost:3001/api") as api:
            result = await api.diagnose(payload)
            script = await api.get_fix_script(result["fixId"])
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
            headers={"X-ClawFix-Source": "cli"},
        )

    async def __aenter__(self) -> "ClawFixAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("error") or body.get("detail") or response.reason_phrase
        raise ClawFixAPIError(response.status_code, str(message), hint=body.get("hint"))

    async def diagnose(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._client.post("/diagnose", json=payload)
        self._raise_for_error(response)
        return response.json()

    async def get_fix(self, fix_id: str) -> Dict[str, Any]:
        response = await self._client.get(f"/fix/{fix_id}")
        self._raise_for_error(response)
        return response.json()

    async def get_fix_script(self, fix_id: str) -> str:
        response = await self._client.get(f"/fix/{fix_id}", params={"format": "script"})
        self._raise_for_error(response)
        return response.text

    async def patterns(self) -> List[Dict[str, Any]]:
        response = await self._client.get("/patterns")
        self._raise_for_error(response)
        return response.json()
