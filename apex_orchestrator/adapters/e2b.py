"""Execution capability backed by the E2B sandbox API."""

import re
from typing import Any, Dict, Optional

import httpx

from ..config.constants import DEFAULT_E2B_API_URL, DEFAULT_E2B_TEMPLATE
from ..models.capability import CapabilityKind
from ..orchestration.errors import CapabilityError, ValidationError
from .base import CancellationSignal
from .http_client import HTTPCapabilityAdapter

FENCED_BLOCK = re.compile(r"```[ \t]*([\w+#-]*)[^\n]*\n(.*?)```", re.DOTALL)

LANGUAGE_ALIASES = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "node": "javascript",
    "ts": "typescript",
    "sh": "bash",
    "shell": "bash",
}


def normalize_language(language: Optional[str]) -> str:
    value = (language or "python").strip().lower()
    return LANGUAGE_ALIASES.get(value, value)


def upstream_text(upstream: Any) -> str:
    """Text of an upstream output (inference returns ``{"response": ...}``)."""
    if upstream is None:
        return ""
    if isinstance(upstream, str):
        return upstream
    if isinstance(upstream, dict):
        for key in ("response", "text", "output", "code"):
            if isinstance(upstream.get(key), str):
                return upstream[key]
    return ""


def extract_code(text: str, language: Optional[str] = None) -> Optional[str]:
    """
    Pull code out of model output.

    Prefers the first fenced block tagged with ``language``, then the first
    fenced block of any language. Returns None when there is no fenced
    block.
    """
    blocks = [(normalize_language(tag) if tag else None, body) for tag, body in FENCED_BLOCK.findall(text or "")]
    if not blocks:
        return None

    wanted = normalize_language(language) if language else None
    for tag, body in blocks:
        if wanted and tag == wanted:
            return body.strip()
    return blocks[0][1].strip()


class E2BAdapter(HTTPCapabilityAdapter):
    """Runs code in a sandbox created from ``template``."""

    kind = CapabilityKind.EXECUTION

    def __init__(
        self,
        api_key: str,
        name: str = "execution",
        base_url: str = DEFAULT_E2B_API_URL,
        template: str = DEFAULT_E2B_TEMPLATE,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.template = template
        super().__init__(name, base_url, timeout=timeout, transport=transport)

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["X-API-Key"] = self.api_key
        return headers

    def resolve_code(self, input: Dict[str, Any]) -> str:
        code = input.get("code")
        if code:
            return code
        code = extract_code(upstream_text(input.get("upstream")), input.get("language"))
        if not code:
            raise ValidationError(
                "No code to execute: 'code' missing and upstream output has no fenced code block",
                capability=self.name
            )
        return code

    async def invoke(self, input: Dict[str, Any], signal: CancellationSignal) -> Dict[str, Any]:
        language = normalize_language(input.get("language"))
        code = self.resolve_code(input)
        body = {"code": code, "language": language}
        if input.get("env"):
            body["env"] = input["env"]

        with self.log.track_invocation("execute") as info:
            info["language"] = language
            data = await self._request(
                "POST", f"/sandboxes/{self.template}/execute", signal, json=body
            )

        error = data.get("error")
        if error:
            raise CapabilityError(
                f"Execution failed: {error}",
                capability=self.name,
                metadata={"stderr": data.get("stderr", ""), "code": code}
            )

        return {
            "output": data.get("stdout", data.get("output", "")),
            "stderr": data.get("stderr", ""),
            "exit_code": data.get("exit_code", 0),
            "language": language,
            "code": code,
        }
