"""Inference capability backed by an Ollama server."""

import json
from typing import Any, Dict, List, Optional

import httpx

from ..config.constants import DEFAULT_OLLAMA_BASE_URL, DEFAULT_OLLAMA_MODELS
from ..models.capability import CapabilityKind
from ..orchestration.errors import ValidationError
from .base import CancellationSignal
from .http_client import HTTPCapabilityAdapter


class OllamaAdapter(HTTPCapabilityAdapter):
    """Text generation through ``POST /api/generate``.

    The model is picked from ``models`` by the step's ``task``
    (general, code, reasoning, vision) unless ``model`` is given.
    """

    kind = CapabilityKind.INFERENCE
    health_path = "/api/tags"

    def __init__(
        self,
        name: str = "inference",
        base_url: str = DEFAULT_OLLAMA_BASE_URL,
        models: Optional[Dict[str, str]] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(name, base_url, timeout=timeout, transport=transport)
        self.models = dict(DEFAULT_OLLAMA_MODELS)
        if models:
            self.models.update(models)

    def select_model(self, task: Optional[str]) -> str:
        return self.models.get(task or "general", self.models["general"])

    def build_prompt(self, input: Dict[str, Any]) -> str:
        prompt = input.get("prompt")
        if not prompt or not isinstance(prompt, str):
            raise ValidationError("'prompt' is required for inference", capability=self.name)

        parts = []
        context = input.get("context")
        if context:
            parts.append(f"Context:\n{json.dumps(context, default=str)}")
        if input.get("upstream") is not None:
            parts.append(f"Previous result:\n{json.dumps(input['upstream'], default=str)}")
        parts.append(prompt)
        return "\n\n".join(parts)

    async def invoke(self, input: Dict[str, Any], signal: CancellationSignal) -> Dict[str, Any]:
        task = input.get("task", "general")
        model = input.get("model") or self.select_model(task)
        body: Dict[str, Any] = {
            "model": model,
            "prompt": self.build_prompt(input),
            "stream": False,
        }
        if input.get("format") == "json":
            body["format"] = "json"
        if input.get("options"):
            body["options"] = input["options"]

        with self.log.track_invocation("generate") as info:
            info["model"] = model
            data = await self._request("POST", "/api/generate", signal, json=body)

        return {
            "response": data.get("response", ""),
            "model": data.get("model", model),
            "task": task,
            "done": data.get("done", True),
            "eval_count": data.get("eval_count"),
        }

    async def list_models(self) -> List[str]:
        data = await self._request("GET", "/api/tags")
        return [m.get("name") for m in data.get("models", [])]

    async def startup(self) -> None:
        try:
            installed = await self.list_models()
        except Exception as e:
            self.log.warning("Could not list models", error=str(e))
            return
        missing = sorted(set(self.models.values()) - set(installed))
        if missing:
            self.log.warning(f"Configured models not installed: {missing}")
        else:
            self.log.info(f"{len(installed)} models installed")
