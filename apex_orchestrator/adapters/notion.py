"""Storage capability backed by a Notion database."""

import json
from typing import Any, Dict, List, Optional

import httpx

from ..config.constants import DEFAULT_NOTION_API_URL, NOTION_API_VERSION
from ..models.capability import CapabilityKind
from ..orchestration.errors import ValidationError
from .base import CancellationSignal
from .http_client import HTTPCapabilityAdapter

# Notion rejects rich text items longer than this
MAX_TEXT_LENGTH = 2000


def _chunks(text: str, size: int = MAX_TEXT_LENGTH) -> List[str]:
    return [text[i:i + size] for i in range(0, len(text), size)] or [""]


def paragraph_blocks(text: str) -> List[Dict[str, Any]]:
    return [
        {
            "object": "block",
            "type": "paragraph",
            "paragraph": {"rich_text": [{"type": "text", "text": {"content": chunk}}]},
        }
        for chunk in _chunks(text)
    ]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, default=str)


class NotionAdapter(HTTPCapabilityAdapter):
    """
    Saves pages to and queries one Notion database.

    Actions (``input["action"]``):
        save: page titled ``title`` holding the prompt and upstream output
        save_interaction: page holding an audit ``record``
        query: query the database with an optional ``filter``
        list_databases: databases shared with the integration
    """

    kind = CapabilityKind.STORAGE
    health_path = "/v1/users/me"

    def __init__(
        self,
        api_key: str,
        database_id: str,
        name: str = "storage",
        base_url: str = DEFAULT_NOTION_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.database_id = database_id
        super().__init__(name, base_url, timeout=timeout, transport=transport)

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["Authorization"] = f"Bearer {self.api_key}"
        headers["Notion-Version"] = NOTION_API_VERSION
        return headers

    def page_payload(self, title: str, body: str) -> Dict[str, Any]:
        return {
            "parent": {"database_id": self.database_id},
            "properties": {
                "Name": {"title": [{"text": {"content": title[:MAX_TEXT_LENGTH]}}]},
            },
            "children": paragraph_blocks(body),
        }

    async def create_page(self, title: str, body: str, signal: Optional[CancellationSignal] = None) -> Dict[str, Any]:
        with self.log.track_invocation("create_page"):
            data = await self._request("POST", "/v1/pages", signal, json=self.page_payload(title, body))
        return {"page_id": data.get("id"), "url": data.get("url")}

    async def query(self, filter: Optional[Dict[str, Any]] = None, page_size: int = 10,
                    signal: Optional[CancellationSignal] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"page_size": page_size}
        if filter:
            body["filter"] = filter
        with self.log.track_invocation("query"):
            data = await self._request(
                "POST", f"/v1/databases/{self.database_id}/query", signal, json=body
            )
        results = data.get("results", [])
        return {
            "results": [{"id": page.get("id"), "url": page.get("url")} for page in results],
            "count": len(results),
            "has_more": data.get("has_more", False),
        }

    async def list_databases(self, signal: Optional[CancellationSignal] = None) -> List[Dict[str, Any]]:
        with self.log.track_invocation("list_databases"):
            data = await self._request(
                "POST", "/v1/search", signal,
                json={"filter": {"value": "database", "property": "object"}}
            )
        return [
            {
                "id": database.get("id"),
                "title": "".join(part.get("plain_text", "") for part in database.get("title", [])),
                "url": database.get("url"),
            }
            for database in data.get("results", [])
        ]

    async def invoke(self, input: Dict[str, Any], signal: CancellationSignal) -> Dict[str, Any]:
        action = input.get("action", "save")

        if action == "save":
            title = input.get("title") or (input.get("prompt") or "Orchestration result")[:100]
            sections = []
            if input.get("prompt"):
                sections.append(f"Prompt:\n{input['prompt']}")
            if "upstream" in input:
                sections.append(f"Result:\n{_as_text(input['upstream'])}")
            if input.get("content"):
                sections.append(_as_text(input["content"]))
            page = await self.create_page(title, "\n\n".join(sections), signal)
            return {"action": action, **page}

        if action == "save_interaction":
            record = input.get("record")
            if not isinstance(record, dict):
                raise ValidationError("'record' must be an object for save_interaction", capability=self.name)
            title = f"Interaction: {str(record.get('prompt', ''))[:80]}"
            page = await self.create_page(title, _as_text(record), signal)
            return {"action": action, **page}

        if action == "list_databases":
            databases = await self.list_databases(signal)
            return {"action": action, "databases": databases, "count": len(databases)}

        if action == "query":
            result = await self.query(input.get("filter"), input.get("page_size", 10), signal)
            return {"action": action, **result}

        raise ValidationError(f"Unknown storage action '{action}'", capability=self.name)
