"""Gateways that analyze a thought and return proposed actions.

Both implementations return the ``/process-thought`` response body: either
``{"result": {...}}`` or ``{"error": "..."}``. Transport failures raise and
are contained by the caller.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from config import settings
from llm import LLMClient
from models import Thought
from services.http_client import AsyncHttpClient
from thoughts.context import UserContext
from thoughts.errors import GatewayResponseError
from thoughts.prompts import SYSTEM_PROMPT, build_thought_prompt
from time_utils import isoformat_utc

logger = logging.getLogger(__name__)

_DEFAULT = object()
API_KEY_MISSING_ERROR = "OpenAI API key not configured"
API_KEY_FORMAT_ERROR = "Invalid API key format"
PARSE_FAILURE_ERROR = "Failed to parse AI response"
PROVIDER_FAILURE_ERROR = "Failed to process thought"


@dataclass(frozen=True)
class ThoughtSnapshot:
    """Thought fields sent to the gateway."""

    id: str
    text: str
    tags: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    type: str | None = None

    @classmethod
    def from_thought(cls, thought: Thought) -> "ThoughtSnapshot":
        """Capture the request fields of a stored thought."""
        return cls(
            id=thought.id,
            text=thought.text,
            tags=list(thought.tags or []),
            created_at=thought.created_at,
            type=thought.type,
        )

    def to_payload(self) -> dict[str, Any]:
        """Return the request form of the thought."""
        return {
            "id": self.id,
            "text": self.text,
            "type": self.type,
            "tags": list(self.tags),
            "createdAt": isoformat_utc(self.created_at) if self.created_at else None,
        }


@dataclass(frozen=True)
class GatewayRequest:
    """Body of a thought analysis request."""

    thought: ThoughtSnapshot
    api_key: str | None
    tool_descriptions: list[dict[str, Any]] = field(default_factory=list)
    context: UserContext | None = None
    model: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON request body."""
        payload: dict[str, Any] = {
            "thought": self.thought.to_payload(),
            "apiKey": self.api_key,
            "toolDescriptions": list(self.tool_descriptions),
        }
        if self.context is not None:
            payload["context"] = self.context.to_payload()
        if self.model:
            payload["model"] = self.model
        return payload


class ThoughtGateway(Protocol):
    """Analyzes one thought and returns the response body."""

    async def process_thought(self, request: GatewayRequest) -> dict[str, Any]:
        ...


class HttpThoughtGateway:
    """Gateway backed by a remote ``POST /process-thought`` endpoint."""

    def __init__(
        self,
        url: str | None = None,
        *,
        timeout: float | None | object = _DEFAULT,
        http_client: AsyncHttpClient | None = None,
    ) -> None:
        """Initialize the gateway; no timeout applies unless configured."""
        base_url = url or settings.gateway.url
        self.endpoint = f"{base_url.rstrip('/')}/process-thought"
        if http_client is None:
            http_client = AsyncHttpClient(
                timeout=settings.gateway.timeout if timeout is _DEFAULT else timeout
            )
        self._http = http_client

    async def process_thought(self, request: GatewayRequest) -> dict[str, Any]:
        """Send the request and return the decoded response body."""
        logger.debug("POST %s for thought %s", self.endpoint, request.thought.id)
        response = await self._http.post(self.endpoint, json=request.to_payload())
        try:
            body = response.json()
        except ValueError as exc:
            raise GatewayResponseError("gateway response is not JSON") from exc
        if not isinstance(body, dict):
            raise GatewayResponseError("gateway response must be a JSON object")
        return body


class LLMThoughtGateway:
    """In-process gateway that prompts the model directly through LiteLLM."""

    def __init__(self, client: LLMClient | None = None) -> None:
        """Initialize the gateway with an optional preconfigured client."""
        self._client = client

    async def process_thought(self, request: GatewayRequest) -> dict[str, Any]:
        """Analyze the thought and return ``{"result": ...}`` or ``{"error": ...}``."""
        api_key = (request.api_key or "").strip()
        if not api_key:
            return {"error": API_KEY_MISSING_ERROR, "needsSetup": True}
        if not api_key.startswith("sk-"):
            return {"error": API_KEY_FORMAT_ERROR, "needsSetup": True}

        logger.info("Analyzing thought %s", request.thought.id)
        payload = request.to_payload()
        prompt = build_thought_prompt(payload["thought"], payload.get("context"))
        client = self._client_for(request.model)
        try:
            response = await client.complete(
                [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                api_key=api_key,
            )
        except Exception as exc:
            logger.error("Model call failed for thought %s: %s", request.thought.id, exc)
            return {"error": PROVIDER_FAILURE_ERROR, "details": str(exc) or "Unknown error"}

        try:
            result = parse_model_response(response)
        except ValueError as exc:
            logger.error("Failed to parse AI response: %s", exc)
            logger.debug("AI response was: %s", response[:500])
            return {"error": PARSE_FAILURE_ERROR, "details": "AI returned invalid JSON"}
        return {"success": True, "result": result}

    def _client_for(self, model: str | None) -> LLMClient:
        if self._client is None:
            self._client = LLMClient()
        if model and model != self._client.model:
            return LLMClient(model=model, timeout=self._client.timeout)
        return self._client


def parse_model_response(response: str) -> dict[str, Any]:
    """Strip Markdown code fences and decode the JSON object."""
    raw = (response or "").strip()
    if raw.startswith("```"):
        lines = raw.split("\n")
        if lines[-1].strip().startswith("```"):
            lines = lines[:-1]
        raw = "\n".join(lines[1:]).strip()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("model response JSON could not be parsed") from exc
    if not isinstance(data, dict):
        raise ValueError("model response JSON must be an object")
    return data


def build_gateway(backend: str | None = None) -> ThoughtGateway:
    """Return the configured gateway implementation."""
    backend = backend or settings.gateway.backend
    if backend == "http":
        return HttpThoughtGateway()
    if backend == "llm":
        return LLMThoughtGateway()
    raise ValueError(f"Unsupported gateway backend: {backend}")
