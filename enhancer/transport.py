"""
Model transports — the two ways a ModelRequest reaches the provider.

  GenaiTransport  — google-genai SDK (async client) with the operator's
                    pooled key. Used by the pooled strategy.
  RestTransport   — direct REST call (`?key=` query param) with the user's
                    own key, via requests in a worker thread. Bypassing the
                    SDK guarantees the user's key is the one on the wire.

Both raise ProviderError(message, status_code) on failure and return a
normalised ModelReply on success. Neither retries; that is the strategy's job.
"""

from __future__ import annotations

import asyncio
import base64
import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Type, Union

import requests
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel

from .config import DEFAULT_REST_BASE_URL
from .errors import CredentialMissingError, ProviderError
from .responses import ModelReply, reply_from_rest, reply_from_sdk

logger = logging.getLogger(__name__)


# ── Request model ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    data: bytes
    mime_type: str


Part = Union[TextPart, ImagePart]


@dataclass(frozen=True)
class ModelRequest:
    model: str
    parts: Tuple[Part, ...]
    system_instruction: Optional[str] = None
    response_schema: Optional[Type[BaseModel]] = None
    response_modalities: Tuple[str, ...] = ()
    temperature: Optional[float] = None


class ModelTransport(ABC):
    @abstractmethod
    async def generate(self, request: ModelRequest) -> ModelReply:
        ...

    @abstractmethod
    async def count_tokens(self, model: str, text: str) -> int:
        ...


# ── SDK transport (pooled key) ────────────────────────────────────────────────

class GenaiTransport(ModelTransport):
    def __init__(self, api_key: Optional[str]) -> None:
        self._api_key = api_key
        self._client = None

    def _get_client(self):
        """Lazy-init the genai client."""
        if not self._api_key:
            raise CredentialMissingError("Pooled API key is not configured (GEMINI_API_KEY).")
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    @staticmethod
    def _to_sdk_parts(request: ModelRequest) -> list:
        parts = []
        for p in request.parts:
            if isinstance(p, ImagePart):
                parts.append(types.Part.from_bytes(data=p.data, mime_type=p.mime_type))
            else:
                parts.append(types.Part.from_text(text=p.text))
        return parts

    @staticmethod
    def _to_sdk_config(request: ModelRequest) -> types.GenerateContentConfig:
        kwargs: Dict[str, Any] = {}
        if request.system_instruction:
            kwargs["system_instruction"] = request.system_instruction
        if request.response_schema is not None:
            kwargs["response_mime_type"] = "application/json"
            kwargs["response_schema"] = request.response_schema
        if request.response_modalities:
            kwargs["response_modalities"] = list(request.response_modalities)
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        return types.GenerateContentConfig(**kwargs)

    async def generate(self, request: ModelRequest) -> ModelReply:
        client = self._get_client()
        try:
            response = await client.aio.models.generate_content(
                model=request.model,
                contents=self._to_sdk_parts(request),
                config=self._to_sdk_config(request),
            )
        except genai_errors.APIError as e:
            raise ProviderError(str(e), getattr(e, "code", None)) from e
        except Exception as e:
            # httpx / socket faults surface as opaque errors
            raise ProviderError(f"unknown transport fault: {type(e).__name__}: {e}") from e
        return reply_from_sdk(response)

    async def count_tokens(self, model: str, text: str) -> int:
        client = self._get_client()
        try:
            response = await client.aio.models.count_tokens(model=model, contents=text)
        except genai_errors.APIError as e:
            raise ProviderError(str(e), getattr(e, "code", None)) from e
        except Exception as e:
            raise ProviderError(f"unknown transport fault: {type(e).__name__}: {e}") from e
        return int(response.total_tokens or 0)


# ── REST transport (user key) ─────────────────────────────────────────────────

_JSON_TYPES = {
    "string": "STRING",
    "integer": "INTEGER",
    "number": "NUMBER",
    "boolean": "BOOLEAN",
    "array": "ARRAY",
    "object": "OBJECT",
}


def rest_schema(model: Type[BaseModel]) -> Dict[str, Any]:
    """Translate a flat pydantic model into the REST responseSchema dialect."""
    schema = model.model_json_schema()
    properties = {}
    for name, prop in schema.get("properties", {}).items():
        entry: Dict[str, Any] = {"type": _JSON_TYPES.get(prop.get("type", "string"), "STRING")}
        if prop.get("description"):
            entry["description"] = prop["description"]
        properties[name] = entry
    return {"type": "OBJECT", "properties": properties, "required": list(schema.get("required", []))}


def build_rest_body(request: ModelRequest) -> Dict[str, Any]:
    parts = []
    for p in request.parts:
        if isinstance(p, ImagePart):
            parts.append({"inlineData": {"mimeType": p.mime_type, "data": base64.b64encode(p.data).decode("ascii")}})
        else:
            parts.append({"text": p.text})

    body: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
    if request.system_instruction:
        body["systemInstruction"] = {"parts": [{"text": request.system_instruction}]}

    generation_config: Dict[str, Any] = {}
    if request.response_schema is not None:
        generation_config["responseMimeType"] = "application/json"
        generation_config["responseSchema"] = rest_schema(request.response_schema)
    if request.response_modalities:
        generation_config["responseModalities"] = list(request.response_modalities)
    if request.temperature is not None:
        generation_config["temperature"] = request.temperature
    if generation_config:
        body["generationConfig"] = generation_config
    return body


class RestTransport(ModelTransport):
    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_REST_BASE_URL,
        timeout: float = 120.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._timeout = timeout
        self._session = session or requests.Session()

    def _post_sync(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self._base_url}{endpoint}"
        try:
            resp = self._session.post(url, params={"key": self._api_key}, json=body, timeout=self._timeout)
        except requests.RequestException as e:
            # str(e) embeds the URL and with it the key
            raise ProviderError(f"failed to fetch: {type(e).__name__}") from e

        try:
            data = resp.json()
        except ValueError:
            if resp.ok:
                raise ProviderError(f"unreadable response body (status {resp.status_code})", resp.status_code)
            data = {}

        if not resp.ok:
            err = data.get("error") if isinstance(data, dict) else None
            err = err or {}
            message = err.get("message") or f"HTTP error! status: {resp.status_code}"
            if err.get("status"):
                message = f"{message} [{err['status']}]"
            logger.warning("direct API error %s on %s: %s", resp.status_code, endpoint, message)
            raise ProviderError(message, resp.status_code)
        return data

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(self._post_sync, endpoint, body))

    async def generate(self, request: ModelRequest) -> ModelReply:
        data = await self._post(f"{request.model}:generateContent", build_rest_body(request))
        return reply_from_rest(data)

    async def count_tokens(self, model: str, text: str) -> int:
        body = {"contents": [{"parts": [{"text": text}]}]}
        data = await self._post(f"{model}:countTokens", body)
        return int(data.get("totalTokens", 0))
