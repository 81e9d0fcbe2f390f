from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any, Sequence

import httpx
from langchain_core.messages import AIMessage, BaseMessage, convert_to_openai_messages

if TYPE_CHECKING:
    from chat_actions.llm_providers import ProviderConfig, ProviderModel

_CJK = re.compile(r"[\u4e00-\u9fff\u3400-\u4dbf\uac00-\ud7af]")


def estimate_tokens(text: str) -> int:
    # ~4 chars per token for latin text, ~2 for mostly CJK text.
    if not text:
        return 0
    char_count = len(text)
    cjk_ratio = len(_CJK.findall(text)) / char_count
    chars_per_token = 2.0 if cjk_ratio > 0.3 else 4.0
    return max(1, int(char_count / chars_per_token))


def _redact(value: Any) -> Any:
    if isinstance(value, str):
        if len(value) > 8:
            return value[:4] + "…" + value[-4:]
        return "***"
    return "***"


def redact_dict(data: dict[str, Any]) -> dict[str, Any]:
    redacted: dict[str, Any] = {}
    for key, val in data.items():
        key_lower = key.lower()
        if any(token in key_lower for token in ("token", "cookie", "authorization", "key")):
            redacted[key] = _redact(val)
        elif isinstance(val, dict):
            redacted[key] = redact_dict(val)
        else:
            redacted[key] = val
    return redacted


def _auth_headers(provider: ProviderConfig) -> dict[str, str]:
    if provider.auth_mode == "bearer" and provider.api_key:
        return {"Authorization": f"Bearer {provider.api_key}"}
    return {}


class ProviderChatModel:
    def __init__(self, provider: ProviderConfig, model: ProviderModel, client: httpx.AsyncClient) -> None:
        self._provider = provider
        self._model = model
        self._client = client
        self._logger = logging.getLogger("chat_model")

    @property
    def model_ref(self) -> str:
        return self._model.full_id

    @property
    def supports_images(self) -> bool:
        return self._model.vision

    def get_num_tokens(self, text: str) -> int:
        return estimate_tokens(text)

    def max_context_tokens(self) -> int:
        return self._model.max_context_tokens

    def configured_token_limit(self) -> int | None:
        return self._model.max_tokens

    async def ainvoke(
        self,
        messages: Sequence[BaseMessage],
        *,
        tools: list[dict[str, Any]] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AIMessage:
        path = self._provider.endpoints["chat"]
        payload: dict[str, Any] = {
            "model": self._model.model_id,
            "messages": convert_to_openai_messages(list(messages)),
        }
        if tools:
            payload["tools"] = tools
        headers = _auth_headers(self._provider)
        meta = metadata or {}
        self._logger.info(
            "LLM chat request model=%s path=%s headers=%s messages=%s tools=%s user_id=%s conversation_id=%s",
            self.model_ref,
            path,
            redact_dict(headers),
            len(payload["messages"]),
            len(tools or []),
            meta.get("user_id"),
            meta.get("conversation_id"),
        )
        resp = await self._client.post(path, json=payload, headers=headers or None)
        resp.raise_for_status()
        data = resp.json()
        choices = data.get("choices") or []
        if not choices:
            raise ValueError("chat response missing choices")
        message = choices[0].get("message") or {}

        tool_calls: list[dict[str, Any]] = []
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            arguments = function.get("arguments") or "{}"
            try:
                args = json.loads(arguments) if isinstance(arguments, str) else dict(arguments)
            except json.JSONDecodeError:
                self._logger.warning("Tool call %s has invalid arguments: %r", function.get("name"), arguments)
                args = {}
            tool_calls.append({"name": function.get("name", ""), "args": args, "id": call.get("id")})

        content = message.get("content") or ""
        self._logger.info(
            "LLM chat response model=%s chars=%s tool_calls=%s",
            self.model_ref,
            len(content) if isinstance(content, str) else len(content or []),
            len(tool_calls),
        )
        return AIMessage(content=content, tool_calls=tool_calls)


class ProviderEmbeddings:
    def __init__(self, provider: ProviderConfig, model: ProviderModel, client: httpx.AsyncClient) -> None:
        self._provider = provider
        self._model = model
        self._client = client
        self._logger = logging.getLogger("chat_model")

    @property
    def model_ref(self) -> str:
        return self._model.full_id

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        path = self._provider.endpoints["embeddings"]
        headers = _auth_headers(self._provider)
        self._logger.info("LLM embeddings request model=%s inputs=%s", self.model_ref, len(texts))
        resp = await self._client.post(
            path,
            json={"model": self._model.model_id, "input": texts},
            headers=headers or None,
        )
        resp.raise_for_status()
        items = sorted(resp.json().get("data") or [], key=lambda item: item.get("index", 0))
        return [list(item["embedding"]) for item in items]

    async def aembed_query(self, text: str) -> list[float]:
        vectors = await self.aembed_documents([text])
        if not vectors:
            raise ValueError("embeddings response is empty")
        return vectors[0]
