from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from langchain_core.messages import AIMessage, BaseMessage
from langchain_core.runnables import Runnable, RunnableConfig, RunnableLambda

from chat_actions.agent import ChatModelHandle, ToolCallingAgent
from chat_actions.errors import ActionError, ChainBuildFailed, ModelNotFound
from chat_actions.models import ChatMode, InstructionPrompt, PresetPrompt, PromptKind, PromptSource
from chat_actions.presets import PresetTemplate, preset_from_instruction
from chat_actions.prompt import ChatPromptStage
from chat_actions.tools.registry import ToolRegistry

ChainIdentity = tuple[str, ChatMode, PromptKind, PromptSource]


class ModelResolver(Protocol):
    def resolve(self, model_ref: str | None) -> ChatModelHandle | None: ...

    def resolve_embeddings(self, model_ref: str | None) -> Any: ...

    def subscribe(self, listener: Any) -> None: ...

    def unsubscribe(self, listener: Any) -> None: ...


class PresetSource(Protocol):
    async def get_preset(self, name: str) -> PresetTemplate: ...


@dataclass(frozen=True)
class ChainEntry:
    key: str
    identity: ChainIdentity
    chain: Runnable
    model: ChatModelHandle


def _model_step(model: ChatModelHandle) -> RunnableLambda:
    async def _call_model(messages: list[BaseMessage], config: RunnableConfig) -> AIMessage:
        return await model.ainvoke(messages, metadata=dict(config.get("metadata") or {}))

    return RunnableLambda(_call_model, name="model")


class ChainCache:
    """Keyed registry of LLM chains, at most one live entry per key.

    Provider notifications only bump a generation counter. The next
    ``get_chain`` for a key re-resolves its model and rebuilds the chain when
    the resolved handle is a different object than the one the entry holds.
    """

    def __init__(
        self,
        model_provider: ModelResolver,
        preset_provider: PresetSource,
        tool_registry: ToolRegistry,
        default_embeddings: str | None = None,
        agent_max_iterations: int = 10,
    ) -> None:
        self._models = model_provider
        self._presets = preset_provider
        self._tools = tool_registry
        self._default_embeddings = default_embeddings
        self._agent_max_iterations = agent_max_iterations
        self._entries: dict[str, ChainEntry] = {}
        self._validated_at: dict[str, int] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._generation = 0
        self._logger = logging.getLogger("chains")
        self._models.subscribe(self.on_models_changed)

    @property
    def generation(self) -> int:
        return self._generation

    def on_models_changed(self, event: str, provider_id: str) -> None:
        self._generation += 1
        self._logger.info(
            "Models changed event=%s provider=%s generation=%s cached=%s",
            event,
            provider_id,
            self._generation,
            len(self._entries),
        )

    def peek(self, key: str) -> ChainEntry | None:
        return self._entries.get(key)

    def invalidate(self, key: str | None = None) -> None:
        if key is None:
            self._entries.clear()
            self._validated_at.clear()
            return
        self._entries.pop(key, None)
        self._validated_at.pop(key, None)

    def close(self) -> None:
        self._models.unsubscribe(self.on_models_changed)
        self.invalidate()
        self._locks.clear()

    async def get_chain(
        self,
        key: str,
        model_ref: str,
        prompt: PromptSource,
        chat_mode: ChatMode = ChatMode.CHAT,
    ) -> ChainEntry:
        identity: ChainIdentity = (model_ref, chat_mode, prompt.kind, prompt)
        entry = self._entries.get(key)
        if entry is not None and entry.identity == identity and self._validated_at.get(key) == self._generation:
            return entry

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            generation = self._generation
            entry = self._entries.get(key)
            if entry is not None and entry.identity == identity and self._validated_at.get(key) == generation:
                return entry

            model = self._models.resolve(model_ref)
            if model is None:
                if entry is not None:
                    self._logger.info("Evicting chain key=%s, model %s is gone", key, model_ref)
                    self.invalidate(key)
                raise ModelNotFound(model_ref)

            if entry is not None and entry.identity == identity and entry.model is model:
                self._validated_at[key] = generation
                return entry

            reason = "new" if entry is None else "stale"
            self._logger.info("Building chain key=%s model=%s mode=%s reason=%s", key, model_ref, chat_mode.value, reason)
            entry = await self._build(key, identity, model, prompt, chat_mode)
            self._entries[key] = entry
            self._validated_at[key] = generation
            return entry

    async def _resolve_preset(self, key: str, prompt: PromptSource) -> PresetTemplate:
        if isinstance(prompt, InstructionPrompt):
            return preset_from_instruction(key, prompt.text)
        if isinstance(prompt, PresetPrompt):
            return await self._presets.get_preset(prompt.name)
        raise ChainBuildFailed(key, f"unsupported prompt source {prompt!r}")

    async def _build(
        self,
        key: str,
        identity: ChainIdentity,
        model: ChatModelHandle,
        prompt: PromptSource,
        chat_mode: ChatMode,
    ) -> ChainEntry:
        try:
            preset = await self._resolve_preset(key, prompt)
            stage = ChatPromptStage(
                preset=preset,
                token_counter=model.get_num_tokens,
                send_token_limit=model.configured_token_limit() or model.max_context_tokens(),
            )
            if chat_mode is ChatMode.AGENT:
                chain = await self._build_agent_chain(stage, model)
            else:
                chain = RunnableLambda(stage.aformat, name="prompt") | _model_step(model)
        except ActionError:
            raise
        except Exception as exc:
            self._logger.exception("Chain build failed key=%s", key)
            raise ChainBuildFailed(key, str(exc)) from exc
        return ChainEntry(key=key, identity=identity, chain=chain, model=model)

    async def _build_agent_chain(self, stage: ChatPromptStage, model: ChatModelHandle) -> Runnable:
        embeddings = self._models.resolve_embeddings(self._default_embeddings)
        if embeddings is None:
            self._logger.warning("Default embeddings %r not available, tools get none", self._default_embeddings)
        tools = [
            self._tools.get_tool(tool_id).create_tool(model=model, embeddings=embeddings)
            for tool_id in self._tools.list_tools()
        ]
        agent = ToolCallingAgent(model, tools, stage, max_iterations=self._agent_max_iterations)
        return RunnableLambda(agent.ainvoke, name="agent")
