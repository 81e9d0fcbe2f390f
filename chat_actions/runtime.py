from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from chat_actions.actions import ActionRunner
from chat_actions.chains import ChainCache
from chat_actions.handlers.commands import CommandDispatcher, CommandRouter
from chat_actions.handlers.intercept import InterceptionHook
from chat_actions.llm_providers import ModelProvider
from chat_actions.plugins import PluginManager
from chat_actions.presets import PresetStore
from chat_actions.services.delivery import Messenger
from chat_actions.services.formatting import TextRenderer
from chat_actions.services.prompt_builder import MessageTransformer
from chat_actions.tools import ToolRegistry


@dataclass
class RuntimeContext:
    bot_id: str
    bot_names: list[str]
    model_provider: ModelProvider
    preset_store: PresetStore
    tool_registry: ToolRegistry
    chain_cache: ChainCache
    transformer: MessageTransformer
    renderer: TextRenderer
    runner: ActionRunner
    plugin_manager: PluginManager
    messenger: Messenger
    router: CommandRouter
    dispatcher: CommandDispatcher
    interception_hook: InterceptionHook

    def to_bot_data(self) -> dict[str, Any]:
        return {"runtime": self}

    async def aclose(self) -> None:
        self.chain_cache.close()
        await self.model_provider.aclose()
