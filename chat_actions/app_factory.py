from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Mapping

from telegram import BotCommand
from telegram.ext import Application, ApplicationBuilder, MessageHandler, filters

from chat_actions.actions import ActionRunner
from chat_actions.chains import ChainCache
from chat_actions.config import AppConfig
from chat_actions.handlers.commands import CommandDispatcher, CommandRouter, handle_command
from chat_actions.handlers.intercept import PLUGIN_ID as INTERCEPT_PLUGIN_ID
from chat_actions.handlers.intercept import InterceptionHook
from chat_actions.llm_providers import ModelProvider, load_provider_registry
from chat_actions.plugins import PluginManager
from chat_actions.presets import load_presets
from chat_actions.runtime import RuntimeContext
from chat_actions.services.delivery import Messenger, TelegramTransport, Transport
from chat_actions.services.formatting import TextRenderer
from chat_actions.services.prompt_builder import MessageTransformer
from chat_actions.tools import ToolRegistry, register_action_tools

logger = logging.getLogger("app_factory")

# Telegram only lists menu commands matching this pattern.
_MENU_COMMAND = re.compile(r"^[a-z0-9_]{1,32}$")


def _resolve_dir(value: str, base_dir: Path) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else (base_dir / path).resolve()


def register_handlers(application: Application) -> None:
    application.add_handler(MessageHandler(filters.COMMAND, handle_command))


def build_application(config: AppConfig) -> Application:
    application = ApplicationBuilder().token(config.telegram_bot_token).build()
    register_handlers(application)
    return application


def install_runtime(application: Application, runtime: RuntimeContext) -> None:
    application.bot_data.update(runtime.to_bot_data())


def menu_commands(router: CommandRouter) -> list[BotCommand]:
    result: list[BotCommand] = []
    for command in router.commands():
        if not _MENU_COMMAND.match(command.name):
            continue
        result.append(BotCommand(command.name, (command.description or command.name)[:256]))
    return result


async def build_runtime(
    *,
    config: AppConfig,
    env_values: Mapping[str, str],
    bot: Any = None,
    bot_id: str = "",
    base_dir: Path | None = None,
    transport: Transport | None = None,
) -> RuntimeContext:
    base = base_dir or Path.cwd()
    provider_registry, provider_models = load_provider_registry(_resolve_dir(config.providers_dir, base), env_values)
    if not provider_models:
        raise ValueError(f"No provider models found in {config.providers_dir}")

    model_provider = ModelProvider(timeout_sec=config.llm_timeout_sec)
    for provider in provider_registry.values():
        await model_provider.register_provider(provider)

    preset_store = load_presets(_resolve_dir(config.presets_dir, base))
    tool_registry = ToolRegistry()
    chain_cache = ChainCache(
        model_provider,
        preset_store,
        tool_registry,
        default_embeddings=config.default_embeddings,
        agent_max_iterations=config.agent_max_iterations,
    )
    bot_names = list(dict.fromkeys([*config.bot_names, bot_id] if bot_id else config.bot_names))
    transformer = MessageTransformer(model_provider)
    runner = ActionRunner(chain_cache, transformer, bot_names, timeout=config.llm_timeout_sec)
    tool_ids = register_action_tools(tool_registry, config.commands, runner)

    plugin_manager = PluginManager()
    if transport is None:
        transport = TelegramTransport(bot, config.formatting_mode, config.allow_raw_html)
    messenger = Messenger(plugin_manager, transport)
    router = CommandRouter(messenger, bot_names)
    renderer = TextRenderer()
    dispatcher = CommandDispatcher(
        router,
        runner,
        model_provider,
        renderer,
        config.commands,
        config.intercept_commands,
    )
    registered = dispatcher.register()
    dispatcher.register_listing()

    interception_hook = InterceptionHook(router, config.intercept_commands, model_provider, runner)
    plugin_manager.register(INTERCEPT_PLUGIN_ID, interception_hook.before_send)

    logger.info(
        "Runtime ready commands=%s intercepts=%s tools=%s presets=%s models=%s",
        len(registered),
        sum(1 for spec in config.intercept_commands if spec.enabled),
        len(tool_ids),
        len(preset_store.list_preset_names()),
        len(model_provider.list_models()),
    )
    return RuntimeContext(
        bot_id=bot_id,
        bot_names=bot_names,
        model_provider=model_provider,
        preset_store=preset_store,
        tool_registry=tool_registry,
        chain_cache=chain_cache,
        transformer=transformer,
        renderer=renderer,
        runner=runner,
        plugin_manager=plugin_manager,
        messenger=messenger,
        router=router,
        dispatcher=dispatcher,
        interception_hook=interception_hook,
    )
