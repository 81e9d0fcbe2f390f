import asyncio
import json

import pytest

from chat_actions.app_factory import build_runtime, menu_commands
from chat_actions.config import load_config
from tests.fakes import FakeTransport


def _setup(tmp_path) -> None:
    (tmp_path / "llm_providers").mkdir()
    (tmp_path / "llm_providers" / "local.json").write_text(
        json.dumps({"id": "local", "base_url": "http://llm.test/v1", "models": [{"id": "chat-1"}]}),
        encoding="utf-8",
    )
    (tmp_path / "config.json").write_text(
        json.dumps(
            {
                "telegram_bot_token": "t",
                "commands": [
                    {"command": "search", "model": "local:chat-1", "register_as_tool": True},
                    {"command": "帮助", "model": "local:chat-1"},
                ],
                "intercept_commands": [{"command": "search", "model": "local:chat-1"}],
            }
        ),
        encoding="utf-8",
    )


def test_build_runtime_wires_services(tmp_path) -> None:
    _setup(tmp_path)
    config = load_config(tmp_path / "config.json")

    async def _run():
        runtime = await build_runtime(
            config=config,
            env_values={},
            bot_id="helper_bot",
            base_dir=tmp_path,
            transport=FakeTransport(),
        )
        try:
            return (
                runtime.bot_names,
                runtime.tool_registry.list_tools(),
                [command.name for command in runtime.router.commands()],
                [plugin.plugin_id for plugin in runtime.plugin_manager.plugins],
                [command.command for command in menu_commands(runtime.router)],
            )
        finally:
            await runtime.aclose()

    bot_names, tools, commands, plugins, menu = asyncio.run(_run())
    assert bot_names == ["helper_bot"]
    assert tools == ["action_search"]
    assert commands == ["actions", "search", "帮助"]
    assert plugins == ["intercept"]
    assert menu == ["actions", "search"]


def test_build_runtime_requires_models(tmp_path) -> None:
    (tmp_path / "config.json").write_text(json.dumps({"telegram_bot_token": "t"}), encoding="utf-8")
    config = load_config(tmp_path / "config.json")

    with pytest.raises(ValueError):
        asyncio.run(build_runtime(config=config, env_values={}, base_dir=tmp_path, transport=FakeTransport()))
