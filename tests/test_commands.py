import asyncio

import pytest

from chat_actions.actions import ActionRunner
from chat_actions.chains import ChainCache
from chat_actions.errors import CommandResolutionFailed
from chat_actions.handlers.commands import (
    EMPTY_INPUT_PLACEHOLDER,
    NO_MODEL_MESSAGE,
    CommandDispatcher,
    CommandRouter,
)
from chat_actions.plugins import PluginManager
from chat_actions.services.delivery import Messenger
from chat_actions.services.formatting import TextRenderer
from chat_actions.services.prompt_builder import MessageTransformer
from chat_actions.tools import ToolRegistry
from tests.fakes import CountingPresetStore, FakeModel, FakeModelProvider, FakeRunner, FakeTransport, make_command, make_session


def _dispatcher(provider, runner, commands, router=None):
    router = router or CommandRouter()
    dispatcher = CommandDispatcher(router, runner, provider, TextRenderer(), commands)
    dispatcher.register()
    return router, dispatcher


def test_unresolved_model_returns_apology_without_build_or_call() -> None:
    model = FakeModel()
    provider = FakeModelProvider({"fake:model": model})
    presets = CountingPresetStore()
    cache = ChainCache(provider, presets, ToolRegistry())
    runner = ActionRunner(cache, MessageTransformer(provider))
    spec = make_command(model_ref="missing:model")
    _, dispatcher = _dispatcher(provider, runner, [spec])

    result = asyncio.run(dispatcher.execute(spec, make_session(), "hi"))

    assert [el.content for el in result] == [NO_MODEL_MESSAGE]
    assert cache.peek(spec.key) is None
    assert presets.calls == 0
    assert model.calls == []


def test_empty_input_uses_placeholder() -> None:
    provider = FakeModelProvider({"fake:model": FakeModel()})
    runner = FakeRunner("fine")
    spec = make_command()
    _, dispatcher = _dispatcher(provider, runner, [spec])

    asyncio.run(dispatcher.execute(spec, make_session(), "   "))

    message = runner.calls[0][2]
    assert [el.content for el in message] == [EMPTY_INPUT_PLACEHOLDER]


def test_end_to_end_command_renders_model_reply() -> None:
    model = FakeModel(replies=["translated <b>text</b>"])
    provider = FakeModelProvider({"fake:model": model})
    cache = ChainCache(provider, CountingPresetStore(), ToolRegistry())
    runner = ActionRunner(cache, MessageTransformer(provider), ["helper"])
    spec = make_command("translate", input_template="Translate: {input}")
    _, dispatcher = _dispatcher(provider, runner, [spec])

    result = asyncio.run(dispatcher.execute(spec, make_session(), "hola"))

    assert [el.content for el in result] == ["translated <b>text</b>"]
    sent = model.calls[0]["messages"]
    assert sent[-1].content == "Translate: hola"
    assert model.calls[0]["metadata"]["user_id"] == "42"


def test_runner_error_becomes_reply_text() -> None:
    provider = FakeModelProvider({"fake:model": FakeModel()})
    spec = make_command()
    _, dispatcher = _dispatcher(provider, FakeRunner(error=RuntimeError("boom")), [spec])

    result = asyncio.run(dispatcher.execute(spec, make_session(), "hi"))

    assert len(result) == 1
    assert "boom" in result[0].content


def test_disabled_commands_are_not_registered() -> None:
    provider = FakeModelProvider()
    router, dispatcher = _dispatcher(provider, FakeRunner(), [make_command("on"), make_command("off", enabled=False)])

    assert [command.name for command in router.commands()] == ["on"]
    assert dispatcher.register_listing() is True
    assert router.resolve("actions") is not None


def test_router_dispatch_sets_scope_and_sends() -> None:
    provider = FakeModelProvider({"fake:model": FakeModel()})
    transport = FakeTransport()
    router = CommandRouter(Messenger(PluginManager(), transport), ["helper_bot"])
    _dispatcher(provider, FakeRunner("reply"), [make_command("帮助")], router)
    session = make_session()

    handled = asyncio.run(router.dispatch(session, "/帮助@helper_bot what now"))

    assert handled is True
    assert session.scope == "commands.帮助.messages"
    delivered_session, elements = transport.deliveries[0]
    assert [el.content for el in elements] == ["reply"]
    assert delivered_session.chat_id == session.chat_id


def test_router_ignores_other_bots_and_unknown_commands() -> None:
    router = CommandRouter(bot_names=["helper_bot"])
    _dispatcher(FakeModelProvider(), FakeRunner(), [make_command("ask")], router)

    assert asyncio.run(router.dispatch(make_session(), "/ask@other_bot hi")) is False
    assert asyncio.run(router.dispatch(make_session(), "/unknown")) is False
    assert asyncio.run(router.dispatch(make_session(), "plain text")) is False


def test_resolve_scope() -> None:
    router = CommandRouter()
    _dispatcher(FakeModelProvider(), FakeRunner(), [make_command("v1.2")], router)

    assert router.resolve_scope("commands.v1.2.messages") == "v1.2"
    with pytest.raises(CommandResolutionFailed):
        router.resolve_scope("commands.nope.messages")
    with pytest.raises(CommandResolutionFailed):
        router.resolve_scope("messages")


def test_actions_listing_mentions_tools() -> None:
    specs = [make_command("search", expose_as_tool=True, description="Find things")]
    _, dispatcher = _dispatcher(FakeModelProvider(), FakeRunner(), specs)

    result = asyncio.run(dispatcher.list_actions(make_session(), ""))

    assert "/search - Find things (tool: action_search)" in result[0].content
