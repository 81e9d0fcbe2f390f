import asyncio

from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from chat_actions.agent import MAX_ITERATIONS_MESSAGE, ToolCallingAgent
from chat_actions.chains import ChainCache
from chat_actions.models import ChatMode, InstructionPrompt
from chat_actions.presets import preset_from_instruction
from chat_actions.prompt import ChatPromptStage
from chat_actions.tools import ToolRegistry, register_action_tools
from tests.fakes import CountingPresetStore, FakeModel, FakeModelProvider, FakeRunner, make_command, make_session


def _tool_call(name: str, value: str, call_id: str = "c1") -> AIMessage:
    return AIMessage(content="", tool_calls=[{"name": name, "args": {"input": value}, "id": call_id}])


def test_agent_chain_calls_action_tool_with_session() -> None:
    model = FakeModel(replies=[_tool_call("search", "cats"), "cats are great"])
    provider = FakeModelProvider({"fake:model": model}, {"fake:embed": object()})
    registry = ToolRegistry()
    runner = FakeRunner("cat facts")
    register_action_tools(registry, [make_command("search", expose_as_tool=True)], runner)
    cache = ChainCache(provider, CountingPresetStore(), registry, default_embeddings="fake:embed")
    session = make_session()

    async def _run():
        entry = await cache.get_chain("assistant", "fake:model", InstructionPrompt("Use tools."), ChatMode.AGENT)
        return await entry.chain.ainvoke(
            {"input": HumanMessage(content="tell me about cats"), "chat_history": [], "variables": {}},
            config={"metadata": {"user_id": "42"}, "configurable": {"session": session}},
        )

    result = asyncio.run(_run())

    assert isinstance(result, AIMessage)
    assert result.content == "cats are great"
    assert runner.calls[0][1] is session
    assert runner.calls[0][2] == "cats"
    assert model.calls[0]["tools"][0]["function"]["name"] == "search"
    tool_message = model.calls[1]["messages"][-1]
    assert isinstance(tool_message, ToolMessage)
    assert tool_message.content == "cat facts"


def test_agent_stops_at_max_iterations() -> None:
    model = FakeModel(replies=[_tool_call("missing", "x", f"c{i}") for i in range(3)])
    stage = ChatPromptStage(preset_from_instruction("a", "sys"), len, 1000)
    agent = ToolCallingAgent(model, [], stage, max_iterations=2)

    output = asyncio.run(agent.arun({"input": HumanMessage(content="go"), "variables": {}}))

    assert output == MAX_ITERATIONS_MESSAGE
    assert len(model.calls) == 2
    unknown = model.calls[1]["messages"][-1]
    assert isinstance(unknown, ToolMessage)
    assert "does not exist" in unknown.content


def test_prompt_stage_keeps_newest_history_within_token_limit() -> None:
    stage = ChatPromptStage(preset_from_instruction("a", "sys"), len, 12)
    history = [HumanMessage(content="old-old"), AIMessage(content="new")]

    messages = asyncio.run(stage.aformat({"input": HumanMessage(content="hi"), "chat_history": history}))

    assert [m.content for m in messages] == ["sys", "new", "hi"]
