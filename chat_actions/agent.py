from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool
from langchain_core.utils.function_calling import convert_to_openai_tool

from chat_actions.prompt import ChatPromptStage
from chat_actions.services.prompt_builder import message_content_text

MAX_ITERATIONS_MESSAGE = "Agent stopped due to max iterations."


class ChatModelHandle(Protocol):
    @property
    def model_ref(self) -> str: ...

    @property
    def supports_images(self) -> bool: ...

    def get_num_tokens(self, text: str) -> int: ...

    def max_context_tokens(self) -> int: ...

    def configured_token_limit(self) -> int | None: ...

    async def ainvoke(
        self,
        messages: Sequence[BaseMessage],
        *,
        tools: list[dict[str, Any]] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AIMessage: ...


class ToolCallingAgent:
    def __init__(
        self,
        model: ChatModelHandle,
        tools: Sequence[BaseTool],
        prompt: ChatPromptStage,
        max_iterations: int = 10,
    ) -> None:
        self._model = model
        self._tools = {tool.name: tool for tool in tools}
        self._tool_specs = [convert_to_openai_tool(tool) for tool in tools]
        self._prompt = prompt
        self._max_iterations = max_iterations
        self._logger = logging.getLogger("agent")

    @property
    def tools(self) -> list[BaseTool]:
        return list(self._tools.values())

    async def _run_tool(self, call: dict[str, Any], config: RunnableConfig | None) -> ToolMessage:
        name = call.get("name", "")
        call_id = call.get("id") or name
        tool = self._tools.get(name)
        if tool is None:
            self._logger.warning("Agent requested unknown tool=%s", name)
            return ToolMessage(content=f"Tool '{name}' does not exist.", tool_call_id=call_id, name=name)
        try:
            output = await tool.ainvoke(call.get("args") or {}, config=config)
        except Exception as exc:
            self._logger.exception("Agent tool failed tool=%s", name)
            return ToolMessage(content=f"Tool '{name}' failed: {exc}", tool_call_id=call_id, name=name)
        content = output if isinstance(output, str) else message_content_text(getattr(output, "content", str(output)))
        return ToolMessage(content=content, tool_call_id=call_id, name=name)

    async def arun(self, chain_input: dict[str, Any], config: RunnableConfig | None = None) -> str:
        messages = await self._prompt.aformat(chain_input)
        metadata = dict((config or {}).get("metadata") or {})
        for step in range(self._max_iterations):
            reply = await self._model.ainvoke(messages, tools=self._tool_specs or None, metadata=metadata)
            messages.append(reply)
            if not reply.tool_calls:
                return message_content_text(reply.content)
            self._logger.info(
                "Agent step=%s tool_calls=%s",
                step + 1,
                [call.get("name") for call in reply.tool_calls],
            )
            for call in reply.tool_calls:
                messages.append(await self._run_tool(call, config))
        self._logger.warning("Agent reached max_iterations=%s", self._max_iterations)
        return MAX_ITERATIONS_MESSAGE

    async def ainvoke(self, chain_input: dict[str, Any], config: RunnableConfig) -> AIMessage:
        output = await self.arun(chain_input, config)
        return AIMessage(content=output)
