from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool
from pydantic import BaseModel, Field, SkipValidation

from chat_actions.elements import Element, image
from chat_actions.errors import ToolExecutionFailed, ToolRegistrationError
from chat_actions.models import EMPTY_INPUT_PLACEHOLDER, CommandSpec
from chat_actions.naming import normalize_command_name
from chat_actions.services.prompt_builder import MessageContent, message_content_text
from chat_actions.session import Session

if TYPE_CHECKING:
    from chat_actions.actions import ActionRunner
    from chat_actions.tools.registry import ToolRegistry

logger = logging.getLogger("tools")

DEFAULT_TOOL_DESCRIPTION = "Execute action"
TOOL_ID_PREFIX = "action_"


class ActionToolInput(BaseModel):
    input: str = Field(description="User input for the action")


class ActionTool(BaseTool):
    """Runs a configured action command as a tool with one string input."""

    name: str = ""
    description: str = DEFAULT_TOOL_DESCRIPTION
    args_schema: type[BaseModel] = ActionToolInput
    command: SkipValidation[CommandSpec]
    runner: Any

    def __init__(self, command: CommandSpec, runner: ActionRunner, **kwargs: Any) -> None:
        super().__init__(
            name=normalize_command_name(command.command),
            description=command.description or DEFAULT_TOOL_DESCRIPTION,
            command=command,
            runner=runner,
            **kwargs,
        )

    def _run(self, input: str, **kwargs: Any) -> str:
        raise NotImplementedError("ActionTool supports async invocation only")

    async def _arun(self, input: str, config: RunnableConfig, **kwargs: Any) -> str:
        session = (config.get("configurable") or {}).get("session")
        try:
            if not isinstance(session, Session):
                raise RuntimeError("tool call has no session in its execution context")
            if not input.strip() and not self.command.allow_empty_input:
                input = EMPTY_INPUT_PLACEHOLDER
            result = await self.runner.run(self.command, session, input)
            return await self._process_result(result.content, session)
        except Exception as exc:
            logger.exception("Action tool failed tool=%s", self.name)
            return str(ToolExecutionFailed(self.name, str(exc)))

    async def _process_result(self, content: MessageContent, session: Session) -> str:
        if isinstance(content, str):
            return content

        results: list[str] = []
        send_queue: list[Element] = []
        for part in content:
            if not isinstance(part, dict):
                results.append(str(part))
                continue
            if part.get("type") == "text":
                results.append(str(part.get("text", "")))
            elif part.get("type") == "image_url":
                image_url = part.get("image_url")
                url = image_url if isinstance(image_url, str) else str((image_url or {}).get("url", ""))
                if url.startswith("data:"):
                    send_queue.append(image(url))
                    results.append(f"[image:{url[:12]}]")
                else:
                    results.append(f"Image url:{url}")

        if send_queue:
            await session.send(send_queue)

        if not results:
            return message_content_text(content)
        return "\n\n".join(results)


class ActionToolFactory:
    def __init__(self, command: CommandSpec, runner: ActionRunner) -> None:
        self._command = command
        self._runner = runner

    @property
    def command(self) -> CommandSpec:
        return self._command

    def create_tool(self, model: Any, embeddings: Any) -> BaseTool:
        return ActionTool(self._command, self._runner)

    def describe(self) -> dict[str, Any]:
        return {
            "name": normalize_command_name(self._command.command),
            "description": self._command.description or DEFAULT_TOOL_DESCRIPTION,
            "input_schema": ActionToolInput.model_json_schema(),
        }


def register_action_tools(
    registry: ToolRegistry,
    commands: Iterable[CommandSpec],
    runner: ActionRunner,
) -> list[str]:
    """Register exposed commands as ``action_<name>`` tools.

    Labels that normalize to an id already taken are logged and skipped.
    """
    registered: list[str] = []
    owners: dict[str, str] = {}
    for command in commands:
        if not command.enabled or not command.expose_as_tool:
            continue
        tool_id = TOOL_ID_PREFIX + normalize_command_name(command.command)
        try:
            registry.register(tool_id, ActionToolFactory(command, runner))
        except ToolRegistrationError:
            logger.warning(
                "Skipping tool for command=%s, id=%s already registered by command=%s",
                command.command,
                tool_id,
                owners.get(tool_id, "<existing>"),
            )
            continue
        owners[tool_id] = command.command
        registered.append(tool_id)
    return registered
