from __future__ import annotations

import logging
from typing import Any, Callable

from langchain_core.messages import BaseMessage

from chat_actions.presets import PresetTemplate
from chat_actions.services.prompt_builder import message_content_text
from chat_actions.variables import render_variables

TokenCounter = Callable[[str], int]


class ChatPromptStage:
    """Builds the message list sent to the model for one invocation.

    Layout: preset messages (variables rendered), then the most recent chat
    history that fits into ``send_token_limit``, then the human input.
    """

    def __init__(self, preset: PresetTemplate, token_counter: TokenCounter, send_token_limit: int) -> None:
        self._preset = preset
        self._token_counter = token_counter
        self._send_token_limit = send_token_limit
        self._logger = logging.getLogger("prompt")

    @property
    def preset(self) -> PresetTemplate:
        return self._preset

    @property
    def send_token_limit(self) -> int:
        return self._send_token_limit

    def _count(self, message: BaseMessage) -> int:
        return self._token_counter(message_content_text(message.content))

    def _render(self, message: BaseMessage, variables: dict[str, Any]) -> BaseMessage:
        if not isinstance(message.content, str):
            return message
        return message.model_copy(update={"content": render_variables(message.content, variables)})

    async def aformat(self, chain_input: dict[str, Any]) -> list[BaseMessage]:
        variables = chain_input.get("variables") or {}
        human: BaseMessage = chain_input["input"]
        history: list[BaseMessage] = list(chain_input.get("chat_history") or [])

        preset_messages = [self._render(message, variables) for message in self._preset.messages]
        used = sum(self._count(message) for message in preset_messages) + self._count(human)
        if used > self._send_token_limit:
            self._logger.warning(
                "Prompt exceeds token limit preset=%s used=%s limit=%s",
                self._preset.name,
                used,
                self._send_token_limit,
            )

        kept: list[BaseMessage] = []
        for message in reversed(history):
            cost = self._count(message)
            if used + cost > self._send_token_limit:
                break
            kept.append(message)
            used += cost
        kept.reverse()

        return [*preset_messages, *kept, human]
