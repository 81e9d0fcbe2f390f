from __future__ import annotations

import logging
from typing import Any

from chat_actions.errors import ToolRegistrationError
from chat_actions.tools.base import ToolFactory


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, ToolFactory] = {}
        self._logger = logging.getLogger("tools")

    def register(self, tool_id: str, factory: ToolFactory) -> None:
        key = tool_id.strip()
        if not key:
            raise ToolRegistrationError("Tool id cannot be empty")
        if key in self._tools:
            raise ToolRegistrationError(f"Tool '{key}' already registered")
        self._tools[key] = factory
        self._logger.info("Tool registered id=%s", key)

    def get_tool(self, tool_id: str) -> ToolFactory:
        factory = self._tools.get(tool_id.strip())
        if factory is None:
            raise ToolRegistrationError(f"Tool '{tool_id}' is not registered")
        return factory

    def list_tools(self) -> list[str]:
        return sorted(self._tools.keys())

    def describe(self) -> list[dict[str, Any]]:
        result: list[dict[str, Any]] = []
        for tool_id in self.list_tools():
            factory = self._tools[tool_id]
            describe = getattr(factory, "describe", None)
            info = describe() if callable(describe) else {}
            result.append({"id": tool_id, **info})
        return result
