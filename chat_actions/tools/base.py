from __future__ import annotations

from typing import Any, Protocol

from langchain_core.tools import BaseTool


class ToolFactory(Protocol):
    """Creates a tool instance bound to the model and embeddings of a chain."""

    def create_tool(self, model: Any, embeddings: Any) -> BaseTool: ...
