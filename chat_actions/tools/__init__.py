from chat_actions.tools.action_tool import (
    ActionTool,
    ActionToolFactory,
    ActionToolInput,
    register_action_tools,
)
from chat_actions.tools.base import ToolFactory
from chat_actions.tools.registry import ToolRegistry

__all__ = [
    "ActionTool",
    "ActionToolFactory",
    "ActionToolInput",
    "ToolFactory",
    "ToolRegistry",
    "register_action_tools",
]
