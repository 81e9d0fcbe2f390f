from __future__ import annotations


class ActionError(Exception):
    """Base exception for LLM-backed action errors."""


class ModelNotFound(ActionError):
    """Raised when a model reference does not resolve to an available model."""

    def __init__(self, model_ref: str) -> None:
        super().__init__(f"Model '{model_ref}' is not available")
        self.model_ref = model_ref


class EmptyInputRejected(ActionError):
    """Raised when an action that requires input is called without any."""


class CommandResolutionFailed(ActionError):
    """Raised when a command scope cannot be mapped to a registered command."""

    def __init__(self, scope: str) -> None:
        super().__init__(f"Cannot resolve command for scope '{scope}'")
        self.scope = scope


class ToolExecutionFailed(ActionError):
    """Raised when an action tool fails; converted to the tool's string result."""

    def __init__(self, tool_name: str, reason: str) -> None:
        super().__init__(f"Action execution failed: {reason}")
        self.tool_name = tool_name
        self.reason = reason


class ToolRegistrationError(ActionError):
    """Raised when a tool id is empty, duplicated or unknown."""


class ChainBuildFailed(ActionError):
    """Raised when a chain cannot be constructed for an action key."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Failed to build chain '{key}': {reason}")
        self.key = key
        self.reason = reason


class PresetNotFound(ChainBuildFailed):
    """Raised when a preset name is not known to the preset store."""

    def __init__(self, name: str) -> None:
        super().__init__(f"preset:{name}", f"Preset '{name}' is not registered")
        self.name = name
