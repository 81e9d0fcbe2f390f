from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

EMPTY_INPUT_PLACEHOLDER = "[ ]"


class ChatMode(str, Enum):
    CHAT = "chat"
    AGENT = "agent"


class PromptKind(str, Enum):
    INSTRUCTION = "instruction"
    PRESET = "preset"


class InterceptPosition(str, Enum):
    # After the command produced its reply, before the reply is sent.
    AFTER = "after"


@dataclass(frozen=True)
class InstructionPrompt:
    text: str

    @property
    def kind(self) -> PromptKind:
        return PromptKind.INSTRUCTION


@dataclass(frozen=True)
class PresetPrompt:
    name: str

    @property
    def kind(self) -> PromptKind:
        return PromptKind.PRESET


PromptSource = Union[InstructionPrompt, PresetPrompt]


@dataclass(frozen=True)
class CommandSpec:
    key: str
    command: str
    enabled: bool
    model_ref: str
    description: str
    chat_mode: ChatMode
    prompt: PromptSource
    input_template: str = "{input}"
    expose_as_tool: bool = False
    allow_empty_input: bool = False


@dataclass(frozen=True)
class InterceptSpec:
    key: str
    command: str
    enabled: bool
    model_ref: str
    description: str
    chat_mode: ChatMode
    prompt: PromptSource
    target_command: str
    input_template: str = "{input}"
    intercept_position: InterceptPosition = InterceptPosition.AFTER
    expose_as_tool: bool = False
    allow_empty_input: bool = True


ActionSpec = Union[CommandSpec, InterceptSpec]
