from __future__ import annotations

from typing import Any, Sequence

from langchain_core.messages import AIMessage, BaseMessage

from chat_actions.elements import Element
from chat_actions.llm_providers import MODEL_ADDED, MODEL_REMOVED
from chat_actions.models import ChatMode, CommandSpec, InstructionPrompt, InterceptSpec, PromptSource
from chat_actions.presets import PresetStore
from chat_actions.services.prompt_builder import message_content_text
from chat_actions.session import Session


class FakeModel:
    """Chat model double: replays queued replies or echoes the last message."""

    def __init__(
        self,
        model_ref: str = "fake:model",
        replies: Sequence[Any] = (),
        supports_images: bool = False,
        error: Exception | None = None,
    ) -> None:
        self.model_ref = model_ref
        self.supports_images = supports_images
        self.error = error
        self.calls: list[dict[str, Any]] = []
        self._replies = list(replies)

    def get_num_tokens(self, text: str) -> int:
        return len(text)

    def max_context_tokens(self) -> int:
        return 4096

    def configured_token_limit(self) -> int | None:
        return None

    async def ainvoke(
        self,
        messages: Sequence[BaseMessage],
        *,
        tools: list[dict[str, Any]] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AIMessage:
        self.calls.append({"messages": list(messages), "tools": tools, "metadata": metadata})
        if self.error is not None:
            raise self.error
        if self._replies:
            reply = self._replies.pop(0)
            return reply if isinstance(reply, AIMessage) else AIMessage(content=reply)
        return AIMessage(content=f"echo:{message_content_text(messages[-1].content)}")


class FakeModelProvider:
    def __init__(self, models: dict[str, Any] | None = None, embeddings: dict[str, Any] | None = None) -> None:
        self.models = dict(models or {})
        self.embeddings = dict(embeddings or {})
        self.listeners: list[Any] = []
        self.resolve_calls = 0

    def resolve(self, model_ref: str | None) -> Any:
        self.resolve_calls += 1
        return self.models.get(model_ref) if model_ref else None

    def resolve_embeddings(self, model_ref: str | None) -> Any:
        return self.embeddings.get(model_ref) if model_ref else None

    def subscribe(self, listener: Any) -> None:
        self.listeners.append(listener)

    def unsubscribe(self, listener: Any) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    def add(self, model_ref: str, model: Any) -> None:
        self.models[model_ref] = model
        for listener in list(self.listeners):
            listener(MODEL_ADDED, model_ref.split(":", 1)[0])

    def remove(self, model_ref: str) -> None:
        self.models.pop(model_ref, None)
        for listener in list(self.listeners):
            listener(MODEL_REMOVED, model_ref.split(":", 1)[0])


class CountingPresetStore(PresetStore):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.calls = 0

    async def get_preset(self, name: str):
        self.calls += 1
        return await super().get_preset(name)


class FakeTransport:
    def __init__(self) -> None:
        self.deliveries: list[tuple[Session, list[Element]]] = []

    async def deliver(self, session: Session, elements: Sequence[Element]) -> None:
        self.deliveries.append((session, list(elements)))


class FakeRunner:
    def __init__(self, content: Any = "ok", error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.calls: list[tuple[Any, Session, Any]] = []

    async def run(self, spec: Any, session: Session, message: Any) -> AIMessage:
        self.calls.append((spec, session, message))
        if self.error is not None:
            raise self.error
        return AIMessage(content=self.content)


def make_session(**overrides: Any) -> Session:
    values: dict[str, Any] = {
        "user_id": "42",
        "chat_id": 100,
        "is_direct": True,
        "bot_id": "test_bot",
        "username": "alice",
    }
    values.update(overrides)
    return Session(**values)


def make_command(
    command: str = "ask",
    model_ref: str = "fake:model",
    prompt: PromptSource | None = None,
    chat_mode: ChatMode = ChatMode.CHAT,
    **overrides: Any,
) -> CommandSpec:
    values: dict[str, Any] = {
        "key": command,
        "command": command,
        "enabled": True,
        "model_ref": model_ref,
        "description": f"{command} command",
        "chat_mode": chat_mode,
        "prompt": prompt or InstructionPrompt("You are helpful."),
    }
    values.update(overrides)
    return CommandSpec(**values)


def make_intercept(
    target: str = "ask",
    model_ref: str = "fake:model",
    prompt: PromptSource | None = None,
    **overrides: Any,
) -> InterceptSpec:
    values: dict[str, Any] = {
        "key": f"intercept:{target}",
        "command": target,
        "enabled": True,
        "model_ref": model_ref,
        "description": "",
        "chat_mode": ChatMode.CHAT,
        "prompt": prompt or InstructionPrompt("Rewrite politely."),
        "target_command": target,
    }
    values.update(overrides)
    return InterceptSpec(**values)
