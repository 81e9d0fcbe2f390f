from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Sequence, Union

from langchain_core.messages import AIMessage, HumanMessage
from langchain_core.prompts import PromptTemplate

from chat_actions.elements import Element, is_image, is_text
from chat_actions.session import Session

if TYPE_CHECKING:
    from chat_actions.chains import ChainEntry
    from chat_actions.llm_providers import ModelProvider

logger = logging.getLogger("prompt_builder")

MessageContent = Union[str, list[Any]]

IMAGE_PLACEHOLDER = "[image]"


@dataclass(frozen=True)
class TransformedMessage:
    content: MessageContent
    name: str | None = None
    additional_kwargs: dict[str, Any] = field(default_factory=dict)


def message_content_text(content: MessageContent) -> str:
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(str(part.get("text", "")))
    return "".join(parts)


class MessageTransformer:
    """Turns an element tree into model-ready message content.

    All-text input becomes a string. Images become ``image_url`` parts when
    the target model accepts images and a placeholder otherwise.
    """

    def __init__(self, model_provider: ModelProvider | None = None) -> None:
        self._model_provider = model_provider

    def _accepts_images(self, model_ref: str | None) -> bool:
        if self._model_provider is None or not model_ref:
            return True
        model = self._model_provider.resolve(model_ref)
        return bool(model is not None and model.supports_images)

    async def transform(
        self,
        session: Session,
        elements: Sequence[Element],
        model_ref: str | None = None,
    ) -> TransformedMessage:
        accepts_images = self._accepts_images(model_ref)
        text_chunks: list[str] = []
        images: list[str] = []
        for element in elements:
            if is_text(element):
                text_chunks.append(element.content)
            elif is_image(element):
                src = str(element.attrs.get("src") or element.attrs.get("url") or "")
                if not src:
                    continue
                if accepts_images:
                    images.append(src)
                else:
                    text_chunks.append(IMAGE_PLACEHOLDER)
            else:
                logger.debug("Skipping element type=%s", element.type)

        text_content = "".join(text_chunks)
        name = session.username or None
        if not images:
            return TransformedMessage(content=text_content, name=name)
        parts: list[Any] = [{"type": "text", "text": text_content}]
        parts.extend({"type": "image_url", "image_url": {"url": url}} for url in images)
        return TransformedMessage(content=parts, name=name)


async def transform_and_format_message(
    transformer: MessageTransformer,
    session: Session,
    elements: Sequence[Element],
    model_ref: str | None,
    input_template: str | None,
) -> HumanMessage:
    transformed = await transformer.transform(session, elements, model_ref)

    template = PromptTemplate.from_template(input_template or "{input}")
    formatted = template.format(input=message_content_text(transformed.content))

    if isinstance(transformed.content, str):
        content: MessageContent = formatted
    else:
        content = [
            {**part, "text": formatted} if isinstance(part, dict) and part.get("type") == "text" else part
            for part in transformed.content
        ]

    return HumanMessage(
        content=content,
        name=transformed.name,
        id=session.user_id,
        additional_kwargs=dict(transformed.additional_kwargs),
    )


async def invoke_chain(
    entry: ChainEntry,
    message: HumanMessage,
    variables: dict[str, Any],
    session: Session,
    timeout: float | None = None,
) -> AIMessage:
    config = {
        "metadata": {
            "session": session,
            "model": entry.model,
            "user_id": session.user_id,
            "conversation_id": session.guild_id,
        },
        "configurable": {"session": session},
    }
    payload = {"input": message, "chat_history": [], "variables": variables}
    result = await asyncio.wait_for(entry.chain.ainvoke(payload, config=config), timeout=timeout)
    logger.debug("Chain result key=%s content=%r", entry.key, result.content)
    return result
