from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import replace
from typing import Any, Protocol, Sequence

from chat_actions.elements import Element, is_image, is_text
from chat_actions.plugins import PluginManager
from chat_actions.services.formatting import send_formatted_with_fallback
from chat_actions.session import Session
from chat_actions.utils import split_message

logger = logging.getLogger("delivery")


class Transport(Protocol):
    async def deliver(self, session: Session, elements: Sequence[Element]) -> None: ...


def decode_data_url(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not sep or not header.startswith("data:"):
        raise ValueError("Not a data URL")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=False)
        except binascii.Error as exc:
            raise ValueError(f"Invalid base64 payload: {exc}") from exc
    return payload.encode("utf-8")


class Messenger:
    """Outgoing message path: before-send hooks, then the transport.

    Each send works on its own copy of the session, so hooks only see and
    rewrite the message being sent.
    """

    def __init__(self, plugin_manager: PluginManager, transport: Transport) -> None:
        self._plugins = plugin_manager
        self._transport = transport

    async def send(self, session: Session, elements: Sequence[Element]) -> None:
        outgoing = replace(session, elements=list(elements), extra=dict(session.extra))
        await self._plugins.apply_before_send(outgoing)
        if not outgoing.elements:
            logger.info("Nothing to send chat_id=%s scope=%s", session.chat_id, session.scope)
            return
        await self._transport.deliver(outgoing, outgoing.elements)


class TelegramTransport:
    def __init__(self, bot: Any, formatting_mode: str = "html", allow_raw_html: bool = True) -> None:
        self._bot = bot
        self._formatting_mode = formatting_mode
        self._allow_raw_html = allow_raw_html

    async def deliver(self, session: Session, elements: Sequence[Element]) -> None:
        reply_to = session.message_id
        pending_text: list[str] = []

        async def _flush() -> None:
            nonlocal reply_to
            body = "".join(pending_text).strip()
            pending_text.clear()
            if not body:
                return
            for chunk in split_message(body):
                await send_formatted_with_fallback(
                    self._bot,
                    session.chat_id,
                    chunk,
                    reply_to_message_id=reply_to,
                    allow_raw_html=self._allow_raw_html,
                    formatting_mode=self._formatting_mode,
                )
                reply_to = None

        for element in elements:
            if is_text(element):
                pending_text.append(element.content)
                continue
            await _flush()
            if is_image(element):
                src = str(element.attrs.get("src") or element.attrs.get("url") or "")
                if not src:
                    continue
                photo: Any = decode_data_url(src) if src.startswith("data:") else src
                await self._bot.send_photo(chat_id=session.chat_id, photo=photo, reply_to_message_id=reply_to)
                reply_to = None
            else:
                logger.warning("Unsupported element type=%s chat_id=%s", element.type, session.chat_id)
        await _flush()
