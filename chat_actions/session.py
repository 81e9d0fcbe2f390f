from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from telegram import Update

from chat_actions.elements import Element

SendFn = Callable[["Session", list[Element]], Awaitable[None]]


@dataclass
class Session:
    user_id: str
    chat_id: int
    is_direct: bool
    bot_id: str
    username: str = ""
    nick: str = ""
    author_name: str = ""
    event_user_name: str = ""
    guild_id: str | None = None
    message_id: int | None = None
    scope: str | None = None
    elements: list[Element] = field(default_factory=list)
    sender: SendFn | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    async def send(self, elements: list[Element]) -> None:
        if self.sender is None:
            raise RuntimeError("Session has no send capability")
        await self.sender(self, list(elements))


def session_from_update(update: Update, bot_id: str, sender: SendFn | None = None) -> Session:
    message = update.effective_message
    user = update.effective_user
    chat = update.effective_chat
    is_direct = chat is not None and chat.type == "private"
    return Session(
        user_id=str(user.id) if user else "0",
        chat_id=chat.id if chat else 0,
        is_direct=is_direct,
        bot_id=bot_id,
        username=(user.username or "") if user else "",
        nick=(user.full_name or "") if user else "",
        author_name=(user.first_name or "") if user else "",
        guild_id=None if is_direct or chat is None else str(chat.id),
        message_id=message.message_id if message else None,
        sender=sender,
    )
