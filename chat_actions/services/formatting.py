from __future__ import annotations

import html
import re
from typing import Any

from telegram.constants import ParseMode
from telegram.error import BadRequest

from chat_actions.elements import Element, image, parse, text
from chat_actions.services.prompt_builder import MessageContent

RENDER_TYPES = ("text", "raw")


def _markdown_to_html_simple(source: str) -> str:
    escaped = html.escape(source)

    codeblocks: list[str] = []

    def _codeblock_repl(match: re.Match[str]) -> str:
        codeblocks.append(match.group(1))
        return f"__CODEBLOCK_{len(codeblocks) - 1}__"

    escaped = re.sub(r"```(?:[^\n]*)\n?(.*?)```", _codeblock_repl, escaped, flags=re.S)

    inline_codes: list[str] = []

    def _inline_code_repl(match: re.Match[str]) -> str:
        inline_codes.append(match.group(1))
        return f"__INLINECODE_{len(inline_codes) - 1}__"

    escaped = re.sub(r"`([^`]+)`", _inline_code_repl, escaped)

    escaped = re.sub(r"\*\*(.+?)\*\*", r"<b>\1</b>", escaped)
    escaped = re.sub(r"~~(.+?)~~", r"<s>\1</s>", escaped)
    escaped = re.sub(r"(?<!\w)\*(?!\s)(.+?)(?<!\s)\*(?!\w)", r"<i>\1</i>", escaped)

    for i, code in enumerate(inline_codes):
        escaped = escaped.replace(f"__INLINECODE_{i}__", f"<code>{code}</code>")

    for i, code in enumerate(codeblocks):
        escaped = escaped.replace(f"__CODEBLOCK_{i}__", f"<pre><code>{code}</code></pre>")

    return escaped


def render_llm_text(source: str, formatting_mode: str, allow_raw_html: bool) -> str:
    if formatting_mode == "markdown":
        return source
    if not allow_raw_html:
        return html.escape(source)
    return _markdown_to_html_simple(source)


class TextRenderer:
    """Turns model output content into outgoing elements.

    ``text`` parses inline ``<img>`` tags out of string content, ``raw`` keeps
    the string as a single text element. Multi-part content maps text parts to
    text elements and ``image_url`` parts to image elements.
    """

    def render(self, content: MessageContent, render_type: str = "text") -> list[Element]:
        if render_type not in RENDER_TYPES:
            raise ValueError(f"Unknown render type: {render_type}")
        if isinstance(content, str):
            return self._render_string(content, render_type)

        elements: list[Element] = []
        for part in content:
            if isinstance(part, str):
                elements.extend(self._render_string(part, render_type))
            elif isinstance(part, dict) and part.get("type") == "text":
                elements.extend(self._render_string(str(part.get("text", "")), render_type))
            elif isinstance(part, dict) and part.get("type") == "image_url":
                image_url = part.get("image_url")
                url = image_url if isinstance(image_url, str) else str((image_url or {}).get("url", ""))
                if url:
                    elements.append(image(url))
        return elements

    def _render_string(self, source: str, render_type: str) -> list[Element]:
        if render_type == "raw":
            return [text(source)]
        return parse(source)


async def send_formatted_with_fallback(
    bot: Any,
    chat_id: int,
    message: str,
    reply_to_message_id: int | None = None,
    allow_raw_html: bool = True,
    formatting_mode: str = "html",
) -> None:
    mode = formatting_mode.lower()
    body = render_llm_text(message, mode, allow_raw_html)
    parse_mode = ParseMode.MARKDOWN if mode == "markdown" else ParseMode.HTML
    escaped = html.escape(message)

    try:
        await bot.send_message(
            chat_id=chat_id,
            text=body,
            parse_mode=parse_mode,
            reply_to_message_id=reply_to_message_id,
        )
    except BadRequest:
        if parse_mode is ParseMode.HTML and body == escaped:
            raise
        await bot.send_message(
            chat_id=chat_id,
            text=escaped,
            parse_mode=ParseMode.HTML,
            reply_to_message_id=reply_to_message_id,
        )
