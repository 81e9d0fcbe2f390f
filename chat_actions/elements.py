from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Any, Iterable

# Marks the one text element that survives a splice.
SENTINEL_ATTR = "x"
SENTINEL_VALUE = 0

_IMG_TAG = re.compile(r"""<img\s+[^>]*?src\s*=\s*(["'])(.*?)\1[^>]*?/?>""", re.IGNORECASE | re.S)


@dataclass
class Element:
    type: str
    attrs: dict[str, Any] = field(default_factory=dict)
    children: list["Element"] = field(default_factory=list)

    @property
    def content(self) -> str:
        return str(self.attrs.get("content", ""))

    def __repr__(self) -> str:
        return f"Element({self.type!r}, {self.attrs!r})"


def text(content: str) -> Element:
    return Element("text", {"content": content})


def image(url: str) -> Element:
    return Element("img", {"src": url})


def is_text(element: Element) -> bool:
    return element.type == "text"


def is_image(element: Element) -> bool:
    return element.type in {"img", "image"}


def parse(content: str) -> list[Element]:
    elements: list[Element] = []
    cursor = 0
    for match in _IMG_TAG.finditer(content):
        if match.start() > cursor:
            elements.append(text(html.unescape(content[cursor:match.start()])))
        elements.append(image(html.unescape(match.group(2))))
        cursor = match.end()
    if cursor < len(content):
        elements.append(text(html.unescape(content[cursor:])))
    return elements


def plain_text(elements: Iterable[Element]) -> str:
    return "".join(element.content for element in elements if is_text(element))


def splice_text(elements: list[Element], llm_result: str) -> list[Element]:
    """Substitute ``llm_result`` as the single text voice of ``elements``.

    The first text element is rewritten and tagged with the sentinel attribute;
    every other text element is dropped. Without any text element a trailing
    one is appended. Non-text elements keep their relative order.

    Several unrelated text fragments collapse into one here; content of all
    but the first is lost.
    """
    result: list[Element] = []
    found = False
    for element in elements:
        if not is_text(element):
            result.append(element)
            continue
        if found:
            continue
        attrs = dict(element.attrs)
        attrs["content"] = llm_result
        attrs[SENTINEL_ATTR] = SENTINEL_VALUE
        result.append(Element(element.type, attrs, list(element.children)))
        found = True
    if not found:
        result.append(text(llm_result))
    return result
