from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from chat_actions.errors import PresetNotFound

_ROLE_MESSAGES: dict[str, type[BaseMessage]] = {
    "system": SystemMessage,
    "user": HumanMessage,
    "human": HumanMessage,
    "assistant": AIMessage,
    "ai": AIMessage,
}


@dataclass(frozen=True)
class PresetTemplate:
    name: str
    trigger_keywords: list[str]
    raw_text: str
    messages: list[BaseMessage]
    config: dict[str, Any] = field(default_factory=dict)


def preset_from_instruction(key: str, instruction: str) -> PresetTemplate:
    messages: list[BaseMessage] = []
    if instruction and instruction.strip():
        messages.append(SystemMessage(content=instruction))
    return PresetTemplate(
        name=key,
        trigger_keywords=[key],
        raw_text=instruction,
        messages=messages,
    )


def _parse_preset_file(path: Path, logger: logging.Logger) -> PresetTemplate | None:
    try:
        raw_text = path.read_text(encoding="utf-8")
        raw = json.loads(raw_text)
    except Exception:
        logger.exception("Failed to read preset: %s", path)
        return None

    keywords_raw = raw.get("keywords") or []
    if isinstance(keywords_raw, str):
        keywords_raw = [keywords_raw]
    keywords = [str(item).strip() for item in keywords_raw if str(item).strip()]
    name = str(raw.get("name") or (keywords[0] if keywords else path.stem)).strip()

    messages: list[BaseMessage] = []
    for prompt in raw.get("prompts", []) or []:
        if not isinstance(prompt, dict):
            continue
        role = str(prompt.get("role", "system")).lower()
        message_cls = _ROLE_MESSAGES.get(role)
        if message_cls is None:
            logger.warning("Preset %s has prompt with unknown role %r", name, role)
            continue
        messages.append(message_cls(content=str(prompt.get("content", ""))))

    config = raw.get("config") if isinstance(raw.get("config"), dict) else {}
    return PresetTemplate(
        name=name,
        trigger_keywords=keywords or [name],
        raw_text=raw_text,
        messages=messages,
        config=config,
    )


class PresetStore:
    def __init__(self, presets: list[PresetTemplate] | None = None) -> None:
        self._presets: dict[str, PresetTemplate] = {}
        self._logger = logging.getLogger("presets")
        for preset in presets or []:
            self.add(preset)

    def add(self, preset: PresetTemplate) -> None:
        for keyword in {preset.name, *preset.trigger_keywords}:
            if keyword in self._presets:
                self._logger.warning("Duplicate preset keyword '%s', keeping first", keyword)
                continue
            self._presets[keyword] = preset

    async def get_preset(self, name: str) -> PresetTemplate:
        preset = self._presets.get(name)
        if preset is None:
            raise PresetNotFound(name)
        return preset

    def list_preset_names(self) -> list[str]:
        return sorted({preset.name for preset in self._presets.values()})


def load_presets(presets_dir: Path) -> PresetStore:
    logger = logging.getLogger("presets")
    store = PresetStore()
    if not presets_dir.exists() or not presets_dir.is_dir():
        logger.info("Presets dir not found: %s", presets_dir)
        return store
    for path in sorted(presets_dir.glob("*.json")):
        preset = _parse_preset_file(path, logger)
        if preset:
            store.add(preset)
    logger.info("Loaded presets=%s from %s", len(store.list_preset_names()), presets_dir)
    return store
