from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from chat_actions.models import (
    ChatMode,
    CommandSpec,
    InstructionPrompt,
    InterceptPosition,
    InterceptSpec,
    PresetPrompt,
    PromptKind,
    PromptSource,
)

logger = logging.getLogger("config")

DEFAULT_INPUT_TEMPLATE = "{input}"
INTERCEPT_KEY_PREFIX = "intercept:"

_CHAT_MODE_ALIASES = {
    "chat": ChatMode.CHAT,
    "agent": ChatMode.AGENT,
    "plugin": ChatMode.AGENT,
}
_INTERCEPT_POSITION_ALIASES = {
    "after": InterceptPosition.AFTER,
    "before-send": InterceptPosition.AFTER,
}


@dataclass(frozen=True)
class AppConfig:
    telegram_bot_token: str
    bot_names: list[str]
    log_level: str
    llm_timeout_sec: int
    agent_max_iterations: int
    default_embeddings: str | None
    allow_raw_html: bool
    formatting_mode: str
    providers_dir: str
    presets_dir: str
    commands: list[CommandSpec]
    intercept_commands: list[InterceptSpec]


def load_dotenv(path: str | Path) -> dict[str, str]:
    env_path = Path(path)
    if not env_path.exists():
        return {}
    result: dict[str, str] = {}
    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
            value = value[1:-1]
        result[key] = value
    return result


def _parse_chat_mode(raw: Any, label: str) -> ChatMode:
    value = str(raw or "chat").strip().lower()
    mode = _CHAT_MODE_ALIASES.get(value)
    if mode is None:
        logger.warning("Unknown chat_mode=%r for command=%s, using chat", raw, label)
        return ChatMode.CHAT
    return mode


def _parse_prompt(entry: dict[str, Any], label: str) -> PromptSource:
    raw_kind = str(entry.get("prompt_type") or PromptKind.INSTRUCTION.value).strip().lower()
    if raw_kind not in {kind.value for kind in PromptKind}:
        logger.warning("Unknown prompt_type=%r for command=%s, using instruction", raw_kind, label)
        raw_kind = PromptKind.INSTRUCTION.value
    if raw_kind == PromptKind.PRESET.value:
        preset = str(entry.get("preset") or "").strip()
        if preset:
            return PresetPrompt(preset)
        logger.warning("Command=%s has prompt_type=preset but no preset, using instruction", label)
    return InstructionPrompt(str(entry.get("prompt") or ""))


def _parse_label(entry: Any, section: str, index: int) -> str:
    if not isinstance(entry, dict):
        raise ValueError(f"{section}[{index}] must be an object")
    label = str(entry.get("command") or "").strip()
    if not label:
        raise ValueError(f"{section}[{index}] is missing 'command'")
    return label


def parse_command_spec(entry: dict[str, Any], index: int = 0) -> CommandSpec:
    label = _parse_label(entry, "commands", index)
    return CommandSpec(
        key=label,
        command=label,
        enabled=bool(entry.get("enabled", True)),
        model_ref=str(entry.get("model") or "").strip(),
        description=str(entry.get("description") or ""),
        chat_mode=_parse_chat_mode(entry.get("chat_mode"), label),
        prompt=_parse_prompt(entry, label),
        input_template=str(entry.get("input_prompt") or DEFAULT_INPUT_TEMPLATE),
        expose_as_tool=bool(entry.get("register_as_tool", False)),
        allow_empty_input=bool(entry.get("allow_empty_input", False)),
    )


def parse_intercept_spec(entry: dict[str, Any], index: int = 0) -> InterceptSpec:
    target = _parse_label(entry, "intercept_commands", index)
    raw_position = str(entry.get("intercept_position") or InterceptPosition.AFTER.value).strip().lower()
    position = _INTERCEPT_POSITION_ALIASES.get(raw_position)
    if position is None:
        logger.warning("Unknown intercept_position=%r for command=%s, using after", raw_position, target)
        position = InterceptPosition.AFTER
    return InterceptSpec(
        key=f"{INTERCEPT_KEY_PREFIX}{target}",
        command=target,
        enabled=bool(entry.get("enabled", True)),
        model_ref=str(entry.get("model") or "").strip(),
        description=str(entry.get("description") or ""),
        chat_mode=_parse_chat_mode(entry.get("chat_mode"), target),
        prompt=_parse_prompt(entry, target),
        target_command=target,
        input_template=str(entry.get("input_prompt") or DEFAULT_INPUT_TEMPLATE),
        intercept_position=position,
        expose_as_tool=bool(entry.get("register_as_tool", False)),
        allow_empty_input=bool(entry.get("allow_empty_input", True)),
    )


def _parse_list(raw: Any, section: str) -> list[Any]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"'{section}' must be a list")
    return raw


def _ensure_unique(labels: list[str], section: str) -> None:
    seen: set[str] = set()
    for label in labels:
        if label in seen:
            raise ValueError(f"Duplicate {section} entry '{label}'")
        seen.add(label)


def load_config(path: str | Path) -> AppConfig:
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    llm_raw = raw.get("llm", {}) or {}
    formatting_raw = raw.get("formatting", {}) or {}
    paths_raw = raw.get("paths", {}) or {}

    commands = [parse_command_spec(entry, i) for i, entry in enumerate(_parse_list(raw.get("commands"), "commands"))]
    intercepts = [
        parse_intercept_spec(entry, i)
        for i, entry in enumerate(_parse_list(raw.get("intercept_commands"), "intercept_commands"))
    ]
    _ensure_unique([spec.command for spec in commands], "commands")
    _ensure_unique([spec.target_command for spec in intercepts], "intercept_commands")

    bot_names_raw = raw.get("bot_names", [])
    if not isinstance(bot_names_raw, list):
        bot_names_raw = [bot_names_raw]
    bot_names = [str(item).strip() for item in bot_names_raw if str(item).strip()]

    default_embeddings = str(llm_raw.get("default_embeddings") or "").strip() or None

    return AppConfig(
        telegram_bot_token=raw["telegram_bot_token"],
        bot_names=bot_names,
        log_level=str(raw.get("log_level", "INFO")).upper(),
        llm_timeout_sec=int(llm_raw.get("timeout_sec", 600)),
        agent_max_iterations=int(llm_raw.get("agent_max_iterations", 10)),
        default_embeddings=default_embeddings,
        allow_raw_html=bool(formatting_raw.get("allow_raw_html", True)),
        formatting_mode=str(formatting_raw.get("mode", "html")).lower(),
        providers_dir=str(paths_raw.get("providers", "llm_providers")),
        presets_dir=str(paths_raw.get("presets", "presets")),
        commands=commands,
        intercept_commands=intercepts,
    )
