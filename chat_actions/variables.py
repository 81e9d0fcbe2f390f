from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Sequence

from chat_actions.session import Session

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][\w.]*)\}")
_MISSING = object()


def _first_not_empty(*values: str | None) -> str:
    for value in values:
        if value:
            return value
    return ""


def build_variables(
    session: Session,
    bot_names: Sequence[str],
    preset: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Template variables for one invocation. Never reuse across calls."""
    current = now or datetime.now()
    return {
        "name": bot_names[0] if bot_names else "",
        "date": current.strftime("%Y-%m-%d %H:%M:%S"),
        "bot_id": session.bot_id,
        "is_group": str(not session.is_direct or session.guild_id is not None).lower(),
        "is_private": str(session.is_direct).lower(),
        "user_id": session.user_id or "0",
        "user": _first_not_empty(
            session.nick,
            session.author_name,
            session.event_user_name,
            session.username,
        ),
        "built": {
            "preset": preset or "",
            "conversation_id": session.guild_id,
        },
        "noop": "",
        "time": current.strftime("%H:%M:%S"),
        "weekday": current.strftime("%A"),
    }


def _lookup(variables: dict[str, Any], path: str) -> Any:
    current: Any = variables
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def render_variables(text: str, variables: dict[str, Any]) -> str:
    def _repl(match: re.Match[str]) -> str:
        value = _lookup(variables, match.group(1))
        if value is _MISSING or isinstance(value, dict):
            return match.group(0)
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_repl, text)
