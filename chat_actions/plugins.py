from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from chat_actions.elements import is_text
from chat_actions.session import Session

BeforeSendHook = Callable[[Session], Awaitable[None]]


@dataclass(frozen=True)
class PluginSpec:
    plugin_id: str
    before_send: BeforeSendHook


class PluginManager:
    """Ordered before-send hooks applied to every outgoing message."""

    def __init__(self, plugins: list[PluginSpec] | None = None) -> None:
        self._plugins: list[PluginSpec] = list(plugins or [])
        self._logger = logging.getLogger("plugins")

    @property
    def plugins(self) -> list[PluginSpec]:
        return list(self._plugins)

    def register(self, plugin_id: str, hook: BeforeSendHook) -> None:
        if any(plugin.plugin_id == plugin_id for plugin in self._plugins):
            raise ValueError(f"Plugin '{plugin_id}' already registered")
        self._plugins.append(PluginSpec(plugin_id=plugin_id, before_send=hook))
        self._logger.info("Plugin registered id=%s hook=before_send", plugin_id)

    async def apply_before_send(self, session: Session) -> None:
        for plugin in self._plugins:
            before = list(session.elements)
            try:
                await plugin.before_send(session)
            except Exception:
                self._logger.exception("Plugin failed id=%s hook=before_send", plugin.plugin_id)
                session.elements = before
                continue
            if session.elements != before:
                self._logger.info(
                    "Plugin applied id=%s elements=%s->%s text_nodes=%s",
                    plugin.plugin_id,
                    len(before),
                    len(session.elements),
                    sum(1 for element in session.elements if is_text(element)),
                )
