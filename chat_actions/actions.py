from __future__ import annotations

import logging
from typing import Sequence

from langchain_core.messages import AIMessage

from chat_actions.chains import ChainCache
from chat_actions.elements import Element, parse
from chat_actions.models import ActionSpec
from chat_actions.services.prompt_builder import MessageTransformer, invoke_chain, transform_and_format_message
from chat_actions.session import Session
from chat_actions.variables import build_variables


class ActionRunner:
    """Transform, build and invoke steps shared by commands, intercepts and tools."""

    def __init__(
        self,
        chain_cache: ChainCache,
        transformer: MessageTransformer,
        bot_names: Sequence[str] = (),
        timeout: float | None = None,
    ) -> None:
        self._chains = chain_cache
        self._transformer = transformer
        self._bot_names = list(bot_names)
        self._timeout = timeout
        self._logger = logging.getLogger("actions")

    async def run(
        self,
        spec: ActionSpec,
        session: Session,
        message: str | Sequence[Element],
    ) -> AIMessage:
        elements = parse(message) if isinstance(message, str) else list(message)
        human = await transform_and_format_message(
            self._transformer,
            session,
            elements,
            spec.model_ref,
            spec.input_template,
        )
        entry = await self._chains.get_chain(spec.key, spec.model_ref, spec.prompt, spec.chat_mode)
        variables = build_variables(session, self._bot_names, preset=spec.key)
        self._logger.info(
            "Running action key=%s model=%s mode=%s user_id=%s",
            spec.key,
            spec.model_ref,
            spec.chat_mode.value,
            session.user_id,
        )
        return await invoke_chain(entry, human, variables, session, timeout=self._timeout)
