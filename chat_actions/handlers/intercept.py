from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from chat_actions.chains import ModelResolver
from chat_actions.elements import splice_text
from chat_actions.errors import CommandResolutionFailed
from chat_actions.handlers.commands import CommandRouter
from chat_actions.models import InterceptSpec
from chat_actions.services.prompt_builder import message_content_text
from chat_actions.session import Session

if TYPE_CHECKING:
    from chat_actions.actions import ActionRunner

logger = logging.getLogger("intercept")

PLUGIN_ID = "intercept"


class InterceptionHook:
    """Rewrites the reply of a command through its intercept chain before sending.

    Any failure leaves the outgoing elements as they were.
    """

    def __init__(
        self,
        router: CommandRouter,
        intercepts: Sequence[InterceptSpec],
        model_provider: ModelResolver,
        runner: ActionRunner,
    ) -> None:
        self._router = router
        self._models = model_provider
        self._runner = runner
        self._by_target: dict[str, InterceptSpec] = {}
        for spec in intercepts:
            if not spec.enabled:
                continue
            if spec.target_command in self._by_target:
                logger.warning(
                    "Duplicate intercept for command=%s, keeping %s",
                    spec.target_command,
                    self._by_target[spec.target_command].command,
                )
                continue
            self._by_target[spec.target_command] = spec

    def find(self, command_name: str) -> InterceptSpec | None:
        return self._by_target.get(command_name)

    async def before_send(self, session: Session) -> None:
        if not session.scope:
            return
        try:
            command_name = self._router.resolve_scope(session.scope)
        except CommandResolutionFailed:
            logger.debug("Scope not resolvable scope=%s", session.scope)
            return

        spec = self.find(command_name)
        if spec is None:
            return
        if self._models.resolve(spec.model_ref) is None:
            logger.info("Skipping intercept for command=%s, model %s unavailable", command_name, spec.model_ref)
            return

        try:
            result = await self._runner.run(spec, session, list(session.elements))
        except Exception:
            logger.exception("Intercept failed command=%s intercept=%s", command_name, spec.command)
            return

        session.elements = splice_text(session.elements, message_content_text(result.content))
        logger.info("Intercept applied command=%s intercept=%s", command_name, spec.command)
