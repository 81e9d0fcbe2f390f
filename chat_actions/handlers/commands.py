from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Sequence

from telegram import Update
from telegram.ext import ContextTypes

from chat_actions.chains import ModelResolver
from chat_actions.elements import Element, parse, text
from chat_actions.errors import CommandResolutionFailed, ModelNotFound
from chat_actions.models import EMPTY_INPUT_PLACEHOLDER, CommandSpec, InterceptSpec
from chat_actions.naming import normalize_command_name
from chat_actions.services.formatting import TextRenderer
from chat_actions.session import Session, session_from_update
from chat_actions.tools.action_tool import TOOL_ID_PREFIX

if TYPE_CHECKING:
    from chat_actions.actions import ActionRunner
    from chat_actions.runtime import RuntimeContext
    from chat_actions.services.delivery import Messenger

logger = logging.getLogger("commands")

NO_MODEL_MESSAGE = "Sorry, no model is configured for this command right now."
SCOPE_ROOT = "commands"
SCOPE_ARGUMENTS = "messages"
ACTIONS_COMMAND = "actions"

CommandHandlerFn = Callable[[Session, str], Awaitable[list[Element]]]

_COMMAND_LINE = re.compile(r"^/(\S+)(?:\s+(.*))?$", re.S)


def command_scope(name: str) -> str:
    return f"{SCOPE_ROOT}.{name}.{SCOPE_ARGUMENTS}"


@dataclass(frozen=True)
class RegisteredCommand:
    name: str
    handler: CommandHandlerFn
    description: str = ""


class CommandRouter:
    """Host command tree for slash commands with arbitrary labels."""

    def __init__(self, messenger: Messenger | None = None, bot_names: Sequence[str] = ()) -> None:
        self._commands: dict[str, RegisteredCommand] = {}
        self._messenger = messenger
        self._bot_names = {name.lower().lstrip("@") for name in bot_names if name}

    def register(self, name: str, handler: CommandHandlerFn, description: str = "") -> None:
        key = name.strip()
        if not key:
            raise ValueError("Command name cannot be empty")
        if key in self._commands:
            raise ValueError(f"Command '{key}' already registered")
        self._commands[key] = RegisteredCommand(name=key, handler=handler, description=description)
        logger.info("Command registered name=%s", key)

    def commands(self) -> list[RegisteredCommand]:
        return [self._commands[name] for name in sorted(self._commands)]

    def resolve(self, path: str) -> RegisteredCommand | None:
        return self._commands.get(path.strip())

    def resolve_scope(self, scope: str) -> str:
        """Map ``commands.<name>.<binding>`` back to a registered command name."""
        segments = scope.split(".")
        if len(segments) < 3 or segments[0] != SCOPE_ROOT:
            raise CommandResolutionFailed(scope)
        name = ".".join(segments[1:-1])
        if self.resolve(name) is None:
            raise CommandResolutionFailed(scope)
        return name

    def parse_command_line(self, line: str) -> tuple[str, str] | None:
        match = _COMMAND_LINE.match(line.strip())
        if not match:
            return None
        head, args = match.group(1), match.group(2) or ""
        name, _, addressee = head.partition("@")
        if addressee and self._bot_names and addressee.lower() not in self._bot_names:
            return None
        return name, args.strip()

    async def dispatch(self, session: Session, line: str) -> bool:
        parsed = self.parse_command_line(line)
        if parsed is None:
            return False
        name, args = parsed
        command = self.resolve(name)
        if command is None:
            logger.debug("Unknown command name=%s chat_id=%s", name, session.chat_id)
            return False

        session.scope = command_scope(command.name)
        elements = await command.handler(session, args)
        if elements and self._messenger is not None:
            await self._messenger.send(session, elements)
        return True


class CommandDispatcher:
    """Answers configured commands through their LLM chains."""

    def __init__(
        self,
        router: CommandRouter,
        runner: ActionRunner,
        model_provider: ModelResolver,
        renderer: TextRenderer,
        commands: Sequence[CommandSpec],
        intercepts: Sequence[InterceptSpec] = (),
    ) -> None:
        self._router = router
        self._runner = runner
        self._models = model_provider
        self._renderer = renderer
        self._commands = list(commands)
        self._intercepts = list(intercepts)

    @property
    def commands(self) -> list[CommandSpec]:
        return list(self._commands)

    def register(self) -> list[str]:
        registered: list[str] = []
        for spec in self._commands:
            if not spec.enabled:
                logger.info("Command disabled name=%s", spec.command)
                continue
            self._router.register(spec.command, self._bind(spec), spec.description)
            registered.append(spec.command)
        return registered

    def register_listing(self, name: str = ACTIONS_COMMAND) -> bool:
        if self._router.resolve(name) is not None:
            logger.warning("Built-in /%s is shadowed by a configured command", name)
            return False
        self._router.register(name, self.list_actions, "List configured actions")
        return True

    def _bind(self, spec: CommandSpec) -> CommandHandlerFn:
        async def _handler(session: Session, args: str) -> list[Element]:
            return await self.execute(spec, session, args)

        return _handler

    async def execute(self, spec: CommandSpec, session: Session, input_text: str) -> list[Element]:
        if self._models.resolve(spec.model_ref) is None:
            logger.warning("No model for command name=%s model=%s", spec.command, spec.model_ref)
            return [text(NO_MODEL_MESSAGE)]

        if not input_text.strip() and not spec.allow_empty_input:
            input_text = EMPTY_INPUT_PLACEHOLDER

        try:
            result = await self._runner.run(spec, session, parse(input_text))
        except ModelNotFound:
            logger.warning("Model vanished for command name=%s model=%s", spec.command, spec.model_ref)
            return [text(NO_MODEL_MESSAGE)]
        except Exception as exc:
            logger.exception("Command failed name=%s user_id=%s", spec.command, session.user_id)
            return [text(f"Command /{spec.command} failed: {exc}")]
        return self._renderer.render(result.content)

    async def list_actions(self, session: Session, args: str) -> list[Element]:
        enabled = [spec for spec in self._commands if spec.enabled]
        if not enabled and not self._intercepts:
            return [text("No actions configured.")]
        lines = ["Available actions:"]
        for spec in enabled:
            line = f"/{spec.command} - {spec.description or 'no description'}"
            if spec.expose_as_tool:
                line += f" (tool: {TOOL_ID_PREFIX}{normalize_command_name(spec.command)})"
            lines.append(line)
        active = [item for item in self._intercepts if item.enabled]
        if active:
            lines.append("")
            lines.append("Intercepts:")
            for item in active:
                lines.append(f"/{item.target_command} <- {item.command}")
        return [text("\n".join(lines))]


async def handle_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    message = update.effective_message
    if not message or not message.text:
        return
    runtime: RuntimeContext = context.application.bot_data["runtime"]
    session = session_from_update(update, runtime.bot_id, runtime.messenger.send)
    session.elements = parse(message.text)
    handled = await runtime.router.dispatch(session, message.text)
    if not handled:
        logger.debug("Command not handled chat_id=%s text=%r", session.chat_id, message.text[:64])
