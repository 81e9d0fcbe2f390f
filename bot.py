from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from telegram import Update

from chat_actions.app_factory import build_application, build_runtime, install_runtime, menu_commands
from chat_actions.config import load_config, load_dotenv

logger = logging.getLogger("bot")


async def main() -> None:
    base_dir = Path(__file__).resolve().parent
    config = load_config(Path(os.environ.get("CHAT_ACTIONS_CONFIG", base_dir / "config.json")))
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    env_values = {**os.environ, **load_dotenv(base_dir / ".env")}

    application = build_application(config)
    runtime = None
    try:
        await application.initialize()
        me = await application.bot.get_me()
        runtime = await build_runtime(
            config=config,
            env_values=env_values,
            bot=application.bot,
            bot_id=me.username or str(me.id),
            base_dir=base_dir,
        )
        install_runtime(application, runtime)
        await application.bot.set_my_commands(menu_commands(runtime.router))
        await application.start()
        await application.updater.start_polling(allowed_updates=Update.ALL_TYPES)
        logger.info("Bot started as @%s", me.username)
        await asyncio.Event().wait()
    finally:
        if runtime is not None:
            await runtime.aclose()
        if application.updater is not None and application.updater.running:
            await application.updater.stop()
        if application.running:
            await application.stop()
        await application.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
