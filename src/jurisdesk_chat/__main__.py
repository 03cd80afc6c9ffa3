import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

from jurisdesk_chat.app_config import load_json_config, parse_app_config, resolve_runtime_env
from jurisdesk_chat.bootstrap import bootstrap_runtime


async def main() -> None:
    load_dotenv()

    try:
        app = parse_app_config(load_json_config())
    except ValueError as ex:
        print(f"Invalid config.json: {ex}", file=sys.stderr)
        sys.exit(1)
    env = resolve_runtime_env()

    try:
        runtime = await bootstrap_runtime(app, env)
    except ValueError as ex:
        logger.error(str(ex))
        sys.exit(1)

    assistant = runtime.assistant
    session = assistant.controller.active_session

    print("jurisdesk-chat (type 'exit' to quit, '/help' for commands)")
    if session is not None:
        print(f"Session: {session.title} (id={session.id}, {session.provider}/{session.model or '-'})")
    print(f"Database: {runtime.db_path}")
    if runtime.backup.enabled:
        print(f"Backups: {runtime.backup.backup_dir}")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    try:
        while True:
            try:
                user_input = await asyncio.to_thread(input, "you> ")
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()

            if trimmed in ("exit", "quit"):
                break

            if not trimmed:
                continue

            try:
                await assistant.run(trimmed)
                print()
            except Exception as ex:
                logger.error(f"Unhandled error: {ex}")
    finally:
        await runtime.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
