"""CLI entry point for nal1."""

from __future__ import annotations

import argparse
import asyncio
import sys

from nal1.ai.attachments import encode_file
from nal1.app import Nal1App
from nal1.config import AppConfig, load_config
from nal1.core.types import ThemeMode
from nal1.log import setup_logging
from nal1.render.console import render_chat_list, render_message
from nal1.storage.models import Attachment

HELP_TEXT = """Commands:
  /new                 start a new chat
  /list                list chats (pinned first)
  /open <id>           switch to a chat
  /rename <id> <title> rename a chat
  /pin <id>            pin or unpin a chat
  /delete <id>         delete a chat
  /model [id]          show or select the model
  /mode [id]           show or select the mode
  /theme               toggle light/dark
  /attach <path>       attach a file to the next message
  /history             show the active chat
  /reset               delete all chats and restore default settings
  /quit                exit"""


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="nal1",
        description="Terminal chat client with engine fallback and persistent history",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    _add_config_args(subparsers.add_parser("chat", help="Interactive chat session"))

    ask_parser = subparsers.add_parser("ask", help="Send one prompt in the active chat")
    _add_config_args(ask_parser)
    ask_parser.add_argument("prompt", help="Prompt text")
    ask_parser.add_argument("-a", "--attach", action="append", default=[], help="File to attach")
    ask_parser.add_argument("-m", "--model", help="Logical model id for this and later sends")
    ask_parser.add_argument("--mode", help="Mode id for this and later sends")
    ask_parser.add_argument("--new", action="store_true", help="Start a new chat first")

    _add_config_args(subparsers.add_parser("history", help="List saved chats"))
    _add_config_args(subparsers.add_parser("config-check", help="Validate configuration"))
    _add_config_args(subparsers.add_parser("model-info", help="Show models, modes and engines"))

    args = parser.parse_args()

    if args.command is None:
        args.command = "chat"
        args.config = "config.yaml"
        args.env = ".env"

    if args.command == "config-check":
        _check_config(args.config, args.env)
        return
    if args.command == "model-info":
        _model_info(_load_or_exit(args.config, args.env))
        return

    config = _load_or_exit(args.config, args.env)
    setup_logging(config.log_level, json_output=config.log_json)

    if args.command == "chat":
        asyncio.run(_chat(config))
    elif args.command == "ask":
        asyncio.run(_ask(config, args))
    elif args.command == "history":
        asyncio.run(_history(config))


def _load_or_exit(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'python install.py' first or copy config.example.yaml to config.yaml")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    try:
        config = load_config(config_path, env_path)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Configuration valid: {config_path}")
    print(f"  Data directory: {config.data_dir}")
    print(f"  Storage: {config.storage.db_path}")
    print(f"  Text endpoint: {config.inference.text_base_url} (timeout={config.inference.timeout}s)")
    print(f"  Attempts: {config.inference.max_attempts}")
    print(f"  Fallback engines: {', '.join(config.inference.fallback_engines)}")
    print(f"  Models: {len(config.models)}  Modes: {len(config.modes)}")
    print(f"  Request guard: {config.chat.guard_scope}")


def _model_info(config: AppConfig) -> None:
    """Show logical models with the engine each resolves to, plus modes."""
    print("Models")
    print("=" * 50)
    for model in config.models:
        engine = config.inference.engines.get(model.id, "(default)")
        print(f"  {model.id:<10} {model.name:<16} -> {engine}")
        if model.description:
            print(f"             {model.description}")
    print("\nModes")
    print("=" * 50)
    for mode in config.modes:
        print(f"  {mode.id:<10} {mode.name:<16} [{mode.kind}]")
    print()


async def _ask(config: AppConfig, args: argparse.Namespace) -> None:
    attachments = [encode_file(path) for path in args.attach]
    async with Nal1App(config) as app:
        if args.model:
            await app.store.set_selected_model(args.model)
        if args.mode:
            await app.store.set_selected_mode(args.mode)
        if args.new:
            await app.store.create_chat()
        reply = await app.handler.send(args.prompt, attachments)
        if reply is None:
            print("Nothing to send.", file=sys.stderr)
            sys.exit(1)
        print(render_message(reply))


async def _history(config: AppConfig) -> None:
    async with Nal1App(config) as app:
        print(render_chat_list(app.store.sorted_view(), app.store.preferences.active_chat_id))


async def _chat(config: AppConfig) -> None:
    async with Nal1App(config) as app:
        print("Nal1 chat. Type /help for commands.")
        pending: list[Attachment] = []

        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except (EOFError, KeyboardInterrupt):
                print()
                break

            line = line.strip()
            if not line:
                continue

            if line.startswith("/"):
                if not await _run_command(app, line, pending):
                    break
                continue

            reply = await app.handler.send(line, pending)
            pending = []
            if reply is not None:
                print(render_message(reply))


async def _run_command(app: Nal1App, line: str, pending: list[Attachment]) -> bool:
    """Execute a slash command. Returns False when the session should end."""
    command, _, rest = line.partition(" ")
    rest = rest.strip()
    store = app.store
    config = app.config

    match command.lower():
        case "/quit" | "/exit":
            return False
        case "/help":
            print(HELP_TEXT)
        case "/new":
            chat = await store.create_chat()
            pending.clear()
            print(f"Started chat {chat.id}")
        case "/list":
            print(render_chat_list(store.sorted_view(), store.preferences.active_chat_id))
        case "/open":
            if store.get_chat(rest) is None:
                print(f"No chat '{rest}'")
            else:
                await store.set_active_chat(rest)
                _print_history(app)
        case "/rename":
            chat_id, _, title = rest.partition(" ")
            await store.rename_chat(chat_id, title)
        case "/pin":
            await store.toggle_pin(rest)
        case "/delete":
            await store.delete_chat(rest)
        case "/model":
            if not rest:
                print(f"Model: {store.preferences.selected_model}")
            elif config.get_model(rest) is None:
                print(f"Unknown model '{rest}'. Choices: {', '.join(m.id for m in config.models)}")
            else:
                await store.set_selected_model(rest)
        case "/mode":
            if not rest:
                print(f"Mode: {store.preferences.selected_mode}")
            elif config.get_mode(rest) is None:
                print(f"Unknown mode '{rest}'. Choices: {', '.join(m.id for m in config.modes)}")
            else:
                await store.set_selected_mode(rest)
        case "/theme":
            current = store.preferences.theme_mode
            new_theme = ThemeMode.LIGHT if current == ThemeMode.DARK else ThemeMode.DARK
            await store.set_theme_mode(new_theme)
            print(f"Theme: {new_theme}")
        case "/attach":
            try:
                pending.append(encode_file(rest))
                print(f"Attached {pending[-1].name} ({pending[-1].mime_type})")
            except OSError as e:
                print(f"Cannot attach '{rest}': {e}")
        case "/history":
            _print_history(app)
        case "/reset":
            await store.clear_all()
            pending.clear()
            print("All chats deleted.")
        case _:
            print(f"Unknown command {command}. Type /help.")
    return True


def _print_history(app: Nal1App) -> None:
    chat = app.store.active_chat()
    if chat is None:
        print("(no active chat)")
        return
    print(f"# {chat.title}")
    for message in chat.messages:
        print(render_message(message))


if __name__ == "__main__":
    main()
