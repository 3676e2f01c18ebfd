#!/usr/bin/env python3
"""
shareify-relay - command line front end for the Shareify command relay

Usage:
    shareify-relay login EMAIL            # bridge login (password prompted)
    shareify-relay server-login USERNAME  # Shareify server login via the relay
    shareify-relay status                 # tokens, session, client id
    shareify-relay ping                   # /is_up connectivity check
    shareify-relay exec /finder --body '{"path": "/"}'
    shareify-relay ls /projects
    shareify-relay cat /projects/app.py
    shareify-relay logout [--server-only]
"""

import argparse
import asyncio
import getpass
import json
import logging
import sys
from typing import Any, List, Optional

from shareify_relay.client_factory import create_command_client
from shareify_relay.config import get_settings
from shareify_relay.errors.handler import ErrorHandler, UISignal
from shareify_relay.errors.types import RelayError
from shareify_relay.logging_config import setup_logging
from shareify_relay.services.command_client import CommandClient
from shareify_relay.services.server_files import ServerFileService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_LOGIN_REQUIRED = 2


def _print_json(value: Any) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False))


def _parse_body(raw: Optional[str]) -> dict:
    if not raw:
        return {}
    body = json.loads(raw)
    if not isinstance(body, dict):
        raise ValueError("--body must be a JSON object")
    return body


async def _run(args: argparse.Namespace, client: CommandClient) -> int:
    if args.action == "login":
        password = args.password or getpass.getpass("Bridge password: ")
        await client.bridge_login(args.email, password)
        print("Logged in to bridge")

    elif args.action == "server-login":
        password = args.password or getpass.getpass("Server password: ")
        await client.login_to_server(args.username, password)
        print("Logged in to Shareify server" if client.is_server_logged_in() else "Server returned no token")

    elif args.action == "status":
        _print_json(client.auth_status())

    elif args.action == "ping":
        connected = await client.test_server_connection()
        print("connected" if connected else "unreachable")
        return EXIT_OK if connected else EXIT_ERROR

    elif args.action == "exec":
        result = await client.execute(
            args.command,
            method=args.method,
            body=_parse_body(args.body),
            wait_time=args.wait_time,
            use_encryption=not args.plain,
        )
        _print_json(result)

    elif args.action == "ls":
        files = ServerFileService(client)
        for node in await files.list_directory(args.path):
            print(f"{node.name}/" if node.is_folder else node.name)

    elif args.action == "cat":
        files = ServerFileService(client)
        content = await files.read_file(args.path)
        if content is None:
            print(f"{args.path}: not a text file", file=sys.stderr)
            return EXIT_ERROR
        sys.stdout.write(content)

    elif args.action == "logout":
        if args.server_only:
            client.logout_server()
        else:
            client.logout()
        print("Logged out")

    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shareify-relay", description="Shareify command relay client")
    parser.add_argument("--log-level", default=None, help="Override SHAREIFY_LOG_LEVEL")
    sub = parser.add_subparsers(dest="action", required=True)

    login = sub.add_parser("login", help="Log in to the bridge")
    login.add_argument("email")
    login.add_argument("--password")

    server_login = sub.add_parser("server-login", help="Log in to your Shareify server")
    server_login.add_argument("username")
    server_login.add_argument("--password")

    sub.add_parser("status", help="Show login and session state")
    sub.add_parser("ping", help="Check that your server is reachable")

    exec_cmd = sub.add_parser("exec", help="Execute a raw server command")
    exec_cmd.add_argument("command")
    exec_cmd.add_argument("--method", default="GET", choices=["GET", "POST"])
    exec_cmd.add_argument("--body", help="JSON object of command arguments")
    exec_cmd.add_argument("--wait-time", type=int, default=2)
    exec_cmd.add_argument("--plain", action="store_true", help="Do not encrypt this command")

    ls = sub.add_parser("ls", help="List a remote directory")
    ls.add_argument("path")

    cat = sub.add_parser("cat", help="Print a remote text file")
    cat.add_argument("path")

    logout = sub.add_parser("logout", help="Forget stored tokens and credentials")
    logout.add_argument("--server-only", action="store_true")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(args.log_level or settings.log_level, settings.log_json)

    def on_signal(signal: UISignal, error: RelayError) -> None:
        if signal is UISignal.REDIRECT_TO_LOGIN:
            print("Please log in again: shareify-relay login EMAIL", file=sys.stderr)

    async def _main() -> int:
        async with create_command_client(settings, on_signal=on_signal) as client:
            try:
                return await _run(args, client)
            except RelayError as e:
                _print_json(ErrorHandler.to_dict(e))
                if ErrorHandler.ui_signal_for(e) is UISignal.REDIRECT_TO_LOGIN:
                    return EXIT_LOGIN_REQUIRED
                return EXIT_ERROR

    try:
        return asyncio.run(_main())
    except (ValueError, json.JSONDecodeError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
