"""Command line interface for the Chaum-Pedersen authentication service."""

from __future__ import annotations

import argparse
import getpass
import json
import sys
from pathlib import Path

import uvicorn

from cpauth.auth import AuthClient, AuthServer
from cpauth.config import Settings, configure_logging
from cpauth.constants import GROUP_NAMES
from cpauth.errors import AuthError, InvalidParameters
from cpauth.server import create_app
from cpauth.store import CredentialStore, SessionStore
from cpauth.transport import HttpTransport

DEFAULT_STORE = Path("users.json")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--store",
        default=None,
        help="Location of the JSON credential store (default: $CPAUTH_STORE_PATH or users.json)",
    )
    parser.add_argument(
        "--group",
        choices=GROUP_NAMES,
        default=None,
        help="Named group parameters (default: $CPAUTH_GROUP or rfc5114-1024)",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("register", "Register a user with a password-derived commitment"),
        ("login", "Authenticate a user with a zero-knowledge proof"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("user_id", help="User identity")
        command.add_argument(
            "--password",
            help="Password. If omitted it is read from the terminal.",
        )
        command.add_argument(
            "--url",
            help="Base URL of a running service. If omitted the local store is used.",
        )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument("--host", default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Bind port")

    subparsers.add_parser("params", help="Print the public group parameters")

    return parser.parse_args(argv)


def load_settings(namespace: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    if namespace.store:
        settings.store_path = namespace.store
    elif settings.store_path is None:
        settings.store_path = str(DEFAULT_STORE)
    if namespace.group:
        settings.group = namespace.group
    if namespace.log_level:
        settings.log_level = namespace.log_level.upper()
    return settings


def _read_password(namespace: argparse.Namespace) -> str:
    if namespace.password is not None:
        return namespace.password
    return getpass.getpass("Password: ")


def _local_server(settings: Settings) -> AuthServer:
    sessions = SessionStore(
        settings.group_parameters(),
        CredentialStore(settings.store_path),
        ttl=settings.attempt_ttl,
    )
    return AuthServer(sessions)


def _run_client(namespace: argparse.Namespace, settings: Settings) -> dict:
    password = _read_password(namespace)
    if namespace.url:
        with HttpTransport(namespace.url) as transport:
            params = settings.group_parameters()
            served = transport.fetch_params()
            if (served.p, served.q, served.g, served.h) != (params.p, params.q, params.g, params.h):
                raise InvalidParameters(
                    f"Server uses group '{served.name}', configured group is '{params.name}'"
                )
            client = AuthClient(transport, params)
            return _client_call(client, namespace, password)

    server = _local_server(settings)
    client = AuthClient(server, server.params)
    return _client_call(client, namespace, password)


def _client_call(client: AuthClient, namespace: argparse.Namespace, password: str) -> dict:
    if namespace.command == "register":
        client.register(namespace.user_id, password)
        return {"user_id": namespace.user_id, "registered": True}
    token = client.login(namespace.user_id, password)
    return {"user_id": namespace.user_id, "authenticated": True, "session_token": token}


def main(argv: list[str] | None = None) -> int:
    namespace = parse_args(sys.argv[1:] if argv is None else argv)
    settings = load_settings(namespace)
    configure_logging(settings.log_level)

    if namespace.command == "params":
        print(json.dumps(settings.group_parameters().to_dict(), indent=2))
        return 0

    if namespace.command == "serve":
        settings.host = namespace.host or settings.host
        settings.port = namespace.port or settings.port
        uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
        return 0

    if namespace.command in ("register", "login"):
        try:
            payload = _run_client(namespace, settings)
        except AuthError as exc:
            print(f"{namespace.command} failed: {exc.__class__.__name__}", file=sys.stderr)
            return 1
        print(json.dumps(payload, indent=2))
        return 0

    raise RuntimeError("Unreachable")


if __name__ == "__main__":
    raise SystemExit(main())
