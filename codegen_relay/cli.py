#!/usr/bin/env python3
"""
Command line entry point for the code generation relay.
Runs the server, or drives the client views against a running relay.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from codegen_relay.client.api import DEFAULT_RELAY_URL, DEFAULT_TIMEOUT_S, RelayClient
from codegen_relay.client.views import (
    LANGUAGE_OPTIONS,
    CodeGeneratorView,
    ProblemSolverView,
    ViewState,
)
from codegen_relay.models.request import DEFAULT_LANGUAGE


def serve(host: str | None = None, port: int | None = None) -> None:
    import uvicorn

    from codegen_relay.config import get_settings
    from codegen_relay.logging_utils import configure_logging
    from codegen_relay.main import create_app

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,
    )


async def run_generate(url: str, text: str, language: str, timeout: float) -> ViewState:
    async with RelayClient(url, timeout=timeout) as client:
        view = CodeGeneratorView(client, language=language)
        return await view.submit(text)


async def run_solve(url: str, text: str, timeout: float) -> ViewState:
    async with RelayClient(url, timeout=timeout) as client:
        view = ProblemSolverView(client)
        return await view.submit(text)


def _report(state: ViewState) -> int:
    if state.error:
        print(state.error, file=sys.stderr)
        return 1
    print(state.result)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Pseudocode to code relay")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the relay server")
    serve_parser.add_argument("--host", type=str, default=None, help="Interface to bind")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to listen on")

    for name, help_text in (
        ("generate", "Convert pseudocode through a running relay"),
        ("solve", "Solve a problem statement through a running relay"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("text", type=str, help="Input text; '-' reads stdin")
        sub.add_argument("--url", type=str, default=DEFAULT_RELAY_URL, help="Relay base URL")
        sub.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT_S)
        if name == "generate":
            sub.add_argument(
                "-l",
                "--language",
                choices=sorted(LANGUAGE_OPTIONS),
                default=DEFAULT_LANGUAGE,
            )

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "serve":
        serve(args.host, args.port)
        return 0

    text = sys.stdin.read() if args.text == "-" else args.text
    if args.command == "generate":
        state = asyncio.run(run_generate(args.url, text, args.language, args.timeout))
    else:
        state = asyncio.run(run_solve(args.url, text, args.timeout))
    return _report(state)


if __name__ == "__main__":
    sys.exit(main())
