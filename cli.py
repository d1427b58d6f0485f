#!/usr/bin/env python3
"""
Command-line interface for the change notifier.

Usage:
    uv run python cli.py [command] [options]

Commands:
    write       Write a JSON value to a path and run triggered functions
    update      Merge JSON children into a path
    delete      Delete a path
    config      Show the effective configuration (API key masked)
    test        Run the test suite
    serve       Start the API server

Examples:
    uv run python cli.py write /yourDataPath/abc '{"title": "hello"}'
    uv run python cli.py delete /yourDataPath/abc
    uv run python cli.py --config notifier.json serve --reload
"""

import argparse
import asyncio
import json
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Optional


def _load(config_path: Optional[str]):
    from shared.config import ConfigError, load_config

    try:
        return load_config(Path(config_path) if config_path else None)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        sys.exit(2)


def run_write(config_path: Optional[str], operation: str, path: str, raw_value: Optional[str]) -> None:
    """Perform one data write and wait for every function it triggered."""
    from api.bootstrap import shutdown_app, start_app

    config = _load(config_path)
    value = None
    if raw_value is not None:
        try:
            value = json.loads(raw_value)
        except json.JSONDecodeError as e:
            print(f"Value is not valid JSON: {e}")
            sys.exit(1)

    async def write() -> None:
        context = start_app(config)
        try:
            if operation == "set":
                context.data_store.set(path, value)
            elif operation == "update":
                context.data_store.update(path, value)
            else:
                context.data_store.delete(path)
        except ValueError as e:
            print(f"Invalid write: {e}")
            sys.exit(1)
        await shutdown_app(context)

        invocations = context.runtime.get_invocations()
        if not invocations:
            print(f"No functions triggered by write to {path}")
        for invocation in invocations:
            print(f"{invocation} path={invocation.event.path} change={invocation.event.change_type.value}")

    asyncio.run(write())


def show_config(config_path: Optional[str]) -> None:
    config = _load(config_path)
    print(config.model_dump_json(indent=2, by_alias=True))


def run_tests(args: list[str]) -> None:
    """Run the test suite."""
    cmd = ["uv", "run", "pytest"] + args
    subprocess.run(cmd)


def run_server(config_path: Optional[str], host: str, port: int, reload: bool) -> None:
    """Start the API server."""
    env = dict(os.environ)
    if config_path:
        env["NOTIFIER_CONFIG"] = str(Path(config_path).resolve())
    cmd = ["uv", "run", "uvicorn", "api.main:app", f"--host={host}", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs available at http://{host}:{port}/docs")
    subprocess.run(cmd, env=env)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Change Notifier CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s write /yourDataPath/abc '{"title": "hello"}'
  %(prog)s update /yourDataPath/abc '{"read": true}'
  %(prog)s delete /yourDataPath/abc
  %(prog)s config
  %(prog)s test -v
  %(prog)s serve --reload
        """,
    )
    parser.add_argument("--config", help="JSON config file (defaults to $NOTIFIER_CONFIG)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Write commands
    write_parser = subparsers.add_parser("write", help="Set a JSON value at a path")
    write_parser.add_argument("path", help="Data path, e.g. /yourDataPath/abc")
    write_parser.add_argument("value", help="JSON value")

    update_parser = subparsers.add_parser("update", help="Merge JSON children into a path")
    update_parser.add_argument("path", help="Data path")
    update_parser.add_argument("value", help="JSON object of children")

    delete_parser = subparsers.add_parser("delete", help="Delete a path")
    delete_parser.add_argument("path", help="Data path")

    subparsers.add_parser("config", help="Show the effective configuration")

    # Test command
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.command == "write":
        run_write(args.config, "set", args.path, args.value)
    elif args.command == "update":
        run_write(args.config, "update", args.path, args.value)
    elif args.command == "delete":
        run_write(args.config, "delete", args.path, None)
    elif args.command == "config":
        show_config(args.config)
    elif args.command == "test":
        run_tests(args.pytest_args)
    elif args.command == "serve":
        run_server(args.config, args.host, args.port, args.reload)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
