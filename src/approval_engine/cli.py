"""Approval engine command line interface.

Usage:
    approval-engine serve [--host H] [--port P]
    approval-engine init-db
    approval-engine derive draft approved submitted
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import replace
from typing import Callable

from approval_engine.config import Settings, get_settings
from approval_engine.services.state_machine import Status, derive_status


class ApprovalCli:
    """Approval engine command line interface."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="approval-engine",
            description="Timesheet and expense report approval tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # serve command
        serve = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn")
        serve.add_argument("--host", type=str, help="Bind address (default: HOST)")
        serve.add_argument("--port", type=int, help="Bind port (default: PORT)")

        # init-db command
        subparsers.add_parser("init-db", help="Create database tables")

        # derive command
        derive = subparsers.add_parser(
            "derive",
            help="Print the report status derived from line statuses",
        )
        derive.add_argument(
            "statuses",
            nargs="*",
            type=Status,
            metavar="STATUS",
            help="Line statuses (draft, submitted, approved, rejected)",
        )

        return parser

    def _settings(self) -> Settings:
        return self.settings or get_settings()

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "serve": self._cmd_serve,
            "init-db": self._cmd_init_db,
            "derive": self._cmd_derive,
        }

        handler = handlers.get(parsed.command)
        if handler:
            return handler(parsed)

        print(f"Unknown command: {parsed.command}", file=sys.stderr)
        return 1

    def _cmd_serve(self, args: argparse.Namespace) -> int:
        """Run the API server."""
        import uvicorn

        from approval_engine.api.app import create_app

        settings = self._settings()
        if args.host or args.port:
            settings = replace(
                settings,
                host=args.host or settings.host,
                port=args.port or settings.port,
            )
        uvicorn.run(
            create_app(settings),
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
        return 0

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create all tables."""
        from approval_engine.database import create_all, create_engine

        settings = self._settings()

        async def _init() -> None:
            engine = create_engine(settings)
            try:
                await create_all(engine)
            finally:
                await engine.dispose()

        asyncio.run(_init())
        print("Database tables created")
        return 0

    def _cmd_derive(self, args: argparse.Namespace) -> int:
        """Derive a report status from line statuses."""
        print(derive_status(args.statuses).value)
        return 0


def main() -> int:
    """CLI entry point."""
    cli = ApprovalCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
