"""Command line front-end: log in, show a rotating QR, or submit scans."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import os
import sys
from typing import AsyncIterator, Iterable, List, Optional

import aiohttp
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from .api import ROLES, AttendanceApi
from .config import Settings, load_settings
from .emitter import EmitterSession, TokenEmitter
from .errors import ApiError, SessionError
from .render import render_ascii, render_png
from .scanner import AttendanceScanner
from .session import create_lab_session, delete_lab_session, login, logout
from .storage import JsonFileStore
from .student_context import StudentContextCache
from .token import TokenType
from .utils.env_utils import append_to_env_file
from .utils.logger import logger, set_log_profile, spinner, step


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="campus-qr", description="QR attendance check-in client")
    parser.add_argument("--env-file", default=None, help="Path to .env (default: $ENV_FILE or .env)")
    parser.add_argument("--log-profile", choices=["quiet", "user", "debug"], default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    p_config = sub.add_parser("config", help="Persist a setting to the .env file")
    p_config.add_argument("key")
    p_config.add_argument("value")

    p_login = sub.add_parser("login", help="Log in as a student or teacher")
    p_login.add_argument("--role", choices=ROLES, required=True)
    p_login.add_argument("--id", dest="login_id", required=True)
    p_login.add_argument("--password", default=None, help="Prompted when omitted")

    sub.add_parser("logout", help="Forget the stored identity")
    sub.add_parser("refresh", help="Refresh the cached student profile")

    p_emit = sub.add_parser("emit", help="Display a rotating attendance QR")
    p_emit.add_argument("--session-id", default=None)
    p_emit.add_argument("--lab", action="store_true", help="Emit lab tokens for --session-id")
    p_emit.add_argument("--create-lab", action="store_true", help="Create a lab session first")
    p_emit.add_argument("--year", default=None)
    p_emit.add_argument("--division", default=None)
    p_emit.add_argument("--batch", default=None)
    p_emit.add_argument("--subject", default=None)
    p_emit.add_argument("--png", default=None, help="Also write the current QR to this PNG file")
    p_emit.add_argument("--duration", type=float, default=None, help="Stop after N seconds")
    p_emit.add_argument("--delete-on-exit", action="store_true", help="Delete the lab session on exit")

    p_scan = sub.add_parser("scan", help="Submit scanned QR payloads (arguments or stdin lines)")
    p_scan.add_argument("payloads", nargs="*")
    p_scan.add_argument("--no-refresh", action="store_true", help="Use the cached profile as is")
    p_scan.add_argument("--reset-after", action="store_true", help="Release the lock after every scan")
    return parser


def _qr_view(payload: str, session: EmitterSession, interval_ms: int) -> Panel:
    label = f"Session {session.session_id}"
    if session.type is TokenType.LAB:
        label += f"  |  Year {session.year} {session.division}  |  Batch {session.batch}"
    return Panel(
        Group(Text(render_ascii(payload), no_wrap=True), Text(payload, style="dim")),
        title=label,
        subtitle=f"QR refreshes every {interval_ms / 1000:g} seconds, current + last 2 QRs are valid",
    )


def _emitter_session(args: argparse.Namespace) -> EmitterSession:
    if not args.session_id:
        raise ValueError("--session-id is required unless --create-lab is given")
    if args.lab:
        return EmitterSession(
            session_id=args.session_id,
            type=TokenType.LAB,
            year=_as_year(args.year),
            division=args.division,
            batch=args.batch,
            subject=args.subject,
        )
    return EmitterSession(session_id=args.session_id)


def _as_year(value: Optional[str]):
    if value is not None and value.isdigit():
        return int(value)
    return value


async def _emit(args: argparse.Namespace, settings: Settings, store: JsonFileStore) -> int:
    async with AttendanceApi(settings.api_url, timeout_seconds=settings.mark_timeout_seconds) as api:
        if args.create_lab:
            if not (args.year and args.division and args.batch and args.subject):
                raise ValueError("--create-lab needs --year, --division, --batch and --subject")
            step("Creating lab session")
            session = await create_lab_session(
                api, store, year=_as_year(args.year), division=args.division, batch=args.batch, subject=args.subject
            )
        else:
            session = _emitter_session(args)

        console = Console()
        try:
            with Live(console=console, auto_refresh=False, transient=True) as live:

                def show(payload: str) -> None:
                    live.update(_qr_view(payload, session, settings.rotation_ms), refresh=True)
                    if args.png:
                        render_png(payload, args.png)

                async with TokenEmitter(session, interval_ms=settings.rotation_ms, on_token=show) as emitter:
                    await emitter.wait(args.duration)
        finally:
            if args.delete_on_exit and session.type is TokenType.LAB:
                await delete_lab_session(api, session.session_id)
    return 0


async def _payload_lines(payloads: Iterable[str]) -> AsyncIterator[str]:
    for raw in payloads:
        yield raw
    if payloads:
        return
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            break
        if line.strip():
            yield line.strip()


async def _scan(args: argparse.Namespace, settings: Settings, store: JsonFileStore) -> int:
    async with AttendanceApi(settings.api_url, timeout_seconds=settings.mark_timeout_seconds) as api:
        cache = StudentContextCache(store, api)
        if not args.no_refresh:
            async with spinner("Loading student profile") as spin:
                if await cache.refresh() is None:
                    spin.warn("using cached profile")

        scanner = AttendanceScanner(
            api,
            cache,
            freshness_ms=settings.freshness_ms,
            mark_timeout=settings.mark_timeout_seconds,
            reset_delay=settings.reset_delay_seconds,
        )
        last = None
        async for raw in _payload_lines(args.payloads):
            result = await scanner.handle_scan(raw)
            if result is None:
                logger.info("Scan ignored: scanner is locked (use --reset-after to scan again)")
                continue
            last = result
            if args.reset_after:
                scanner.reset()
    return 0 if last is not None and last.ok else 1


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    store = JsonFileStore(settings.storage_file)
    if args.command == "emit":
        return await _emit(args, settings, store)
    if args.command == "scan":
        return await _scan(args, settings, store)

    async with AttendanceApi(settings.api_url, timeout_seconds=settings.mark_timeout_seconds) as api:
        if args.command == "login":
            password = args.password or getpass.getpass("Password: ")
            await login(api, store, args.role, args.login_id, password)
        elif args.command == "logout":
            await logout(api, store)
        elif args.command == "refresh":
            context = await StudentContextCache(store, api).refresh()
            if context is None:
                return 1
            logger.info(
                "Year %s, division %s, batch %s", context.year, context.division, context.batch or "-"
            )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.log_profile:
        set_log_profile(args.log_profile)

    env_file = args.env_file or os.getenv("ENV_FILE", ".env")
    if args.command == "config":
        append_to_env_file(env_file, args.key, args.value)
        logger.info("Saved %s to %s", args.key, env_file)
        return 0

    settings = load_settings(env_file)
    try:
        return asyncio.run(_run(args, settings))
    except KeyboardInterrupt:
        return 130
    except (ApiError, SessionError, aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as exc:
        logger.error(str(exc))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
