"""securetrace.cli

Command line interface entry point for securetrace.

Design constraints:
- argparse-based.
- Lazy imports: do not import crypto or HTTP dependencies at parse time.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from securetrace.core.config import Config
    from securetrace.core.models import AnalysisResult, ForensicLogEntry
    from securetrace.session.context import SecureSession

EPILOG = "Every security event lands in the chain. The chain is the record."

DEFAULT_DEMO_MESSAGES = [
    "Hello, is this channel secure?",
    "Please send the confidential report before the audit.",
    "Thanks, I'll review it offline.",
]

CHAT_HELP = """commands:
  /verify           verify forensic chain integrity
  /risk             local risk analysis
  /summary          risk analysis with external summary (if configured)
  /log              print the forensic log
  /fingerprint      print the session fingerprint
  /report REASON    report an incident
  /keywords         list DLP keywords
  /add KEYWORD      add a DLP keyword
  /remove KEYWORD   remove a DLP keyword
  /quit             close the session
anything else is sent as a message"""


@dataclass(frozen=True)
class CliContext:
    repo_root: Path
    config: Config


def _repo_root_from_cwd() -> Path:
    return Path.cwd()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="securetrace",
        description="Hybrid RSA/AES messaging core with a hash-linked forensic log.",
        epilog=EPILOG,
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a config YAML (default: ./config/default.yaml if present).",
    )

    sub = parser.add_subparsers(dest="command")

    p_demo = sub.add_parser("demo", help="Run a scripted session and print the forensic report")
    p_demo.add_argument(
        "--message",
        "-m",
        action="append",
        default=None,
        help="Message to send (repeatable). Defaults to a short scripted exchange.",
    )
    p_demo.add_argument("--no-echo", action="store_true", help="Disable the simulated remote party.")
    p_demo.add_argument("--user", default="analyst", help="Local user id.")

    p_chat = sub.add_parser("chat", help="Interactive session on stdin")
    p_chat.add_argument("--no-echo", action="store_true", help="Disable the simulated remote party.")
    p_chat.add_argument("--user", default="analyst", help="Local user id.")

    return parser


def _print_version() -> None:
    from securetrace import __version__

    print(f"securetrace v{__version__}")


def _load_config(repo_root: Path, path: Path | None) -> Config:
    from securetrace.core.config import Config

    if path is not None:
        return Config.from_yaml(path)
    default = repo_root / "config" / "default.yaml"
    if default.exists():
        return Config.from_yaml(default)
    return Config()


def _without_echo(cfg: Config) -> Config:
    return cfg.model_copy(update={"echo": cfg.echo.model_copy(update={"enabled": False})})


def _format_entry(entry: ForensicLogEntry) -> str:
    from securetrace.core.codec import canonical_json
    from securetrace.core.time import ms_to_iso

    return (
        f"{ms_to_iso(entry.timestamp)}  {entry.severity:<8}  {entry.event_type:<18}  "
        f"{entry.hash[:8]}...  {canonical_json(entry.metadata)}"
    )


def _print_entries(entries: Iterable[ForensicLogEntry]) -> None:
    for e in entries:
        print(_format_entry(e))


def _print_analysis(result: AnalysisResult) -> None:
    print(f"risk score: {result.score}/100")
    for f in result.risk_factors:
        print(f"  {f.factor}: +{f.points} ({f.count})")
    for a in result.anomalies:
        print(f"  ! {a}")
    print(f"summary: {result.summary}")


def _analysis(session: SecureSession) -> AnalysisResult:
    import asyncio

    if session.config.summarizer.enabled:
        return asyncio.run(session.analyze())
    return session.compute_risk_analysis()


def _start(session: SecureSession) -> bool:
    from securetrace.core.exceptions import HandshakeFailure

    session.login()
    try:
        result = session.start_handshake()
    except HandshakeFailure as e:
        print(f"error: handshake failed: {e}", file=sys.stderr)
        return False
    print(f"secure channel established; fingerprint: {result.fingerprint}")
    return True


def _cmd_demo(ctx: CliContext, args: argparse.Namespace) -> int:
    # Lazy imports
    from securetrace.core.exceptions import SecureTraceError
    from securetrace.forensics.stats import alert_count, message_count
    from securetrace.session.context import SecureSession

    cfg = _without_echo(ctx.config) if args.no_echo else ctx.config
    messages = args.message or DEFAULT_DEMO_MESSAGES

    with SecureSession(cfg, user_id=args.user) as session:
        if not _start(session):
            _print_entries(session.get_log_entries())
            return 1

        for text in messages:
            try:
                session.send_message(text)
            except (SecureTraceError, ValueError) as e:
                print(f"error: {e}", file=sys.stderr)
                continue
            print(f"> {text}")

        session.echo.flush(timeout=cfg.echo.delay_s + 5.0)
        for m in session.messages():
            if m.sender_id != session.user_id and not m.is_system_notice:
                print(f"< {m.plaintext}")

        entries = session.get_log_entries()
        print("")
        _print_entries(entries)
        print("")
        print(f"messages: {message_count(entries)}  alerts: {alert_count(entries)}")
        print(f"chain verified: {session.verify_chain_integrity()}")
        _print_analysis(_analysis(session))
    return 0


def _cmd_chat(ctx: CliContext, args: argparse.Namespace) -> int:
    from securetrace.core.exceptions import SecureTraceError
    from securetrace.session.context import SecureSession

    cfg = _without_echo(ctx.config) if args.no_echo else ctx.config

    with SecureSession(cfg, user_id=args.user) as session:
        if not _start(session):
            return 1
        print(CHAT_HELP)
        seen = len(session.messages())

        for raw in sys.stdin:
            line = raw.strip()
            if not line:
                continue
            cmd, _, rest = line.partition(" ")
            rest = rest.strip()
            try:
                if cmd == "/quit":
                    break
                elif cmd == "/help":
                    print(CHAT_HELP)
                elif cmd == "/verify":
                    print(f"chain verified: {session.verify_chain_integrity()}")
                elif cmd == "/risk":
                    _print_analysis(session.compute_risk_analysis())
                elif cmd == "/summary":
                    _print_analysis(_analysis(session))
                elif cmd == "/log":
                    _print_entries(session.get_log_entries())
                elif cmd == "/fingerprint":
                    print(f"fingerprint: {session.fingerprint}")
                elif cmd == "/report":
                    session.report_incident(rest or "unspecified")
                    print("incident reported")
                elif cmd == "/keywords":
                    print(", ".join(session.keywords()))
                elif cmd == "/add":
                    print(f"added: {session.add_keyword(rest)}")
                elif cmd == "/remove":
                    print(f"removed: {session.remove_keyword(rest)}")
                elif cmd.startswith("/"):
                    print(f"unknown command: {cmd}", file=sys.stderr)
                else:
                    session.send_message(line)
                    session.echo.flush(timeout=cfg.echo.delay_s + 5.0)
            except (SecureTraceError, ValueError) as e:
                print(f"error: {e}", file=sys.stderr)

            msgs = session.messages()
            for m in msgs[seen:]:
                if m.sender_id != session.user_id:
                    print(f"< {m.plaintext}")
            seen = len(msgs)

    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        _print_version()
        return 0

    if not args.command:
        parser.print_help()
        return 2

    from securetrace.core.exceptions import ConfigError
    from securetrace.core.logging import configure_logging

    repo_root = _repo_root_from_cwd()
    try:
        cfg = _load_config(repo_root, args.config)
    except (ConfigError, ValueError) as e:  # pydantic ValidationError is a ValueError
        print(f"error: {e}", file=sys.stderr)
        return 2
    configure_logging(cfg.logging)

    ctx = CliContext(repo_root=repo_root, config=cfg)

    dispatch: dict[str, Callable[[CliContext, argparse.Namespace], int]] = {
        "demo": _cmd_demo,
        "chat": _cmd_chat,
    }

    fn = dispatch.get(str(args.command))
    if fn is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 2

    return int(fn(ctx, args))


if __name__ == "__main__":
    raise SystemExit(main())
