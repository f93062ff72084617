"""fusy command line: policy-gated runs, registry tools, and run history.

Usage:
  fusy run [--session ID] [--cwd DIR] [--timeout S] [--allow-meta] [--yes] [--] <command...>
  fusy tool <tool_name> '<params_json>' [--cwd DIR] [--timeout S] [--yes]
  fusy history [--session ID] [--limit N]
  fusy clear [--session ID]

Options for run must come before the command; every word after the first
command word belongs to the command.
"""
import argparse
import asyncio
import json
import logging
import os
import sys
import time
from typing import Awaitable, Callable

from config.settings import get_settings
from core.db import (
    RunStatus,
    clear_runs,
    get_recent_runs,
    get_session_runs,
    init_db,
    record_run,
    setup_logging,
    update_run_status,
)
from core.executor import run_command
from guardian.errors import CommandError, ExecutionError, NonZeroExit
from guardian.policy import CommandPolicy, StrictPolicy
from tools import TOOL_REGISTRY, ToolContext, execute_tool

logger = logging.getLogger(__name__)


def _confirm(error: CommandError, assume_yes: bool) -> bool:
    if assume_yes:
        logger.warning("Auto-approving after rejection: %s", error)
        return True
    try:
        answer = input(f"{error}\nApprove and retry once? [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


async def run_with_approval(
    invoke: Callable[[CommandPolicy], Awaitable],
    policy: CommandPolicy,
    assume_yes: bool = False,
):
    """
    Call *invoke* with *policy*; on a recoverable rejection ask the operator
    and, if they agree, retry exactly once with the widened policy.
    """
    try:
        return await invoke(policy)
    except CommandError as exc:
        if not exc.recoverable or not _confirm(exc, assume_yes):
            raise
        logger.info("Operator approved retry after: %s", exc)
        return await invoke(policy.grant(exc))


def _command_words(words: list[str]) -> list[str]:
    # argparse keeps a leading "--" in a REMAINDER list on some Python versions.
    if words and words[0] == "--":
        return words[1:]
    return words


async def cmd_run(args: argparse.Namespace) -> int:
    settings = get_settings()
    session_id = args.session or f"session-{time.time_ns()}"
    cwd = args.cwd or os.getcwd()
    timeout = args.timeout if args.timeout is not None else settings.command_timeout
    command = " ".join(_command_words(args.words)).strip()
    if not command:
        print("run requires a command", file=sys.stderr)
        return 1

    policy = settings.build_policy()
    if args.allow_meta:
        policy = policy.model_copy(update={"strict_policy": StrictPolicy(allow_meta_operators=True)})

    await init_db(settings.db_path)
    run_id = await record_run(settings.db_path, session_id, command, metadata={"cwd": cwd})

    async def invoke(p: CommandPolicy):
        return await run_command(
            command, p, cwd=cwd, timeout=timeout, max_buffer=settings.shell_max_buffer
        )

    try:
        result = await run_with_approval(invoke, policy, assume_yes=args.yes)
    except CommandError as exc:
        status = RunStatus.failed if isinstance(exc, ExecutionError) else RunStatus.rejected
        await update_run_status(
            settings.db_path, run_id, status,
            metadata={"error": str(exc), "kind": type(exc).__name__},
        )
        print(f"ERROR: {exc}", file=sys.stderr)
        if isinstance(exc, NonZeroExit) and exc.returncode > 0:
            return exc.returncode
        return 1

    await update_run_status(
        settings.db_path, run_id, RunStatus.done,
        metadata={"stdout": result.stdout, "stderr": result.stderr},
    )
    if result.stdout:
        print(result.stdout)
    if result.stderr:
        print(result.stderr, file=sys.stderr)
    return 0


async def cmd_tool(args: argparse.Namespace) -> int:
    settings = get_settings()
    cwd = args.cwd or os.getcwd()
    timeout = args.timeout if args.timeout is not None else settings.command_timeout
    if not args.name:
        print(f"Usage: fusy tool <tool_name> '<params_json>'. Available: {list(TOOL_REGISTRY)}",
              file=sys.stderr)
        return 1

    params = json.loads(args.params)
    if args.name not in TOOL_REGISTRY:
        print(f"Unknown tool: {args.name!r}. Available: {list(TOOL_REGISTRY)}", file=sys.stderr)
        return 1

    async def invoke(p: CommandPolicy):
        return await execute_tool(args.name, params, ToolContext(cwd=cwd, policy=p, timeout=timeout))

    try:
        result = await run_with_approval(invoke, settings.build_policy(), assume_yes=args.yes)
    except (CommandError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if isinstance(result, str):
        print(result)
    elif result is not None:
        print(json.dumps(result, indent=2))
    return 0


async def cmd_history(args: argparse.Namespace) -> int:
    settings = get_settings()
    await init_db(settings.db_path)
    if args.session:
        runs = await get_session_runs(settings.db_path, args.session)
    else:
        runs = await get_recent_runs(settings.db_path, limit=args.limit)
    for run in runs:
        print(f"#{run.id} [{run.status.value}] {run.session_id}: {run.command}")
    return 0


async def cmd_clear(args: argparse.Namespace) -> int:
    settings = get_settings()
    await init_db(settings.db_path)
    removed = await clear_runs(settings.db_path, args.session)
    scope = f"session {args.session}" if args.session else "all sessions"
    print(f"Cleared {removed} run(s) for {scope}")
    return 0


COMMANDS = {
    "run": cmd_run,
    "tool": cmd_tool,
    "history": cmd_history,
    "clear": cmd_clear,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fusy",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command")

    exec_parser = argparse.ArgumentParser(add_help=False)
    exec_parser.add_argument("--cwd")
    exec_parser.add_argument("--timeout", type=float)
    exec_parser.add_argument("--yes", action="store_true")

    run_parser = subparsers.add_parser("run", parents=[exec_parser])
    run_parser.add_argument("--session")
    run_parser.add_argument("--allow-meta", action="store_true")
    run_parser.add_argument("words", nargs=argparse.REMAINDER)

    tool_parser = subparsers.add_parser("tool", parents=[exec_parser])
    tool_parser.add_argument("name", nargs="?")
    tool_parser.add_argument("params", nargs="?", default="{}")

    history_parser = subparsers.add_parser("history")
    history_parser.add_argument("--session")
    history_parser.add_argument("--limit", type=int, default=20)

    clear_parser = subparsers.add_parser("clear")
    clear_parser.add_argument("--session")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        # --help exits 0, a usage error exits 2.
        return exc.code if isinstance(exc.code, int) else 1

    if args.command is None:
        parser.print_help()
        return 0

    setup_logging(get_settings().log_dir)
    try:
        return asyncio.run(COMMANDS[args.command](args))
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
