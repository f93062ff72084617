"""Policy-gated command dispatcher.

Every command walks CHECK_META → CHECK_POLICY → CHECK_APPROVAL → DISPATCH.
All checks finish before anything is spawned; any failed check raises and
nothing runs. There are no retries here; callers decide whether to widen
the policy and resubmit.
"""
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Literal

from core.process import DEFAULT_MAX_BUFFER, CommandOutput, spawn_exec, spawn_shell
from guardian.errors import (
    BlockedMetaOperators,
    EmptyCommand,
    InvalidSyntax,
    RequiresApproval,
)
from guardian.policy import CommandPolicy, check_binaries, needs_approval
from guardian.sanitizer import extract_binaries, find_meta_operators
from guardian.tokenizer import parse_argv
from guardian.validator import validate_command

logger = logging.getLogger(__name__)


class DispatchState(str, Enum):
    check_meta = "CHECK_META"
    check_policy = "CHECK_POLICY"
    check_approval = "CHECK_APPROVAL"
    dispatch = "DISPATCH"
    spawned = "SPAWNED"
    rejected = "REJECTED"


@dataclass(frozen=True)
class ExecutionPlan:
    """Outcome of the checks: how (and with what) the command will be run."""

    command: str
    mode: Literal["exec", "shell"]
    argv: tuple[str, ...]
    binaries: tuple[str, ...]


def _enter(state: DispatchState, command: str) -> None:
    logger.debug("%s: %s", state.value, command)


def plan_command(command: str, policy: CommandPolicy | None = None) -> ExecutionPlan:
    """
    Run every check for *command* under *policy* and return the dispatch plan.

    Pure: the same (command, policy) pair always yields the same plan or the
    same exception.
    """
    policy = policy or CommandPolicy()

    try:
        if not command or not command.strip():
            raise EmptyCommand()
        ok, reason = validate_command(command)
        if not ok:
            raise InvalidSyntax(command, reason)

        _enter(DispatchState.check_meta, command)
        operators = find_meta_operators(command)
        if operators and not policy.allows_meta_operators:
            logger.warning("Blocked meta operators %s in %r", operators, command)
            raise BlockedMetaOperators(command, operators)

        _enter(DispatchState.check_policy, command)
        binaries = extract_binaries(command)
        argv: list[str] = []
        if not operators:
            argv = parse_argv(command)
            if not argv or not argv[0]:
                raise EmptyCommand()
            # Without a shell argv[0] is what runs, even a word like "time" or "if".
            if argv[0] not in binaries:
                binaries.insert(0, argv[0])
        check_binaries(binaries, policy)

        _enter(DispatchState.check_approval, command)
        if needs_approval(policy):
            logger.warning("Approval required for %r", command)
            raise RequiresApproval(command)

        _enter(DispatchState.dispatch, command)
        if operators:
            return ExecutionPlan(
                command=command,
                mode="shell",
                argv=(),
                binaries=tuple(binaries),
            )

        return ExecutionPlan(
            command=command,
            mode="exec",
            argv=tuple(argv),
            binaries=tuple(binaries),
        )
    except Exception:
        _enter(DispatchState.rejected, command)
        raise


async def run_command(
    command: str,
    policy: CommandPolicy | None = None,
    cwd: str | None = None,
    timeout: float | None = None,
    max_buffer: int = DEFAULT_MAX_BUFFER,
) -> CommandOutput:
    """
    Check *command* against *policy* and, if it passes, run it in *cwd*.

    Commands without meta operators are tokenized and spawned directly with
    no shell. Only when the policy explicitly allows meta operators is the
    original string handed to the host shell. *timeout* (seconds) kills the
    child on expiry; cancelling the awaiting task kills it too.
    """
    plan = plan_command(command, policy)
    cwd = cwd or os.getcwd()

    if plan.mode == "shell":
        output = await spawn_shell(plan.command, cwd, timeout=timeout, max_buffer=max_buffer)
    else:
        output = await spawn_exec(plan.argv, cwd, timeout=timeout)

    _enter(DispatchState.spawned, command)
    return output
