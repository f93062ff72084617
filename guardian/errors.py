"""Typed rejections and execution failures raised by the command policy engine."""


class CommandError(Exception):
    """Base class for every failure surfaced by run_command()."""

    # True when the caller may resubmit with a widened policy after operator consent.
    recoverable: bool = False


class BlockedMetaOperators(CommandError):
    recoverable = True

    def __init__(self, command: str, operators: list[str] | None = None) -> None:
        self.command = command
        self.operators = operators or []
        super().__init__(f"Command contains blocked shell meta operators: {command}")


class PolicyDenied(CommandError):
    recoverable = True

    def __init__(self, binary: str, detail: str = "") -> None:
        self.binary = binary
        suffix = f" ({detail})" if detail else ""
        super().__init__(f"Command denied by policy: {binary}{suffix}")


class UnresolvedProgram(PolicyDenied):
    """The program word is only known after shell expansion, so no list can vouch for it."""

    recoverable = False

    def __init__(self, binary: str) -> None:
        super().__init__(binary, "program name is computed by the shell")


class RequiresApproval(CommandError):
    recoverable = True

    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"Command requires approval: {command}")


class InvalidSyntax(CommandError):
    def __init__(self, command: str, reason: str = "") -> None:
        self.command = command
        self.reason = reason
        detail = f" ({reason})" if reason else ""
        super().__init__(f"Invalid command syntax{detail}: {command}")


class EmptyCommand(CommandError):
    def __init__(self) -> None:
        super().__init__("Command must not be empty")


class ExecutionError(CommandError):
    """The command passed every check but the process itself failed."""


class SpawnFailure(ExecutionError):
    def __init__(self, program: str, reason: str) -> None:
        self.program = program
        self.reason = reason
        super().__init__(f"Failed to start {program}: {reason}")


class NonZeroExit(ExecutionError):
    def __init__(self, returncode: int, stderr: str) -> None:
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(stderr or f"Command failed with exit code {returncode}")


class CommandTimeout(ExecutionError):
    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout}s")


class OutputLimitExceeded(ExecutionError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Command output exceeded {limit} bytes")
