from guardian.errors import (
    BlockedMetaOperators,
    CommandError,
    CommandTimeout,
    EmptyCommand,
    ExecutionError,
    InvalidSyntax,
    NonZeroExit,
    OutputLimitExceeded,
    PolicyDenied,
    RequiresApproval,
    SpawnFailure,
    UnresolvedProgram,
)
from guardian.policy import DEFAULT_DENY_LIST, CommandPolicy, StrictPolicy, is_allowed, needs_approval
from guardian.sanitizer import (
    CommandScan,
    extract_binaries,
    extract_substitutions,
    has_meta_operators,
    is_opaque_program,
    scan_command,
    split_segments,
)
from guardian.tokenizer import parse_argv
from guardian.validator import validate_command

__all__ = [
    "BlockedMetaOperators",
    "CommandError",
    "CommandPolicy",
    "CommandScan",
    "CommandTimeout",
    "DEFAULT_DENY_LIST",
    "EmptyCommand",
    "ExecutionError",
    "InvalidSyntax",
    "NonZeroExit",
    "OutputLimitExceeded",
    "PolicyDenied",
    "RequiresApproval",
    "SpawnFailure",
    "UnresolvedProgram",
    "StrictPolicy",
    "extract_binaries",
    "extract_substitutions",
    "has_meta_operators",
    "is_opaque_program",
    "is_allowed",
    "needs_approval",
    "parse_argv",
    "scan_command",
    "split_segments",
    "validate_command",
]
