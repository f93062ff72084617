"""Per-call execution policy and the pure allow/deny evaluator."""
import logging
from pathlib import PurePath
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field

from guardian.errors import (
    BlockedMetaOperators,
    CommandError,
    PolicyDenied,
    RequiresApproval,
    UnresolvedProgram,
)
from guardian.sanitizer import is_opaque_program

logger = logging.getLogger(__name__)

# Applied whenever a policy does not carry its own deny list.
DEFAULT_DENY_LIST: frozenset[str] = frozenset({"rm", "shutdown", "reboot", "mkfs", "dd"})


class StrictPolicy(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    allow_meta_operators: bool = Field(default=False, alias="allowMetaOperators")


class CommandPolicy(BaseModel):
    """
    Policy supplied fresh for each run_command() call.

    Field names accept both snake_case and the camelCase used in tool-call
    JSON (``allowList``, ``denyList``, ``requireApproval``, ``strictPolicy``).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    allow_list: frozenset[str] | None = Field(default=None, alias="allowList")
    deny_list: frozenset[str] | None = Field(default=None, alias="denyList")
    require_approval: bool = Field(default=False, alias="requireApproval")
    approved: bool = False
    strict_policy: StrictPolicy = Field(default_factory=StrictPolicy, alias="strictPolicy")

    @property
    def effective_deny_list(self) -> frozenset[str]:
        return self.deny_list if self.deny_list is not None else DEFAULT_DENY_LIST

    @property
    def allows_meta_operators(self) -> bool:
        return self.strict_policy.allow_meta_operators

    def narrowed_to(self, binary: str) -> "CommandPolicy":
        """Return a copy whose allow list contains exactly *binary*."""
        return self.model_copy(update={"allow_list": frozenset({binary})})

    def grant(self, error: CommandError) -> "CommandPolicy":
        """
        Return a copy widened just enough to clear one recoverable rejection.

        Only call this after an operator has explicitly consented.
        """
        if not error.recoverable:
            raise ValueError(f"{type(error).__name__} cannot be resolved by widening the policy")

        if isinstance(error, BlockedMetaOperators):
            strict = self.strict_policy.model_copy(update={"allow_meta_operators": True})
            return self.model_copy(update={"strict_policy": strict})

        if isinstance(error, PolicyDenied):
            names = _names_for(error.binary)
            update: dict = {"deny_list": self.effective_deny_list - names}
            if self.allow_list:
                update["allow_list"] = self.allow_list | {error.binary}
            return self.model_copy(update=update)

        if isinstance(error, RequiresApproval):
            return self.model_copy(update={"approved": True})

        raise ValueError(f"{type(error).__name__} cannot be resolved by widening the policy")


def _names_for(binary: str) -> set[str]:
    """*binary* as written plus its basename, so /bin/rm matches a deny entry for rm."""
    return {binary, PurePath(binary).name} - {""}


def is_allowed(binary: str, policy: CommandPolicy) -> bool:
    """
    Decide whether *binary* may run under *policy*.

    A program word the shell computes at run time is never allowed. After
    that the deny list always wins, and a non-empty allow list must contain
    the binary exactly as written; an absent or empty allow list allows it.
    """
    if is_opaque_program(binary):
        return False

    if _names_for(binary) & policy.effective_deny_list:
        return False

    allowed = policy.allow_list
    if not allowed:
        return True

    return binary in allowed


def needs_approval(policy: CommandPolicy) -> bool:
    """Approval is a blanket gate independent of the binary checks."""
    return policy.require_approval and not policy.approved


def check_binaries(binaries: Iterable[str], policy: CommandPolicy) -> None:
    """Raise PolicyDenied for the first binary *policy* does not allow."""
    for binary in binaries:
        if is_opaque_program(binary):
            logger.warning("Policy denied computed program word %r", binary)
            raise UnresolvedProgram(binary)
        if not is_allowed(binary, policy):
            logger.warning("Policy denied binary %r", binary)
            raise PolicyDenied(binary)
