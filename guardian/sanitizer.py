"""Command text analysis: segmenting, substitution scanning and binary extraction.

Everything here is a pure function of the command string. Nothing is executed.
"""
import re
from dataclasses import dataclass, field

from guardian.errors import InvalidSyntax
from guardian.tokenizer import parse_argv

# Checked in this order; the scan is purely textual and ignores quoting.
META_OPERATORS: tuple[str, ...] = ("&&", "||", ";", "|", "`", "$(")

_BACKTICK_RE = re.compile(r"`([^`]+)`")
# Command and process substitution openers. A body runs to the next ")"
# whether or not parentheses balance, so nested openers get their own body.
_SUBSTITUTION_OPENERS: tuple[str, ...] = ("$(", "<(", ">(")
_ASSIGNMENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")
# Group 1 is the inline target; when empty the target is the next word.
_REDIRECT_RE = re.compile(r"^\d*(?:<<<|<<-|<<|<>|<&|>&|&>>|&>|>>|>\||<|>)(.*)$")
# Shell grouping/negation prefixes that may precede the real program word.
_PREFIX_CHARS = "({!"

_RESERVED_WORDS = frozenset({
    "!", "{", "}", "if", "then", "else", "elif", "fi",
    "do", "done", "while", "until", "esac", "in", "coproc",
})
# Builtins that run the next word as the program; their own options are skipped.
_PREFIX_BUILTINS = frozenset({"time", "exec", "command", "builtin"})
# Words up to "in" are a variable name or case subject, never a program.
_LIST_KEYWORDS = frozenset({"for", "select", "case"})
# The program these run is only known once the shell evaluates them.
_OPAQUE_WORDS = frozenset({"eval", "function"})
_OPAQUE_CHARS = frozenset("$`*?(){}")


@dataclass
class CommandScan:
    segments: list[str] = field(default_factory=list)
    substitutions: list[str] = field(default_factory=list)
    binaries: list[str] = field(default_factory=list)
    meta_operators: list[str] = field(default_factory=list)

    @property
    def has_meta_operators(self) -> bool:
        return bool(self.meta_operators)


def find_meta_operators(command: str) -> list[str]:
    """Return every meta operator or substitution marker present in *command*."""
    return [op for op in META_OPERATORS if op in command]


def has_meta_operators(command: str) -> bool:
    """
    True if *command* contains any chaining operator or substitution marker.

    Quoting is deliberately not considered: a quoted ``&&`` still counts.
    """
    return bool(find_meta_operators(command))


def split_segments(command: str) -> list[str]:
    """
    Split *command* at unquoted ``&&``, ``||``, ``;`` and ``|``.

    Unquoted newlines and a lone ``&`` also end a segment, since a shell
    starts a new command there too. The ``&`` and ``|`` of redirections
    such as ``>&2``, ``&>file`` and ``>|file`` stay in the segment. Quote
    and escape characters are kept in the segment text. Raises
    InvalidSyntax on an unterminated quote or a trailing escape.
    """
    segments: list[str] = []
    buf: list[str] = []
    in_single = False
    in_double = False
    escape_next = False
    # True right after an unquoted, unescaped "<" or ">".
    after_redirect = False

    def flush() -> None:
        text = "".join(buf).strip()
        if text:
            segments.append(text)
        buf.clear()

    i = 0
    while i < len(command):
        ch = command[i]
        nxt = command[i + 1] if i + 1 < len(command) else ""
        redirect_char = after_redirect
        after_redirect = False

        if escape_next:
            buf.append(ch)
            escape_next = False
            i += 1
            continue

        if ch == "\\" and not in_single:
            buf.append(ch)
            escape_next = True
            i += 1
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
            buf.append(ch)
            i += 1
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
            buf.append(ch)
            i += 1
            continue

        if in_single or in_double:
            buf.append(ch)
            i += 1
            continue

        if ch in "<>":
            after_redirect = True
            buf.append(ch)
            i += 1
            continue

        if (ch == "&" and (redirect_char or nxt == ">")) or (ch == "|" and redirect_char):
            buf.append(ch)
            i += 1
            continue

        if (ch == "&" and nxt == "&") or (ch == "|" and nxt == "|"):
            flush()
            i += 2
            continue

        if ch in ";|&\n":
            flush()
            i += 1
            continue

        buf.append(ch)
        i += 1

    if in_single or in_double or escape_next:
        raise InvalidSyntax(command)

    flush()
    return segments


def extract_substitutions(command: str) -> list[str]:
    """
    Return the inner text of every backtick, ``$( … )``, ``<( … )`` and
    ``>( … )`` span, backticks first.

    Every opener starts its own body, so ``$(a $(b))`` yields both
    ``a $(b`` and ``b``. An opener with no closing ``)`` runs to the end.
    """
    found: list[str] = []
    for match in _BACKTICK_RE.finditer(command):
        body = match.group(1).strip()
        if body:
            found.append(body)

    starts: list[int] = []
    for opener in _SUBSTITUTION_OPENERS:
        i = command.find(opener)
        while i != -1:
            starts.append(i)
            i = command.find(opener, i + 1)

    for start in sorted(starts):
        end = command.find(")", start + 2)
        body = command[start + 2:] if end == -1 else command[start + 2:end]
        body = body.strip()
        if body:
            found.append(body)
    return found


def is_opaque_program(word: str) -> bool:
    """
    True when the program *word* runs can only be known by evaluating it.

    Expansions (``$X``, backticks), globs, brace expansion, function
    definitions and ``eval`` all qualify. The lone ``[`` test command does not.
    """
    if word in _OPAQUE_WORDS:
        return True
    if any(ch in _OPAQUE_CHARS for ch in word):
        return True
    return "[" in word and "]" in word


def _segment_programs(segment: str) -> list[str]:
    """
    Return the program word(s) a shell would run for one *segment*.

    Env assignments, redirections and their targets, reserved words,
    grouping characters and the options of time/exec/command are passed
    over. A word closing a subshell or case pattern (``rm)``, ``b)``) is
    reported and the scan continues, since a command may follow it.
    """
    words = parse_argv(segment)
    programs: list[str] = []
    skip_options = False
    i = 0
    while i < len(words):
        word = words[i].lstrip(_PREFIX_CHARS)
        i += 1
        if not word or word in _RESERVED_WORDS or _ASSIGNMENT_RE.match(word):
            continue

        redirect = _REDIRECT_RE.match(word)
        if redirect:
            if not redirect.group(1):
                i += 1
            continue

        if skip_options and word.startswith("-"):
            if word == "-a":  # exec -a NAME
                i += 1
            continue

        if word in _PREFIX_BUILTINS:
            skip_options = True
            continue

        if word in _LIST_KEYWORDS:
            rest = words[i:]
            if word != "case" or "in" not in rest:
                return programs
            i += rest.index("in") + 1
            continue

        if word == "[[":
            return programs

        if word.endswith("()") or (i < len(words) and words[i] == "()"):
            programs.append(word if word.endswith("()") else word + "()")
            return programs

        if word.endswith(")"):
            word = word.rstrip(")")
            if word:
                programs.append(word)
            skip_options = False
            continue

        programs.append(word)
        return programs
    return programs


def extract_binaries(command: str) -> list[str]:
    """
    Return every program name reachable from *command*, de-duplicated.

    Covers the program word of each segment plus, recursively, every
    substitution body, so a binary cannot hide at any nesting depth.
    Unbalanced quoting anywhere, including inside a substitution body,
    raises InvalidSyntax for the whole command.
    """
    binaries: list[str] = []
    # An inner body is found again inside every enclosing body; scan it once.
    seen: set[str] = set()
    pending = [command]

    try:
        while pending:
            text = pending.pop()
            if text in seen:
                continue
            seen.add(text)
            for segment in split_segments(text):
                for binary in _segment_programs(segment):
                    if binary not in binaries:
                        binaries.append(binary)
            # Reversed so bodies are scanned in the order they appear.
            pending.extend(reversed(extract_substitutions(text)))
    except InvalidSyntax as exc:
        if exc.command == command:
            raise
        raise InvalidSyntax(command, f"unbalanced quoting in {exc.command!r}") from exc
    return binaries


def scan_command(command: str) -> CommandScan:
    """Collect segments, substitutions, binaries and meta operators in one pass."""
    return CommandScan(
        segments=split_segments(command),
        substitutions=extract_substitutions(command),
        binaries=extract_binaries(command),
        meta_operators=find_meta_operators(command),
    )
