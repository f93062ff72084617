"""Shell-like argv tokenizer for the no-shell execution path."""
from guardian.errors import InvalidSyntax


def parse_argv(command: str) -> list[str]:
    """
    Split *command* into literal argv tokens without any shell involvement.

    - Whitespace outside quotes separates tokens.
    - Single quotes suppress all escaping until the closing quote.
    - Inside double quotes a backslash escapes the following character.
    - Outside quotes a backslash is dropped and the next character kept as-is.

    Quote and escape markers never appear in the output. ``''`` yields an
    empty token. Raises InvalidSyntax if a quote is left open or an escape
    is pending at end of input.
    """
    argv: list[str] = []
    token: list[str] = []
    # A quoted empty string still produces a token.
    started = False
    in_single = False
    in_double = False
    escape_next = False

    for ch in command:
        if escape_next:
            token.append(ch)
            escape_next = False
            continue

        if ch == "\\" and not in_single:
            escape_next = True
            started = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
            started = True
            continue

        if ch == '"' and not in_single:
            in_double = not in_double
            started = True
            continue

        if not in_single and not in_double and ch.isspace():
            if started:
                argv.append("".join(token))
                token = []
                started = False
            continue

        token.append(ch)
        started = True

    if in_single or in_double or escape_next:
        raise InvalidSyntax(command)

    if started:
        argv.append("".join(token))

    return argv
