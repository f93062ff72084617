"""Tests for guardian.sanitizer: segmenting, substitution scanning and binary extraction."""
import pytest

from guardian.errors import InvalidSyntax
from guardian.sanitizer import (
    CommandScan,
    extract_binaries,
    extract_substitutions,
    find_meta_operators,
    has_meta_operators,
    is_opaque_program,
    scan_command,
    split_segments,
)


# ---------------------------------------------------------------------------
# Meta operator presence scan
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("cmd", [
    "echo hi && echo bye",
    "false || echo bye",
    "echo hi; echo bye",
    "cat foo | grep bar",
    "echo `whoami`",
    "echo $(whoami)",
])
def test_meta_operators_detected(cmd):
    assert has_meta_operators(cmd)


def test_plain_command_has_no_meta_operators():
    assert not has_meta_operators("git log --oneline -n 5")


def test_presence_scan_ignores_quoting():
    # A quoted operator would not chain, but the scan still flags it.
    assert has_meta_operators("echo 'a && b'")
    assert has_meta_operators('grep "x|y" file')


def test_find_meta_operators_names_each_construct():
    assert find_meta_operators("a && b || c") == ["&&", "||", "|"]
    assert find_meta_operators("echo $(id)") == ["$("]


# ---------------------------------------------------------------------------
# Segmenter
# ---------------------------------------------------------------------------


def test_split_on_every_operator():
    assert split_segments("a && b || c ; d | e") == ["a", "b", "c", "d", "e"]


def test_split_drops_empty_segments():
    assert split_segments(";; echo hi ;") == ["echo hi"]


def test_split_preserves_quoted_operators():
    assert split_segments("echo 'a && b' && ls") == ["echo 'a && b'", "ls"]
    assert split_segments('echo "x | y"; pwd') == ['echo "x | y"', "pwd"]


def test_split_escaped_operator_is_literal():
    assert split_segments(r"echo a \; echo b") == [r"echo a \; echo b"]


def test_split_on_newline_and_background():
    assert split_segments("echo a\nrm x") == ["echo a", "rm x"]
    assert split_segments("sleep 1 & rm x") == ["sleep 1", "rm x"]


def test_split_other_quote_kind_is_literal():
    assert split_segments("echo \"it's\" && ls") == ["echo \"it's\"", "ls"]


@pytest.mark.parametrize("cmd", ["echo 'open", 'echo "open', "echo trailing\\"])
def test_split_rejects_unterminated_input(cmd):
    with pytest.raises(InvalidSyntax):
        split_segments(cmd)


# ---------------------------------------------------------------------------
# Substitutions
# ---------------------------------------------------------------------------


def test_extract_backtick_and_dollar_paren():
    assert extract_substitutions("echo `whoami` $(date)") == ["whoami", "date"]


def test_extract_ignores_blank_bodies():
    assert extract_substitutions("echo `` $( )") == []


def test_every_opener_starts_its_own_body():
    assert extract_substitutions("echo $(a $(b) c)") == ["a $(b", "b"]
    assert extract_substitutions("echo $(echo $(rm x))") == ["echo $(rm x", "rm x"]


def test_unclosed_opener_runs_to_end():
    assert extract_substitutions("echo $(rm x") == ["rm x"]


def test_process_substitution_bodies():
    assert extract_substitutions("diff <(ls a) >(tee b)") == ["ls a", "tee b"]


# ---------------------------------------------------------------------------
# Binary extraction
# ---------------------------------------------------------------------------


def test_binaries_from_chained_segments():
    assert extract_binaries("echo hi && rm -rf /tmp/nope") == ["echo", "rm"]


def test_binaries_are_deduplicated_in_order():
    assert extract_binaries("git status; git diff | less") == ["git", "less"]


def test_binaries_inside_substitution():
    assert "rm" in extract_binaries("echo $(rm -rf /tmp/nope)")
    assert "rm" in extract_binaries("echo `rm -rf /tmp/nope`")


def test_binaries_inside_nested_substitution():
    bins = extract_binaries("echo $(echo `rm -rf /` )")
    assert "rm" in bins


def test_binaries_inside_chained_substitution_body():
    bins = extract_binaries("echo $(ls; shutdown now)")
    assert "shutdown" in bins


def test_quoted_binary_name_is_unquoted():
    assert extract_binaries('"rm" -rf /') == ["rm"]
    assert extract_binaries(r"r\m -rf /") == ["rm"]


def test_env_assignment_and_grouping_are_skipped():
    assert extract_binaries("FOO=1 BAR=2 rm x") == ["rm"]
    assert extract_binaries("(cd /tmp && rm x)") == ["cd", "rm"]
    assert extract_binaries("! dd if=/dev/zero") == ["dd"]


def test_reserved_words_are_not_programs():
    assert extract_binaries("true; if true; then rm -rf victim; fi") == ["true", "rm"]
    assert extract_binaries("while false; do rm x; done") == ["false", "rm"]
    assert extract_binaries("if ! grep -q a f; then echo b; else dd x; fi") == ["grep", "echo", "dd"]


def test_list_headers_are_not_programs():
    assert extract_binaries("for f in a b; do rm $f; done") == ["rm"]
    assert extract_binaries("[[ -f x ]] && rm x") == ["rm"]


def test_case_pattern_and_its_command_are_both_reported():
    assert extract_binaries("case x in x) rm -rf victim;; esac") == ["x", "rm"]


def test_subshell_close_is_not_hidden():
    assert extract_binaries("(cd /tmp; rm)") == ["cd", "rm"]


@pytest.mark.parametrize("cmd", [
    ">/dev/null rm -rf victim",
    "</dev/null rm -rf victim",
    "2>err.log rm -rf victim",
    "2> err.log rm -rf victim",
    "> out 2>&1 rm -rf victim",
    ">| out rm -rf victim",
    "&>/dev/null rm -rf victim",
])
def test_leading_redirections_are_skipped(cmd):
    assert extract_binaries(cmd) == ["rm"]


def test_redirection_ampersand_does_not_split():
    assert split_segments("echo hi >&2; rm x") == ["echo hi >&2", "rm x"]
    assert split_segments("echo hi &>log") == ["echo hi &>log"]
    assert split_segments("echo hi >|log") == ["echo hi >|log"]
    assert extract_binaries("true; >&2 rm x") == ["true", "rm"]


def test_escaped_redirect_char_does_not_protect_ampersand():
    assert split_segments(r"echo \>& rm x") == [r"echo \>", "rm x"]


@pytest.mark.parametrize("cmd", ["time -p rm x", "exec rm x", "exec -a name rm x", "command rm x"])
def test_prefix_builtins_report_the_program_they_run(cmd):
    assert extract_binaries(cmd) == ["rm"]


def test_two_level_substitution():
    assert extract_binaries("echo $(echo $(rm x))") == ["echo", "rm"]


def test_process_substitution_binaries():
    assert "rm" in extract_binaries("cat <(rm x)")


def test_deep_substitution_nesting_is_scanned_once():
    cmd = "echo " + "$(" * 300 + "rm x" + ")" * 300
    assert "rm" in extract_binaries(cmd)


@pytest.mark.parametrize("cmd,word", [
    ("X=rm; $X -rf victim", "$X"),
    ("${X} -rf victim", "${X}"),
    ("/bin/r? -rf victim", "/bin/r?"),
    ("/bin/r* -rf victim", "/bin/r*"),
    ("/bin/r[m] -rf victim", "/bin/r[m]"),
    ("eval 'rm -rf victim'", "eval"),
    ("f() { rm -rf victim; }", "f()"),
    ("f () { rm -rf victim; }", "f()"),
])
def test_computed_program_words_are_reported_as_written(cmd, word):
    binaries = extract_binaries(cmd)
    assert binaries[0] == word
    assert is_opaque_program(word)


@pytest.mark.parametrize("word", ["rm", "/bin/rm", "[", "git", "./build.sh"])
def test_plain_program_words_are_not_opaque(word):
    assert not is_opaque_program(word)


def test_unbalanced_substitution_body_rejects_whole_command():
    cmd = 'echo $(echo ")")'
    with pytest.raises(InvalidSyntax) as exc_info:
        extract_binaries(cmd)
    assert exc_info.value.command == cmd


def test_empty_command_has_no_binaries():
    assert extract_binaries("   ") == []


# ---------------------------------------------------------------------------
# scan_command
# ---------------------------------------------------------------------------


def test_scan_command_snapshot():
    scan = scan_command("echo $(id) && ls")
    assert isinstance(scan, CommandScan)
    assert scan.segments == ["echo $(id)", "ls"]
    assert scan.substitutions == ["id"]
    assert scan.binaries == ["echo", "ls", "id"]
    assert scan.meta_operators == ["&&", "$("]
    assert scan.has_meta_operators


def test_scan_result_dataclass_defaults():
    scan = CommandScan()
    assert scan.binaries == []
    assert not scan.has_meta_operators
