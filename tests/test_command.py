"""Tests for command-line parsing.

``parse_command`` turns a typed line into the record the launcher
consumes: executable, arguments, state, and redirect targets.
"""

import pytest

from py_sh.command import Command, CommandSyntaxError, parse_command
from py_sh.jobs import JobState


class TestBasicParsing:
    """Verify executable and argument splitting."""

    def test_blank_line(self) -> None:
        """Blank input yields no command."""
        assert parse_command("") is None
        assert parse_command("   \n") is None

    def test_executable_and_args(self) -> None:
        """Words split on whitespace."""
        command = parse_command("ls -la  /tmp\n")
        assert command == Command(
            executable="ls",
            args=("-la", "/tmp"),
            command_line="ls -la  /tmp",
        )

    def test_argv(self) -> None:
        """argv is the executable followed by its arguments."""
        command = parse_command("echo a b")
        assert command is not None
        assert command.argv == ["echo", "a", "b"]

    def test_default_foreground(self) -> None:
        """Without ``&`` the command runs in the foreground."""
        command = parse_command("true")
        assert command is not None
        assert command.state is JobState.FOREGROUND


class TestBackground:
    """Verify trailing ``&`` detection."""

    def test_trailing_ampersand_token(self) -> None:
        """A separate ``&`` token selects background state."""
        command = parse_command("sleep 5 &")
        assert command is not None
        assert command.state is JobState.BACKGROUND
        assert command.argv == ["sleep", "5"]

    def test_attached_ampersand(self) -> None:
        """``&`` glued to the last word also counts."""
        command = parse_command("sleep 5&")
        assert command is not None
        assert command.state is JobState.BACKGROUND
        assert command.args == ("5",)

    def test_command_line_keeps_ampersand(self) -> None:
        """The displayed command line is the original text."""
        command = parse_command("  sleep 5 &  ")
        assert command is not None
        assert command.command_line == "sleep 5 &"

    def test_middle_ampersand_is_argument(self) -> None:
        """An ``&`` in the middle is passed through as an argument."""
        command = parse_command("echo a & b")
        assert command is not None
        assert command.state is JobState.FOREGROUND
        assert command.args == ("a", "&", "b")

    def test_bare_ampersand(self) -> None:
        """A line that is only ``&`` is a syntax error."""
        with pytest.raises(CommandSyntaxError, match="&"):
            parse_command("&")


class TestRedirections:
    """Verify ``<`` and ``>`` extraction."""

    def test_output_redirect(self) -> None:
        """``> file`` sets stdout_path."""
        command = parse_command("ls > out.txt")
        assert command is not None
        assert command.stdout_path == "out.txt"
        assert command.argv == ["ls"]

    def test_input_redirect(self) -> None:
        """``< file`` sets stdin_path."""
        command = parse_command("sort < names.txt")
        assert command is not None
        assert command.stdin_path == "names.txt"
        assert command.argv == ["sort"]

    def test_both_without_spaces(self) -> None:
        """Operators may be glued to their targets."""
        command = parse_command("sort <in.txt >out.txt")
        assert command is not None
        assert command.stdin_path == "in.txt"
        assert command.stdout_path == "out.txt"
        assert command.argv == ["sort"]

    def test_redirect_with_background(self) -> None:
        """Redirects and ``&`` combine."""
        command = parse_command("sort < a > b &")
        assert command is not None
        assert command.state is JobState.BACKGROUND
        assert (command.stdin_path, command.stdout_path) == ("a", "b")

    def test_redirect_before_args(self) -> None:
        """A redirect may appear before arguments."""
        command = parse_command("cat < in.txt -n")
        assert command is not None
        assert command.args == ("-n",)

    def test_missing_target(self) -> None:
        """An operator without a file is a syntax error."""
        with pytest.raises(CommandSyntaxError, match=">"):
            parse_command("ls >")

    def test_repeated_redirect(self) -> None:
        """Two output redirects are rejected."""
        with pytest.raises(CommandSyntaxError):
            parse_command("ls > a > b")

    def test_redirect_only(self) -> None:
        """A redirect with no command is rejected."""
        with pytest.raises(CommandSyntaxError, match="missing command"):
            parse_command("> out.txt")
