"""Tests for bash quoting utilities."""

import pytest

from openwith.core.bash import bash_quote, split_command


class TestBashQuote:
    def test_empty_string(self):
        assert bash_quote("") == "''"

    def test_simple_word(self):
        assert bash_quote("hello") == "hello"

    def test_with_spaces(self):
        assert bash_quote("hello world") == "'hello world'"

    def test_with_single_quote(self):
        assert bash_quote("it's") == "'it'\\''s'"

    def test_safe_chars(self):
        assert bash_quote("foo-bar_baz.txt") == "foo-bar_baz.txt"
        assert bash_quote("/path/to/file") == "/path/to/file"

    def test_special_chars(self):
        assert bash_quote("$HOME") == "'$HOME'"
        assert bash_quote("a*b") == "'a*b'"
        assert bash_quote("a;b") == "'a;b'"
        assert bash_quote("file://x") == "'file://x'"


class TestSplitCommand:
    def test_simple(self):
        assert split_command("gimp /tmp/a.png") == ["gimp", "/tmp/a.png"]

    @pytest.mark.parametrize(
        "arg",
        [
            "a b.txt",
            "it's",
            "$HOME",
            "a;b",
            "x|y",
            "a&&b",
            "semi;colon and space",
        ],
    )
    def test_quoted_argument_survives_as_one_word(self, arg):
        assert split_command("viewer " + bash_quote(arg)) == ["viewer", arg]

    def test_empty(self):
        assert split_command("") == []
        assert split_command("   ") == []

    def test_pipeline_rejected(self):
        assert split_command("a | b") == []

    def test_unparseable(self):
        assert split_command("echo 'unterminated") == []
