"""Tests for the output parsers."""

from __future__ import annotations

from switchfleet.utils.parsers import parse_list, parse_single, split_lines


class TestSplitLines:
    def test_empty(self):
        assert split_lines("") == []

    def test_crlf(self):
        assert split_lines("a\r\nb\r\n") == ["a", "b", ""]


class TestParseList:
    def test_drops_trailing_empty_line(self):
        assert parse_list("snmp\npmon\n") == ["snmp", "pmon"]

    def test_drops_blank_lines_and_strips(self):
        assert parse_list("  a \n\n   \nb\n") == ["a", "b"]

    def test_skip_header(self):
        assert parse_list("NAMES\nsnmp\n", skip_header=1) == ["snmp"]

    def test_empty_output(self):
        assert parse_list("") == []


class TestParseSingle:
    def test_first_line_stripped(self):
        assert parse_single(" SONiC.202305\n other\n") == "SONiC.202305"

    def test_skips_leading_blank_lines(self):
        assert parse_single("\n\n value\n") == "value"

    def test_empty(self):
        assert parse_single("") == ""
        assert parse_single("\n\n") == ""
