"""Helpers that fold raw command output into snapshot fields."""

from __future__ import annotations


def split_lines(text: str) -> list[str]:
    """Split on newline boundaries, tolerating CRLF output."""
    if not text:
        return []
    return text.replace("\r\n", "\n").split("\n")


def parse_list(text: str, *, skip_header: int = 0) -> list[str]:
    """One element per non-empty line after *skip_header* header lines.

    Trailing newlines from ``cut``/``docker ps`` would otherwise leave an empty
    element at the end of every list.
    """
    lines = split_lines(text)[skip_header:]
    return [line.strip() for line in lines if line.strip()]


def parse_single(text: str) -> str:
    """First non-empty line, stripped (``cut -d: -f2`` leaves a leading space)."""
    for line in split_lines(text):
        if line.strip():
            return line.strip()
    return ""
