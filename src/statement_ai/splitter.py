"""Line and field splitting for bank statement CSV exports.

Bank exports are simple enough that a full CSV dialect parser is not
needed: lines are split on either line-ending convention, and fields are
split on commas outside double quotes.  Quote characters only toggle the
in-quote state; escaped quotes (``""``) are not supported.
"""

from __future__ import annotations

import re

_LINE_BREAK = re.compile(r"\r?\n")


def _non_blank_lines(text: str) -> list[str]:
    return [line.strip() for line in _LINE_BREAK.split(text) if line.strip()]


def split_statement(text: str) -> tuple[str, list[str]] | None:
    """Split raw statement text into a header line and data rows.

    Blank lines (empty after trimming) are dropped.  The first surviving
    line is the header; every later line is a data row, in file order.

    Args:
        text: Full contents of the statement file.

    Returns:
        ``(header, rows)``, or ``None`` when the text has fewer than two
        non-blank lines (no data rows).
    """
    lines = _non_blank_lines(text)
    if len(lines) < 2:
        return None
    return lines[0], lines[1:]


def split_fields(line: str) -> list[str]:
    """Split one CSV line into trimmed fields.

    Commas inside double quotes are kept as part of the field.  The quote
    characters themselves are removed.

    >>> split_fields('01/02/2024,"ACME, Inc #12",10.50')
    ['01/02/2024', 'ACME, Inc #12', '10.50']
    """
    values: list[str] = []
    current: list[str] = []
    in_quote = False
    for char in line:
        if char == '"':
            in_quote = not in_quote
        elif char == "," and not in_quote:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    values.append("".join(current).strip())
    return values


def parse_csv(text: str) -> list[list[str]]:
    """Split every non-blank line of *text* into fields."""
    return [split_fields(line) for line in _non_blank_lines(text)]
