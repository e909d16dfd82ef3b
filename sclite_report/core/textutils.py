"""Quoted-field splitting shared by the SGML parser and transcript reader.

WHY: Two inputs use the same loose quoting convention. Reference and
hypothesis transcripts are delimited files whose text column may contain
the delimiter inside quotes, and sclite's alignment lines are
colon-delimited word-entries that are themselves comma-delimited quoted
triples (``C,"ref","hyp":D,"ref",:I,,"hyp"``). Neither is strict RFC 4180:
a quoted span can start in the middle of a field (``C,"10:30","10:30"``
split on ":" is one entry).

HOW: split_quoted_fields() walks the line once. Every quote character
flips an in-quote flag wherever it appears, and the delimiter only ends a
field while the flag is off. A field wrapped entirely in quotes loses that
one pair; quotes anywhere else are kept literally, so a word-entry comes
back intact for its own split on ",".

RULES:
- Returns [] for an empty line
- Empty fields are kept (a deletion's hyp in ``D,"ref",``)
- Never raises on malformed quoting: an unclosed quote logs a warning and
  the fields read so far are returned, the open span as the last field
- Callers must treat a short or empty result as a possible error
"""

from __future__ import annotations

import logging
from typing import List, Optional

logger = logging.getLogger(__name__)


def _unquote(field: str, quote_char: str) -> str:
    if len(field) >= 2 and field[0] == quote_char and field[-1] == quote_char:
        return field[1:-1]
    return field


def split_quoted_fields(
    line: str,
    delimiter: str,
    quote_char: Optional[str] = '"',
) -> List[str]:
    """Split a line into fields, ignoring delimiters inside quoted spans.

    Args:
        line: One line of text, without its line terminator.
        delimiter: Single-character field delimiter.
        quote_char: Single-character quote, or None to disable quoting.

    Returns:
        The fields in order, with surrounding quotes removed from quoted
        fields. ``ab:"c:d":e`` split on ":" gives ["ab", "c:d", "e"].
    """
    if len(delimiter) != 1:
        raise ValueError("delimiter must be a single character, got {!r}".format(delimiter))
    if quote_char is not None and len(quote_char) != 1:
        raise ValueError("quote_char must be a single character, got {!r}".format(quote_char))
    if not line:
        return []
    if quote_char is None:
        return line.split(delimiter)

    fields: List[str] = []
    current: List[str] = []
    in_quote = False
    for char in line:
        if char == quote_char:
            in_quote = not in_quote
        elif char == delimiter and not in_quote:
            fields.append(_unquote("".join(current), quote_char))
            current = []
            continue
        current.append(char)

    last = "".join(current)
    if in_quote:
        logger.warning(
            "Unclosed %r in %r; keeping the open span as the last field",
            quote_char, line,
        )
        fields.append(last.strip(quote_char))
    else:
        fields.append(_unquote(last, quote_char))
    return fields
