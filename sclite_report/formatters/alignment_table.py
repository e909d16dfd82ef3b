"""Alignment report formatter: one aligned table per sentence.

WHY: Reviewers want to see, for every utterance, which reference words the
system got right, substituted, dropped or invented. sclite's own pra
report pads words with spaces to line them up, which breaks for scripts
with combining marks. This formatter renders the same alignments as real
tables in Markdown, HTML, CSV or plain text.

HOW: render_report() walks the AlignedHypothesis top to bottom:

  SYSTEM ALIGNMENT header + summary lines (system, speakers, sentences)
  per speaker (sorted by id):        level-3 header
    per sentence (by sequence):      level-4 header, stats line, 3-row table

Four primitives (section_header, section_footer, body_text, render_table)
produce the format-specific pieces. Each is a plain switch on TableFormat;
the format set is closed.

RULES:
- Table rows: REF, the system name upper-cased, EVAL
- EVAL shows S/D/I; correct words leave the cell empty
- Column 1 is left aligned, word columns are centered
- Stats line: Cor/Sub/Del/Ins percentages of the declared word count
- HTML text is escaped; Markdown cells escape "|"
- Plain text tables are padded by display width, not code points
"""

from __future__ import annotations

import csv
import enum
import html
import io
import unicodedata
from typing import List

from sclite_report.core.ir import AlignedHypothesis, AlignedSentence, AlignmentLabel
from sclite_report.formatters.base import BaseFormatter, FormatterOutput

_REF_ROW = "REF"
_EVAL_ROW = "EVAL"

_SYSTEM_LEVEL = 2
_SPEAKER_LEVEL = 3
_SENTENCE_LEVEL = 4


class TableFormat(str, enum.Enum):
    """Report layouts supported by AlignmentTableFormatter."""

    MARKDOWN = "markdown"
    HTML = "html"
    CSV = "csv"
    TXT = "txt"


_SUFFIXES = {
    TableFormat.MARKDOWN: ".pra.md",
    TableFormat.HTML: ".pra.html",
    TableFormat.CSV: ".pra.csv",
    TableFormat.TXT: ".pra.txt",
}

_MEDIA_TYPES = {
    TableFormat.MARKDOWN: "text/markdown",
    TableFormat.HTML: "text/html",
    TableFormat.CSV: "text/csv",
    TableFormat.TXT: "text/plain",
}

_NAMES = {
    TableFormat.MARKDOWN: "Markdown",
    TableFormat.HTML: "HTML",
    TableFormat.CSV: "CSV",
    TableFormat.TXT: "Plain Text",
}


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------


def section_header(title: str, table_format: TableFormat, level: int) -> str:
    if table_format is TableFormat.HTML:
        return "\n<h{level}>{title}</h{level}>\n".format(level=level, title=html.escape(title))
    if table_format is TableFormat.MARKDOWN:
        return "\n{} {}\n".format("#" * level, title)
    return "\n{}\n".format(title)


def section_footer(table_format: TableFormat) -> str:
    if table_format is TableFormat.HTML:
        return "\n<br>\n"
    if table_format is TableFormat.MARKDOWN:
        return "\n---\n"
    return "\n\n"


def body_text(text: str, table_format: TableFormat) -> str:
    if table_format is TableFormat.HTML:
        return "\n<p>{}</p>\n".format(html.escape(text))
    if table_format is TableFormat.MARKDOWN:
        return "\n- {}\n".format(text)
    return "\n{}\n".format(text)


def render_table(rows: List[List[str]], table_format: TableFormat) -> str:
    """Render rows whose first column is a row label.

    Returns the table followed by a newline and preceded by a blank line,
    so it never runs into the text around it.
    """
    if table_format is TableFormat.HTML:
        table = _html_table(rows)
    elif table_format is TableFormat.MARKDOWN:
        table = _markdown_table(rows)
    elif table_format is TableFormat.CSV:
        table = _csv_table(rows)
    else:
        table = _text_table(rows)
    return "\n" + table


# ---------------------------------------------------------------------------
# Table renderers
# ---------------------------------------------------------------------------


def _markdown_cell(text: str) -> str:
    return text.replace("|", "\\|") if text else " "


def _markdown_table(rows: List[List[str]]) -> str:
    # Markdown tables need a header row; the REF row doubles as one.
    lines = []
    for index, row in enumerate(rows):
        lines.append("| " + " | ".join(_markdown_cell(cell) for cell in row) + " |")
        if index == 0:
            alignment = [":---"] + [":---:"] * (len(row) - 1)
            lines.append("| " + " | ".join(alignment) + " |")
    return "\n".join(lines) + "\n"


def _html_table(rows: List[List[str]]) -> str:
    lines = ["<table>", "  <tbody>"]
    for row in rows:
        lines.append("  <tr>")
        for index, cell in enumerate(row):
            align = "left" if index == 0 else "center"
            lines.append('    <td align="{}" valign="middle">{}</td>'.format(
                align, html.escape(cell) if cell else "&nbsp;",
            ))
        lines.append("  </tr>")
    lines.extend(["  </tbody>", "</table>"])
    return "\n".join(lines) + "\n"


def _csv_table(rows: List[List[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def display_width(text: str) -> int:
    """Terminal column width of text.

    Combining marks and format characters take no columns; East Asian wide
    and fullwidth characters take two.
    """
    width = 0
    for char in text:
        if unicodedata.combining(char) or unicodedata.category(char) in ("Mn", "Me", "Cf"):
            continue
        width += 2 if unicodedata.east_asian_width(char) in ("W", "F") else 1
    return width


def _pad(text: str, width: int, centered: bool) -> str:
    gap = width - display_width(text)
    if not centered:
        return text + " " * gap
    left = gap // 2
    return " " * left + text + " " * (gap - left)


def _text_table(rows: List[List[str]]) -> str:
    columns = len(rows[0]) if rows else 0
    widths = [
        max(display_width(row[col]) for row in rows)
        for col in range(columns)
    ]
    border = "+" + "+".join("-" * (width + 2) for width in widths) + "+"

    lines = [border]
    for row in rows:
        cells = [
            " " + _pad(cell, widths[col], centered=col > 0) + " "
            for col, cell in enumerate(row)
        ]
        lines.append("|" + "|".join(cells) + "|")
    lines.append(border)
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Report structure
# ---------------------------------------------------------------------------


def sentence_rows(sentence: AlignedSentence) -> List[List[str]]:
    """Build the REF / SYSTEM / EVAL rows for one sentence."""
    ref_row = [_REF_ROW]
    hyp_row = [sentence.system_name.upper()]
    eval_row = [_EVAL_ROW]

    for word in sentence.words:
        ref_row.append(word.ref)
        hyp_row.append(word.hyp)
        eval_row.append("" if word.label == AlignmentLabel.CORRECT else word.label.value)

    return [ref_row, hyp_row, eval_row]


def render_sentence(sentence: AlignedSentence, table_format: TableFormat) -> str:
    return "".join([
        section_header(sentence.sentence_id, table_format, _SENTENCE_LEVEL),
        body_text(sentence.stats().format(), table_format),
        render_table(sentence_rows(sentence), table_format),
        section_footer(table_format),
    ])


def render_report(hypothesis: AlignedHypothesis, table_format: TableFormat) -> str:
    """Render the full alignment report for one hypothesis."""
    parts = [
        section_header("SYSTEM ALIGNMENT", table_format, _SYSTEM_LEVEL),
        body_text("System Name = {}".format(hypothesis.system_name), table_format),
        body_text("Speakers = {}".format(len(hypothesis.speakers)), table_format),
        body_text("Sentences = {}".format(hypothesis.sentence_count), table_format),
        section_footer(table_format),
    ]

    for speaker_id in hypothesis.sorted_speaker_ids():
        parts.append(section_header(speaker_id, table_format, _SPEAKER_LEVEL))
        for sentence in hypothesis.sorted_sentences(speaker_id):
            parts.append(render_sentence(sentence, table_format))
        parts.append(section_footer(table_format))

    return "".join(parts)


class AlignmentTableFormatter(BaseFormatter):
    """Formatter producing a per-sentence alignment report in one TableFormat.

    RULES:
    - Output suffix: ".pra.md", ".pra.html", ".pra.csv" or ".pra.txt"
    - One output file per call
    """

    def __init__(self, table_format: TableFormat = TableFormat.MARKDOWN) -> None:
        self.table_format = TableFormat(table_format)

    @property
    def name(self) -> str:
        return "{} alignment report".format(_NAMES[self.table_format])

    def format(self, hypothesis: AlignedHypothesis) -> List[FormatterOutput]:
        return [
            FormatterOutput(
                suffix=_SUFFIXES[self.table_format],
                content=render_report(hypothesis, self.table_format),
                media_type=_MEDIA_TYPES[self.table_format],
            )
        ]
