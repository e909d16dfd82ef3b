"""Report formatter registry.

WHY: The CLI and the report pipeline need a single lookup to find the
right formatter by name. A central dict keeps the format list in one
place and lets ``--formats`` be validated against it.

HOW: FORMATTERS maps string keys to zero-argument factories returning a
BaseFormatter. Callers instantiate as needed:
``formatter = FORMATTERS["markdown"]()``.

RULES:
- Keys are the values accepted by ``--formats``
- The four table keys equal the TableFormat enum values
- "json" is the lossless dump, not a table report
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Callable, Dict

from sclite_report.formatters.alignment_table import AlignmentTableFormatter, TableFormat
from sclite_report.formatters.json_dump import JsonDumpFormatter

if TYPE_CHECKING:
    from sclite_report.formatters.base import BaseFormatter

FORMATTERS: Dict[str, Callable[[], BaseFormatter]] = {
    TableFormat.MARKDOWN.value: functools.partial(AlignmentTableFormatter, TableFormat.MARKDOWN),
    TableFormat.HTML.value: functools.partial(AlignmentTableFormatter, TableFormat.HTML),
    TableFormat.CSV.value: functools.partial(AlignmentTableFormatter, TableFormat.CSV),
    TableFormat.TXT.value: functools.partial(AlignmentTableFormatter, TableFormat.TXT),
    "json": JsonDumpFormatter,
}
