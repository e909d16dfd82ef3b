"""Abstract base formatter and output container.

WHY: Every report format consumes the same AlignedHypothesis IR but
produces different file content. This base class gives the CLI and the
report pipeline one interface to drive any formatter generically.

HOW: BaseFormatter is an ABC with two requirements: a ``name`` property
and a ``format()`` method. FormatterOutput is a plain dataclass that
bundles a file suffix with its content and MIME type.

RULES:
- Subclasses MUST implement ``name`` (human-readable) and ``format()``
- ``format()`` returns a list; every current formatter returns one item
- ``suffix`` replaces the ``.sgml`` extension of the source file,
  e.g. ``".pra.md"`` → ``"bangla.trn.pra.md"``
- ``format()`` never touches the filesystem; writing is the caller's job
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from sclite_report.core.ir import AlignedHypothesis


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        suffix: Extension substituted for the source's ``.sgml``,
                e.g. ``".pra.html"`` → ``"bangla.trn.pra.html"``.
        content: The complete file content.
        media_type: MIME type for the content, e.g. ``"text/html"``.
    """

    suffix: str
    content: str
    media_type: str


class BaseFormatter(ABC):
    """Abstract base for all report formatters.

    To add a new output format:
    1. Create a new file in formatters/
    2. Subclass BaseFormatter
    3. Implement format() and name
    4. Register in FORMATTERS dict in formatters/__init__.py
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'Markdown alignment report'."""

    @abstractmethod
    def format(self, hypothesis: AlignedHypothesis) -> list[FormatterOutput]:
        """Render the AlignedHypothesis into one or more output files.

        Args:
            hypothesis: The parsed alignments for one scored system.

        Returns:
            List of FormatterOutput objects, each containing a file suffix,
            the content string, and its MIME type.
        """
