"""Parse sclite SGML alignment output into the AlignedHypothesis IR.

WHY: sclite's text reports (pra/dtl) pad words with spaces to line up
reference and hypothesis, which breaks for scripts with combining marks
and ligatures. Its SGML report carries the same alignments as data, so
the package parses that instead and renders its own tables. The SGML is
only loosely structured, so every structural assumption is checked here
and reported with a precise, named error.

HOW: A forward-only state machine over lines:

  OUTSIDE      --<SYSTEM title=..>-->  IN_SYSTEM
  IN_SYSTEM    --<SPEAKER id=..>--->   IN_SPEAKER
  IN_SPEAKER   --<PATH id=.. ...>-->   IN_PATH        (awaiting alignment line)
  IN_PATH      --alignment line--->    PATH_ALIGNED   (awaiting </PATH>)
  PATH_ALIGNED --</PATH>---------->    IN_SPEAKER
  IN_SPEAKER   --</SPEAKER>------->    IN_SYSTEM
  IN_SYSTEM    --</SYSTEM>-------->    DONE

The alignment line is split twice with split_quoted_fields(): on ":" into
word-entries, then each entry on "," into (label, ref, hyp).

RULES:
- One pass, no backtracking; the first failed check stops the parse
- Each failed check raises its own AlignmentParseError subclass carrying
  the 1-based line number and the offending line
- A missing file raises AlignmentFileNotFoundError (an OSError, not a
  parse error)
- PATH ids are written by sclite as "(utt_id)"; the parentheses are stripped
- A PATH with word_cnt="0" may omit the alignment line
- Sequence numbers must be non-negative and never decrease within a speaker
- The optional cancel event is checked before every line
"""

from __future__ import annotations

import enum
import logging
import re
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from sclite_report.core.ir import (
    AlignedHypothesis,
    AlignedSentence,
    AlignedWord,
    AlignmentLabel,
)
from sclite_report.core.textutils import split_quoted_fields

logger = logging.getLogger(__name__)

# key="value" pairs inside an SGML start tag.
_ATTRIBUTE_RE = re.compile(r'([A-Za-z_][\w.-]*)="([^"]*)"')

# Start and end tags, matched against a stripped line.
_START_TAG_RE = re.compile(r"^<(SYSTEM|SPEAKER|PATH)(?:\s+(.*?))?\s*>$")
_END_TAG_RE = re.compile(r"^</(SYSTEM|SPEAKER|PATH)\s*>$")

_WORD_DELIMITER = ":"
_FIELD_DELIMITER = ","
_QUOTE_CHAR = '"'
_FIELDS_PER_WORD = 3

_LABELS = {label.value: label for label in AlignmentLabel}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class OperationCancelledError(Exception):
    """Raised when a caller's cancel event is set mid-operation.

    WHY: Large batches are driven under a caller-level timeout. Parsing and
    writing check a threading.Event between units of work so a batch can
    be stopped without leaving half-written reports behind.
    """


class AlignmentFileNotFoundError(FileNotFoundError):
    """Raised when an SGML alignment file cannot be opened.

    WHY: A missing input is an I/O problem, not a malformed file; callers
    batching many hypotheses handle the two differently.
    """


class AlignmentParseError(ValueError):
    """Base class for structural problems in sclite SGML output.

    WHY: Callers need to know exactly which check failed and where, but
    also need a single type to catch for "this file is not valid".

    HOW: Subclasses name the failed check. The message embeds the line
    number and the offending line when known.

    RULES:
    - line_number is 1-based, or None when the failure is at end of input
    - line is the raw line (without terminator), or None
    """

    def __init__(
        self,
        message: str,
        line_number: Optional[int] = None,
        line: Optional[str] = None,
    ) -> None:
        self.message = message
        self.line_number = line_number
        self.line = line
        if line_number is not None:
            message = "{} (line {}: {!r})".format(message, line_number, line)
        super().__init__(message)


class MissingSystemNameError(AlignmentParseError):
    """<SYSTEM> tag without a title attribute."""


class MissingSpeakerIdError(AlignmentParseError):
    """<SPEAKER> without an id, or a <PATH> outside any speaker block."""


class MissingSentenceIdError(AlignmentParseError):
    """<PATH> tag without an id attribute."""


class NonIntegerWordCountError(AlignmentParseError):
    """word_cnt attribute missing or not an integer."""


class InvalidWordCountError(AlignmentParseError):
    """word_cnt does not match the number of word-entries on the alignment line."""


class InvalidSequenceError(AlignmentParseError):
    """sequence attribute missing, not an integer, negative, or out of order."""


class PrematureEndOfStreamError(AlignmentParseError):
    """Input ended before the SYSTEM block was closed."""


class MalformedWordEntryError(AlignmentParseError):
    """A word-entry is not a (label, ref, hyp) triple with a known label."""


class DuplicateSentenceIdError(AlignmentParseError):
    """The same sentence id appears twice for one speaker."""


class UnexpectedLineError(AlignmentParseError):
    """A tag or text line that is not valid where it appears."""


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _State(enum.Enum):
    OUTSIDE = "outside"
    IN_SYSTEM = "in-system"
    IN_SPEAKER = "in-speaker"
    IN_PATH = "in-path"
    PATH_ALIGNED = "path-aligned"
    DONE = "done"


def _parse_attributes(text: Optional[str]) -> Dict[str, str]:
    if not text:
        return {}
    return dict(_ATTRIBUTE_RE.findall(text))


def _strip_parens(sentence_id: str) -> str:
    if sentence_id.startswith("(") and sentence_id.endswith(")"):
        return sentence_id[1:-1]
    return sentence_id


def parse_word_entries(
    alignment_line: str,
    line_number: Optional[int] = None,
) -> List[AlignedWord]:
    """Split one sclite alignment line into AlignedWord objects.

    Args:
        alignment_line: e.g. ``C,"tar","tar":S,"nam","nama":I,,"ek"``.
        line_number: Source line number, for error messages.

    Returns:
        The aligned words in order; [] for an empty line.

    Raises:
        MalformedWordEntryError: If an entry does not split into exactly
            three fields or its label is not one of C, S, D, I.
    """
    words: List[AlignedWord] = []
    for entry in split_quoted_fields(alignment_line, _WORD_DELIMITER, _QUOTE_CHAR):
        fields = split_quoted_fields(entry, _FIELD_DELIMITER, _QUOTE_CHAR)
        if len(fields) != _FIELDS_PER_WORD:
            raise MalformedWordEntryError(
                "expected {} fields in word-entry {!r}, got {}".format(
                    _FIELDS_PER_WORD, entry, len(fields),
                ),
                line_number, alignment_line,
            )

        label_code, ref, hyp = fields
        label = _LABELS.get(label_code)
        if label is None:
            raise MalformedWordEntryError(
                "unknown alignment label {!r} in word-entry {!r}".format(label_code, entry),
                line_number, alignment_line,
            )
        words.append(AlignedWord(label=label, ref=ref, hyp=hyp))

    return words


class _SgmlParser:
    """Single-use state machine; one instance per parsed stream."""

    def __init__(self, source: str, cancel: Optional[threading.Event]) -> None:
        self.source = source
        self.cancel = cancel
        self.state = _State.OUTSIDE
        self.system_name = ""
        self.speakers: Dict[str, Dict[str, AlignedSentence]] = {}
        self.last_sequence: Dict[str, int] = {}

        self.speaker_id = ""
        self.path_attrs: Dict[str, str] = {}
        self.path_line_number = 0
        self.path_line = ""
        self.path_words: List[AlignedWord] = []

    # -- line dispatch ------------------------------------------------------

    def feed(self, lines: Iterable[str]) -> AlignedHypothesis:
        line_number = 0
        for line_number, raw in enumerate(lines, start=1):
            if self.cancel is not None and self.cancel.is_set():
                raise OperationCancelledError(
                    "Parsing {} cancelled at line {}".format(self.source, line_number)
                )
            self._handle(line_number, raw.rstrip("\r\n"))

        if self.state is not _State.DONE:
            raise PrematureEndOfStreamError(
                "{} ended after {} line(s) while {}".format(
                    self.source, line_number, self._expecting(),
                )
            )

        return AlignedHypothesis(system_name=self.system_name, speakers=self.speakers)

    def _expecting(self) -> str:
        return {
            _State.OUTSIDE: "expecting <SYSTEM>",
            _State.IN_SYSTEM: "expecting <SPEAKER> or </SYSTEM>",
            _State.IN_SPEAKER: "expecting <PATH> or </SPEAKER>",
            _State.IN_PATH: "expecting an alignment line or </PATH>",
            _State.PATH_ALIGNED: "expecting </PATH>",
            _State.DONE: "done",
        }[self.state]

    def _handle(self, line_number: int, line: str) -> None:
        text = line.strip()

        if self.state is _State.IN_PATH and not text.startswith("</PATH"):
            # Whatever follows a PATH tag is its alignment line, even if empty.
            self.path_words = parse_word_entries(text, line_number)
            self.state = _State.PATH_ALIGNED
            return

        if not text:
            return

        start = _START_TAG_RE.match(text)
        if start:
            tag, attrs = start.group(1), _parse_attributes(start.group(2))
            if tag == "SYSTEM":
                self._start_system(line_number, line, attrs)
            elif tag == "SPEAKER":
                self._start_speaker(line_number, line, attrs)
            else:
                self._start_path(line_number, line, attrs)
            return

        end = _END_TAG_RE.match(text)
        if end:
            tag = end.group(1)
            if tag == "SYSTEM":
                self._end_system(line_number, line)
            elif tag == "SPEAKER":
                self._end_speaker(line_number, line)
            else:
                self._end_path(line_number, line)
            return

        raise UnexpectedLineError(
            "unexpected content while {}".format(self._expecting()), line_number, line,
        )

    def _unexpected(self, line_number: int, line: str) -> UnexpectedLineError:
        return UnexpectedLineError(
            "unexpected tag while {}".format(self._expecting()), line_number, line,
        )

    # -- SYSTEM ---------------------------------------------------------------

    def _start_system(self, line_number: int, line: str, attrs: Dict[str, str]) -> None:
        if self.state is not _State.OUTSIDE:
            raise self._unexpected(line_number, line)
        name = attrs.get("title", "").strip()
        if not name:
            raise MissingSystemNameError("<SYSTEM> has no title", line_number, line)
        self.system_name = name
        self.state = _State.IN_SYSTEM

    def _end_system(self, line_number: int, line: str) -> None:
        if self.state is not _State.IN_SYSTEM:
            raise self._unexpected(line_number, line)
        self.state = _State.DONE

    # -- SPEAKER --------------------------------------------------------------

    def _start_speaker(self, line_number: int, line: str, attrs: Dict[str, str]) -> None:
        if self.state is not _State.IN_SYSTEM:
            raise self._unexpected(line_number, line)
        speaker_id = attrs.get("id", "").strip()
        if not speaker_id:
            raise MissingSpeakerIdError("<SPEAKER> has no id", line_number, line)
        self.speaker_id = speaker_id
        self.speakers.setdefault(speaker_id, {})
        self.state = _State.IN_SPEAKER

    def _end_speaker(self, line_number: int, line: str) -> None:
        if self.state is not _State.IN_SPEAKER:
            raise self._unexpected(line_number, line)
        self.speaker_id = ""
        self.state = _State.IN_SYSTEM

    # -- PATH -----------------------------------------------------------------

    def _start_path(self, line_number: int, line: str, attrs: Dict[str, str]) -> None:
        if self.state is _State.IN_SYSTEM:
            raise MissingSpeakerIdError(
                "<PATH> is not inside a <SPEAKER> block", line_number, line,
            )
        if self.state is not _State.IN_SPEAKER:
            raise self._unexpected(line_number, line)
        if not _strip_parens(attrs.get("id", "").strip()):
            raise MissingSentenceIdError("<PATH> has no id", line_number, line)

        self.path_attrs = attrs
        self.path_line_number = line_number
        self.path_line = line
        self.path_words = []
        self.state = _State.IN_PATH

    def _end_path(self, line_number: int, line: str) -> None:
        if self.state not in (_State.IN_PATH, _State.PATH_ALIGNED):
            raise self._unexpected(line_number, line)

        sentence = self._build_sentence()
        sentences = self.speakers[self.speaker_id]
        if sentence.sentence_id in sentences:
            raise DuplicateSentenceIdError(
                "sentence {!r} appears twice for speaker {!r}".format(
                    sentence.sentence_id, self.speaker_id,
                ),
                self.path_line_number, self.path_line,
            )
        sentences[sentence.sentence_id] = sentence
        self.last_sequence[self.speaker_id] = sentence.sequence
        self.state = _State.IN_SPEAKER

    def _build_sentence(self) -> AlignedSentence:
        attrs = self.path_attrs
        at = (self.path_line_number, self.path_line)

        raw_count = attrs.get("word_cnt", "")
        try:
            word_count = int(raw_count)
        except ValueError:
            raise NonIntegerWordCountError(
                "word_cnt {!r} is not an integer".format(raw_count), *at,
            ) from None
        if word_count < 0 or word_count != len(self.path_words):
            raise InvalidWordCountError(
                "word_cnt={} but the alignment line has {} word-entries".format(
                    word_count, len(self.path_words),
                ),
                *at,
            )

        raw_sequence = attrs.get("sequence", "")
        try:
            sequence = int(raw_sequence)
        except ValueError:
            raise InvalidSequenceError(
                "sequence {!r} is not an integer".format(raw_sequence), *at,
            ) from None
        previous = self.last_sequence.get(self.speaker_id, 0)
        if sequence < previous:
            raise InvalidSequenceError(
                "sequence {} is lower than {} for speaker {!r}".format(
                    sequence, previous, self.speaker_id,
                ),
                *at,
            )

        return AlignedSentence(
            system_name=self.system_name,
            speaker_id=self.speaker_id,
            sentence_id=_strip_parens(attrs["id"].strip()),
            sequence=sequence,
            word_count=word_count,
            words=tuple(self.path_words),
        )


def parse_alignment_stream(
    lines: Iterable[str],
    source: str = "<stream>",
    cancel: Optional[threading.Event] = None,
) -> AlignedHypothesis:
    """Parse sclite SGML alignment output from any iterable of lines.

    Args:
        lines: A text stream or list of lines.
        source: Name used in error and cancellation messages.
        cancel: Optional event; when set, parsing stops before the next line.

    Returns:
        A fully populated AlignedHypothesis.

    Raises:
        AlignmentParseError: A subclass naming the failed structural check.
        OperationCancelledError: If cancel was set during parsing.
    """
    return _SgmlParser(source, cancel).feed(lines)


def read_alignment_sgml(
    path: str | Path,
    cancel: Optional[threading.Event] = None,
) -> AlignedHypothesis:
    """Read and parse one sclite ``*.sgml`` alignment file.

    Raises:
        AlignmentFileNotFoundError: If the file does not exist.
        AlignmentParseError: If the file content is structurally invalid.
    """
    sgml_path = Path(path)
    try:
        handle = sgml_path.open(encoding="utf-8")
    except FileNotFoundError as exc:
        raise AlignmentFileNotFoundError(
            "Alignment file not found: {}".format(sgml_path)
        ) from exc

    with handle:
        hypothesis = parse_alignment_stream(handle, source=str(sgml_path), cancel=cancel)

    logger.debug(
        "Parsed %s: system=%s speakers=%d sentences=%d",
        sgml_path, hypothesis.system_name, len(hypothesis.speakers), hypothesis.sentence_count,
    )
    return hypothesis
