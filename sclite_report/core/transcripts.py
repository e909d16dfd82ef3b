"""Read, normalize and write reference and hypothesis transcripts.

WHY: Users keep transcripts as delimited files (usually CSV with an
utterance-id column and a transcript column). sclite wants the "trn"
format, one ``<transcript> (<utt_id>)`` per line, and scores every
difference in case or Unicode composition as an error. This module turns
user files into clean trn files before sclite runs.

HOW: read_transcript_file() splits each line with split_quoted_fields()
according to a FileFormat. normalize_utts() applies case folding and
Unicode cleanup in place. normalize_files() ties it together for one
reference and N hypotheses and writes ref.trn / <system>.trn into the
output directory.

RULES:
- Blank lines are skipped; a line with too few columns is an error
- Utterance ids have internal whitespace replaced by "_"
- System names are lower-cased and whitespace-joined with "_"
- Hypothesis utterances with no matching reference id are dropped
- trn files are written sorted by utterance id
- Unicode normalization = NFC + Bangla zero-width joiner cleanup
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from sclite_report.core.textutils import split_quoted_fields

logger = logging.getLogger(__name__)

_ZWJ = "\u200d"

# After RA and before HOSONTO + YA a joiner changes how the conjunct renders,
# so it is kept (as ZWJ). Everywhere else ZWJ/ZWNJ are advisory and removed.
_ZW_STANDARDIZE_RE = re.compile("(?<=\u09b0)[\u200c\u200d]+(?=\u09cd\u09af)")
_ZW_DELETE_RE = re.compile("(?<!\u09b0)[\u200c\u200d](?!\u09cd\u09af)")


class TranscriptFormatError(ValueError):
    """Raised when a transcript file does not match its FileFormat.

    RULES:
    - Message names the file, the line number and the column counts
    """


@dataclass
class Utt:
    """One utterance: its id and transcript text."""

    id: str
    transcript: str


@dataclass
class FileFormat:
    """Layout of the user's reference and hypothesis files.

    RULES:
    - col_id / col_trn are zero-based and must differ
    - delimiter and quote_char are single characters (quote_char may be None)
    """

    delimiter: str = ","
    quote_char: Optional[str] = '"'
    col_id: int = 0
    col_trn: int = 1
    ignore_first_row: bool = False

    def validate(self) -> None:
        if self.col_id < 0 or self.col_trn < 0:
            raise ValueError("column index for transcript and ID must be >= 0")
        if self.col_id == self.col_trn:
            raise ValueError("column index for transcript and ID must not be the same")
        if len(self.delimiter) != 1:
            raise ValueError("delimiter must be a single character")
        if self.quote_char is not None and len(self.quote_char) != 1:
            raise ValueError("quote-char must be a single character")


@dataclass
class NormalizeConfig:
    """How transcripts are normalized before scoring."""

    case_sensitive: bool = False
    normalize_unicode: bool = False


def sanitize_utt_id(utt_id: str) -> str:
    """Replace runs of whitespace in an utterance id with "_"."""
    return "_".join(utt_id.split())


def sanitize_system_name(name: str) -> str:
    """Lower-case a system name and join its words with "_"."""
    return "_".join(name.lower().split())


def remove_zero_width(text: str) -> str:
    """Standardize or drop zero-width (non-)joiners in Bangla text.

    Between RA and HOSONTO + YA any run of ZWJ/ZWNJ becomes a single ZWJ;
    elsewhere each ZWJ/ZWNJ is removed.
    """
    text = _ZW_STANDARDIZE_RE.sub(_ZWJ, text)
    return _ZW_DELETE_RE.sub("", text)


def normalize_utts(utts: List[Utt], cfg: NormalizeConfig) -> None:
    """Normalize transcripts in place according to cfg."""
    for utt in utts:
        text = utt.transcript
        if not cfg.case_sensitive:
            text = text.lower()
        if cfg.normalize_unicode:
            text = unicodedata.normalize("NFC", text)
            text = remove_zero_width(text)
        utt.transcript = text


def filter_utts(utts: List[Utt], ref_ids: Set[str]) -> List[Utt]:
    """Keep only utterances whose id appears in ref_ids, preserving order."""
    return [utt for utt in utts if utt.id in ref_ids]


def read_transcript_file(path: str | Path, file_format: FileFormat) -> List[Utt]:
    """Read utterances from a delimited transcript file.

    Args:
        path: Path to a UTF-8 delimited text file.
        file_format: Column layout, delimiter and quoting.

    Returns:
        Utterances in file order, with sanitized ids.

    Raises:
        FileNotFoundError: If the file does not exist.
        TranscriptFormatError: If a non-blank line has too few columns.
    """
    transcript_path = Path(path)
    min_columns = max(file_format.col_id, file_format.col_trn) + 1
    utts: List[Utt] = []

    with transcript_path.open(encoding="utf-8") as handle:
        for line_number, raw in enumerate(handle, start=1):
            if file_format.ignore_first_row and line_number == 1:
                continue

            line = raw.strip()
            if not line:
                continue

            parts = split_quoted_fields(line, file_format.delimiter, file_format.quote_char)
            if len(parts) < min_columns:
                raise TranscriptFormatError(
                    "{}: expected at least {} columns, got {} on line {}".format(
                        transcript_path, min_columns, len(parts), line_number,
                    )
                )

            utts.append(Utt(
                id=sanitize_utt_id(parts[file_format.col_id]),
                transcript=parts[file_format.col_trn],
            ))

    return utts


def write_transcript_file(utts: Iterable[Utt], path: str | Path) -> Path:
    """Write utterances as an sclite trn file, sorted by utterance id."""
    out_path = Path(path)
    ordered = sorted(utts, key=lambda utt: utt.id)
    content = "".join("{} ({})\n".format(utt.transcript, utt.id) for utt in ordered)
    out_path.write_text(content, encoding="utf-8")
    return out_path


def normalize_files(
    file_format: FileFormat,
    cfg: NormalizeConfig,
    out_dir: str | Path,
    ref_file: str | Path,
    hyp_files: List[Tuple[str, Path]],
) -> Tuple[Path, List[Tuple[str, Path]]]:
    """Normalize a reference and its hypotheses into trn files.

    Args:
        file_format: Layout shared by all input files.
        cfg: Normalization options.
        out_dir: Directory that receives ref.trn and <system>.trn files.
        ref_file: The reference transcript file.
        hyp_files: (system name, path) pairs for each hypothesis.

    Returns:
        The normalized reference path and (sanitized name, path) pairs for
        the normalized hypotheses, in input order.

    Raises:
        ValueError: If the reference is empty or a hypothesis shares no
            utterance ids with it.
    """
    out = Path(out_dir)

    ref_utts = read_transcript_file(ref_file, file_format)
    normalize_utts(ref_utts, cfg)
    ref_ids = {utt.id for utt in ref_utts}
    if not ref_ids:
        raise ValueError("reference file does not contain any utterances: {}".format(ref_file))

    ref_norm = write_transcript_file(ref_utts, out / "ref.trn")
    logger.info("Normalized %d reference utterances into %s", len(ref_utts), ref_norm)

    normalized: List[Tuple[str, Path]] = []
    for system_name, hyp_path in hyp_files:
        hyp_utts = read_transcript_file(hyp_path, file_format)
        normalize_utts(hyp_utts, cfg)

        kept = filter_utts(hyp_utts, ref_ids)
        if not kept:
            raise ValueError(
                "no utterance IDs in common between reference file and {!r}".format(str(hyp_path))
            )
        if len(kept) < len(hyp_utts):
            logger.warning(
                "Dropped %d utterance(s) from %s with no reference transcript",
                len(hyp_utts) - len(kept), hyp_path,
            )

        name = sanitize_system_name(system_name)
        hyp_norm = write_transcript_file(kept, out / "{}.trn".format(name))
        normalized.append((name, hyp_norm))

    return ref_norm, normalized
