"""Turn sclite SGML files into report files on disk.

WHY: sclite leaves one ``<system>.trn.sgml`` per hypothesis in its output
directory. Each needs to become a set of report files (Markdown, HTML,
CSV, text, JSON dump) next to it. A batch may be large and run under a
caller-level timeout, so the work must be cancellable without leaving
half-written files behind.

HOW: write_reports() parses one SGML file, then for each requested format
renders the complete content in memory, writes it to a temporary file in
the target directory and renames it into place. generate_reports() finds
every SGML file in a directory and runs write_reports() for each in a
thread pool, collecting a ReportResult per file.

RULES:
- Output name: the source name with ".sgml" replaced by the formatter
  suffix, e.g. bangla.trn.sgml → bangla.trn.pra.md
- Existing report files are overwritten (sclite overwrites its own too)
- A file appears under its final name only once its content is complete
- The cancel event is checked per source line and before each format
- A formatter failure raises ReportWriteError; reports already written
  for other formats are kept
- generate_reports() records failures per file unless fail_fast is set
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Deque, Iterable, List, Optional, Sequence, Tuple

from sclite_report.config import DEFAULT_FORMATS, DEFAULT_MAX_WORKERS
from sclite_report.core.sgml import OperationCancelledError, read_alignment_sgml
from sclite_report.formatters import FORMATTERS
from sclite_report.formatters.base import FormatterOutput

logger = logging.getLogger(__name__)

_SGML_SUFFIX = ".sgml"


class ReportWriteError(Exception):
    """Raised when one report format cannot be produced for a parsed file.

    WHY: A rendering or write failure affects only that format; the parsed
    model and other formats are still good, so callers need to know which
    format failed.

    RULES:
    - format_key: the FORMATTERS key that failed
    - The original exception is chained as __cause__
    """

    def __init__(self, sgml_path: Path, format_key: str, message: str) -> None:
        self.sgml_path = sgml_path
        self.format_key = format_key
        super().__init__("Failed to write {} report for {}: {}".format(
            format_key, sgml_path, message,
        ))


@dataclass
class ReportResult:
    """Outcome of processing one SGML file."""

    sgml_path: Path
    outputs: List[Path] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def validate_format_keys(format_keys: Iterable[str]) -> List[str]:
    """Return format_keys as a list, rejecting unknown keys with ValueError."""
    keys = list(format_keys)
    unknown = [key for key in keys if key not in FORMATTERS]
    if unknown:
        raise ValueError("Unknown format(s) {}. Available formats: {}".format(
            ", ".join(unknown), ", ".join(sorted(FORMATTERS)),
        ))
    return keys


def report_path(sgml_path: Path, suffix: str, output_dir: Optional[Path] = None) -> Path:
    """Path of the report with the given suffix for an SGML file."""
    name = sgml_path.name
    base = name[: -len(_SGML_SUFFIX)] if name.endswith(_SGML_SUFFIX) else sgml_path.stem
    return (output_dir or sgml_path.parent) / "{}{}".format(base, suffix)


def write_atomic(path: Path, content: str) -> Path:
    """Write content to path via a temporary file and an atomic rename."""
    fd, tmp_name = tempfile.mkstemp(
        dir=str(path.parent), prefix=".{}.".format(path.name), suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path


def _check_cancel(cancel: Optional[threading.Event], what: str) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCancelledError("Cancelled before {}".format(what))


def write_reports(
    sgml_path: str | Path,
    format_keys: Optional[Sequence[str]] = None,
    output_dir: Optional[str | Path] = None,
    cancel: Optional[threading.Event] = None,
) -> List[Path]:
    """Parse one SGML file and write a report for each format.

    Args:
        sgml_path: A sclite ``*.sgml`` alignment file.
        format_keys: FORMATTERS keys; defaults to config.DEFAULT_FORMATS.
        output_dir: Where to write; defaults to the SGML file's directory.
        cancel: Optional event checked between units of work.

    Returns:
        Paths of the written reports, in format order.

    Raises:
        AlignmentFileNotFoundError: If the SGML file does not exist.
        AlignmentParseError: If the SGML is structurally invalid.
        ReportWriteError: If a format fails to render or write.
        OperationCancelledError: If cancel was set.
    """
    source = Path(sgml_path)
    keys = validate_format_keys(format_keys if format_keys is not None else DEFAULT_FORMATS)
    out_dir = Path(output_dir) if output_dir is not None else None

    hypothesis = read_alignment_sgml(source, cancel=cancel)

    written: List[Path] = []
    for key in keys:
        _check_cancel(cancel, "{} report for {}".format(key, source.name))
        formatter = FORMATTERS[key]()
        try:
            outputs: List[FormatterOutput] = formatter.format(hypothesis)
            for output in outputs:
                written.append(write_atomic(report_path(source, output.suffix, out_dir), output.content))
        except OperationCancelledError:
            raise
        except Exception as exc:
            raise ReportWriteError(source, key, str(exc)) from exc
        logger.info("Wrote %s for %s", formatter.name, source.name)

    return written


def find_sgml_files(directory: str | Path) -> List[Path]:
    return sorted(Path(directory).glob("*" + _SGML_SUFFIX))


def generate_reports(
    directory: str | Path,
    format_keys: Optional[Sequence[str]] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    fail_fast: bool = False,
    cancel: Optional[threading.Event] = None,
) -> List[ReportResult]:
    """Write reports for every SGML file in a directory.

    Each hypothesis is independent, so files are processed in parallel.
    At most max_workers files are in flight; a fatal error (fail_fast, or
    cancellation) stops new files from starting and drops queued ones.

    Args:
        directory: sclite output directory.
        format_keys: FORMATTERS keys; defaults to config.DEFAULT_FORMATS.
        max_workers: Thread pool size.
        fail_fast: Re-raise the first failure instead of recording it.
        cancel: Optional event shared by all workers.

    Returns:
        One ReportResult per SGML file, sorted by file name.

    Raises:
        OperationCancelledError: Always propagated, regardless of fail_fast.
    """
    keys = validate_format_keys(format_keys if format_keys is not None else DEFAULT_FORMATS)
    sgml_files = find_sgml_files(directory)
    if not sgml_files:
        logger.warning("No sgml files found in %s, no alignment reports generated", directory)
        return []

    workers = max(1, max_workers)
    remaining = iter(sgml_files)
    results: List[ReportResult] = []
    with ThreadPoolExecutor(max_workers=workers) as pool:
        in_flight: Deque[Tuple[Path, Future]] = deque()

        def _submit_next() -> None:
            path = next(remaining, None)
            if path is not None:
                in_flight.append((path, pool.submit(write_reports, path, keys, None, cancel)))

        for _ in range(workers):
            _submit_next()

        while in_flight:
            path, future = in_flight.popleft()
            try:
                results.append(ReportResult(sgml_path=path, outputs=future.result()))
            except OperationCancelledError:
                _drop_pending(in_flight)
                raise
            except Exception as exc:
                if fail_fast:
                    _drop_pending(in_flight)
                    raise
                logger.exception("Report generation failed for %s", path)
                results.append(ReportResult(sgml_path=path, error=str(exc)))
            _submit_next()

    return results


def _drop_pending(in_flight: Deque[Tuple[Path, Future]]) -> None:
    """Cancel queued jobs; jobs already running finish on pool shutdown."""
    for _, future in in_flight:
        future.cancel()
    in_flight.clear()
