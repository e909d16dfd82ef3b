"""Run sclite on normalized transcripts and render its alignment reports.

WHY: sclite takes a long list of positional flag groups (-r ref trn,
-h hyp trn name, -o report...). Getting them right by hand is error
prone, and its SGML output still needs to be turned into readable reports
afterwards.

HOW: ScliteConfig holds the scoring options and validates them against
the lists in config.py. build_sclite_args() produces the argument list.
run_sclite() locates the binary, runs it with an optional wall-clock
limit while watching a cancel event, then calls
reports.generate_reports() on the output directory.

RULES:
- Always "-i swb" (utterance ids in parentheses) and trn input format
- Always "-s": case handling is done during normalization, not by sclite
- "-c" only when scoring character error rate
- Reports default to config.DEFAULT_REPORTS when none are given
- A non-zero sclite exit is logged with its output; whatever SGML it did
  produce is still rendered
- Binary lookup: SCLITE_BIN, then PATH, else ScliteNotFoundError
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from sclite_report import config
from sclite_report.core.sgml import OperationCancelledError
from sclite_report.reports import ReportResult, generate_reports

logger = logging.getLogger(__name__)

_POLL_INTERVAL_S = 0.2


class ScliteNotFoundError(FileNotFoundError):
    """Raised when no sclite executable can be located.

    WHY: sclite is an external dependency (part of NIST SCTK). Users need
    a clear message telling them how to point the tool at it.

    RULES:
    - Checked before any subprocess is started
    """


class ScliteError(RuntimeError):
    """Raised when sclite cannot be started or exceeds its time limit."""


@dataclass
class Hypothesis:
    """A hypothesis transcript file and the name of the system that made it.

    The name labels the system in every report.
    """

    system_name: str
    file_path: Path


@dataclass
class ScliteConfig:
    """Report generation options passed to sclite."""

    line_width: int = config.DEFAULT_LINE_WIDTH
    encoding: str = config.DEFAULT_ENCODING
    reports: List[str] = field(default_factory=list)
    cer: bool = False

    def validate(self) -> None:
        """Check every option is one sclite supports.

        Raises:
            ValueError: On a non-positive line width, unknown encoding, or
                unknown report name.
        """
        if self.line_width <= 0:
            raise ValueError("line width must be > 0, got {}".format(self.line_width))

        if self.encoding not in config.ALLOWED_ENCODINGS:
            raise ValueError("unsupported encoding option {!r}, supported: {}".format(
                self.encoding, ", ".join(sorted(config.ALLOWED_ENCODINGS)),
            ))

        for report in self.reports:
            if report not in config.ALLOWED_REPORTS:
                raise ValueError("unsupported report option {!r}, supported: {}".format(
                    report, ", ".join(sorted(config.ALLOWED_REPORTS)),
                ))


def build_sclite_args(
    cfg: ScliteConfig,
    out_dir: Path,
    ref_file: Path,
    hyps: Sequence[Hypothesis],
) -> List[str]:
    """Build sclite's argument list (without the executable itself)."""
    args = [
        "-i", "swb",
        "-r", str(ref_file), "trn",
        "-O", str(out_dir),
        "-l", str(cfg.line_width),
        "-e", cfg.encoding,
    ]

    # pralign is left out of the defaults; the SGML report is rendered into
    # tables instead.
    args.append("-o")
    args.extend(cfg.reports or config.DEFAULT_REPORTS)

    args.append("-s")
    if cfg.cer:
        args.append("-c")

    for hyp in hyps:
        args.extend(["-h", str(hyp.file_path), "trn", hyp.system_name])

    return args


def find_sclite_binary() -> str:
    """Return the sclite executable to run.

    Raises:
        ScliteNotFoundError: If SCLITE_BIN is unset and sclite is not on PATH,
            or SCLITE_BIN points at a file that does not exist.
    """
    if config.SCLITE_BIN:
        if not Path(config.SCLITE_BIN).is_file():
            raise ScliteNotFoundError(
                "SCLITE_BIN points to a missing file: {}".format(config.SCLITE_BIN)
            )
        return config.SCLITE_BIN

    found = shutil.which("sclite")
    if found is None:
        raise ScliteNotFoundError(
            "sclite not found on PATH. Install NIST SCTK or set SCLITE_BIN "
            "in your environment or .env file."
        )
    return found


def _wait(
    proc: subprocess.Popen,
    timeout_s: float,
    cancel: Optional[threading.Event],
) -> str:
    """Wait for proc, killing it on timeout or cancellation. Returns its output."""
    deadline = time.monotonic() + timeout_s if timeout_s > 0 else None
    while True:
        try:
            output, _ = proc.communicate(timeout=_POLL_INTERVAL_S)
            return output or ""
        except subprocess.TimeoutExpired:
            pass

        if cancel is not None and cancel.is_set():
            proc.kill()
            proc.communicate()
            raise OperationCancelledError("sclite run cancelled")

        if deadline is not None and time.monotonic() >= deadline:
            proc.kill()
            proc.communicate()
            raise ScliteError("sclite did not finish within {:g}s".format(timeout_s))


def run_sclite(
    cfg: ScliteConfig,
    out_dir: str | Path,
    ref_file: str | Path,
    hyps: Sequence[Hypothesis],
    timeout_s: float = config.SCLITE_TIMEOUT_S,
    format_keys: Optional[Sequence[str]] = None,
    cancel: Optional[threading.Event] = None,
) -> List[ReportResult]:
    """Score hypotheses with sclite and render alignment reports.

    Args:
        cfg: sclite options; validated before anything runs.
        out_dir: sclite output directory, created if missing.
        ref_file: Normalized reference trn file.
        hyps: Normalized hypothesis trn files.
        timeout_s: Wall-clock limit for sclite; 0 means none.
        format_keys: Report formats to render; defaults to config.DEFAULT_FORMATS.
        cancel: Optional event that stops sclite and report rendering.

    Returns:
        One ReportResult per SGML file sclite produced.

    Raises:
        ValueError: If no hypotheses are given or cfg is invalid.
        ScliteNotFoundError: If the binary cannot be located.
        ScliteError: If sclite cannot be started or times out.
        OperationCancelledError: If cancel was set.
    """
    if not hyps:
        raise ValueError("no hypothesis files provided")
    cfg.validate()

    binary = find_sclite_binary()
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)

    cmd = [binary] + build_sclite_args(cfg, out_path, Path(ref_file), hyps)
    logger.debug("Running %s", " ".join(cmd))

    try:
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as exc:
        raise ScliteError("failed to start sclite: {}".format(exc)) from exc

    output = _wait(proc, timeout_s, cancel)
    if proc.returncode != 0:
        logger.error("sclite exited with status %d:\n%s", proc.returncode, output)
    else:
        logger.info("sclite finished scoring %d hypothesis file(s)", len(hyps))

    return generate_reports(out_path, format_keys=format_keys, cancel=cancel)
