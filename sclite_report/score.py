"""Score hypothesis transcripts against a reference, end to end.

WHY: Scoring from user files takes three steps that must run in order:
normalize the delimited transcripts into trn files, run sclite on them,
and render the alignment reports. Callers (the CLI, notebooks) want one
call.

HOW: score() creates the output directory, calls
core.transcripts.normalize_files(), wraps the normalized files as
Hypothesis objects and calls sclite.runner.run_sclite().

RULES:
- Inputs are validated before any file is written
- Normalized trn files live in the output directory next to sclite's
  reports
- System names in reports are the sanitized names
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Optional, Sequence

from sclite_report import config
from sclite_report.core.transcripts import FileFormat, NormalizeConfig, normalize_files
from sclite_report.reports import ReportResult
from sclite_report.sclite.runner import Hypothesis, ScliteConfig, run_sclite

logger = logging.getLogger(__name__)


def score(
    file_format: FileFormat,
    norm_cfg: NormalizeConfig,
    sclite_cfg: ScliteConfig,
    out_dir: str | Path,
    ref_file: str | Path,
    hyps: Sequence[Hypothesis],
    timeout_s: float = config.SCLITE_TIMEOUT_S,
    format_keys: Optional[Sequence[str]] = None,
    cancel: Optional[threading.Event] = None,
) -> List[ReportResult]:
    """Normalize transcripts, run sclite and render reports.

    Raises:
        ValueError: On invalid options, an empty reference, or a hypothesis
            with no utterance ids in common with the reference.
        FileNotFoundError: If the reference or a hypothesis file is missing.
        TranscriptFormatError: If an input line has too few columns.
        ScliteNotFoundError, ScliteError: See run_sclite().
    """
    file_format.validate()
    sclite_cfg.validate()
    if not hyps:
        raise ValueError("no hypothesis files provided")

    for path in [Path(ref_file)] + [Path(h.file_path) for h in hyps]:
        if not path.is_file():
            raise FileNotFoundError("transcript file does not exist: {}".format(path))

    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    logger.info("Scoring %d hypothesis file(s) against %s", len(hyps), ref_file)

    ref_norm, normalized = normalize_files(
        file_format,
        norm_cfg,
        out_path,
        ref_file,
        [(h.system_name, Path(h.file_path)) for h in hyps],
    )

    norm_hyps = [Hypothesis(system_name=name, file_path=path) for name, path in normalized]
    return run_sclite(
        sclite_cfg,
        out_path,
        ref_norm,
        norm_hyps,
        timeout_s=timeout_s,
        format_keys=format_keys,
        cancel=cancel,
    )
