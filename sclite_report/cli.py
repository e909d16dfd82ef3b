"""Command-line interface for sclite scoring and alignment reports.

WHY: Users need a single terminal command to score ASR hypotheses against
reference transcripts, or to re-render reports from SGML files sclite has
already produced. The CLI wires normalization, sclite and the report
formatters together behind two subcommands.

HOW: argparse with two subcommands. ``score`` builds FileFormat,
NormalizeConfig and ScliteConfig from flags and calls score.score().
``report`` takes SGML files and/or sclite output directories and calls
reports.write_reports() / reports.generate_reports(). Status messages go
to stderr; logging is configured from LOG_LEVEL.

RULES:
- --hyp is repeatable: "<name>,<path>" or just "<path>" (named hyp1, hyp2, ...)
- --formats: comma-separated formatter keys (default: config.DEFAULT_FORMATS)
- Exit code 1 on any error or failed report, 130 on Ctrl-C / cancellation
- Status output goes to stderr (not stdout)
- Python 3.9 compatible: no match/case, no X | Y unions at runtime
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from sclite_report import config
from sclite_report.core.sgml import OperationCancelledError
from sclite_report.core.transcripts import FileFormat, NormalizeConfig
from sclite_report.formatters import FORMATTERS
from sclite_report.reports import (
    ReportResult,
    generate_reports,
    validate_format_keys,
    write_reports,
)
from sclite_report.score import score
from sclite_report.sclite.runner import Hypothesis, ScliteConfig


def _status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so the CLI can be piped.
    """
    print(msg, file=sys.stderr, flush=True)


def _error(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr, flush=True)


def parse_hypothesis_args(values: List[str]) -> List[Hypothesis]:
    """Turn repeated --hyp values into Hypothesis objects.

    RULES:
    - "<path>" gets the name hyp1, hyp2, ... counting unnamed values only
    - "<name>,<path>" uses the given name
    - More than two comma-separated fields is an error

    Raises:
        ValueError: On an empty value or too many fields.
    """
    hyps: List[Hypothesis] = []
    unnamed = 0
    for value in values:
        parts = value.split(",")
        if len(parts) == 1:
            if not parts[0]:
                raise ValueError("hypothesis file not specified after --hyp flag")
            unnamed += 1
            hyps.append(Hypothesis(system_name="hyp{}".format(unnamed), file_path=Path(parts[0])))
        elif len(parts) == 2:
            name, path = parts
            if not name or not path:
                raise ValueError("expected <name>,<path> in --hyp value {!r}".format(value))
            hyps.append(Hypothesis(system_name=name, file_path=Path(path)))
        else:
            raise ValueError(
                "expected at most 2 comma delimited fields in --hyp value, got {}".format(len(parts))
            )
    return hyps


def _parse_formats(value: Optional[str]) -> List[str]:
    if not value:
        return list(config.DEFAULT_FORMATS)
    return validate_format_keys(f.strip() for f in value.split(",") if f.strip())


def _single_char(value: str, flag: str) -> str:
    if len(value) != 1:
        raise ValueError("{} must be a single character, got {!r}".format(flag, value))
    return value


def _summarize(results: List[ReportResult]) -> int:
    """Print per-file results; return the number of failures."""
    failures = 0
    for result in results:
        if result.ok:
            _status("  {}: {} report(s)".format(result.sgml_path.name, len(result.outputs)))
            for path in result.outputs:
                _status("    {}".format(path.name))
        else:
            failures += 1
            _status("  {}: FAILED ({})".format(result.sgml_path.name, result.error))
    return failures


def _run_score(args: argparse.Namespace, cancel: threading.Event) -> int:
    file_format = FileFormat(
        delimiter=_single_char(args.delimiter, "--delimiter"),
        quote_char=_single_char(args.quote_char, "--quote-char") if args.quote_char else None,
        col_id=args.col_id,
        col_trn=args.col_trn,
        ignore_first_row=args.ignore_first,
    )
    norm_cfg = NormalizeConfig(
        case_sensitive=args.case_sensitive,
        normalize_unicode=args.normalize_unicode,
    )
    sclite_cfg = ScliteConfig(
        line_width=args.line_width,
        encoding=args.encoding,
        reports=[r.strip() for r in args.reports.split(",") if r.strip()] if args.reports else [],
        cer=args.cer,
    )
    hyps = parse_hypothesis_args(args.hyp)
    format_keys = _parse_formats(args.formats)

    _status("Scoring {} hypothesis file(s) against {}...".format(len(hyps), args.ref))
    results = score(
        file_format,
        norm_cfg,
        sclite_cfg,
        args.out,
        args.ref,
        hyps,
        timeout_s=args.timeout,
        format_keys=format_keys,
        cancel=cancel,
    )

    if not results:
        _error("sclite produced no SGML output in {}".format(args.out))
        return 1

    failures = _summarize(results)
    _status("")
    _status("Done! Reports saved to {}".format(Path(args.out).resolve()))
    return 1 if failures else 0


def _run_report(args: argparse.Namespace, cancel: threading.Event) -> int:
    format_keys = _parse_formats(args.formats)
    output_dir = Path(args.output_dir) if args.output_dir else None
    if output_dir is not None and not output_dir.is_dir():
        _error("Output directory does not exist: {}".format(output_dir))
        return 1

    results: List[ReportResult] = []
    for raw in args.paths:
        path = Path(raw)
        if path.is_dir():
            _status("Rendering reports for {}...".format(path))
            results.extend(generate_reports(
                path,
                format_keys=format_keys,
                max_workers=args.workers,
                fail_fast=args.fail_fast,
                cancel=cancel,
            ))
            continue

        _status("Rendering reports for {}...".format(path.name))
        try:
            outputs = write_reports(path, format_keys, output_dir, cancel)
        except OperationCancelledError:
            raise
        except Exception as exc:
            if args.fail_fast:
                raise
            results.append(ReportResult(sgml_path=path, error=str(exc)))
        else:
            results.append(ReportResult(sgml_path=path, outputs=outputs))

    if not results:
        _error("No SGML files found")
        return 1

    failures = _summarize(results)
    _status("")
    _status("Done! {} of {} file(s) rendered".format(len(results) - failures, len(results)))
    return 1 if failures else 0


def _install_sigint_handler(cancel: threading.Event):
    """Make the first Ctrl+C set the cancel event instead of raising.

    Workers and the sclite subprocess poll the event and stop cleanly. A
    second Ctrl+C raises KeyboardInterrupt as usual. Returns the previous
    handler, or None when not on the main thread (signals unavailable).
    """
    if threading.current_thread() is not threading.main_thread():
        return None

    def _handler(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        _status("\nCancelling... press Ctrl+C again to abort immediately.")
        cancel.set()

    return signal.signal(signal.SIGINT, _handler)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable; tests can inspect the parser without running anything.
    """
    parser = argparse.ArgumentParser(
        prog="sclite_report",
        description="Score ASR hypotheses with sclite and render word alignments "
                    "as Markdown, HTML, CSV, text and JSON reports.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    formats_help = "Comma-separated list of report formats. Available: {}. Default: {}.".format(
        ", ".join(sorted(FORMATTERS.keys())), ",".join(config.DEFAULT_FORMATS),
    )

    # -- score --------------------------------------------------------------
    sc = subparsers.add_parser(
        "score",
        help="Score hypothesis transcripts against reference transcripts.",
    )
    sc.add_argument("--out", required=True,
                    help="Output directory for normalized transcripts, scores and reports.")
    sc.add_argument("--ref", required=True,
                    help="File containing the reference transcripts.")
    sc.add_argument("--hyp", action="append", required=True,
                    help="Hypothesis file to score, as <path> or <name>,<path>. "
                         "May be given multiple times.")
    sc.add_argument("--delimiter", default=",",
                    help="Column delimiter of the input files (default: %(default)r).")
    sc.add_argument("--quote-char", default='"',
                    help="Quote character of the input files; empty disables quoting "
                         "(default: %(default)r).")
    sc.add_argument("--col-id", type=int, default=0,
                    help="Zero-based column index of the utterance id (default: %(default)s).")
    sc.add_argument("--col-trn", type=int, default=1,
                    help="Zero-based column index of the transcript (default: %(default)s).")
    sc.add_argument("--ignore-first", action="store_true",
                    help="Skip the first row of every input file (a header row).")
    sc.add_argument("--cer", action="store_true",
                    help="Evaluate character error rate instead of word error rate.")
    sc.add_argument("--line-width", type=int, default=config.DEFAULT_LINE_WIDTH,
                    help="Line width for sclite's text reports (default: %(default)s).")
    sc.add_argument("--encoding", default=config.DEFAULT_ENCODING,
                    help="Text encoding sclite uses (default: %(default)s).")
    sc.add_argument("--reports", default=None,
                    help="Comma-separated sclite reports (default: {}).".format(
                        ",".join(config.DEFAULT_REPORTS)))
    sc.add_argument("--case-sensitive", action="store_true",
                    help="Score case-sensitively.")
    sc.add_argument("--normalize-unicode", action="store_true",
                    help="Apply Unicode normalization to transcripts before scoring.")
    sc.add_argument("--formats", default=None, help=formats_help)
    sc.add_argument("--timeout", type=float, default=config.SCLITE_TIMEOUT_S,
                    help="Seconds before sclite is stopped; 0 means no limit "
                         "(default: %(default)s).")
    sc.set_defaults(func=_run_score)

    # -- report -------------------------------------------------------------
    rp = subparsers.add_parser(
        "report",
        help="Render alignment reports from existing sclite SGML files.",
    )
    rp.add_argument("paths", nargs="+",
                    help="SGML files and/or directories containing *.sgml files.")
    rp.add_argument("--formats", default=None, help=formats_help)
    rp.add_argument("--output-dir", default=None,
                    help="Directory for reports of SGML files given directly "
                         "(default: next to each file).")
    rp.add_argument("--workers", type=int, default=config.DEFAULT_MAX_WORKERS,
                    help="Parallel workers per directory (default: %(default)s).")
    rp.add_argument("--fail-fast", action="store_true",
                    help="Stop at the first file that fails.")
    rp.set_defaults(func=_run_report)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    cancel = threading.Event()
    previous = _install_sigint_handler(cancel)
    try:
        code = args.func(args, cancel)
    except (KeyboardInterrupt, OperationCancelledError):
        _status("\nCancelled by user.")
        sys.exit(130)
    except Exception as e:
        _error(str(e))
        sys.exit(1)
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)

    sys.exit(code)


if __name__ == "__main__":
    main()
