"""Tests for the sclite runner and the scoring pipeline.

WHY: sclite is picky about its argument order and silently ignores
options it does not understand. The runner must build exactly the command
line sclite expects, stop it on timeout or cancellation, and still render
whatever SGML it produced.

HOW: sclite is never executed. subprocess.Popen is replaced with a
MagicMock whose construction writes the verified SGML sample into the
output directory, the way a real run would.

RULES:
- The real binary lookup is bypassed with monkeypatch
- All file I/O happens under tmp_path
"""

import subprocess
import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from sclite_report import config
from sclite_report import score as score_module
from sclite_report.core.sgml import OperationCancelledError
from sclite_report.core.transcripts import FileFormat, NormalizeConfig
from sclite_report.sclite import runner
from sclite_report.sclite.runner import (
    Hypothesis,
    ScliteConfig,
    ScliteError,
    ScliteNotFoundError,
    build_sclite_args,
    find_sclite_binary,
    run_sclite,
)


def _fake_popen(returncode=0, output="", sgml_text=None, hang=False):
    """Build a Popen replacement; records the command it was called with."""
    calls = []

    def _communicate(timeout=None):
        if hang and timeout is not None:
            raise subprocess.TimeoutExpired("sclite", timeout)
        return output, None

    def _popen(cmd, **kwargs):
        calls.append(cmd)
        if sgml_text is not None:
            out_dir = Path(cmd[cmd.index("-O") + 1])
            (out_dir / "bangla.trn.sgml").write_text(sgml_text, encoding="utf-8")
        proc = MagicMock()
        proc.returncode = returncode
        proc.communicate.side_effect = _communicate
        return proc

    return _popen, calls


@pytest.fixture
def sclite_bin(monkeypatch):
    monkeypatch.setattr(runner, "find_sclite_binary", lambda: "/opt/sctk/bin/sclite")
    return "/opt/sctk/bin/sclite"


class TestScliteConfig:

    def test_defaults_valid(self):
        ScliteConfig().validate()

    @pytest.mark.parametrize("width", [0, -5])
    def test_line_width(self, width):
        with pytest.raises(ValueError, match="line width"):
            ScliteConfig(line_width=width).validate()

    def test_encoding(self):
        with pytest.raises(ValueError, match="unsupported encoding"):
            ScliteConfig(encoding="latin-1").validate()

    def test_report(self):
        with pytest.raises(ValueError, match="unsupported report option 'pdf'"):
            ScliteConfig(reports=["sum", "pdf"]).validate()

    def test_all_known_reports(self):
        ScliteConfig(reports=sorted(config.ALLOWED_REPORTS)).validate()


class TestBuildArgs:

    def test_default_reports(self, tmp_path):
        hyps = [Hypothesis("bangla", tmp_path / "bangla.trn")]
        args = build_sclite_args(ScliteConfig(line_width=200), tmp_path, tmp_path / "ref.trn", hyps)
        assert args == [
            "-i", "swb",
            "-r", str(tmp_path / "ref.trn"), "trn",
            "-O", str(tmp_path),
            "-l", "200",
            "-e", "utf-8",
            "-o", "sum", "rsum", "dtl", "sgml",
            "-s",
            "-h", str(tmp_path / "bangla.trn"), "trn", "bangla",
        ]

    def test_cer_and_reports(self, tmp_path):
        hyps = [Hypothesis("a", Path("a.trn")), Hypothesis("b", Path("b.trn"))]
        cfg = ScliteConfig(reports=["sgml"], cer=True)
        args = build_sclite_args(cfg, tmp_path, Path("ref.trn"), hyps)
        assert args[args.index("-o"):args.index("-h")] == ["-o", "sgml", "-s", "-c"]
        assert args.count("-h") == 2
        assert args[-4:] == ["-h", "b.trn", "trn", "b"]


class TestFindBinary:

    def test_configured_path(self, tmp_path, monkeypatch):
        binary = tmp_path / "sclite"
        binary.write_text("", encoding="utf-8")
        monkeypatch.setattr(config, "SCLITE_BIN", str(binary))
        assert find_sclite_binary() == str(binary)

    def test_configured_path_missing(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "SCLITE_BIN", str(tmp_path / "nope"))
        with pytest.raises(ScliteNotFoundError, match="SCLITE_BIN"):
            find_sclite_binary()

    def test_found_on_path(self, monkeypatch):
        monkeypatch.setattr(config, "SCLITE_BIN", "")
        monkeypatch.setattr(runner.shutil, "which", lambda name: "/usr/local/bin/sclite")
        assert find_sclite_binary() == "/usr/local/bin/sclite"

    def test_not_found(self, monkeypatch):
        monkeypatch.setattr(config, "SCLITE_BIN", "")
        monkeypatch.setattr(runner.shutil, "which", lambda name: None)
        with pytest.raises(ScliteNotFoundError, match="not found on PATH"):
            find_sclite_binary()


class TestRunSclite:

    def test_runs_and_renders(self, tmp_path, monkeypatch, sclite_bin, good_sgml_text):
        popen, calls = _fake_popen(sgml_text=good_sgml_text)
        monkeypatch.setattr(runner.subprocess, "Popen", popen)
        out = tmp_path / "out"

        results = run_sclite(
            ScliteConfig(), out, tmp_path / "ref.trn",
            [Hypothesis("bangla", tmp_path / "bangla.trn")],
            format_keys=["markdown", "json"],
        )

        assert calls[0][0] == sclite_bin
        assert out.is_dir()
        assert len(results) == 1 and results[0].ok
        assert (out / "bangla.trn.pra.md").is_file()
        assert (out / "bangla.trn.pra.json").is_file()

    def test_failure_logged_and_reports_still_rendered(
        self, tmp_path, monkeypatch, sclite_bin, good_sgml_text, caplog,
    ):
        popen, _ = _fake_popen(returncode=1, output="sclite: bad hyp file", sgml_text=good_sgml_text)
        monkeypatch.setattr(runner.subprocess, "Popen", popen)

        results = run_sclite(
            ScliteConfig(), tmp_path, tmp_path / "ref.trn",
            [Hypothesis("bangla", tmp_path / "bangla.trn")],
            format_keys=["csv"],
        )

        assert "sclite: bad hyp file" in caplog.text
        assert results[0].ok

    def test_no_hypotheses(self, tmp_path, sclite_bin):
        with pytest.raises(ValueError, match="no hypothesis files"):
            run_sclite(ScliteConfig(), tmp_path, tmp_path / "ref.trn", [])

    def test_invalid_config_checked_first(self, tmp_path, monkeypatch):
        def _never():
            raise AssertionError("binary lookup should not happen")

        monkeypatch.setattr(runner, "find_sclite_binary", _never)
        with pytest.raises(ValueError):
            run_sclite(ScliteConfig(encoding="ebcdic"), tmp_path, "ref.trn", [Hypothesis("a", Path("a"))])

    def test_start_failure(self, tmp_path, monkeypatch, sclite_bin):
        def _popen(cmd, **kwargs):
            raise PermissionError("not executable")

        monkeypatch.setattr(runner.subprocess, "Popen", _popen)
        with pytest.raises(ScliteError, match="failed to start"):
            run_sclite(ScliteConfig(), tmp_path, "ref.trn", [Hypothesis("a", Path("a"))])

    def test_timeout(self, tmp_path, monkeypatch, sclite_bin):
        popen, _ = _fake_popen(hang=True)
        monkeypatch.setattr(runner.subprocess, "Popen", popen)
        with pytest.raises(ScliteError, match="did not finish"):
            run_sclite(
                ScliteConfig(), tmp_path, "ref.trn", [Hypothesis("a", Path("a"))],
                timeout_s=0.01,
            )

    def test_cancel(self, tmp_path, monkeypatch, sclite_bin):
        popen, _ = _fake_popen(hang=True)
        monkeypatch.setattr(runner.subprocess, "Popen", popen)
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(OperationCancelledError):
            run_sclite(
                ScliteConfig(), tmp_path, "ref.trn", [Hypothesis("a", Path("a"))],
                cancel=cancel,
            )


class TestScore:

    @pytest.fixture
    def inputs(self, tmp_path):
        ref = tmp_path / "truth.csv"
        ref.write_text("u1,Hello\nu2,World\n", encoding="utf-8")
        hyp = tmp_path / "out1.csv"
        hyp.write_text("u1,hello\nu2,word\n", encoding="utf-8")
        return ref, hyp

    def test_normalizes_then_runs(self, tmp_path, monkeypatch, inputs):
        ref, hyp = inputs
        recorded = {}

        def _run(cfg, out_dir, ref_file, hyps, **kwargs):
            recorded.update(out_dir=out_dir, ref_file=ref_file, hyps=hyps, kwargs=kwargs)
            return []

        monkeypatch.setattr(score_module, "run_sclite", _run)
        out = tmp_path / "wer"
        score_module.score(
            FileFormat(), NormalizeConfig(), ScliteConfig(), out, ref,
            [Hypothesis("Model A", hyp)], format_keys=["markdown"],
        )

        assert recorded["ref_file"] == out / "ref.trn"
        assert recorded["hyps"] == [Hypothesis("model_a", out / "model_a.trn")]
        assert recorded["kwargs"]["format_keys"] == ["markdown"]
        assert (out / "model_a.trn").read_text(encoding="utf-8") == "hello (u1)\nword (u2)\n"

    def test_missing_hypothesis_file(self, tmp_path, inputs):
        ref, _ = inputs
        with pytest.raises(FileNotFoundError, match="missing.csv"):
            score_module.score(
                FileFormat(), NormalizeConfig(), ScliteConfig(), tmp_path / "wer", ref,
                [Hypothesis("a", tmp_path / "missing.csv")],
            )
        assert not (tmp_path / "wer").exists()

    def test_invalid_file_format(self, tmp_path, inputs):
        ref, hyp = inputs
        with pytest.raises(ValueError):
            score_module.score(
                FileFormat(col_id=1, col_trn=1), NormalizeConfig(), ScliteConfig(),
                tmp_path / "wer", ref, [Hypothesis("a", hyp)],
            )
