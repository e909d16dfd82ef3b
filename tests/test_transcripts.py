"""Tests for transcript reading, normalization and trn writing.

WHY: sclite counts every difference in case, Unicode composition or
utterance id as an error. If normalization misses one, the reported error
rates are wrong even though the ASR output was right.

HOW: Tests write small delimited files to tmp_path and check each step,
then normalize_files() end to end.

RULES:
- Bangla joiner handling is checked with explicit code points
"""

import pytest

from sclite_report.core.transcripts import (
    FileFormat,
    NormalizeConfig,
    TranscriptFormatError,
    Utt,
    filter_utts,
    normalize_files,
    normalize_utts,
    read_transcript_file,
    remove_zero_width,
    sanitize_system_name,
    sanitize_utt_id,
    write_transcript_file,
)

RA = "\u09b0"
HOSONTO = "\u09cd"
YA = "\u09af"
ZWJ = "\u200d"
ZWNJ = "\u200c"


class TestFileFormat:

    def test_defaults_valid(self):
        FileFormat().validate()

    def test_negative_column(self):
        with pytest.raises(ValueError, match=">= 0"):
            FileFormat(col_id=-1).validate()

    def test_same_columns(self):
        with pytest.raises(ValueError, match="must not be the same"):
            FileFormat(col_id=1, col_trn=1).validate()


class TestSanitize:

    def test_utt_id_whitespace(self):
        assert sanitize_utt_id(" utt 1\t2 ") == "utt_1_2"

    def test_system_name(self):
        assert sanitize_system_name("My  ASR Model") == "my_asr_model"


class TestNormalize:

    def test_lowercase_by_default(self):
        utts = [Utt("u1", "Hello World")]
        normalize_utts(utts, NormalizeConfig())
        assert utts[0].transcript == "hello world"

    def test_case_sensitive(self):
        utts = [Utt("u1", "Hello")]
        normalize_utts(utts, NormalizeConfig(case_sensitive=True))
        assert utts[0].transcript == "Hello"

    def test_nfc(self):
        utts = [Utt("u1", "e\u0301")]
        normalize_utts(utts, NormalizeConfig(normalize_unicode=True))
        assert utts[0].transcript == "\u00e9"

    def test_unicode_off_by_default(self):
        utts = [Utt("u1", "e\u0301")]
        normalize_utts(utts, NormalizeConfig())
        assert utts[0].transcript == "e\u0301"

    def test_joiners_removed(self):
        assert remove_zero_width("ক" + ZWNJ + "খ" + ZWJ + "গ") == "কখগ"

    def test_ra_hosonto_ya_standardized(self):
        text = RA + ZWNJ + ZWJ + HOSONTO + YA
        assert remove_zero_width(text) == RA + ZWJ + HOSONTO + YA

    def test_filter(self):
        utts = [Utt("a", "x"), Utt("b", "y"), Utt("c", "z")]
        assert [u.id for u in filter_utts(utts, {"c", "a"})] == ["a", "c"]


class TestReadWrite:

    def test_read_csv(self, tmp_path):
        path = tmp_path / "ref.csv"
        path.write_text('id,text\nutt 1,"hello, world"\n\nutt2,bye\n', encoding="utf-8")
        utts = read_transcript_file(path, FileFormat(ignore_first_row=True))
        assert utts == [Utt("utt_1", "hello, world"), Utt("utt2", "bye")]

    def test_read_columns(self, tmp_path):
        path = tmp_path / "ref.tsv"
        path.write_text("x\tএটি হয়ে থাকে\tutt9\n", encoding="utf-8")
        fmt = FileFormat(delimiter="\t", col_id=2, col_trn=1)
        assert read_transcript_file(path, fmt) == [Utt("utt9", "এটি হয়ে থাকে")]

    def test_too_few_columns(self, tmp_path):
        path = tmp_path / "ref.csv"
        path.write_text("utt1,ok\nutt2\n", encoding="utf-8")
        with pytest.raises(TranscriptFormatError, match="line 2"):
            read_transcript_file(path, FileFormat())

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_transcript_file(tmp_path / "nope.csv", FileFormat())

    def test_write_sorted_trn(self, tmp_path):
        path = write_transcript_file([Utt("b", "two"), Utt("a", "one")], tmp_path / "x.trn")
        assert path.read_text(encoding="utf-8") == "one (a)\ntwo (b)\n"


class TestNormalizeFiles:

    def test_end_to_end(self, tmp_path, caplog):
        ref = tmp_path / "ref.csv"
        ref.write_text("u1,Hello There\nu2,Good Bye\n", encoding="utf-8")
        hyp = tmp_path / "hyp.csv"
        hyp.write_text("u2,good by\nu1,HELLO there\nu3,extra\n", encoding="utf-8")
        out = tmp_path / "out"
        out.mkdir()

        ref_norm, hyps = normalize_files(
            FileFormat(), NormalizeConfig(), out, ref, [("My Model", hyp)],
        )

        assert ref_norm == out / "ref.trn"
        assert ref_norm.read_text(encoding="utf-8") == "hello there (u1)\ngood bye (u2)\n"
        assert hyps == [("my_model", out / "my_model.trn")]
        assert hyps[0][1].read_text(encoding="utf-8") == "hello there (u1)\ngood by (u2)\n"
        assert "Dropped 1 utterance" in caplog.text

    def test_empty_reference(self, tmp_path):
        ref = tmp_path / "ref.csv"
        ref.write_text("\n", encoding="utf-8")
        hyp = tmp_path / "hyp.csv"
        hyp.write_text("u1,x\n", encoding="utf-8")
        with pytest.raises(ValueError, match="does not contain any utterances"):
            normalize_files(FileFormat(), NormalizeConfig(), tmp_path, ref, [("h", hyp)])

    def test_no_common_ids(self, tmp_path):
        ref = tmp_path / "ref.csv"
        ref.write_text("u1,x\n", encoding="utf-8")
        hyp = tmp_path / "hyp.csv"
        hyp.write_text("u9,x\n", encoding="utf-8")
        with pytest.raises(ValueError, match="no utterance IDs in common"):
            normalize_files(FileFormat(), NormalizeConfig(), tmp_path, ref, [("h", hyp)])
