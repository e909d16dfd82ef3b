"""Shared test fixtures for the sclite_report test suite.

WHY: Parser, formatter, pipeline and CLI tests all need the same verified
sclite SGML sample and the AlignedHypothesis it must parse into.
Centralizing them here keeps every test on one authoritative case.

HOW: GOOD_PATHS describes the three Bangla utterances of the sample
(ids, sequence numbers, aligned words). The make_sgml fixture renders
them, or a modified copy, into sclite's SGML layout, so bad-input tests
change one field instead of hand-editing SGML text. good_hypothesis is the
expected parse result, built directly from the IR.

RULES:
- Word data matches a real sclite run on Common Voice Bangla clips
- Deletions are written as D,"ref", and insertions as I,,"hyp", as sclite does
- make_sgml(paths=...) takes dicts with id / word_cnt / sequence / words;
  word_cnt may be any string, words=None omits the alignment line
"""

import copy
from typing import Any, Dict, List, Optional, Tuple

import pytest

from sclite_report.core.ir import (
    AlignedHypothesis,
    AlignedSentence,
    AlignedWord,
    AlignmentLabel,
)

SYSTEM_NAME = "bangla"
SPEAKER_ID = "common"

GOOD_PATHS: List[Dict[str, Any]] = [
    {
        "id": "common_voice_bn_30620258.mp3",
        "sequence": "0",
        "words": [
            ("C", "তার", "তার"),
            ("C", "পিতার", "পিতার"),
            ("C", "নাম", "নাম"),
            ("C", "কালীপ্রসন্ন", "কালীপ্রসন্ন"),
            ("S", "ভট্টাচার্য।", "ভট্টাচার্য"),
        ],
    },
    {
        "id": "common_voice_bn_30620259.mp3",
        "sequence": "1",
        "words": [
            ("C", "ভৌগোলিক", "ভৌগোলিক"),
            ("C", "অবস্থান", "অবস্থান"),
            ("C", "অনুযায়ী", "অনুযায়ী"),
            ("D", "শহরটির", ""),
            ("D", "পূর্ব", ""),
            ("D", "দিকে", ""),
            ("S", "কাশ্মীর", "চাহরটিরপূর্বদিকেকাশ্মির"),
            ("S", "অবস্থিত।", "অবস্থিত"),
        ],
    },
    {
        "id": "common_voice_bn_30620260.mp3",
        "sequence": "2",
        "words": [
            ("C", "এটি", "এটি"),
            ("S", "বিশ্বব্যাপি", "বিশ্বব্যাপী"),
            ("I", "", "একই"),
            ("C", "হয়ে", "হয়ে"),
            ("S", "থাকে।", "থাকে"),
        ],
    },
]

SENTENCE_IDS = [path["id"] for path in GOOD_PATHS]


def _word_entry(label: str, ref: str, hyp: str) -> str:
    ref_field = '"{}"'.format(ref) if ref else ""
    hyp_field = '"{}"'.format(hyp) if hyp else ""
    return "{},{},{}".format(label, ref_field, hyp_field)


def render_sgml(
    paths: List[Dict[str, Any]],
    system_title: Optional[str] = SYSTEM_NAME,
    speaker_id: Optional[str] = SPEAKER_ID,
    close_system: bool = True,
) -> str:
    """Render PATH descriptions into sclite SGML text."""
    lines = []
    title_attr = ' title="{}"'.format(system_title) if system_title is not None else ""
    lines.append(
        '<SYSTEM{} ref_fname="ref.trn" hyp_fname="bangla.trn" creation_date="Sun Jun 19 2022"'
        ' format="2.4" frag_corr="FALSE" opt_del="FALSE" weight_ali="FALSE" weight_filename="">'
        .format(title_attr)
    )
    if speaker_id is not None:
        lines.append('<SPEAKER id="{}">'.format(speaker_id))

    for path in paths:
        attrs = []
        if path.get("id") is not None:
            attrs.append('id="({})"'.format(path["id"]))
        words = path.get("words")
        word_cnt = path.get("word_cnt", str(len(words or [])))
        if word_cnt is not None:
            attrs.append('word_cnt="{}"'.format(word_cnt))
        attrs.append('labeled="FALSE"')
        if path.get("sequence") is not None:
            attrs.append('sequence="{}"'.format(path["sequence"]))
        lines.append("<PATH {}>".format(" ".join(attrs)))
        if words is not None:
            lines.append(":".join(_word_entry(*word) for word in words))
        lines.append("</PATH>")

    if speaker_id is not None:
        lines.append("</SPEAKER>")
    if close_system:
        lines.append("</SYSTEM>")
    return "\n".join(lines) + "\n"


@pytest.fixture
def good_paths():
    """Deep copy of GOOD_PATHS, safe to modify in a test."""
    return copy.deepcopy(GOOD_PATHS)


@pytest.fixture
def make_sgml():
    """Factory rendering (possibly modified) PATH descriptions to SGML text."""
    def _make(paths: Optional[List[Dict[str, Any]]] = None, **kwargs: Any) -> str:
        return render_sgml(copy.deepcopy(GOOD_PATHS) if paths is None else paths, **kwargs)
    return _make


@pytest.fixture
def good_sgml_text():
    return render_sgml(GOOD_PATHS)


@pytest.fixture
def good_sgml_file(tmp_path, good_sgml_text):
    """The verified sample written as <tmp>/bangla.trn.sgml."""
    path = tmp_path / "bangla.trn.sgml"
    path.write_text(good_sgml_text, encoding="utf-8")
    return path


def _sentence(path: Dict[str, Any]) -> AlignedSentence:
    words: Tuple[AlignedWord, ...] = tuple(
        AlignedWord(label=AlignmentLabel(label), ref=ref, hyp=hyp)
        for label, ref, hyp in path["words"]
    )
    return AlignedSentence(
        system_name=SYSTEM_NAME,
        speaker_id=SPEAKER_ID,
        sentence_id=path["id"],
        sequence=int(path["sequence"]),
        word_count=len(words),
        words=words,
    )


@pytest.fixture
def good_hypothesis():
    """The AlignedHypothesis the verified sample must parse into."""
    return AlignedHypothesis(
        system_name=SYSTEM_NAME,
        speakers={SPEAKER_ID: {path["id"]: _sentence(path) for path in GOOD_PATHS}},
    )
