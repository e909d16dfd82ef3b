"""Lossless JSON dump of an AlignedHypothesis, and its loader.

WHY: The tabular reports are for people. Further processing (error
analysis notebooks, dashboards, re-rendering with other settings) needs
the alignments as data, without re-running sclite or re-parsing its SGML.

HOW: Pydantic models mirror the IR field for field. JsonDumpFormatter
converts the IR into those models, serializes them with keys in field
order (not alphabetical), and validates the document against the bundled
alignment_dump_schema.json before returning it. load_alignment_dump()
reverses the process and re-checks the IR invariants.

RULES:
- Speakers are written in sorted order, sentences in sequence order
- Labels are written as their one-letter codes (C, S, D, I)
- Output suffix: ".pra.json"; media type "application/json"
- Loading a dump yields an AlignedHypothesis equal to the one dumped
- Python 3.9+ compatible (no PEP 604 unions at runtime)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema
from pydantic import BaseModel, Field

from sclite_report.core.ir import (
    AlignedHypothesis,
    AlignedSentence,
    AlignedWord,
    AlignmentLabel,
)
from sclite_report.formatters.base import BaseFormatter, FormatterOutput

_SCHEMA_PATH = Path(__file__).resolve().parent / "alignment_dump_schema.json"

_CACHED_SCHEMA: Optional[dict] = None


def _get_schema() -> dict:
    """Load and cache the alignment dump JSON schema."""
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        with open(_SCHEMA_PATH, encoding="utf-8") as f:
            _CACHED_SCHEMA = json.load(f)
    return _CACHED_SCHEMA


class DumpFormatError(ValueError):
    """Raised when a JSON dump violates the alignment model's invariants.

    WHY: The schema checks shapes and types; it cannot check that counts
    match or that keys agree with the ids stored under them.
    """


# ---------------------------------------------------------------------------
# Dump models
# ---------------------------------------------------------------------------


class WordDump(BaseModel):
    label: AlignmentLabel = Field(description="Alignment decision: C, S, D or I.")
    ref: str = Field(description="Reference token; empty for insertions.")
    hyp: str = Field(description="Hypothesis token; empty for deletions.")


class SentenceDump(BaseModel):
    system_name: str
    speaker_id: str
    sentence_id: str
    sequence: int = Field(description="Display order within the speaker.")
    word_count: int = Field(description="Word count declared by sclite.")
    words: List[WordDump]


class HypothesisDump(BaseModel):
    system_name: str
    speakers: Dict[str, Dict[str, SentenceDump]] = Field(
        description="Speaker id → sentence id → sentence.",
    )


# ---------------------------------------------------------------------------
# IR <-> dump conversion
# ---------------------------------------------------------------------------


def hypothesis_to_dump(hypothesis: AlignedHypothesis) -> HypothesisDump:
    speakers: Dict[str, Dict[str, SentenceDump]] = {}
    for speaker_id in hypothesis.sorted_speaker_ids():
        speakers[speaker_id] = {
            sentence.sentence_id: SentenceDump(
                system_name=sentence.system_name,
                speaker_id=sentence.speaker_id,
                sentence_id=sentence.sentence_id,
                sequence=sentence.sequence,
                word_count=sentence.word_count,
                words=[
                    WordDump(label=word.label, ref=word.ref, hyp=word.hyp)
                    for word in sentence.words
                ],
            )
            for sentence in hypothesis.sorted_sentences(speaker_id)
        }
    return HypothesisDump(system_name=hypothesis.system_name, speakers=speakers)


def dump_to_hypothesis(dump: HypothesisDump) -> AlignedHypothesis:
    """Convert dump models back to the IR, re-checking its invariants.

    Raises:
        DumpFormatError: If a key disagrees with the id stored under it, a
            sentence names another system, or a word count is wrong.
    """
    speakers: Dict[str, Dict[str, AlignedSentence]] = {}
    for speaker_id, sentences in dump.speakers.items():
        converted: Dict[str, AlignedSentence] = {}
        for sentence_id, sentence in sentences.items():
            if sentence.speaker_id != speaker_id or sentence.sentence_id != sentence_id:
                raise DumpFormatError(
                    "sentence {!r} is stored under speaker {!r} / key {!r}".format(
                        sentence.sentence_id, speaker_id, sentence_id,
                    )
                )
            if sentence.system_name != dump.system_name:
                raise DumpFormatError(
                    "sentence {!r} belongs to system {!r}, not {!r}".format(
                        sentence_id, sentence.system_name, dump.system_name,
                    )
                )
            if sentence.word_count != len(sentence.words):
                raise DumpFormatError(
                    "sentence {!r} declares {} words but has {}".format(
                        sentence_id, sentence.word_count, len(sentence.words),
                    )
                )
            converted[sentence_id] = AlignedSentence(
                system_name=sentence.system_name,
                speaker_id=sentence.speaker_id,
                sentence_id=sentence.sentence_id,
                sequence=sentence.sequence,
                word_count=sentence.word_count,
                words=tuple(
                    AlignedWord(label=word.label, ref=word.ref, hyp=word.hyp)
                    for word in sentence.words
                ),
            )
        speakers[speaker_id] = converted
    return AlignedHypothesis(system_name=dump.system_name, speakers=speakers)


def dumps_alignment(hypothesis: AlignedHypothesis) -> str:
    """Serialize an AlignedHypothesis to schema-valid JSON text.

    Raises:
        jsonschema.ValidationError: If the document does not conform to
            alignment_dump_schema.json.
    """
    document: Dict[str, Any] = hypothesis_to_dump(hypothesis).model_dump(mode="json")
    jsonschema.validate(instance=document, schema=_get_schema())
    return json.dumps(document, indent=1, ensure_ascii=False) + "\n"


def loads_alignment(text: str) -> AlignedHypothesis:
    """Parse JSON text produced by dumps_alignment().

    Raises:
        jsonschema.ValidationError: If the document does not match the schema.
        DumpFormatError: If the document breaks an IR invariant.
    """
    document = json.loads(text)
    jsonschema.validate(instance=document, schema=_get_schema())
    return dump_to_hypothesis(HypothesisDump.model_validate(document))


def load_alignment_dump(path: str | Path) -> AlignedHypothesis:
    """Load a ``*.pra.json`` dump back into an AlignedHypothesis."""
    return loads_alignment(Path(path).read_text(encoding="utf-8"))


class JsonDumpFormatter(BaseFormatter):
    """Formatter producing the lossless JSON dump.

    RULES:
    - Output suffix: ".pra.json"
    - Document validated against alignment_dump_schema.json
    """

    @property
    def name(self) -> str:
        return "JSON alignment dump"

    def format(self, hypothesis: AlignedHypothesis) -> List[FormatterOutput]:
        return [
            FormatterOutput(
                suffix=".pra.json",
                content=dumps_alignment(hypothesis),
                media_type="application/json",
            )
        ]
