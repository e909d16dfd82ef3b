"""Intermediate representation dataclasses for parsed sclite alignments.

WHY: sclite writes its word-level alignments as loosely delimited SGML.
Every report format (Markdown, HTML, CSV, plain text, JSON dump) needs the
same speakers, sentences and aligned words, just laid out differently.
The IR gives all formatters one strict, well-typed structure to walk,
decoupling parsing from rendering.

HOW: A small hierarchy:
  AlignmentLabel   : closed alphabet of alignment decisions (C, S, D, I)
  AlignedWord      : one reference/hypothesis token pair with its label
  AlignedSentence  : one scored utterance: ids, sequence, declared count, words
  SpeakerSentences : sentence id → AlignedSentence, scoped to one speaker
  AlignedHypothesis: the complete parse result for one scored system

RULES:
- AlignedWord and AlignedSentence are frozen; the parser builds them once
- AlignedSentence.word_count always equals len(words) in a parsed model
- Every sentence's system_name equals its hypothesis's system_name
- Speaker ids and sentence ids are never empty
- Display order: speakers lexicographic, sentences by ascending sequence
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

# Added to the declared word count so an empty sentence never divides by zero.
_STATS_EPSILON = 1e-10


class AlignmentLabel(str, enum.Enum):
    """Alignment decision for one column of a sentence alignment.

    Inherits from str so values serialize cleanly to JSON and compare
    equal to the single-letter codes sclite writes.
    """

    CORRECT = "C"
    SUBSTITUTION = "S"
    DELETION = "D"
    INSERTION = "I"


@dataclass(frozen=True)
class AlignedWord:
    """One token-level alignment decision.

    RULES:
    - ref is "" for insertions
    - hyp is "" for deletions
    """

    label: AlignmentLabel
    ref: str
    hyp: str


@dataclass(frozen=True)
class SentenceStats:
    """Percentages of correct, substituted, deleted and inserted words.

    WHY: Each sentence block in a report carries a one-line summary of how
    the system did on that utterance.

    HOW: Computed by AlignedSentence.stats() against the declared word
    count (plus a negligible epsilon), so the four values sum to ~100%
    whenever the sentence has at least one word.
    """

    correct: float
    substitution: float
    deletion: float
    insertion: float

    def format(self) -> str:
        return "Cor={:3.1f}%\tSub={:3.1f}%\tDel={:3.1f}%\tIns={:3.1f}%".format(
            self.correct, self.substitution, self.deletion, self.insertion,
        )


@dataclass(frozen=True)
class AlignedSentence:
    """One scored utterance for one speaker.

    WHY: sclite reports every utterance (a PATH block in its SGML) as an
    ordered list of aligned words. The formatters render one table per
    sentence, so this is the unit the tables are built from.

    HOW: Built by the SGML parser after the PATH block's alignment line
    has been split and validated against the declared word count.

    RULES:
    - sequence: 0-based position of the utterance in sclite's output, used
      only for display ordering within a speaker
    - word_count: the count sclite declared; equals len(words)
    - words: immutable tuple, in alignment order
    """

    system_name: str
    speaker_id: str
    sentence_id: str
    sequence: int
    word_count: int
    words: Tuple[AlignedWord, ...] = ()

    def stats(self) -> SentenceStats:
        """Compute per-label percentages for this sentence.

        Anything that is not S, D or I counts as correct.
        """
        sub = dele = ins = cor = 0
        for word in self.words:
            if word.label == AlignmentLabel.SUBSTITUTION:
                sub += 1
            elif word.label == AlignmentLabel.DELETION:
                dele += 1
            elif word.label == AlignmentLabel.INSERTION:
                ins += 1
            else:
                cor += 1

        total = self.word_count + _STATS_EPSILON
        return SentenceStats(
            correct=100 * cor / total,
            substitution=100 * sub / total,
            deletion=100 * dele / total,
            insertion=100 * ins / total,
        )


SpeakerSentences = Dict[str, AlignedSentence]
"""Sentence id → AlignedSentence for a single speaker."""


@dataclass
class AlignedHypothesis:
    """The complete parse result for one scored system.

    WHY: This is the top-level container that formatters receive. sclite
    writes one SGML file per hypothesis, and each becomes one
    AlignedHypothesis that can be rendered to any number of formats.

    HOW: Built by read_alignment_sgml() (or load_alignment_dump() when
    reprocessing a JSON dump). Treated as read-only once returned.

    RULES:
    - speakers: speaker id → SpeakerSentences; no iteration order implied
    - sorted_speaker_ids() and sorted_sentences() give the display order
    """

    system_name: str
    speakers: Dict[str, SpeakerSentences] = field(default_factory=dict)

    @property
    def sentence_count(self) -> int:
        return sum(len(sentences) for sentences in self.speakers.values())

    def sorted_speaker_ids(self) -> List[str]:
        return sorted(self.speakers)

    def sorted_sentences(self, speaker_id: str) -> List[AlignedSentence]:
        """Return a speaker's sentences in ascending sequence order.

        sorted() is stable, so sentences sharing a sequence number keep the
        order in which the parser inserted them.
        """
        sentences = self.speakers[speaker_id]
        return sorted(sentences.values(), key=lambda s: s.sequence)

    def iter_sentences(self) -> List[AlignedSentence]:
        """All sentences in display order (speaker, then sequence)."""
        ordered: List[AlignedSentence] = []
        for speaker_id in self.sorted_speaker_ids():
            ordered.extend(self.sorted_sentences(speaker_id))
        return ordered
