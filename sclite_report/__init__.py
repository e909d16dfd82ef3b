"""sclite alignment reports: score ASR output and render readable alignments.

WHY: sclite's own alignment report pads words with spaces, which breaks for
scripts with combining marks and ligatures. Its SGML output has the same
alignments as data. This package parses that SGML and renders it as
Markdown, HTML, CSV and text tables plus a lossless JSON dump, and can
drive sclite end to end from delimited transcript files.

HOW: Three-stage pipeline: normalize (core.transcripts), score
(sclite.runner), render (core.sgml → formatters). Each stage is
independently testable.

RULES:
- All formatters consume the same AlignedHypothesis IR
- Adding an output format = one new formatter module, no core changes
"""

__version__ = "0.1.0"
