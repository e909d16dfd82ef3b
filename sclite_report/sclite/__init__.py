"""Wrapper around the NIST sclite scoring tool.

WHY: sclite is the reference implementation of word/character error rate
scoring and alignment. This package hides its argument conventions and
binary lookup behind a small Python interface.

HOW: runner.py builds the command line from a ScliteConfig, runs the
binary as a subprocess and hands its output directory to the report
pipeline.

RULES:
- sclite itself is an external executable, never reimplemented here
- Transcripts are normalized before sclite sees them (see core.transcripts)
"""
