"""Alignment model, SGML parsing and transcript handling.

WHY: The core package holds everything the report formatters and the
scoring pipeline share: the alignment IR, the SGML deserializer that
builds it, and the transcript normalization that feeds sclite.

HOW: ir.py defines the data structures, sgml.py builds them from sclite
SGML output, transcripts.py reads and normalizes user transcript files,
textutils.py provides quote-aware field splitting for both.

RULES:
- IR dataclasses are the contract between parsing and rendering
- Parsing is format-agnostic, no renderer-specific logic here
"""
