"""
subline.subtitles - Subtitle rendering and parsing.

Pipeline Stage 5: Serialize a transcript to plain text, SRT, or WebVTT,
and read edited SRT/WebVTT files back into segments.
"""

from __future__ import annotations
