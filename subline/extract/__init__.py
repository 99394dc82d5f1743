"""
subline.extract - Audio preparation for upload.

Pipeline Stage 1: Use supported audio as-is, otherwise convert to mono
16 kHz compressed audio that fits the transcription upload limit.
"""

from __future__ import annotations
