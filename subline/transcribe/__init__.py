"""
subline.transcribe - Speech-to-text stages.

Pipeline Stages 2-3: Mandatory timed transcription establishing segment
ids and timestamps, plus an optional high-accuracy pass that improves text
without timing authority.
"""

from __future__ import annotations
