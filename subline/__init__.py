"""
Subline - media-to-subtitle transcription toolkit.

Turns an uploaded media file into a timestamped, editable transcript and a
subtitle file through a staged pipeline: audio preparation → timed
transcription → high-accuracy transcription → LLM correction → subtitle
rendering.
"""

__version__ = "0.1.0"
