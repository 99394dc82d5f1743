"""
subline.llm - LLM transcript correction.

Pipeline Stage 4: Refine segment text with a language model while segment
ids and timestamps stay fixed.
"""

from __future__ import annotations
