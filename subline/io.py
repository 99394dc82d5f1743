"""
subline.io - Output file helpers.

Subtitles and result JSON are replaced in one rename, so a reader never
sees a half-written file.
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any


def read_json(path: Path) -> Any:
    """Load a UTF-8 JSON document.

    Raises:
        FileNotFoundError: If path is missing
        json.JSONDecodeError: If the document is not valid JSON
    """
    return json.loads(read_text(path))


def write_json(path: Path, data: Any, indent: int = 2) -> None:
    """Write `data` as indented UTF-8 JSON, replacing path atomically."""
    write_text(path, json.dumps(data, indent=indent, ensure_ascii=False))


def read_text(path: Path) -> str:
    return Path(path).read_text(encoding="utf-8")


def write_text(path: Path, content: str) -> None:
    """Replace path with `content`.

    Newlines are written exactly as given; SRT and WebVTT bodies use "\\n"
    on every platform.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        newline="",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".part",
        delete=False,
    ) as handle:
        staged = Path(handle.name)
        try:
            handle.write(content)
        except BaseException:
            handle.close()
            staged.unlink(missing_ok=True)
            raise
    staged.replace(path)
