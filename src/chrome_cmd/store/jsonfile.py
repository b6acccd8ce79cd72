"""Whole-document JSON persistence.

Files shared between processes are always read, merged and rewritten as a
whole. Writes go to a sibling temp file that is then ``os.replace``d over
the target, so readers never observe a partially written document.
"""

import json
import os
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


def read_json_file(path: Path, default: Any) -> Any:
    """Read a JSON document, returning ``default`` if missing, empty or corrupt."""
    if not path.exists():
        return default

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"Failed to read {path}: {e}")
        return default

    if not content.strip():
        return default

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring corrupt JSON in {path}: {e}")
        return default

    if not isinstance(data, type(default)):
        logger.warning(f"Ignoring {path}: expected {type(default).__name__}")
        return default
    return data


def write_json_file(path: Path, data: Any) -> None:
    """Atomically replace ``path`` with the JSON serialization of ``data``."""
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)
