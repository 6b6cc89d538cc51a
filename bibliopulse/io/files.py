from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Iterator

logger = logging.getLogger(__name__)


def atomic_write_text(out_path: str, text: str) -> None:
    d = os.path.dirname(out_path) or "."
    os.makedirs(d, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=d, encoding="utf-8") as tf:
        tmp_path = tf.name
        tf.write(text)
    try:
        os.replace(tmp_path, out_path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def read_json_lines(path: str) -> Iterator[dict]:
    """Yield JSON objects from an NDJSON file, skipping blank and corrupt lines."""
    if not path or not os.path.exists(path):
        return
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                rec = json.loads(line)
            except ValueError:
                logger.warning("skipping corrupt line | path=%s | line=%s", path, lineno)
                continue
            if isinstance(rec, dict):
                yield rec
