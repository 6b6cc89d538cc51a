from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_KEYWORDS_PATH = Path(__file__).resolve().parent / "keywords.yaml"


@dataclass(frozen=True)
class Keywords:
    technical_keywords: Tuple[str, ...] = ()
    unwanted_formats: Tuple[str, ...] = ()
    unwanted_types: Tuple[str, ...] = ()
    suspicious_title_prefixes: Tuple[str, ...] = ()
    suspicious_title_substrings: Tuple[str, ...] = ()
    audio_title_markers: Tuple[str, ...] = ()
    non_literary_subjects: Tuple[str, ...] = ()
    art_exhibition_keywords: Tuple[str, ...] = ()
    museum_publishers: Tuple[str, ...] = ()
    series_characters: Tuple[str, ...] = ()
    fast_reject_title: Tuple[str, ...] = ()
    fiction_title_markers: Tuple[str, ...] = ()
    fiction_subject_markers: Tuple[str, ...] = ()
    exhibition_title_markers: Tuple[str, ...] = ()
    children_comics_markers: Tuple[str, ...] = ()
    generic_author_substrings: Tuple[str, ...] = ()
    generic_author_names: Tuple[str, ...] = ()


def _read_keywords_file(path: Path) -> Dict[str, List[str]]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except FileNotFoundError as e:
        raise SystemExit(f"Keywords file not found: {path}") from e
    except Exception as e:
        raise SystemExit(f"Failed to read keywords file: {path} ({e})") from e
    if not isinstance(data, dict):
        raise SystemExit(f"Keywords file must be a mapping of lists: {path}")
    logger.debug("Loaded keywords file: %s", path)
    out: Dict[str, List[str]] = {}
    for key, value in data.items():
        if isinstance(value, list):
            out[key] = [str(v).strip().lower() for v in value if str(v).strip()]
    return out


def load_keywords(path: Optional[str] = None) -> Keywords:
    """
    Load keyword lists from YAML.

    A user file only needs the lists it overrides; the rest come from the
    bundled keywords.yaml.
    """
    data = _read_keywords_file(DEFAULT_KEYWORDS_PATH)
    if path:
        override = _read_keywords_file(Path(path).expanduser())
        unknown = sorted(set(override) - {f.name for f in fields(Keywords)})
        if unknown:
            logger.warning("Ignoring unknown keyword lists in %s: %s", path, ", ".join(unknown))
        data.update(override)
    kwargs = {f.name: tuple(data.get(f.name, [])) for f in fields(Keywords)}
    return Keywords(**kwargs)


@lru_cache(maxsize=1)
def default_keywords() -> Keywords:
    return load_keywords(os.getenv("BIBLIOPULSE_KEYWORDS_FILE") or None)
