from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from bibliopulse.core.affiliate import DEFAULT_AFFILIATE_ID

PROVIDERS = ("isbndb", "google", "openlibrary")


def _strip_inline_comment(val: str) -> str:
    quote_ch = ""
    for i, ch in enumerate(val):
        if ch in ("'", '"'):
            if not quote_ch:
                quote_ch = ch
            elif quote_ch == ch:
                quote_ch = ""
            continue
        if ch == "#" and not quote_ch:
            return val[:i].rstrip()
    return val.rstrip()


def _parse_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        k, v = line.split("=", 1)
        k = k.strip()
        v = _strip_inline_comment(v.strip())
        if len(v) >= 2 and v[0] == v[-1] and v[0] in ("'", '"'):
            v = v[1:-1]
        if k and k not in os.environ:
            os.environ[k] = v


def load_dotenv(path: str = ".env") -> Optional[str]:
    """
    Fill missing environment variables from a .env file.

    Looks at ENV_PATH, then `path` (relative to the CWD), then the project
    root. Variables already set in the environment win. Returns the file
    used, or None.
    """
    candidates: List[Path] = []
    override = os.getenv("ENV_PATH")
    if override:
        candidates.append(Path(override).expanduser())
    p = Path(path).expanduser()
    candidates.append(p if p.is_absolute() else Path.cwd() / p)
    candidates.append(Path(__file__).resolve().parent.parent / ".env")

    for c in candidates:
        if c.is_file():
            _parse_env_file(c)
            return str(c)
    return None


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise SystemExit(f"{name} must be an integer, got {raw!r}") from e


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _env_str(name: str) -> Optional[str]:
    return (os.getenv(name) or "").strip() or None


@dataclass
class AppConfig:
    isbndb_api_key: Optional[str] = None
    google_books_api_key: Optional[str] = None
    provider: str = "isbndb"

    language: Optional[str] = "fr"
    max_results: int = 20
    timeout_s: int = 15
    retries: int = 0
    concurrency: int = 6

    cache_path: Optional[str] = None
    cache_ttl_s: int = 24 * 60 * 60
    keywords_file: Optional[str] = None
    cover_lookup: bool = False
    translate: bool = False

    affiliate_id: str = DEFAULT_AFFILIATE_ID
    roadmap_path: Optional[str] = None

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            isbndb_api_key=_env_str("ISBNDB_API_KEY"),
            google_books_api_key=_env_str("GOOGLE_BOOKS_API_KEY"),
            provider=(_env_str("BIBLIOPULSE_PROVIDER") or "isbndb").lower(),
            language=_env_str("BIBLIOPULSE_LANGUAGE") or "fr",
            max_results=_env_int("BIBLIOPULSE_MAX_RESULTS", 20),
            timeout_s=_env_int("BIBLIOPULSE_TIMEOUT", 15),
            retries=_env_int("BIBLIOPULSE_RETRIES", 0),
            concurrency=_env_int("BIBLIOPULSE_CONCURRENCY", 6),
            cache_path=_env_str("BIBLIOPULSE_CACHE_PATH"),
            cache_ttl_s=_env_int("BIBLIOPULSE_CACHE_TTL", 24 * 60 * 60),
            keywords_file=_env_str("BIBLIOPULSE_KEYWORDS_FILE"),
            cover_lookup=_env_bool("BIBLIOPULSE_COVER_LOOKUP"),
            translate=_env_bool("BIBLIOPULSE_TRANSLATE"),
            affiliate_id=_env_str("AMAZON_AFFILIATE_ID") or DEFAULT_AFFILIATE_ID,
            roadmap_path=_env_str("BIBLIOPULSE_ROADMAP_PATH"),
        )

    def validate(self) -> None:
        if self.provider not in PROVIDERS:
            raise SystemExit(f"Unknown provider {self.provider!r} (expected one of: {', '.join(PROVIDERS)}).")
        if self.provider == "isbndb" and not (self.isbndb_api_key or "").strip():
            raise SystemExit("Missing ISBNDB_API_KEY (set in .env or environment).")
        if self.max_results < 1:
            raise SystemExit("BIBLIOPULSE_MAX_RESULTS must be at least 1.")
        if self.timeout_s < 1:
            raise SystemExit("BIBLIOPULSE_TIMEOUT must be at least 1 second.")
        if self.retries < 0:
            raise SystemExit("BIBLIOPULSE_RETRIES cannot be negative.")
