from __future__ import annotations

import json
import logging
import random
import threading
import time
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "bibliopulse/1.0"
RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


class CatalogError(RuntimeError):
    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CatalogQuotaError(CatalogError):
    pass


def _safe_body_preview(resp: requests.Response, limit: int = 800) -> str:
    try:
        if "application/json" in (resp.headers.get("Content-Type") or "").lower():
            try:
                payload = resp.json()
                text = json.dumps(payload, ensure_ascii=False)
            except Exception:
                text = resp.text or ""
        else:
            text = resp.text or ""
    except Exception:
        return "<unavailable>"
    text = text.replace("\r", " ").replace("\n", " ").strip()
    if len(text) > limit:
        return text[:limit].rstrip() + "..."
    return text


def _redact(params: Optional[dict]) -> dict:
    return {k: ("***" if k.lower() in ("key", "api_key") else v) for k, v in (params or {}).items()}


def make_session(headers: Optional[Dict[str, str]] = None) -> requests.Session:
    s = requests.Session()
    s.headers.update({
        "Accept": "application/json",
        "User-Agent": USER_AGENT,
    })
    if headers:
        s.headers.update(headers)
    return s


def make_isbndb_session(api_key: str) -> requests.Session:
    return make_session({"Authorization": api_key})


def clone_session(session: Optional[requests.Session]) -> requests.Session:
    cloned = make_session()
    cloned.headers.update(getattr(session, "headers", None) or {})
    return cloned


class SessionPool:
    """
    One clone of `base` per worker thread, headers included.

    Sessions are created lazily and closed together when the pool exits.
    """

    def __init__(self, base: Optional[requests.Session] = None) -> None:
        self.base = base
        self._local = threading.local()
        self._lock = threading.Lock()
        self._created: List[requests.Session] = []

    def get(self) -> requests.Session:
        sess = getattr(self._local, "session", None)
        if sess is None:
            sess = clone_session(self.base)
            self._local.session = sess
            with self._lock:
                self._created.append(sess)
        return sess

    def close(self) -> None:
        with self._lock:
            created, self._created = self._created, []
        for sess in created:
            sess.close()

    def __enter__(self) -> "SessionPool":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def _sleep_jitter(base: float, jitter: float = 0.25) -> None:
    time.sleep(max(0.0, base + random.random() * jitter))


def get_json(
    session: requests.Session,
    url: str,
    *,
    params: Optional[dict] = None,
    timeout_s: float = 15,
    retries: int = 0,
    label: str = "HTTP",
) -> Any:
    """
    GET a JSON document.

    Raises CatalogError on HTTP errors, network errors and non-JSON bodies.
    With retries > 0, 429/5xx/network failures back off exponentially with
    jitter; ISBNdb's "Daily quota ... reached" is never retried.
    """
    backoff = 1.0
    safe_params = _redact(params)
    for attempt in range(1, retries + 2):
        try:
            logger.debug(
                "request | label=%s | url=%s | params=%s | attempt=%s/%s",
                label,
                url,
                safe_params,
                attempt,
                retries + 1,
            )
            r = session.get(url, params=params, timeout=timeout_s)

            data = None
            try:
                if r.content:
                    data = r.json()
            except ValueError:
                data = None

            if isinstance(data, dict):
                msg = data.get("message") or data.get("error") or data.get("errors") or ""
                if isinstance(msg, (list, dict)):
                    msg = json.dumps(msg, ensure_ascii=False)
                msg_s = str(msg)
                if "Daily quota" in msg_s and "reached" in msg_s:
                    raise CatalogQuotaError(msg_s, status_code=r.status_code)

            if r.status_code in RETRYABLE_STATUSES and attempt <= retries:
                ra = r.headers.get("Retry-After")
                wait = float(ra) if ra and ra.isdigit() else backoff
                logger.warning(
                    "retrying | label=%s | status=%s | wait=%s | url=%s",
                    label,
                    r.status_code,
                    wait,
                    url,
                )
                _sleep_jitter(wait, 0.5)
                backoff = min(30.0, backoff * 2)
                continue

            if r.status_code >= 400:
                logger.warning(
                    "http error | label=%s | status=%s | url=%s | params=%s | body=%s",
                    label,
                    r.status_code,
                    url,
                    safe_params,
                    _safe_body_preview(r),
                )
                raise CatalogError(f"{label} {r.status_code} for {url}", status_code=r.status_code)

            if data is None:
                if not r.content:
                    return {}
                raise CatalogError(f"{label} returned a non-JSON body for {url}", status_code=r.status_code)
            if not isinstance(data, (dict, list)):
                raise CatalogError(f"{label} returned unexpected JSON for {url}", status_code=r.status_code)
            return data

        except CatalogError:
            raise

        except requests.RequestException as e:
            if attempt <= retries:
                logger.warning("request error | label=%s | url=%s | err=%r (retrying)", label, url, e)
                _sleep_jitter(backoff, 0.5)
                backoff = min(30.0, backoff * 2)
                continue
            raise CatalogError(f"{label} request failed: {url} error={e}") from e

    raise CatalogError(f"{label} request failed: {url}")
