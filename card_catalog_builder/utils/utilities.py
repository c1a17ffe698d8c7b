from __future__ import annotations

import json
import logging
import random
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import pandas as pd
from rapidfuzz import fuzz

from ..config import RETRY

# ----------------------------
# Year parsing
# ----------------------------


_YEAR_RE = re.compile(r"\b(19\d{2}|20\d{2})\b")


def extract_year(text: str | None) -> int | None:
    """
    Extract a 4-digit year (1900-2099) from a free-form release date string, if present.

    Steam release dates come localized ("12 Jan, 2021", "Q3 2024", "Coming soon").
    """
    s = str(text or "").strip()
    if not s:
        return None
    m = _YEAR_RE.search(s)
    if not m:
        return None
    return int(m.group(1))


# ----------------------------
# Paths / Folder structure
# ----------------------------


@dataclass(frozen=True)
class RunPaths:
    run_dir: Path
    output_dir: Path
    logs_dir: Path

    @staticmethod
    def from_run_dir(run_dir: str | Path) -> RunPaths:
        root = Path(run_dir).resolve()
        return RunPaths(
            run_dir=root,
            output_dir=root / "output",
            logs_dir=root / "logs",
        )

    def ensure(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)


# ----------------------------
# CSV Helpers
# ----------------------------


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


_MARKUP_RE = re.compile(r"<[^>]*>")


def clean_text(text: str | None, *, max_length: int | None = None) -> str:
    """
    Flatten free text for a CSV cell: drop HTML tags, collapse whitespace/newlines, truncate.
    """
    s = _MARKUP_RE.sub("", str(text or ""))
    s = re.sub(r"\r?\n", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    if max_length is not None and max_length >= 0:
        s = s[:max_length]
    return s


# ----------------------------
# Name normalization
# ----------------------------

_ROMAN_MAP = {
    " i ": " 1 ",
    " ii ": " 2 ",
    " iii ": " 3 ",
    " iv ": " 4 ",
    " v ": " 5 ",
    " vi ": " 6 ",
    " vii ": " 7 ",
    " viii ": " 8 ",
    " ix ": " 9 ",
    " x ": " 10 ",
}


def normalize_game_name(name: str) -> str:
    """
    Normalize names to improve matching between sites.
    - lowercase
    - remove punctuation
    - collapse spaces
    - convert '®™' etc
    - roman numerals to arabic for typical cases (I, II, III...)
    """
    s = (name or "").strip().lower()
    s = s.replace("™", "").replace("®", "").replace("©", "")
    s = re.sub(r"[\(\)\[\]\{\}]", " ", s)
    s = re.sub(r"[’'`]", "", s)  # apostrophes
    s = re.sub(r"[:\-–—_/\\|]", " ", s)
    s = re.sub(r"[.,!?+*&%$#@~]", " ", s)

    s = f" {s} "
    for k, v in _ROMAN_MAP.items():
        s = s.replace(k, v)

    s = re.sub(r"\s+", " ", s).strip()
    return s


def clean_name_for_search(name: str) -> str:
    """Lowercase, drop non-word characters and collapse spaces for site search boxes."""
    s = (name or "").lower()
    s = re.sub(r"[^\w\s]", "", s)
    s = re.sub(r"\s+", " ", s)
    return s.strip()


# ----------------------------
# Fuzzy matching
# ----------------------------


_EDITION_TOKENS = {
    "remake",
    "hd",
    "classic",
    "definitive",
    "remastered",
    "ultimate",
    "goty",
    "anniversary",
    "complete",
    "collection",
    "edition",
    "enhanced",
    "redux",
    "vr",
    "directors",
    "director",
    "cut",
    "game",
    "of",
    "the",
    "year",
}

_DLC_LIKE_TOKENS = {
    "soundtrack",
    "demo",
    "beta",
    "expansion",
    "pack",
    "season",
    "pass",
}


def _is_year_token(t: str) -> bool:
    return t.isdigit() and len(t) == 4 and 1900 <= int(t) <= 2100


def _token_set(s: str) -> set[str]:
    return set(normalize_game_name(s).split())


def _series_numbers_tokens(tokens: set[str]) -> set[int]:
    out: set[int] = set()
    for t in tokens:
        if not t.isdigit():
            continue
        # Avoid leading-zero “brand” tokens like 007.
        if len(t) > 1 and t.startswith("0"):
            continue
        n = int(t)
        if n == 0 or 1900 <= n <= 2100:
            continue
        if 0 < n <= 50:
            out.add(n)
    return out


def _looks_dlc_like(name: str) -> bool:
    tokens = _token_set(name)
    return any(t in tokens for t in _DLC_LIKE_TOKENS)


def fuzzy_score(a: str, b: str) -> int:
    """
    Calculate fuzzy matching score between two strings.

    Uses a conservative default (token_sort_ratio) to avoid false 100% substring matches, while
    still allowing common year/edition cases (e.g. "Inscryption" vs "Inscryption 2021") via
    partial_ratio.
    """
    na = normalize_game_name(a)
    nb = normalize_game_name(b)
    score_sort = float(fuzz.token_sort_ratio(na, nb))
    score_partial = float(fuzz.partial_ratio(na, nb))

    tokens_a = set(na.split())
    tokens_b = set(nb.split())

    # Only allow partial matches when one side is a strict superset of the other and the only
    # difference is a year token or a small set of edition tokens.
    extra_a = tokens_a - tokens_b
    extra_b = tokens_b - tokens_a
    year_only_a = bool(extra_a) and all(_is_year_token(t) for t in extra_a)
    year_only_b = bool(extra_b) and all(_is_year_token(t) for t in extra_b)

    edition_only_a = bool(extra_a) and all(t in _EDITION_TOKENS for t in extra_a)
    edition_only_b = bool(extra_b) and all(t in _EDITION_TOKENS for t in extra_b)

    allow_partial = (
        (year_only_a and not extra_b)
        or (year_only_b and not extra_a)
        or (edition_only_a and not extra_b)
        or (edition_only_b and not extra_a)
    )

    if not allow_partial:
        return int(score_sort)
    return int(max(score_sort, score_partial))


def pick_best_match(
    query: str,
    candidates: list[dict[str, Any]],
    name_key: str = "name",
) -> tuple[dict[str, Any] | None, int, list[tuple[str, int]]]:
    """
    Given a query and a list of dicts (candidates), choose the candidate with the best fuzzy score.
    Returns (best_candidate, best_score, top_matches).
    top_matches is a list of (name, score) tuples for the top 5 matches (excluding the best itself).

    Ties prefer the candidate with the fewest differing tokens, then the candidates' original
    order (search sites rank their own results).
    """
    q_tokens = _token_set(query)
    q_series = _series_numbers_tokens(q_tokens)
    scored = []
    for pos, c in enumerate(candidates):
        cname = str(c.get(name_key, "") or "")
        score = fuzzy_score(query, cname)

        c_series = _series_numbers_tokens(_token_set(cname))
        # Penalize likely sequel matches when the query has no sequel number, and mismatched
        # sequel numbers when both sides have one.
        series_penalty = 15 if (not q_series and c_series) else 0
        series_penalty += 20 if (q_series and c_series and q_series.isdisjoint(c_series)) else 0
        dlc_penalty = 20 if _looks_dlc_like(cname) and not _looks_dlc_like(query) else 0

        adjusted = max(0, min(100, score - series_penalty - dlc_penalty))
        token_diff = len(q_tokens ^ _token_set(cname))
        scored.append((c, cname, score, adjusted, token_diff, pos))

    if not scored:
        return None, -1, []

    scored.sort(key=lambda x: (-x[3], -x[2], x[4], x[5]))
    best, _best_name, _best_score, best_adjusted, _, _ = scored[0]
    top_matches = [(name, score) for _, name, score, _, _, _ in scored[1:6] if score > 0]
    return best, int(best_adjusted), top_matches


# ----------------------------
# JSON files
# ----------------------------


def load_json(path: str | Path) -> Any:
    """
    Load a JSON document. Missing files return None; unreadable or corrupt files raise.
    """
    p = Path(path)
    if not p.exists():
        return None
    return json.loads(p.read_text(encoding="utf-8"))


def save_json(data: Any, path: str | Path) -> None:
    """
    Rewrite a JSON document wholesale (pretty-printed).

    Writes to a sibling temp file first and renames it over the target so an interrupted write
    never leaves a truncated snapshot behind.
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    tmp.replace(p)


# ----------------------------
# Rate limiting + retries
# ----------------------------


class RateLimiter:
    """
    Simple rate limiter: enforces minimum interval between requests.
    """

    def __init__(self, min_interval_s: float = 1.0):
        self.min_interval_s = float(min_interval_s)
        self._last = 0.0

    def wait(self) -> None:
        # Use monotonic time to avoid issues if the system clock changes.
        now = time.monotonic()
        delta = now - self._last
        if delta < self.min_interval_s:
            time.sleep(self.min_interval_s - delta)
        self._last = time.monotonic()


def _classify_exception(exc: BaseException) -> tuple[bool, bool, int | None, float | None]:
    """
    Returns (is_network, is_http, status, retry_after_s) for a request exception.
    """
    import requests  # local import to keep this module usable without a session

    if isinstance(exc, requests.exceptions.HTTPError):
        resp = getattr(exc, "response", None)
        status = getattr(resp, "status_code", None)
        retry_after_s: float | None = None
        if status == 429:
            headers = getattr(resp, "headers", {}) or {}
            ra = str(headers.get("Retry-After", "") or "").strip()
            try:
                retry_after_s = float(ra) if ra else None
            except ValueError:
                retry_after_s = None
            if retry_after_s is None:
                retry_after_s = RETRY.http_429_default_retry_after_s
        return False, True, status, retry_after_s
    net_types = (
        requests.exceptions.ConnectionError,
        requests.exceptions.Timeout,
        requests.exceptions.SSLError,
    )
    return isinstance(exc, net_types), False, None, None


def _bump(stats: dict[str, Any] | None, key: str, by: int = 1) -> None:
    if stats is None:
        return
    stats[key] = int(stats.get(key, 0) or 0) + by


def with_retries(
    fn: Callable[[], Any],
    *,
    retries: int = RETRY.retries,
    base_sleep_s: float = RETRY.base_sleep_s,
    jitter_s: float = RETRY.jitter_s,
    retry_on: tuple[type, ...] = (Exception,),
    on_fail_return: Any = None,
    context: str | None = None,
    retry_stats: dict[str, Any] | None = None,
) -> Any:
    """
    Execute fn with retries and exponential backoff.
    """
    for attempt in range(retries):
        try:
            return fn()
        except retry_on as e:
            is_network, is_http, status, retry_after_s = _classify_exception(e)
            if status == 429:
                _bump(retry_stats, "http_429")
            if is_network:
                _bump(retry_stats, "network_errors")
            if is_http:
                _bump(retry_stats, "http_errors")

            if attempt == retries - 1:
                if context:
                    # Make network-offline situations obvious in logs, and distinct from
                    # "not found" cases.
                    if is_network:
                        logging.error(f"[NETWORK] {context}: {type(e).__name__}: {e}")
                    elif is_http:
                        logging.error(f"[HTTP] {context}: {type(e).__name__}: {e}")
                    else:
                        logging.error(f"[REQUEST] {context}: {type(e).__name__}: {e}")
                if is_network:
                    _bump(retry_stats, "network_failures")
                if is_http:
                    _bump(retry_stats, "http_failures")
                return on_fail_return
            sleep = base_sleep_s * (2**attempt) + random.uniform(0, jitter_s)
            if retry_after_s is not None and retry_after_s > 0:
                sleep = max(sleep, retry_after_s)
            _bump(retry_stats, "retry_attempts")
            if status == 429:
                _bump(retry_stats, "http_429_retries")
                _bump(retry_stats, "http_429_backoff_ms", int(round(sleep * 1000.0)))
            time.sleep(sleep)
    return on_fail_return


def network_failures_count(stats: dict[str, Any] | None) -> int:
    if not stats:
        return 0
    return int(stats.get("network_failures", 0) or 0)


def raise_on_new_network_failure(
    stats: dict[str, Any] | None, *, before: int, context: str
) -> None:
    """
    Raise a clear error when a network failure happened during a request.

    A dead network must end up as a failed step, not as a "not found" skip.
    """
    after = network_failures_count(stats)
    if after > before:
        raise RuntimeError(
            f"Network unavailable while calling {context}. Enable internet access and rerun."
        )
