from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import requests
from bs4 import BeautifulSoup, Tag

from ..config import METACRITIC, REQUEST, RETRY
from ..utils.utilities import RateLimiter, clean_name_for_search, pick_best_match
from .headers import HeaderRotation
from .http_client import ConfiguredHTTPClient, HTTPClient, HTTPRequestDefaults
from .parse import parse_score_100

METACRITIC_BASE_URL = "https://www.metacritic.com"
METACRITIC_SEARCH_URL = f"{METACRITIC_BASE_URL}/search/"
GAMES_CATEGORY = 13

# Game pages have changed layout several times; try the current markup first.
SCORE_SELECTORS: tuple[str, ...] = (
    "span[data-v-4cdca868].c-siteReviewScore_medium span",
    ".c-productScoreInfo_scoreNumber",
    ".c-siteReviewScore span",
    ".metascore_w.xlarge",
    ".metascore_w.large",
    'div[class*="metascore"] span',
)
SEARCH_TITLE_SELECTORS = '[data-testid="product-title"], .c-pageSiteSearch-results-item-title, h3, p'
SEARCH_SCORE_SELECTORS = ".c-siteReviewScore, .metascore_w"


@dataclass(frozen=True)
class MetacriticResult:
    score: int | None = None
    url: str | None = None


def _absolute(href: str) -> str:
    return href if href.startswith("http") else f"{METACRITIC_BASE_URL}{href}"


def _slug_title(href: str) -> str:
    # "/game/slay-the-spire/" -> "slay the spire"
    parts = [p for p in href.split("/") if p]
    try:
        slug = parts[parts.index("game") + 1]
    except (ValueError, IndexError):
        return ""
    return slug.replace("-", " ")


class MetacriticClient:
    """Metacritic game search and game page score scraping."""

    def __init__(
        self,
        *,
        headers: HeaderRotation | None = None,
        session: requests.Session | None = None,
        min_interval_s: float = METACRITIC.min_interval_s,
        min_match_score: int = METACRITIC.min_match_score,
        retries: int = RETRY.retries,
        base_sleep_s: float = RETRY.base_sleep_s,
        timeout_s: float = REQUEST.timeout_s,
    ):
        self._session = session or requests.Session()
        self._headers = headers or HeaderRotation()
        self.min_match_score = int(min_match_score)
        self.stats: dict[str, int] = {"http_search": 0, "http_game_page": 0}
        base_http = HTTPClient(self._session, stats=self.stats)
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s)
        self._search_http = ConfiguredHTTPClient(
            base_http,
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                retries=retries,
                timeout_s=timeout_s,
                base_sleep_s=base_sleep_s,
                headers=self._headers.browser_headers,
                status_handlers={404: None},
                counter_key="http_search",
                context_prefix="Metacritic search",
            ),
        )
        self._page_http = ConfiguredHTTPClient(
            base_http,
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                retries=retries,
                timeout_s=timeout_s,
                base_sleep_s=base_sleep_s,
                headers=lambda: self._headers.browser_headers(referer=f"{METACRITIC_BASE_URL}/"),
                status_handlers={404: None},
                counter_key="http_game_page",
                context_prefix="Metacritic page",
            ),
        )

    def search(self, name: str) -> MetacriticResult:
        """
        Search games by title and pick the best-matching result.

        Returns an empty result when nothing matches well enough; the score is only set when the
        search result itself shows one.
        """
        query = clean_name_for_search(name)
        if not query:
            return MetacriticResult()
        html = self._search_http.get_text(
            f"{METACRITIC_SEARCH_URL}{quote(query)}/",
            params={"page": 1, "category": GAMES_CATEGORY},
            context=f"name={name!r}",
            on_fail_return=None,
        )
        if not isinstance(html, str):
            return MetacriticResult()

        candidates = self.parse_search_results(html)
        best, score, top = pick_best_match(name, candidates)
        if best is None:
            logging.debug(f"[METACRITIC] No game results for {name!r}")
            return MetacriticResult()
        if score < self.min_match_score:
            logging.info(
                f"[METACRITIC] Rejected best match for {name!r}: {best['name']!r} "
                f"(score {score}); alternatives: {top}"
            )
            return MetacriticResult()
        return MetacriticResult(score=best["score"], url=best["url"])

    @staticmethod
    def parse_search_results(html: str) -> list[dict[str, Any]]:
        """Game results in page order: {"name", "url", "score"} (score may be None)."""
        soup = BeautifulSoup(html, "html.parser")
        out: list[dict[str, Any]] = []
        seen: set[str] = set()
        for a in soup.select('a[href*="/game/"]'):
            href = str(a.get("href") or "")
            url = _absolute(href)
            if url in seen:
                continue
            seen.add(url)
            title_el = a.select_one(SEARCH_TITLE_SELECTORS)
            name = title_el.get_text(strip=True) if title_el is not None else ""
            score_el = a.select_one(SEARCH_SCORE_SELECTORS)
            out.append(
                {
                    "name": name or _slug_title(href),
                    "url": url,
                    "score": parse_score_100(score_el.get_text(strip=True)) if score_el else None,
                }
            )
        return out

    def fetch_score(self, url: str) -> int | None:
        """Metascore from a game page, or None."""
        html = self._page_http.get_text(_absolute(url), context=url, on_fail_return=None)
        if not isinstance(html, str):
            return None
        return self.parse_game_page_score(html)

    @staticmethod
    def parse_game_page_score(html: str) -> int | None:
        soup = BeautifulSoup(html, "html.parser")
        for selector in SCORE_SELECTORS:
            el = soup.select_one(selector)
            if not isinstance(el, Tag):
                continue
            score = parse_score_100(el.get_text(strip=True))
            if score is not None:
                return score
        return None

    def format_stats(self) -> str:
        return " ".join(
            HTTPClient.format_timing(self.stats, key=k) for k in ("http_search", "http_game_page")
        )
