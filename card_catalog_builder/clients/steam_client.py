from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

import requests
from bs4 import BeautifulSoup

from ..config import REQUEST, RETRY, STEAM
from ..model import Discovery
from ..schema import steam_search_source
from ..utils.utilities import RateLimiter, extract_year
from .headers import HeaderRotation
from .http_client import ConfiguredHTTPClient, HTTPClient, HTTPRequestDefaults
from .parse import as_int, as_opt_str, as_str, descriptions, first_str, get_list_of_dicts

STEAM_SEARCH_RESULTS_URL = "https://store.steampowered.com/search/results/"
STEAM_APPDETAILS_URL = "https://store.steampowered.com/api/appdetails"
STEAM_APPREVIEWS_URL = "https://store.steampowered.com/appreviews"
STEAM_STORE_APP_URL = "https://store.steampowered.com/app"

_APP_HREF_RE = re.compile(r"/app/(\d+)")
# The store page seeds its tag modal with the full tag list: InitAppTagModal( appid, [ {...}, ... ]
_TAG_MODAL_RE = re.compile(r"InitAppTagModal\([^,]+,\s*(\[[^\]]+\])", re.DOTALL)


@dataclass(frozen=True)
class SearchPage:
    results: list[Discovery]
    total_count: int


class SteamClient:
    """
    Steam storefront: tag search (discovery), appdetails, appreviews and store-page tags.
    """

    def __init__(
        self,
        *,
        headers: HeaderRotation | None = None,
        session: requests.Session | None = None,
        min_interval_s: float = STEAM.min_interval_s,
        page_size: int = STEAM.page_size,
        max_tags: int = STEAM.max_tags,
        retries: int = RETRY.retries,
        base_sleep_s: float = RETRY.base_sleep_s,
        timeout_s: float = REQUEST.timeout_s,
    ):
        self._session = session or requests.Session()
        self._headers = headers or HeaderRotation()
        self.page_size = int(page_size)
        self.max_tags = int(max_tags)
        self.stats: dict[str, int] = {
            # HTTP request counters (attempts, including retries).
            "http_search": 0,
            "http_appdetails": 0,
            "http_appreviews": 0,
            "http_store_page": 0,
        }
        base_http = HTTPClient(self._session, stats=self.stats)
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s)
        self._search_http = ConfiguredHTTPClient(
            base_http,
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                retries=retries,
                timeout_s=timeout_s,
                base_sleep_s=base_sleep_s,
                headers=self._headers.api_headers,
                counter_key="http_search",
                context_prefix="Steam search",
            ),
        )
        self._appdetails_http = ConfiguredHTTPClient(
            base_http,
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                retries=retries,
                timeout_s=timeout_s,
                base_sleep_s=max(2.0, base_sleep_s),
                headers=self._headers.api_headers,
                counter_key="http_appdetails",
                context_prefix="Steam appdetails",
            ),
        )
        self._appreviews_http = ConfiguredHTTPClient(
            base_http,
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                retries=retries,
                timeout_s=timeout_s,
                base_sleep_s=base_sleep_s,
                headers=self._headers.api_headers,
                counter_key="http_appreviews",
                context_prefix="Steam appreviews",
            ),
        )
        self._store_page_http = ConfiguredHTTPClient(
            base_http,
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                retries=retries,
                timeout_s=timeout_s,
                base_sleep_s=base_sleep_s,
                headers=self._headers.steam_headers,
                status_handlers={404: None},
                counter_key="http_store_page",
                context_prefix="Steam store page",
            ),
        )

    # -------------------------------------------------
    # Discovery: tag search
    # -------------------------------------------------
    def search_page(self, tags: str, start: int) -> SearchPage | None:
        """
        Fetch one page of search results for a tag combination, most reviewed first.

        Returns None when the page could not be fetched or is not the expected payload.
        """
        data = self._search_http.get_json(
            STEAM_SEARCH_RESULTS_URL,
            params={
                "sort_by": "Reviews_DESC",
                "tags": tags,
                "supportedlang": "english",
                "ndl": "1",
                "count": str(self.page_size),
                "start": str(int(start)),
                "infinite": "1",
            },
            context=f"tags={tags} start={start}",
            on_fail_return=None,
        )
        if not isinstance(data, dict):
            return None
        html = data.get("results_html")
        if not isinstance(html, str):
            logging.warning(f"[STEAM] Search page has no results_html (tags={tags}, start={start})")
            return None
        total = as_int(data.get("total_count")) or 0
        return SearchPage(
            results=self.parse_search_results(html, source=steam_search_source(tags)),
            total_count=total,
        )

    @staticmethod
    def parse_search_results(html: str, *, source: str) -> list[Discovery]:
        soup = BeautifulSoup(html, "html.parser")
        out: list[Discovery] = []
        for row in soup.select("a.search_result_row"):
            m = _APP_HREF_RE.search(str(row.get("href") or ""))
            title = row.select_one(".title")
            name = title.get_text(strip=True) if title is not None else ""
            if m and name:
                out.append(Discovery(app_id=int(m.group(1)), name=name, source=source))
        return out

    # -------------------------------------------------
    # Enrichment: appdetails / appreviews / store page
    # -------------------------------------------------
    def get_app_details(self, appid: int) -> dict[str, Any] | None:
        data = self._appdetails_http.get_json(
            STEAM_APPDETAILS_URL,
            params={"appids": int(appid), "l": "english"},
            context=f"appid={appid}",
            on_fail_return=None,
        )
        if not isinstance(data, dict):
            return None
        entry = data.get(str(appid))
        if not isinstance(entry, dict) or not entry.get("success"):
            logging.info(f"[STEAM] appdetails returned no data for appid={appid}")
            return None
        details = entry.get("data")
        return details if isinstance(details, dict) else None

    def get_reviews(self, appid: int) -> dict[str, Any] | None:
        """Review summary (`query_summary`) or None."""
        data = self._appreviews_http.get_json(
            f"{STEAM_APPREVIEWS_URL}/{int(appid)}",
            params={"json": 1, "language": "all", "purchase_type": "all"},
            context=f"appid={appid}",
            on_fail_return=None,
        )
        if not isinstance(data, dict) or not data.get("success"):
            return None
        summary = data.get("query_summary")
        return summary if isinstance(summary, dict) else None

    def get_store_tags(self, appid: int) -> list[str]:
        """User tags from the store page (not exposed by the API); [] when unavailable."""
        html = self._store_page_http.get_text(
            f"{STEAM_STORE_APP_URL}/{int(appid)}",
            context=f"appid={appid}",
            on_fail_return=None,
        )
        if not isinstance(html, str):
            return []
        return self.parse_store_tags(html, max_tags=self.max_tags)

    @staticmethod
    def parse_store_tags(html: str, *, max_tags: int = STEAM.max_tags) -> list[str]:
        m = _TAG_MODAL_RE.search(html)
        if not m:
            return []
        try:
            raw = json.loads(m.group(1))
        except ValueError:
            return []
        names = [as_str(t.get("name")) for t in get_list_of_dicts(raw)]
        return [n for n in names if n][:max_tags]

    # -------------------------------------------------
    # Metadata extraction
    # -------------------------------------------------
    @staticmethod
    def extract_fields(details: dict[str, Any]) -> dict[str, Any]:
        """Map an appdetails payload onto GameRecord attribute names."""
        release = details.get("release_date") or {}
        release_date = as_opt_str(release.get("date")) if isinstance(release, dict) else None
        is_free = bool(details.get("is_free"))
        price_overview = details.get("price_overview") or {}
        price = as_opt_str(price_overview.get("final_formatted")) if isinstance(price_overview, dict) else None

        fields: dict[str, Any] = {
            "developer": first_str(details.get("developers")),
            "publisher": first_str(details.get("publishers")),
            "release_date": release_date,
            "release_year": extract_year(release_date),
            "short_description": as_opt_str(details.get("short_description")),
            "detailed_description": as_opt_str(details.get("detailed_description")),
            "about_the_game": as_opt_str(details.get("about_the_game")),
            "genres": descriptions(details.get("genres")),
            "categories": descriptions(details.get("categories")),
            "header_image": as_opt_str(details.get("header_image")),
            "screenshots": descriptions(details.get("screenshots"), key="path_full"),
            "is_free": is_free,
            "price_formatted": price or ("Free" if is_free else None),
        }
        name = as_opt_str(details.get("name"))
        if name:
            fields["name"] = name

        metacritic = details.get("metacritic")
        if isinstance(metacritic, dict):
            fields["metacritic_score"] = as_int(metacritic.get("score"))
            fields["metacritic_url"] = as_opt_str(metacritic.get("url"))
        return fields

    @staticmethod
    def extract_review_fields(summary: dict[str, Any]) -> dict[str, Any]:
        score = as_int(summary.get("review_score"))
        return {
            # Steam reports 0-10; the catalog uses 0-100.
            "review_score": score * 10 if score is not None else None,
            "review_score_desc": as_opt_str(summary.get("review_score_desc")),
            "total_reviews": as_int(summary.get("total_reviews")),
            "total_positive": as_int(summary.get("total_positive")),
            "total_negative": as_int(summary.get("total_negative")),
        }

    def format_stats(self) -> str:
        s = self.stats
        base = " ".join(
            HTTPClient.format_timing(s, key=k)
            for k in ("http_search", "http_appdetails", "http_appreviews", "http_store_page")
        )
        http_429 = int(s.get("http_429", 0) or 0)
        if http_429:
            return (
                base
                + f", 429={http_429} retries={int(s.get('http_429_retries', 0) or 0)}"
                + f" backoff_ms={int(s.get('http_429_backoff_ms', 0) or 0)}"
            )
        return base
