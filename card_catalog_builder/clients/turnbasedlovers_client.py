from __future__ import annotations

import logging
import re

import requests
from bs4 import BeautifulSoup, Tag

from ..config import REQUEST, RETRY, TBL
from ..model import Discovery
from ..schema import SOURCE_TBL
from ..utils.utilities import RateLimiter
from .headers import HeaderRotation
from .http_client import ConfiguredHTTPClient, HTTPClient, HTTPRequestDefaults
from .parse import parse_int_text

TBL_BASE_URL = "https://turnbasedlovers.com"
TBL_LISTS_URL = f"{TBL_BASE_URL}/-/lists/"

_STEAM_APP_RE = re.compile(r"store\.steampowered\.com/app/(\d+)")
_CONTAINER_CLASSES = {"game-item", "entry"}


def _closest_container(el: Tag) -> Tag | None:
    """Nearest enclosing article/div (or .game-item/.entry) of a list entry link."""
    for parent in el.parents:
        if not isinstance(parent, Tag):
            continue
        if parent.name in ("article", "div"):
            return parent
        if _CONTAINER_CLASSES.intersection(parent.get("class") or []):
            return parent
    return None


def _first_text(root: Tag, selector: str) -> str:
    found = root.select_one(selector)
    return found.get_text(strip=True) if found is not None else ""


class TurnBasedLoversClient:
    """
    Curated game lists on turnbasedlovers.com. Entries are recognized by their Steam store links
    (or explicit Steam app id data attributes).
    """

    def __init__(
        self,
        *,
        headers: HeaderRotation | None = None,
        session: requests.Session | None = None,
        min_interval_s: float = TBL.min_interval_s,
        max_name_length: int = TBL.max_name_length,
        retries: int = RETRY.retries,
        base_sleep_s: float = RETRY.base_sleep_s,
        timeout_s: float = REQUEST.timeout_s,
    ):
        self._session = session or requests.Session()
        self._headers = headers or HeaderRotation()
        self.max_name_length = int(max_name_length)
        self.stats: dict[str, int] = {"http_lists_index": 0, "http_list_page": 0}
        base_http = HTTPClient(self._session, stats=self.stats)
        self.ratelimiter = RateLimiter(min_interval_s=min_interval_s)
        self._index_http = ConfiguredHTTPClient(
            base_http,
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                retries=retries,
                timeout_s=timeout_s,
                base_sleep_s=base_sleep_s,
                headers=self._headers.browser_headers,
                counter_key="http_lists_index",
                context_prefix="TBL lists index",
            ),
        )
        self._list_http = ConfiguredHTTPClient(
            base_http,
            HTTPRequestDefaults(
                ratelimiter=self.ratelimiter,
                retries=retries,
                timeout_s=timeout_s,
                base_sleep_s=base_sleep_s,
                headers=lambda: self._headers.browser_headers(referer=TBL_LISTS_URL),
                status_handlers={404: None},
                counter_key="http_list_page",
                context_prefix="TBL list",
            ),
        )

    def fetch_list_links(self) -> list[str]:
        """Absolute URLs of every list page linked from the lists index ([] on failure)."""
        html = self._index_http.get_text(TBL_LISTS_URL, on_fail_return=None)
        if not isinstance(html, str):
            return []
        links = self.parse_list_links(html)
        logging.info(f"[TBL] Found {len(links)} list pages")
        return links

    @staticmethod
    def parse_list_links(html: str) -> list[str]:
        soup = BeautifulSoup(html, "html.parser")
        links: list[str] = []
        for a in soup.select('a[href*="/lists/"]'):
            href = str(a.get("href") or "")
            if "/lists/" not in href or href.endswith("/lists/"):
                continue
            url = href if href.startswith("http") else f"{TBL_BASE_URL}{href}"
            if url not in links:
                links.append(url)
        return links

    def extract_games_from_list(self, list_url: str) -> list[Discovery]:
        """Games on one list page; [] when the page cannot be fetched."""
        html = self._list_http.get_text(list_url, context=list_url, on_fail_return=None)
        if not isinstance(html, str):
            logging.warning(f"[TBL] Failed to fetch {list_url}")
            return []
        return self.parse_list_page(html, max_name_length=self.max_name_length)

    @staticmethod
    def parse_list_page(html: str, *, max_name_length: int = TBL.max_name_length) -> list[Discovery]:
        soup = BeautifulSoup(html, "html.parser")
        seen: set[int] = set()
        out: list[Discovery] = []

        def _add(app_id: int, name: str) -> None:
            if app_id in seen:
                return
            seen.add(app_id)
            out.append(Discovery(app_id=app_id, name=name[:max_name_length], source=SOURCE_TBL))

        for a in soup.select('a[href*="store.steampowered.com/app/"]'):
            m = _STEAM_APP_RE.search(str(a.get("href") or ""))
            if not m:
                continue
            app_id = int(m.group(1))
            container = _closest_container(a)
            name = _first_text(container, "h2, h3, h4, .title, .name") if container is not None else ""
            if not name:
                name = a.get_text(strip=True) or f"Steam App {app_id}"
            _add(app_id, name)

        for el in soup.select("[data-steam-id], [data-appid]"):
            app_id = parse_int_text(el.get("data-steam-id") or el.get("data-appid"))
            if app_id is None or app_id <= 0:
                continue
            name = _first_text(el, ".title, .name, h2, h3") or el.get_text(strip=True)
            if name:
                _add(app_id, name)
        return out

    def format_stats(self) -> str:
        return " ".join(
            HTTPClient.format_timing(self.stats, key=k) for k in ("http_lists_index", "http_list_page")
        )
