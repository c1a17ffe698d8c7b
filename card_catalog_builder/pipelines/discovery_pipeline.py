from __future__ import annotations

import logging
import time
from typing import Iterable

from ..clients import SteamClient, TurnBasedLoversClient
from ..config import SearchConfig
from ..model import Discovery, GameRecord
from ..store import GameStore


def merge_discovered(store: GameStore, candidates: Iterable[Discovery | tuple[int, str, str]]) -> int:
    """
    Merge discovered candidates into the store and return how many records were created.

    A known app id only gains the source tag (once); its name and metadata are left alone.
    """
    created = 0
    for app_id, name, source in candidates:
        app_id = int(app_id)
        existing = store.get(app_id)
        if existing is None:
            store.add(GameRecord.new(app_id, name, source, store.step_names))
            created += 1
        else:
            existing.add_source(source)
    return created


def _discover_search(
    store: GameStore,
    client: SteamClient,
    search: SearchConfig,
    *,
    page_delay_s: float,
) -> int:
    logging.info(f"[DISCOVERY] Steam search: {search.label} (tags={search.tags}, target={search.target})")
    created = 0
    start = 0
    total_count: int | None = None
    while created < search.target:
        if start > 0:
            time.sleep(page_delay_s)
        try:
            page = client.search_page(search.tags, start)
        except Exception as e:
            logging.warning(f"[DISCOVERY] Steam search page failed (start={start}): {e}")
            page = None

        if page is None:
            if total_count is None:
                logging.warning(f"[DISCOVERY] First page unavailable; skipping search '{search.label}'")
                break
            start += client.page_size
            if start >= total_count:
                break
            continue

        total_count = page.total_count
        if not page.results:
            logging.info("[DISCOVERY] No more results")
            break

        created += merge_discovered(store, page.results)
        logging.info(
            f"[DISCOVERY] Found {len(page.results)} games "
            f"({created} new this search, {len(store)} total)"
        )
        start += len(page.results)
        if start >= total_count:
            logging.info(f"[DISCOVERY] Reached end ({total_count} total available)")
            break
    return created


def run_steam_discovery(
    store: GameStore,
    client: SteamClient,
    searches: Iterable[SearchConfig],
    *,
    page_delay_s: float,
    search_delay_s: float,
) -> int:
    """
    Page through each Steam tag search until its target of new records is reached or the results
    run out. The store is checkpointed after each search.
    """
    created = 0
    for i, search in enumerate(searches):
        if i > 0:
            time.sleep(search_delay_s)
        created += _discover_search(store, client, search, page_delay_s=page_delay_s)
        store.save()
    logging.info(f"✔ Steam discovery complete: {created} new games ({len(store)} total)")
    return created


def run_tbl_discovery(store: GameStore, client: TurnBasedLoversClient, *, list_delay_s: float) -> int:
    """Merge every game found on the Turn Based Lovers lists."""
    try:
        links = client.fetch_list_links()
    except Exception as e:
        logging.warning(f"[DISCOVERY] Turn Based Lovers lists index failed: {e}")
        links = []

    created = 0
    for i, url in enumerate(links, start=1):
        if i > 1:
            time.sleep(list_delay_s)
        logging.info(f"[TBL] Processing list {i}/{len(links)}: {url.rstrip('/').rsplit('/', 1)[-1]}")
        try:
            games = client.extract_games_from_list(url)
        except Exception as e:
            logging.warning(f"[TBL] Failed to process {url}: {e}")
            continue
        created += merge_discovered(store, games)

    store.save()
    logging.info(f"✔ Turn Based Lovers discovery complete: {created} new games ({len(store)} total)")
    return created


def run_discovery(
    store: GameStore,
    *,
    steam: SteamClient,
    tbl: TurnBasedLoversClient,
    searches: Iterable[SearchConfig],
    page_delay_s: float,
    search_delay_s: float,
    list_delay_s: float,
) -> int:
    """Both discovery sources, Steam first. Returns the number of new records."""
    created = run_steam_discovery(
        store, steam, searches, page_delay_s=page_delay_s, search_delay_s=search_delay_s
    )
    created += run_tbl_discovery(store, tbl, list_delay_s=list_delay_s)
    return created
