from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from ..model import StepStatus
from ..schema import STEP_NAMES, STEP_STEAM
from ..store import GameStore
from .context import PipelineContext
from .discovery_pipeline import run_discovery
from .enrich_pipeline import EnrichmentStep, StepRunner, build_enrichment_steps
from .export_pipeline import export_catalog_csv


@dataclass(frozen=True)
class PipelineOptions:
    skip_discovery: bool = False
    skip_enrich: bool = False
    skip_export: bool = False
    only_step: str | None = None


def check_step_name(name: str) -> str:
    if name not in STEP_NAMES:
        raise ValueError(f"Unknown step: {name}. Available steps: {', '.join(STEP_NAMES)}")
    return name


def select_steps(steps: list[EnrichmentStep], only_step: str | None) -> list[EnrichmentStep]:
    if only_step is None:
        return steps
    check_step_name(only_step)
    return [s for s in steps if s.name == only_step]


def summarize(store: GameStore) -> dict[str, Any]:
    total = len(store)
    with_steam = sum(1 for g in store if g.step(STEP_STEAM).status is StepStatus.SUCCESS)
    with_metacritic = sum(1 for g in store if g.metacritic_score is not None)
    return {
        "total": total,
        "with_steam": with_steam,
        "with_metacritic": with_metacritic,
        "steps": {name: store.status_counts(name) for name in store.step_names},
    }


def _pct(n: int, total: int) -> str:
    return f"{(100.0 * n / total):.1f}%" if total else "0.0%"


def log_summary(store: GameStore) -> dict[str, Any]:
    s = summarize(store)
    total = s["total"]
    logging.info(f"[SUMMARY] Total games: {total}")
    logging.info(f"[SUMMARY] With Steam data: {s['with_steam']} ({_pct(s['with_steam'], total)})")
    logging.info(
        f"[SUMMARY] With Metacritic score: {s['with_metacritic']} "
        f"({_pct(s['with_metacritic'], total)})"
    )
    for name, counts in s["steps"].items():
        parts = " ".join(f"{status}={n}" for status, n in counts.items())
        logging.info(f"[SUMMARY] Step {name}: {parts}")
    return s


def run_pipeline(ctx: PipelineContext, options: PipelineOptions = PipelineOptions()) -> GameStore:
    """
    Discovery, enrichment (registered steps in order) and export, each phase optional.

    Every phase checkpoints the store before the next one starts.
    """
    if options.only_step is not None:
        check_step_name(options.only_step)

    started = time.perf_counter()
    settings = ctx.settings
    store = ctx.load_store()
    # Request counters are cumulative per client; logged once at the end.
    clients: dict[str, Any] = {}

    if options.skip_discovery:
        logging.info("[DISCOVERY] Skipped")
    else:
        steam = clients["STEAM"] = ctx.build_steam_client()
        tbl = clients["TBL"] = ctx.build_tbl_client()
        run_discovery(
            store,
            steam=steam,
            tbl=tbl,
            searches=settings.steam.searches,
            page_delay_s=settings.steam.page_delay_s,
            search_delay_s=settings.steam.search_delay_s,
            list_delay_s=settings.tbl.list_delay_s,
        )

    if options.skip_enrich:
        logging.info("[ENRICH] Skipped")
    else:
        steam = clients.get("STEAM") or ctx.build_steam_client()
        clients["STEAM"] = steam
        metacritic = clients["METACRITIC"] = ctx.build_metacritic_client()
        steps = select_steps(
            build_enrichment_steps(steam=steam, metacritic=metacritic, settings=settings),
            options.only_step,
        )
        runner = StepRunner(checkpoint_every=settings.pipeline.checkpoint_every)
        for step in steps:
            step.run(store, runner)

    if options.skip_export:
        logging.info("[EXPORT] Skipped")
    else:
        export_catalog_csv(
            store,
            ctx.export_path,
            export=settings.export,
            primary_step=settings.pipeline.primary_step,
        )

    for label, client in clients.items():
        logging.info(f"[{label}] Requests: {client.format_stats()}")
    log_summary(store)
    logging.info(f"✔ Pipeline complete in {time.perf_counter() - started:.1f}s")
    return store
