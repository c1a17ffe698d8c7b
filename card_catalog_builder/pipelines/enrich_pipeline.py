"""
Enrichment step runner.

Each registered step fills in part of a game record and records its own outcome in
`record.steps[<step name>]`. The runner only ever hands a step the records whose result for that
step is still `pending`, so a completed (success, failed or skipped) result is final until an
operator resets it with `reset_steps`.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from ..config import PIPELINE
from ..model import GameRecord, StepResult, StepStatus
from ..store import GameStore
from ..utils.periodic import EveryN
from ..utils.progress import Progress

if TYPE_CHECKING:
    from ..clients import MetacriticClient, SteamClient
    from ..utils.settings import Settings


@dataclass
class StepCounts:
    processed: int = 0
    succeeded: int = 0
    # failed or skipped
    other: int = 0


class EnrichmentStep:
    """
    Base class for an enrichment step.

    Subclasses set `name` (and optionally `requires`) and implement `enrich`, which mutates one
    record in place and records the step result on it.
    """

    name: str = ""
    label: str = ""
    # Steps that must have succeeded on a record before this one may run on it.
    requires: tuple[str, ...] = ()
    delay_s: float = 0.0

    def is_eligible(self, game: GameRecord) -> bool:
        if not game.step(self.name).is_pending:
            return False
        return all(game.step(r).status is StepStatus.SUCCESS for r in self.requires)

    def enrich(self, game: GameRecord) -> None:
        raise NotImplementedError

    def run(self, store: GameStore, runner: StepRunner) -> StepCounts:
        return runner.run(store, self)


@dataclass
class StepRunner:
    checkpoint_every: int = PIPELINE.checkpoint_every

    def run(self, store: GameStore, step: EnrichmentStep) -> StepCounts:
        label = step.label or step.name.upper()
        eligible = [game for game in store if step.is_eligible(game)]
        logging.info(f"[{label}] {len(eligible)} games pending")

        counts = StepCounts()
        checkpoint = EveryN(self.checkpoint_every, store.save)
        progress = Progress(label, total=len(eligible))
        for game in eligible:
            if counts.processed > 0 and step.delay_s > 0:
                time.sleep(step.delay_s)
            self._run_one(step, game, label=label)
            counts.processed += 1
            if game.step(step.name).status is StepStatus.SUCCESS:
                counts.succeeded += 1
            else:
                counts.other += 1
            checkpoint.maybe(counts.processed)
            progress.maybe_log(counts.processed)

        store.save()
        logging.info(
            f"✔ {label} step complete: processed={counts.processed} "
            f"succeeded={counts.succeeded} other={counts.other}"
        )
        return counts

    @staticmethod
    def _run_one(step: EnrichmentStep, game: GameRecord, *, label: str) -> None:
        try:
            step.enrich(game)
        except Exception as e:
            logging.warning(f"[{label}] {game.name} ({game.steam_app_id}) failed: {e}")
            game.steps[step.name] = StepResult.failed(str(e) or "Unknown error")
            return
        if game.step(step.name).is_pending:
            logging.warning(f"[{label}] {game.name} ({game.steam_app_id}) recorded no result")
            game.steps[step.name] = StepResult.failed("Step did not record a result")


def build_enrichment_steps(
    *,
    steam: SteamClient,
    metacritic: MetacriticClient,
    settings: Settings,
) -> list[EnrichmentStep]:
    """Registered steps in execution order."""
    from .steps import MetacriticStep, SteamStep

    return [
        SteamStep(steam, delay_s=settings.steam.entity_delay_s),
        MetacriticStep(metacritic, delay_s=settings.metacritic.entity_delay_s),
    ]


def reset_steps(store: GameStore, step: str, statuses: Iterable[StepStatus | str]) -> int:
    """
    Put matching results of `step` back to pending so the next run retries them.

    Returns the number of records reset.
    """
    if step not in store.step_names:
        raise ValueError(f"Unknown step: {step} (available: {', '.join(store.step_names)})")
    wanted = {StepStatus(s) for s in statuses}
    if StepStatus.PENDING in wanted:
        raise ValueError("Only failed or skipped results can be reset")
    reset = 0
    for game in store:
        if game.step(step).status in wanted:
            game.steps[step] = StepResult.pending()
            reset += 1
    return reset
