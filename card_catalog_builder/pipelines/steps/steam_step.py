from __future__ import annotations

import logging
from typing import Iterable

from ...clients import SteamClient
from ...config import STEAM
from ...model import GameRecord, StepResult
from ...schema import CARD_TAG_MARKERS, STEP_STEAM
from ..enrich_pipeline import EnrichmentStep


def is_card_game(tags: Iterable[str]) -> bool:
    lowered = [t.lower() for t in tags]
    return any(marker in t for t in lowered for marker in CARD_TAG_MARKERS)


class SteamStep(EnrichmentStep):
    """Store metadata, reviews and user tags from Steam; keeps only card/deckbuilding games."""

    name = STEP_STEAM
    label = "STEAM"

    def __init__(self, client: SteamClient, *, delay_s: float = STEAM.entity_delay_s):
        self.client = client
        self.delay_s = delay_s

    def enrich(self, game: GameRecord) -> None:
        appid = game.steam_app_id
        details = self.client.get_app_details(appid)
        if details is None:
            game.steps[self.name] = StepResult.failed("App not found or API error")
            return
        for key, value in SteamClient.extract_fields(details).items():
            setattr(game, key, value)

        summary = self.client.get_reviews(appid)
        if summary is not None:
            for key, value in SteamClient.extract_review_fields(summary).items():
                setattr(game, key, value)

        tags = self.client.get_store_tags(appid)
        if tags:
            game.tags = tags

        if not is_card_game(game.tags):
            logging.debug(f"[STEAM] {game.name} ({appid}) has no card tags: {game.tags}")
            game.steps[self.name] = StepResult.skipped("Not a card/deckbuilding game")
            return
        game.steps[self.name] = StepResult.success()
