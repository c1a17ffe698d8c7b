from __future__ import annotations

from ...clients import MetacriticClient
from ...config import METACRITIC
from ...model import GameRecord, StepResult
from ...schema import STEP_METACRITIC, STEP_STEAM
from ..enrich_pipeline import EnrichmentStep


class MetacriticStep(EnrichmentStep):
    """
    Metascore for games Steam did not score: the Steam-provided page first, then a title search.
    """

    name = STEP_METACRITIC
    label = "METACRITIC"
    requires = (STEP_STEAM,)

    def __init__(self, client: MetacriticClient, *, delay_s: float = METACRITIC.entity_delay_s):
        self.client = client
        self.delay_s = delay_s

    def enrich(self, game: GameRecord) -> None:
        if game.metacritic_score is not None and game.metacritic_url is not None:
            game.steps[self.name] = StepResult.skipped("Already have score from Steam")
            return

        if game.metacritic_url and game.metacritic_score is None:
            score = self.client.fetch_score(game.metacritic_url)
            if score is not None:
                game.metacritic_score = score
                game.steps[self.name] = StepResult.success()
                return

        result = self.client.search(game.name)
        if result.score is not None:
            game.metacritic_score = result.score
            game.metacritic_url = result.url
            game.steps[self.name] = StepResult.success()
        elif result.url:
            score = self.client.fetch_score(result.url)
            game.metacritic_url = result.url
            if score is not None:
                game.metacritic_score = score
                game.steps[self.name] = StepResult.success()
            else:
                game.steps[self.name] = StepResult.skipped("Found page but no score")
        else:
            game.steps[self.name] = StepResult.skipped("Not found on Metacritic")
