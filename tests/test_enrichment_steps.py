from __future__ import annotations

from typing import Any


def _game(app_id: int = 10, name: str = "Slay the Spire"):
    from card_catalog_builder.model import GameRecord
    from card_catalog_builder.schema import STEP_NAMES

    return GameRecord.new(app_id, name, "steam:1666,9", STEP_NAMES)


class FakeSteam:
    def __init__(self, *, details=None, reviews=None, tags=None):
        self.details = details
        self.reviews = reviews
        self.tags = tags or []

    def get_app_details(self, appid: int) -> dict[str, Any] | None:
        return self.details

    def get_reviews(self, appid: int) -> dict[str, Any] | None:
        return self.reviews

    def get_store_tags(self, appid: int) -> list[str]:
        return list(self.tags)


DETAILS = {
    "name": "Slay the Spire",
    "developers": ["Mega Crit", "Other"],
    "publishers": ["Humble Games"],
    "release_date": {"coming_soon": False, "date": "23 Jan, 2019"},
    "short_description": "A deckbuilder.",
    "about_the_game": "<p>About</p>",
    "genres": [{"id": "9", "description": "Strategy"}],
    "categories": [{"id": 2, "description": "Single-player"}],
    "header_image": "https://cdn/header.jpg",
    "screenshots": [
        {"id": 0, "path_full": "https://cdn/1.jpg"},
        {"id": 1, "path_full": "https://cdn/2.jpg"},
    ],
    "is_free": False,
    "price_overview": {"final_formatted": "$24.99"},
    "metacritic": {"score": 89, "url": "https://www.metacritic.com/game/pc/slay-the-spire"},
}


def test_steam_step_success_maps_fields():
    from card_catalog_builder.model import StepStatus
    from card_catalog_builder.pipelines.steps import SteamStep

    game = _game(name="slay the spire (list name)")
    client = FakeSteam(
        details=DETAILS,
        reviews={
            "review_score": 9,
            "review_score_desc": "Overwhelmingly Positive",
            "total_reviews": 100,
            "total_positive": 97,
            "total_negative": 3,
        },
        tags=["Roguelike Deckbuilder", "Card Game", "Strategy"],
    )
    SteamStep(client, delay_s=0).enrich(game)

    assert game.step("steam").status is StepStatus.SUCCESS
    assert game.step("steam").completed_at is not None
    assert game.name == "Slay the Spire"
    assert game.developer == "Mega Crit"
    assert game.publisher == "Humble Games"
    assert game.release_date == "23 Jan, 2019"
    assert game.release_year == 2019
    assert game.genres == ["Strategy"]
    assert game.categories == ["Single-player"]
    assert game.screenshots == ["https://cdn/1.jpg", "https://cdn/2.jpg"]
    assert game.price_formatted == "$24.99"
    assert game.metacritic_score == 89
    assert game.review_score == 90
    assert game.total_reviews == 100
    assert game.total_positive == 97
    assert game.tags == ["Roguelike Deckbuilder", "Card Game", "Strategy"]


def test_steam_step_skips_games_without_card_tags():
    from card_catalog_builder.model import StepStatus
    from card_catalog_builder.pipelines.steps import SteamStep

    game = _game()
    SteamStep(FakeSteam(details=DETAILS, tags=["Strategy", "Turn-Based"]), delay_s=0).enrich(game)

    result = game.step("steam")
    assert result.status is StepStatus.SKIPPED
    assert result.error == "Not a card/deckbuilding game"
    assert result.completed_at is not None
    # Metadata fetched before the filter stays on the record.
    assert game.developer == "Mega Crit"


def test_steam_step_fails_when_details_missing():
    from card_catalog_builder.model import StepStatus
    from card_catalog_builder.pipelines.steps import SteamStep

    game = _game()
    client = FakeSteam(details=None, tags=["Card Game"])
    SteamStep(client, delay_s=0).enrich(game)

    result = game.step("steam")
    assert result.status is StepStatus.FAILED
    assert result.error == "App not found or API error"
    assert game.tags == []


def test_free_game_price_is_free():
    from card_catalog_builder.pipelines.steps import SteamStep

    game = _game()
    details = dict(DETAILS, is_free=True)
    details.pop("price_overview")
    SteamStep(FakeSteam(details=details, tags=["Deckbuilding"]), delay_s=0).enrich(game)
    assert game.is_free is True
    assert game.price_formatted == "Free"


def test_is_card_game_is_case_insensitive():
    from card_catalog_builder.pipelines.steps import is_card_game

    assert is_card_game(["DECKBUILDING"])
    assert is_card_game(["Card Battler"])
    assert not is_card_game(["Strategy", "Turn-Based Tactics"])
    assert not is_card_game([])


class FakeMetacritic:
    def __init__(self, *, search=None, pages=None):
        from card_catalog_builder.clients import MetacriticResult

        self.search_result = search or MetacriticResult()
        self.pages = pages or {}
        self.calls: list[tuple[str, str]] = []

    def search(self, name: str):
        self.calls.append(("search", name))
        return self.search_result

    def fetch_score(self, url: str):
        self.calls.append(("page", url))
        return self.pages.get(url)


def _steam_done(game):
    from card_catalog_builder.model import StepResult

    game.steps["steam"] = StepResult.success()
    return game


def test_metacritic_skips_when_steam_has_score_and_url():
    from card_catalog_builder.pipelines.steps import MetacriticStep

    game = _steam_done(_game())
    game.metacritic_score = 89
    game.metacritic_url = "https://mc/game/x"
    client = FakeMetacritic()
    MetacriticStep(client, delay_s=0).enrich(game)

    assert game.step("metacritic").status.value == "skipped"
    assert game.step("metacritic").error == "Already have score from Steam"
    assert client.calls == []


def test_metacritic_fetches_steam_provided_page():
    from card_catalog_builder.pipelines.steps import MetacriticStep

    game = _steam_done(_game())
    game.metacritic_url = "https://mc/game/x"
    client = FakeMetacritic(pages={"https://mc/game/x": 77})
    MetacriticStep(client, delay_s=0).enrich(game)

    assert game.step("metacritic").status.value == "success"
    assert game.metacritic_score == 77
    assert client.calls == [("page", "https://mc/game/x")]


def test_metacritic_search_score_is_used_directly():
    from card_catalog_builder.clients import MetacriticResult
    from card_catalog_builder.pipelines.steps import MetacriticStep

    game = _steam_done(_game())
    client = FakeMetacritic(search=MetacriticResult(score=88, url="https://mc/game/sts"))
    MetacriticStep(client, delay_s=0).enrich(game)

    assert game.step("metacritic").status.value == "success"
    assert (game.metacritic_score, game.metacritic_url) == (88, "https://mc/game/sts")
    assert client.calls == [("search", "Slay the Spire")]


def test_metacritic_search_url_without_score_fetches_page():
    from card_catalog_builder.clients import MetacriticResult
    from card_catalog_builder.pipelines.steps import MetacriticStep

    game = _steam_done(_game())
    client = FakeMetacritic(search=MetacriticResult(url="https://mc/game/sts"))
    MetacriticStep(client, delay_s=0).enrich(game)

    result = game.step("metacritic")
    assert result.status.value == "skipped"
    assert result.error == "Found page but no score"
    assert game.metacritic_url == "https://mc/game/sts"
    assert game.metacritic_score is None


def test_metacritic_not_found():
    from card_catalog_builder.pipelines.steps import MetacriticStep

    game = _steam_done(_game())
    MetacriticStep(FakeMetacritic(), delay_s=0).enrich(game)

    assert game.step("metacritic").status.value == "skipped"
    assert game.step("metacritic").error == "Not found on Metacritic"


def test_metacritic_step_requires_steam_success():
    from card_catalog_builder.model import StepResult
    from card_catalog_builder.pipelines.steps import MetacriticStep

    step = MetacriticStep(FakeMetacritic(), delay_s=0)
    game = _game()
    assert not step.is_eligible(game)
    game.steps["steam"] = StepResult.skipped("Not a card/deckbuilding game")
    assert not step.is_eligible(game)
    game.steps["steam"] = StepResult.success()
    assert step.is_eligible(game)
