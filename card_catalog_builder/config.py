from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RetryConfig:
    retries: int = 3
    base_sleep_s: float = 1.0
    jitter_s: float = 0.3
    http_429_default_retry_after_s: float = 5.0


@dataclass(frozen=True)
class RequestConfig:
    timeout_s: int = 15


@dataclass(frozen=True)
class SearchConfig:
    """One Steam search (a comma-separated tag id combination) and its target of new games."""

    tags: str
    label: str
    target: int


# Steam tag ids:
# 9 = Strategy, 1666 = Card Game, 14139 = Turn-Based,
# 4325 = Turn-Based Strategy, 17389 = Deckbuilding, 1677 = Turn-Based Tactics
DEFAULT_SEARCHES: tuple[SearchConfig, ...] = (
    SearchConfig(tags="1666,9", label="Card Game + Strategy", target=150),
    SearchConfig(tags="14139,1666", label="Turn-Based + Card Game", target=150),
    SearchConfig(tags="4325,1666", label="Turn-Based Strategy + Card Game", target=100),
)


@dataclass(frozen=True)
class PipelineConfig:
    # Checkpoint the store after every N entities processed by a step.
    checkpoint_every: int = 10
    # Exported rows require this step to have succeeded.
    primary_step: str = "steam"
    snapshot_name: str = "games.json"
    export_name: str = "games.csv"
    progress_every_n: int = 25
    progress_min_interval_s: float = 30.0


@dataclass(frozen=True)
class SteamConfig:
    # Spacing between requests issued for the same entity (appdetails -> reviews -> store page).
    min_interval_s: float = 0.3
    # Delay between entities; the appdetails endpoint is strict.
    entity_delay_s: float = 1.5
    page_delay_s: float = 1.0
    search_delay_s: float = 2.0
    page_size: int = 50
    max_tags: int = 15
    searches: tuple[SearchConfig, ...] = field(default=DEFAULT_SEARCHES)


@dataclass(frozen=True)
class MetacriticConfig:
    min_interval_s: float = 0.5
    entity_delay_s: float = 2.0
    # Minimum fuzzy title score for picking a search result.
    min_match_score: int = 65


@dataclass(frozen=True)
class TBLConfig:
    min_interval_s: float = 0.3
    # Delay between list pages.
    list_delay_s: float = 0.5
    max_name_length: int = 100


@dataclass(frozen=True)
class ExportConfig:
    list_delimiter: str = "; "
    text_max_length: int = 500
    max_screenshots: int = 3


RETRY = RetryConfig()
REQUEST = RequestConfig()
PIPELINE = PipelineConfig()
STEAM = SteamConfig()
METACRITIC = MetacriticConfig()
TBL = TBLConfig()
EXPORT = ExportConfig()
