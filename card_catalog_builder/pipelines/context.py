from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ..clients import HeaderRotation, MetacriticClient, SteamClient, TurnBasedLoversClient
from ..schema import STEP_NAMES
from ..store import GameStore, load_store
from ..utils.settings import Settings
from ..utils.utilities import RunPaths


@dataclass(frozen=True)
class PipelineContext:
    run_paths: RunPaths
    settings: Settings = field(default_factory=Settings)
    headers: HeaderRotation = field(default_factory=HeaderRotation)

    @property
    def snapshot_path(self) -> Path:
        return self.run_paths.output_dir / self.settings.pipeline.snapshot_name

    @property
    def export_path(self) -> Path:
        return self.run_paths.output_dir / self.settings.pipeline.export_name

    def load_store(self) -> GameStore:
        return load_store(self.snapshot_path, step_names=STEP_NAMES)

    def build_steam_client(self) -> SteamClient:
        s = self.settings
        return SteamClient(
            headers=self.headers,
            min_interval_s=s.steam.min_interval_s,
            page_size=s.steam.page_size,
            max_tags=s.steam.max_tags,
            retries=s.retry.retries,
            base_sleep_s=s.retry.base_sleep_s,
            timeout_s=s.request.timeout_s,
        )

    def build_tbl_client(self) -> TurnBasedLoversClient:
        s = self.settings
        return TurnBasedLoversClient(
            headers=self.headers,
            min_interval_s=s.tbl.min_interval_s,
            max_name_length=s.tbl.max_name_length,
            retries=s.retry.retries,
            base_sleep_s=s.retry.base_sleep_s,
            timeout_s=s.request.timeout_s,
        )

    def build_metacritic_client(self) -> MetacriticClient:
        s = self.settings
        return MetacriticClient(
            headers=self.headers,
            min_interval_s=s.metacritic.min_interval_s,
            min_match_score=s.metacritic.min_match_score,
            retries=s.retry.retries,
            base_sleep_s=s.retry.base_sleep_s,
            timeout_s=s.request.timeout_s,
        )
