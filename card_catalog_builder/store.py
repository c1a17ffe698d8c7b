from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from .model import GameRecord, StepStatus, utc_now_iso
from .schema import STEP_NAMES
from .utils.utilities import load_json, save_json


class StoreFormatError(ValueError):
    pass


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_keys(raw: Any) -> Any:
    if not isinstance(raw, dict):
        return raw
    return {_CAMEL_RE.sub("_", str(k)).lower(): v for k, v in raw.items()}


def _from_legacy_record(raw: Any) -> Any:
    """Legacy snapshots use camelCase keys (`steamAppId`, `completedAt`, ...)."""
    record = _snake_keys(raw)
    if isinstance(record, dict) and isinstance(record.get("steps"), dict):
        record["steps"] = {name: _snake_keys(res) for name, res in record["steps"].items()}
    return record


@dataclass
class GameStore:
    """
    All known games keyed by Steam app id, in discovery order.

    In memory the keys are ints; on disk they are strings (JSON object keys). The conversion
    happens only in `to_json` / `from_json`.
    """

    games: dict[int, GameRecord] = field(default_factory=dict)
    last_updated: str | None = None
    path: Path | None = None
    step_names: tuple[str, ...] = STEP_NAMES

    def __len__(self) -> int:
        return len(self.games)

    def __contains__(self, app_id: object) -> bool:
        return app_id in self.games

    def __iter__(self) -> Iterator[GameRecord]:
        return iter(self.games.values())

    def get(self, app_id: int) -> GameRecord | None:
        return self.games.get(app_id)

    def add(self, game: GameRecord) -> None:
        if game.steam_app_id in self.games:
            raise KeyError(f"Game already in store: {game.steam_app_id}")
        self.games[game.steam_app_id] = game

    def status_counts(self, step: str) -> dict[str, int]:
        counts = {s.value: 0 for s in StepStatus}
        for game in self.games.values():
            counts[game.step(step).status.value] += 1
        return counts

    # -------------------------------------------------
    # Serialization boundary
    # -------------------------------------------------
    def to_json(self) -> dict[str, Any]:
        return {
            "last_updated": self.last_updated,
            "games": {str(app_id): game.to_dict() for app_id, game in self.games.items()},
        }

    @staticmethod
    def from_json(raw: Any, *, step_names: tuple[str, ...] = STEP_NAMES) -> GameStore:
        if raw is None:
            return GameStore(step_names=step_names)
        if not isinstance(raw, dict):
            raise StoreFormatError("Snapshot must be a JSON object")

        if isinstance(raw.get("games"), dict):
            last_updated = raw.get("last_updated")
            games_raw: dict[str, Any] = raw["games"]
        elif all(str(k).isdigit() for k in raw):
            # Flat legacy form: {"<appid>": {...}}, no metadata.
            logging.info("Snapshot uses the flat legacy layout; it will be rewritten on save.")
            last_updated = None
            games_raw = {k: _from_legacy_record(v) for k, v in raw.items()}
        else:
            raise StoreFormatError("Snapshot has neither a 'games' mapping nor app id keys")

        games: dict[int, GameRecord] = {}
        for key, value in games_raw.items():
            try:
                app_id = int(str(key))
                game = GameRecord.from_dict(value, step_names=step_names)
            except (KeyError, TypeError, ValueError) as e:
                raise StoreFormatError(f"Invalid snapshot entry for key {key!r}: {e}") from e
            if game.steam_app_id != app_id:
                raise StoreFormatError(
                    f"Snapshot key {key!r} does not match steam_app_id {game.steam_app_id}"
                )
            games[app_id] = game
        return GameStore(
            games=games,
            last_updated=str(last_updated) if last_updated is not None else None,
            step_names=step_names,
        )

    # -------------------------------------------------
    # Persistence
    # -------------------------------------------------
    def save(self) -> None:
        """Checkpoint: rewrite the whole snapshot. Failures propagate."""
        if self.path is None:
            raise RuntimeError("GameStore has no snapshot path; use load_store() or set .path")
        self.last_updated = utc_now_iso()
        save_json(self.to_json(), self.path)
        logging.debug(f"[STORE] Saved {len(self.games)} games to {self.path}")


def load_store(path: str | Path, *, step_names: tuple[str, ...] = STEP_NAMES) -> GameStore:
    """
    Load the snapshot at `path` (an empty store when the file does not exist yet).

    A snapshot that cannot be read or parsed raises: continuing with an empty store would
    overwrite it on the next checkpoint.
    """
    p = Path(path)
    try:
        raw = load_json(p)
    except ValueError as e:
        raise StoreFormatError(f"Snapshot is not valid JSON: {p}: {e}") from e
    store = GameStore.from_json(raw, step_names=step_names)
    store.path = p
    logging.info(f"[STORE] Loaded {len(store)} games from {p}")
    return store
