from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from ..config import EXPORT, PIPELINE, ExportConfig
from ..model import GameRecord, StepStatus
from ..schema import EXPORT_COLUMNS, STEP_NAMES
from ..store import GameStore
from ..utils.utilities import clean_text, write_csv


def to_csv_cell(value: Any, *, delimiter: str = EXPORT.list_delimiter) -> str:
    """
    Convert a record value into a CSV cell string.

    - None -> ""
    - bool -> "true"/"false"
    - list -> items joined with the list delimiter
    - everything else -> str(value)
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return delimiter.join(str(x) for x in value)
    return str(value)


def game_to_row(game: GameRecord, *, export: ExportConfig = EXPORT) -> dict[str, str]:
    d = export.list_delimiter
    row: dict[str, Any] = {
        "steam_app_id": game.steam_app_id,
        "name": game.name,
        "developer": game.developer,
        "publisher": game.publisher,
        "release_date": game.release_date,
        "release_year": game.release_year,
        "short_description": game.short_description,
        "about_the_game": clean_text(game.about_the_game, max_length=export.text_max_length),
        "tags": game.tags,
        "genres": game.genres,
        "categories": game.categories,
        "review_score": game.review_score,
        "review_score_desc": game.review_score_desc,
        "total_reviews": game.total_reviews,
        "positive_reviews": game.total_positive,
        "negative_reviews": game.total_negative,
        "metacritic_score": game.metacritic_score,
        "metacritic_url": game.metacritic_url,
        "header_image": game.header_image,
        "screenshots": game.screenshots[: export.max_screenshots],
        "is_free": game.is_free,
        "price": game.price_formatted,
        "sources": game.sources,
        "extracted_at": game.extracted_at,
    }
    for name in STEP_NAMES:
        row[f"step_{name}"] = game.step(name).status.value
    return {col: to_csv_cell(row[col], delimiter=d) for col in EXPORT_COLUMNS}


def exportable_games(store: GameStore, *, primary_step: str = PIPELINE.primary_step) -> list[GameRecord]:
    """Records whose primary step succeeded, most reviewed first (ties keep store order)."""
    games = [g for g in store if g.step(primary_step).status is StepStatus.SUCCESS]
    return sorted(games, key=lambda g: g.total_reviews or 0, reverse=True)


def export_catalog_csv(
    store: GameStore,
    output_csv: Path,
    *,
    export: ExportConfig = EXPORT,
    primary_step: str = PIPELINE.primary_step,
) -> int:
    """
    Write the flattened catalog CSV (header row plus one row per exportable record).

    Returns the number of rows written.
    """
    games = exportable_games(store, primary_step=primary_step)
    df = pd.DataFrame([game_to_row(g, export=export) for g in games], columns=list(EXPORT_COLUMNS))
    write_csv(df, output_csv)
    logging.info(f"✔ Exported {len(games)} games to {output_csv}")
    return len(games)
