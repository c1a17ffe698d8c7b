from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from ..config import (
    EXPORT,
    METACRITIC,
    PIPELINE,
    REQUEST,
    RETRY,
    STEAM,
    TBL,
    ExportConfig,
    MetacriticConfig,
    PipelineConfig,
    RequestConfig,
    RetryConfig,
    SearchConfig,
    SteamConfig,
    TBLConfig,
)
from ..schema import STEP_NAMES


class SettingsError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    """All tunables for one run: the module defaults from `config`, optionally overridden."""

    pipeline: PipelineConfig = PIPELINE
    steam: SteamConfig = STEAM
    metacritic: MetacriticConfig = METACRITIC
    tbl: TBLConfig = TBL
    export: ExportConfig = EXPORT
    request: RequestConfig = REQUEST
    retry: RetryConfig = RETRY

    def with_steam_target(self, target: int | None) -> Settings:
        """Replace every Steam search target (the `--steam-count` flag)."""
        if target is None:
            return self
        if target <= 0:
            raise SettingsError(f"Steam search target must be > 0 (got {target})")
        searches = tuple(replace(s, target=int(target)) for s in self.steam.searches)
        return replace(self, steam=replace(self.steam, searches=searches))


def _parse_searches(raw: Any) -> tuple[SearchConfig, ...]:
    if not isinstance(raw, list) or not raw:
        raise SettingsError("steam.searches must be a non-empty list of {tags, label, target}")
    out: list[SearchConfig] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise SettingsError(f"steam.searches[{i}] must be a mapping")
        tags = str(item.get("tags", "") or "").strip()
        if not tags:
            raise SettingsError(f"steam.searches[{i}] is missing 'tags'")
        try:
            target = int(item.get("target", 100))
        except (TypeError, ValueError) as e:
            raise SettingsError(f"steam.searches[{i}].target must be an integer") from e
        out.append(SearchConfig(tags=tags, label=str(item.get("label") or tags), target=target))
    return tuple(out)


def _coerce(section: str, key: str, default: Any, value: Any) -> Any:
    """Convert a YAML value to the type of the field's default, or raise `SettingsError`."""
    where = f"{section}.{key}"
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise SettingsError(f"{where} must be true or false (got {value!r})")
        return value
    if isinstance(default, (int, float)):
        # bool is an int subclass.
        if isinstance(value, bool):
            raise SettingsError(f"{where} must be a number (got {value!r})")
        if isinstance(default, int) and isinstance(value, float) and not value.is_integer():
            raise SettingsError(f"{where} must be an integer (got {value!r})")
        try:
            return type(default)(value)
        except (TypeError, ValueError) as e:
            raise SettingsError(f"{where} must be a number (got {value!r})") from e
    if isinstance(default, str):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise SettingsError(f"{where} must be a string (got {value!r})")
        return str(value)
    return value


def _override(section: str, base: Any, raw: Any) -> Any:
    if raw is None:
        return base
    if not isinstance(raw, dict):
        raise SettingsError(f"Settings section '{section}' must be a mapping")
    known = {f.name for f in fields(base)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise SettingsError(
            f"Unknown key(s) in settings section '{section}': {', '.join(unknown)} "
            f"(allowed: {', '.join(sorted(known))})"
        )
    values: dict[str, Any] = {}
    for key, value in raw.items():
        if section == "steam" and key == "searches":
            values[key] = _parse_searches(value)
        else:
            values[key] = _coerce(section, key, getattr(base, key), value)
    if section == "pipeline" and "primary_step" in values:
        if values["primary_step"] not in STEP_NAMES:
            raise SettingsError(
                f"pipeline.primary_step must be one of: {', '.join(STEP_NAMES)} "
                f"(got {values['primary_step']!r})"
            )
    return replace(base, **values)


def load_settings(path: str | Path | None) -> Settings:
    """
    Load settings overrides from a YAML file.

    Each top-level section (`pipeline`, `steam`, `metacritic`, `tbl`, `export`, `request`,
    `retry`) overrides the matching dataclass fields. A missing file yields the defaults.
    """
    settings = Settings()
    if path is None:
        return settings
    p = Path(path)
    if not p.exists():
        return settings

    with open(p, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise SettingsError(f"Settings file must contain a mapping: {p}")

    sections = {f.name for f in fields(Settings)}
    unknown = sorted(set(raw) - sections)
    if unknown:
        raise SettingsError(f"Unknown settings section(s) in {p}: {', '.join(unknown)}")

    updates = {name: _override(name, getattr(settings, name), raw.get(name)) for name in sections}
    return replace(settings, **updates)
