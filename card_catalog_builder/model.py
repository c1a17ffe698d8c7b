"""
Game records and per-step enrichment status.

A record is created once (on first discovery) and then filled in by enrichment steps. Each step
keeps its own `StepResult`; a result leaves `pending` exactly once and is never re-run after
that, which is what makes re-running the pipeline cheap and safe.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, NamedTuple


class Discovery(NamedTuple):
    """One candidate surfaced by a discovery source."""

    app_id: int
    name: str
    source: str


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class StepStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StepResult:
    status: StepStatus = StepStatus.PENDING
    completed_at: str | None = None
    # Failure reason (failed) or human-readable skip reason (skipped).
    error: str | None = None

    @staticmethod
    def pending() -> StepResult:
        return StepResult()

    @staticmethod
    def success() -> StepResult:
        return StepResult(StepStatus.SUCCESS, utc_now_iso(), None)

    @staticmethod
    def failed(error: str) -> StepResult:
        return StepResult(StepStatus.FAILED, utc_now_iso(), error)

    @staticmethod
    def skipped(reason: str) -> StepResult:
        return StepResult(StepStatus.SKIPPED, utc_now_iso(), reason)

    @property
    def is_pending(self) -> bool:
        return self.status is StepStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, "completed_at": self.completed_at, "error": self.error}

    @staticmethod
    def from_dict(raw: Any) -> StepResult:
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid step result: {raw!r}")
        status = StepStatus(str(raw.get("status", "pending")))
        completed_at = raw.get("completed_at")
        error = raw.get("error")
        return StepResult(
            status=status,
            completed_at=str(completed_at) if completed_at is not None else None,
            error=str(error) if error is not None else None,
        )


@dataclass
class GameRecord:
    steam_app_id: int
    name: str

    # Basic info (Steam)
    developer: str | None = None
    publisher: str | None = None
    release_date: str | None = None
    release_year: int | None = None

    # Descriptions
    short_description: str | None = None
    detailed_description: str | None = None
    about_the_game: str | None = None

    # Tags and categories
    tags: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)

    # Steam reviews
    review_score: int | None = None  # 0-100
    review_score_desc: str | None = None
    total_reviews: int | None = None
    total_positive: int | None = None
    total_negative: int | None = None

    # Metacritic
    metacritic_score: int | None = None
    metacritic_url: str | None = None

    # Media
    header_image: str | None = None
    screenshots: list[str] = field(default_factory=list)

    # Price
    is_free: bool = False
    price_formatted: str | None = None

    # Pipeline tracking
    sources: list[str] = field(default_factory=list)
    extracted_at: str = field(default_factory=utc_now_iso)
    steps: dict[str, StepResult] = field(default_factory=dict)

    @staticmethod
    def new(app_id: int, name: str, source: str, step_names: Iterable[str]) -> GameRecord:
        return GameRecord(
            steam_app_id=int(app_id),
            name=name,
            sources=[source],
            steps={s: StepResult.pending() for s in step_names},
        )

    def step(self, name: str) -> StepResult:
        return self.steps.get(name) or StepResult.pending()

    def add_source(self, source: str) -> bool:
        if source in self.sources:
            return False
        self.sources.append(source)
        return True

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["steps"] = {name: res.to_dict() for name, res in self.steps.items()}
        return out

    @staticmethod
    def from_dict(raw: Any, *, step_names: Iterable[str] = ()) -> GameRecord:
        """
        Build a record from its snapshot form. Unknown keys are ignored; registered steps the
        snapshot does not know about yet start as pending.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid game record: {raw!r}")
        known = {f.name for f in fields(GameRecord)}
        values = {k: v for k, v in raw.items() if k in known}
        values["steam_app_id"] = int(values["steam_app_id"])
        values["name"] = str(values.get("name") or "")
        raw_steps = values.get("steps") or {}
        if not isinstance(raw_steps, dict):
            raise ValueError(f"Invalid steps for app {values['steam_app_id']}: {raw_steps!r}")
        steps = {str(k): StepResult.from_dict(v) for k, v in raw_steps.items()}
        for name in step_names:
            steps.setdefault(name, StepResult.pending())
        values["steps"] = steps
        for list_field in ("tags", "genres", "categories", "screenshots", "sources"):
            values[list_field] = [str(x) for x in (values.get(list_field) or [])]
        values["is_free"] = bool(values.get("is_free", False))
        return GameRecord(**values)
