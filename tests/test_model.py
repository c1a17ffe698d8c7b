from __future__ import annotations


def test_step_result_constructors():
    from card_catalog_builder.model import StepResult, StepStatus

    pending = StepResult.pending()
    assert pending.is_pending
    assert pending.completed_at is None and pending.error is None

    ok = StepResult.success()
    assert ok.status is StepStatus.SUCCESS
    assert ok.completed_at is not None and ok.error is None

    failed = StepResult.failed("timeout")
    assert (failed.status, failed.error) == (StepStatus.FAILED, "timeout")
    skipped = StepResult.skipped("Not found on Metacritic")
    assert (skipped.status, skipped.error) == (StepStatus.SKIPPED, "Not found on Metacritic")
    assert skipped.completed_at is not None


def test_step_result_dict_roundtrip():
    from card_catalog_builder.model import StepResult

    result = StepResult.failed("App not found or API error")
    raw = result.to_dict()
    assert raw["status"] == "failed"
    assert StepResult.from_dict(raw) == result


def test_step_result_rejects_unknown_status():
    import pytest

    from card_catalog_builder.model import StepResult

    with pytest.raises(ValueError):
        StepResult.from_dict({"status": "done"})


def test_add_source_is_unique_and_ordered():
    from card_catalog_builder.model import GameRecord

    game = GameRecord.new(1, "A", "src1", ["steam"])
    assert game.add_source("src2") is True
    assert game.add_source("src1") is False
    assert game.sources == ["src1", "src2"]


def test_from_dict_ignores_unknown_keys():
    from card_catalog_builder.model import GameRecord

    game = GameRecord.from_dict(
        {"steam_app_id": "5", "name": "Five", "hltb_main": 12, "tags": None},
        step_names=["steam"],
    )
    assert game.steam_app_id == 5
    assert game.tags == []
    assert game.step("steam").is_pending


def test_utc_now_iso_format():
    import re

    from card_catalog_builder.model import utc_now_iso

    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", utc_now_iso())
