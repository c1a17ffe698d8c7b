from __future__ import annotations

import csv
import json
from pathlib import Path


def _seed(run_dir: Path) -> Path:
    from card_catalog_builder.model import GameRecord, StepResult
    from card_catalog_builder.schema import STEP_NAMES
    from card_catalog_builder.store import GameStore

    path = run_dir / "output" / "games.json"
    store = GameStore(path=path)
    ok = GameRecord.new(1, "Card Quest", "steam:1666,9", STEP_NAMES)
    ok.steps["steam"] = StepResult.success()
    ok.total_reviews = 10
    broken = GameRecord.new(2, "Timeout Game", "turnbasedlovers", STEP_NAMES)
    broken.steps["steam"] = StepResult.failed("Network unavailable")
    store.add(ok)
    store.add(broken)
    store.save()
    return path


def test_missing_command_exits():
    import pytest

    from card_catalog_builder.cli import main

    with pytest.raises(SystemExit, match="Missing command"):
        main([])


def test_run_export_only(tmp_path: Path):
    from card_catalog_builder.cli import main

    _seed(tmp_path)
    main(["run", "--run-dir", str(tmp_path), "--skip-discovery", "--skip-enrich"])

    with open(tmp_path / "output" / "games.csv", newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["name"] for r in rows] == ["Card Quest"]
    assert list((tmp_path / "logs").glob("log-*-run.log"))


def test_export_command_with_out(tmp_path: Path):
    from card_catalog_builder.cli import main

    _seed(tmp_path)
    out = tmp_path / "elsewhere" / "catalog.csv"
    main(["export", "--run-dir", str(tmp_path), "--out", str(out)])
    assert out.exists()


def test_unknown_only_step_lists_available_steps(tmp_path: Path):
    import pytest

    from card_catalog_builder.cli import main

    with pytest.raises(SystemExit, match="Available steps: steam, metacritic"):
        main(["run", "--run-dir", str(tmp_path), "--only-step", "hltb"])


def test_reset_command_requeues_failed_results(tmp_path: Path):
    from card_catalog_builder.cli import main

    path = _seed(tmp_path)
    main(["reset", "--run-dir", str(tmp_path), "--step", "steam"])

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["games"]["2"]["steps"]["steam"]["status"] == "pending"
    assert raw["games"]["1"]["steps"]["steam"]["status"] == "success"


def test_run_with_settings_file_from_run_dir(tmp_path: Path):
    from card_catalog_builder.cli import main

    _seed(tmp_path)
    settings = tmp_path / "settings.yaml"
    settings.write_text("pipeline:\n  export_name: cards.csv\n", encoding="utf-8")
    main(["run", "--run-dir", str(tmp_path), "--skip-discovery", "--skip-enrich"])
    assert (tmp_path / "output" / "cards.csv").exists()


def test_invalid_settings_exit(tmp_path: Path):
    import pytest

    from card_catalog_builder.cli import main

    (tmp_path / "settings.yaml").write_text("steam:\n  nope: 1\n", encoding="utf-8")
    with pytest.raises(SystemExit, match="nope"):
        main(["summary", "--run-dir", str(tmp_path)])


def test_full_run_with_fake_sites(tmp_path: Path, monkeypatch, caplog):
    import logging

    from card_catalog_builder.cli import main

    monkeypatch.setattr("time.sleep", lambda _s: None)

    class Resp:
        headers: dict[str, str] = {}

        def __init__(self, payload=None, text=""):
            self.status_code = 200
            self._payload = payload
            self.text = text

        def raise_for_status(self):
            return None

        def json(self):
            return self._payload

    row = (
        '<a href="https://store.steampowered.com/app/{id}/" class="search_result_row">'
        '<span class="title">{name}</span></a>'
    )
    search_html = row.format(id=10, name="Deck Game") + row.format(id=20, name="Plain Game")
    tags = {
        10: '[{"tagid":1666,"name":"Card Game"}]',
        20: '[{"tagid":9,"name":"Strategy"}]',
    }

    def fake_get(_self, url, params=None, timeout=None, headers=None):
        if "search/results" in url:
            return Resp(payload={"results_html": search_html, "total_count": 2})
        if url.endswith("/api/appdetails"):
            appid = params["appids"]
            details = {"name": f"Game {appid}", "metacritic": {"score": 80, "url": "https://mc/x"}}
            return Resp(payload={str(appid): {"success": True, "data": details}})
        if "/appreviews/" in url:
            n = int(url.rsplit("/", 1)[1])
            summary = {"review_score": 8, "total_reviews": n}
            return Resp(payload={"success": 1, "query_summary": summary})
        if "/app/" in url:
            appid = int(url.rsplit("/", 1)[1])
            return Resp(text=f"InitAppTagModal( {appid}, {tags[appid]}, [] )")
        if "turnbasedlovers" in url:
            return Resp(text="<html></html>")
        raise AssertionError(f"unexpected url {url}")

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)

    caplog.set_level(logging.INFO)
    main(["run", "--run-dir", str(tmp_path), "--steam-count", "5"])

    request_lines = [r.getMessage() for r in caplog.records if "] Requests:" in r.getMessage()]
    assert [m.split(" ", 1)[0] for m in request_lines] == ["[STEAM]", "[TBL]", "[METACRITIC]"]

    raw = json.loads((tmp_path / "output" / "games.json").read_text(encoding="utf-8"))
    assert raw["games"]["10"]["steps"]["steam"]["status"] == "success"
    assert raw["games"]["10"]["steps"]["metacritic"]["error"] == "Already have score from Steam"
    assert raw["games"]["20"]["steps"]["steam"]["error"] == "Not a card/deckbuilding game"
    assert raw["games"]["20"]["steps"]["metacritic"]["status"] == "pending"

    with open(tmp_path / "output" / "games.csv", newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["steam_app_id"] for r in rows] == ["10"]
    assert rows[0]["name"] == "Game 10"
    assert rows[0]["review_score"] == "80"
