from __future__ import annotations

import json
from typing import Any

SEARCH_HTML = """
<a href="https://store.steampowered.com/app/646570/Slay_the_Spire/?snr=1_7_7_230_150_1"
   class="search_result_row ds_collapse_flag" data-ds-appid="646570">
  <div class="responsive_search_name_combined">
    <div class="col search_name ellipsis"><span class="title">Slay the Spire</span></div>
  </div>
</a>
<a href="https://store.steampowered.com/app/1102190/Monster_Train/" class="search_result_row">
  <span class="title">Monster Train</span>
</a>
<a href="https://store.steampowered.com/bundle/232/Bundle/" class="search_result_row">
  <span class="title">Some Bundle</span>
</a>
"""


class Resp:
    headers: dict[str, str] = {}

    def __init__(self, status_code: int = 200, payload: Any = None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def raise_for_status(self):
        import requests

        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(str(self.status_code), response=self)

    def json(self):
        return self._payload


def _client(**kwargs):
    from card_catalog_builder.clients import HeaderRotation, SteamClient

    return SteamClient(headers=HeaderRotation(["test-agent"]), min_interval_s=0.0, **kwargs)


def test_search_page_parses_rows_and_total(monkeypatch):
    seen: dict[str, Any] = {}

    def fake_get(_self, url, params=None, timeout=None, headers=None):
        seen.update(url=url, params=params, headers=headers)
        return Resp(payload={"success": 1, "results_html": SEARCH_HTML, "total_count": 321})

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)

    page = _client().search_page("1666,9", 50)

    assert page is not None
    assert page.total_count == 321
    assert [(r.app_id, r.name, r.source) for r in page.results] == [
        (646570, "Slay the Spire", "steam:1666,9"),
        (1102190, "Monster Train", "steam:1666,9"),
    ]
    assert seen["url"] == "https://store.steampowered.com/search/results/"
    assert seen["params"]["tags"] == "1666,9"
    assert seen["params"]["start"] == "50"
    assert seen["params"]["count"] == "50"
    assert seen["params"]["sort_by"] == "Reviews_DESC"
    assert seen["params"]["supportedlang"] == "english"
    assert seen["headers"]["User-Agent"] == "test-agent"


def test_search_page_http_error_returns_none(monkeypatch):
    monkeypatch.setattr("time.sleep", lambda _s: None)

    def fake_get(_self, url, params=None, timeout=None, headers=None):
        return Resp(status_code=503)

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    assert _client(retries=2).search_page("1666,9", 0) is None


def test_get_app_details_unwraps_success_payload(monkeypatch):
    def fake_get(_self, url, params=None, timeout=None, headers=None):
        assert url.endswith("/api/appdetails")
        assert params == {"appids": 646570, "l": "english"}
        return Resp(payload={"646570": {"success": True, "data": {"name": "Slay the Spire"}}})

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    assert _client().get_app_details(646570) == {"name": "Slay the Spire"}


def test_get_app_details_unsuccessful_is_none(monkeypatch):
    def fake_get(_self, url, params=None, timeout=None, headers=None):
        return Resp(payload={"1": {"success": False}})

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    assert _client().get_app_details(1) is None


def test_network_failure_raises_instead_of_not_found(monkeypatch):
    import pytest
    import requests

    monkeypatch.setattr("time.sleep", lambda _s: None)
    calls = {"n": 0}

    def fake_get(_self, url, params=None, timeout=None, headers=None):
        calls["n"] += 1
        raise requests.exceptions.ConnectionError("offline")

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)

    client = _client(retries=2)
    with pytest.raises(RuntimeError, match="Network unavailable"):
        client.get_app_details(1)
    assert calls["n"] == 2


def test_get_reviews_returns_query_summary(monkeypatch):
    summary = {"review_score": 8, "review_score_desc": "Very Positive", "total_reviews": 10}

    def fake_get(_self, url, params=None, timeout=None, headers=None):
        assert url == "https://store.steampowered.com/appreviews/42"
        assert params["json"] == 1
        return Resp(payload={"success": 1, "query_summary": summary})

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    assert _client().get_reviews(42) == summary


def test_get_store_tags_parses_tag_modal_and_caps(monkeypatch):
    tags = [{"tagid": i, "name": f"Tag {i}", "count": 100 - i} for i in range(20)]
    tags[0]["name"] = "Card Game"
    html = (
        "<html><script>$J( function() { InitAppTagModal( 646570,\n"
        f"\t{json.dumps(tags)},\n\t[], 'x' ); }} );</script></html>"
    )

    def fake_get(_self, url, params=None, timeout=None, headers=None):
        assert url == "https://store.steampowered.com/app/646570"
        assert "birthtime=0" in headers["Cookie"]
        return Resp(text=html)

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)

    out = _client().get_store_tags(646570)
    assert len(out) == 15
    assert out[0] == "Card Game"
    assert out[-1] == "Tag 14"


def test_get_store_tags_missing_page_is_empty(monkeypatch):
    def fake_get(_self, url, params=None, timeout=None, headers=None):
        return Resp(status_code=404)

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)
    assert _client().get_store_tags(1) == []


def test_parse_store_tags_without_modal_is_empty():
    from card_catalog_builder.clients import SteamClient

    assert SteamClient.parse_store_tags("<html>no tags here</html>") == []


def test_extract_review_fields_scales_score():
    from card_catalog_builder.clients import SteamClient

    out = SteamClient.extract_review_fields(
        {"review_score": 7, "review_score_desc": "Mostly Positive", "total_reviews": 5}
    )
    assert out["review_score"] == 70
    assert out["total_reviews"] == 5
    assert out["total_positive"] is None
