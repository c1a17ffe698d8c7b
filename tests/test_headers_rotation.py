from __future__ import annotations


def test_user_agents_cycle_in_order():
    from card_catalog_builder.clients import HeaderRotation

    rotation = HeaderRotation(["ua-1", "ua-2", "ua-3"])
    seen = [rotation.next_user_agent() for _ in range(5)]
    assert seen == ["ua-1", "ua-2", "ua-3", "ua-1", "ua-2"]


def test_each_header_set_advances_the_cursor():
    from card_catalog_builder.clients import HeaderRotation

    rotation = HeaderRotation(["ua-1", "ua-2"])
    assert rotation.browser_headers()["User-Agent"] == "ua-1"
    assert rotation.api_headers()["User-Agent"] == "ua-2"
    assert rotation.steam_headers()["User-Agent"] == "ua-1"


def test_browser_headers_referer_is_optional():
    from card_catalog_builder.clients import HeaderRotation

    rotation = HeaderRotation(["ua"])
    assert "Referer" not in rotation.browser_headers()
    assert rotation.browser_headers(referer="https://www.metacritic.com/")["Referer"] == (
        "https://www.metacritic.com/"
    )


def test_steam_headers_pass_the_age_gate():
    from card_catalog_builder.clients import HeaderRotation

    cookie = HeaderRotation(["ua"]).steam_headers()["Cookie"]
    assert "birthtime=0" in cookie
    assert "mature_content=1" in cookie


def test_empty_rotation_is_rejected():
    import pytest

    from card_catalog_builder.clients import HeaderRotation

    with pytest.raises(ValueError):
        HeaderRotation([])


def test_retries_rotate_user_agent(monkeypatch):
    import requests

    from card_catalog_builder.clients import HeaderRotation, SteamClient

    monkeypatch.setattr("time.sleep", lambda _s: None)
    agents: list[str] = []

    class Resp:
        status_code = 200
        headers: dict[str, str] = {}

        def raise_for_status(self):
            return None

        def json(self):
            return {"1": {"success": True, "data": {"name": "One"}}}

    def fake_get(_self, url, params=None, timeout=None, headers=None):
        agents.append(headers["User-Agent"])
        if len(agents) == 1:
            raise requests.exceptions.Timeout("slow")
        return Resp()

    monkeypatch.setattr("requests.sessions.Session.get", fake_get)

    client = SteamClient(headers=HeaderRotation(["ua-1", "ua-2"]), min_interval_s=0.0)
    assert client.get_app_details(1) == {"name": "One"}
    assert agents == ["ua-1", "ua-2"]
