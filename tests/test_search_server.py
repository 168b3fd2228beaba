import pytest

from clientscout.core.config import ConfigError, Settings
from clientscout.jobs import run_search, search_server
from clientscout.vendors.gemini import BackendError, ExtractionSession

REPLY = (
    "| Name | Phone | Email | Address | Website | Rating | Google Maps URL |\n"
    "|---|---|---|---|---|---|---|\n"
    "| Joe's Plumbing | (555) 123-4567 | N/A | 12 Oak St, Mesa, AZ | joesplumbing.com | 4.8 (120) | https://maps.example/1 |\n"
)
MORE = (
    "| Name | Phone | Email | Address | Website | Rating | Google Maps URL |\n"
    "|---|---|---|---|---|---|---|\n"
    '| Mesa "Best" Rooter | (555) 222-3333 | - | 9 Pine Ave, Mesa, AZ | mesarooter.com | 4.9 (8) | https://maps.example/3 |\n'
)


@pytest.fixture(autouse=True)
def backend(monkeypatch):
    state = {"replies": [REPLY, MORE], "calls": 0}

    def fake_send(session, prompt_text, settings=None):
        reply = state["replies"][state["calls"]]
        state["calls"] += 1
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(
        run_search.gemini,
        "open_session",
        lambda settings=None: ExtractionSession(model="fake", system_instruction="", max_output_tokens=10),
    )
    monkeypatch.setattr(run_search.gemini, "send", fake_send)
    monkeypatch.setattr(run_search, "get_settings", lambda: Settings(gemini_api_key="key"))
    monkeypatch.setattr(search_server, "get_settings", lambda: Settings(gemini_api_key="key"))
    monkeypatch.setattr(search_server, "_searches", {})
    return state


@pytest.fixture
def client():
    return search_server.app.test_client()


def _start(client):
    response = client.post("/search", json={"query": "plumbers in Mesa"})
    assert response.status_code == 201
    return response.get_json()["data"]


def test_health_endpoint(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_start_search_validates_payload(client):
    assert client.post("/search", json={}).status_code == 400
    assert client.post("/search", json={"query": "  "}).status_code == 400


def test_start_search_returns_results(client):
    data = _start(client)

    assert data["query"] == "plumbers in Mesa"
    assert data["count"] == 1
    assert data["results"][0]["name"] == "Joe's Plumbing"
    assert data["results"][0]["email"] == ""
    assert data["search_id"] in search_server._searches


def test_more_results_merges(client):
    data = _start(client)

    response = client.post(f"/search/{data['search_id']}/more")

    assert response.status_code == 200
    body = response.get_json()["data"]
    assert body["count"] == 2
    assert body["rounds"] == 2
    assert [r["name"] for r in body["results"]] == ["Joe's Plumbing", 'Mesa "Best" Rooter']


def test_more_results_unknown_search(client):
    assert client.post("/search/missing/more").status_code == 404


def test_more_results_busy(client):
    data = _start(client)
    run = search_server._searches[data["search_id"]]

    run.lock.acquire()
    try:
        assert client.post(f"/search/{data['search_id']}/more").status_code == 409
    finally:
        run.lock.release()


def test_backend_error_maps_to_502(client, backend):
    backend["replies"] = [BackendError("quota exceeded")]

    response = client.post("/search", json={"query": "plumbers"})

    assert response.status_code == 502
    assert response.get_json()["error"] == "quota exceeded"
    assert search_server._searches == {}


def test_config_error_maps_to_500(client, monkeypatch):
    def raise_config(settings=None):
        raise ConfigError("GEMINI_API_KEY must be set")

    monkeypatch.setattr(run_search.gemini, "open_session", raise_config)

    response = client.post("/search", json={"query": "plumbers"})

    assert response.status_code == 500
    assert "GEMINI_API_KEY" in response.get_json()["error"]


def test_export_csv(client):
    data = _start(client)
    client.post(f"/search/{data['search_id']}/more")

    response = client.get(f"/search/{data['search_id']}/export.csv")

    assert response.status_code == 200
    assert response.mimetype == "text/csv"
    assert 'filename="leads-plumbers-in-Mesa.csv"' in response.headers["Content-Disposition"]
    lines = response.get_data(as_text=True).split("\n")
    assert lines[0] == "Name,Phone,Email,Address,Website,Rating,Google Maps URL"
    assert len(lines) == 3
    assert lines[2].startswith('"Mesa ""Best"" Rooter"')


def test_discard_search(client):
    data = _start(client)

    assert client.delete(f"/search/{data['search_id']}").status_code == 204
    assert client.get(f"/search/{data['search_id']}/export.csv").status_code == 404


def test_more_results_dropped_when_search_discarded(client, monkeypatch):
    data = _start(client)
    search_id = data["search_id"]
    original_more = search_server.run_more_search

    def discard_while_running(run):
        search_server._searches.pop(search_id)
        return original_more(run)

    monkeypatch.setattr(search_server, "run_more_search", discard_while_running)

    assert client.post(f"/search/{search_id}/more").status_code == 404


def test_oldest_search_evicted_past_limit(client, backend, monkeypatch):
    monkeypatch.setattr(search_server, "MAX_ACTIVE_SEARCHES", 2)
    backend["replies"] = [REPLY, REPLY, REPLY]

    ids = [_start(client)["search_id"] for _ in range(3)]

    assert list(search_server._searches) == ids[1:]
    assert client.post(f"/search/{ids[0]}/more").status_code == 404


def test_export_filename_strips_quotes(client):
    response = client.post("/search", json={"query": 'the "best" plumbers'})
    search_id = response.get_json()["data"]["search_id"]

    disposition = client.get(f"/search/{search_id}/export.csv").headers["Content-Disposition"]

    assert disposition == 'attachment; filename="leads-the-best-plumbers.csv"'
