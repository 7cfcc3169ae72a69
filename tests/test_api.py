"""HTTP API routes over a controller built from fakes."""
import pytest
from fastapi.testclient import TestClient

from cadence.api.app import app
from cadence.api.routes import spotify as spotify_routes
from cadence.api.state import AppState, get_state
from cadence.models.track import CollectionKind, Library
from tests.fakes import FakeSpotify, build_controller, make_collection


@pytest.fixture
def spotify():
    return FakeSpotify()


@pytest.fixture
def controller(tmp_path, spotify):
    controller = build_controller(tmp_path, spotify=spotify, authenticated=True)
    controller.context.set_library(
        Library(liked_songs=make_collection(3), playlists=[make_collection(2, kind=CollectionKind.PLAYLIST)])
    )
    return controller


@pytest.fixture
def client(controller):
    state = AppState(controller=controller)
    app.dependency_overrides[get_state] = lambda: state
    yield TestClient(app)
    controller.context.end_timer.cancel()
    app.dependency_overrides.clear()


def test_status_reports_user(client) -> None:
    body = client.get("/api/spotify/status").json()
    assert body["logged_in"] is True
    assert body["status"] == "disconnected"
    assert body["user"]["display_name"] == "Ada Listener"
    assert body["auth_in_progress"] is False


def test_browse_and_play(client, spotify) -> None:
    browse = client.post("/api/library/category/liked-songs").json()
    assert browse["view"] == {"name": "category", "kind": "liked-songs"}
    assert len(browse["collection"]["tracks"]) == 3

    response = client.post("/api/library/play/1")
    assert response.status_code == 200
    body = response.json()
    assert body["is_playing"] is True
    assert body["track"]["uri"] == "spotify:track:t1"
    assert body["source"] == {"kind": "liked-songs", "name": "Liked Songs", "index": 1}
    assert [c[2]["uris"] for c in spotify.calls if c[0] == "start_playback"] == [["spotify:track:t1"]]


def test_play_requires_open_list(client) -> None:
    assert client.post("/api/library/play/0").status_code == 400
    client.post("/api/library/category/liked-songs")
    assert client.post("/api/library/play/7").status_code == 404


def test_playlist_navigation(client) -> None:
    assert client.post("/api/library/playlists/missing").status_code == 404
    body = client.post("/api/library/playlists/pl1").json()
    assert body["view"] == {"name": "playlist-songs", "playlist_id": "pl1"}
    assert client.post("/api/library/back").json()["view"] == {"name": "playlists"}
    assert client.post("/api/library/view", json={"name": "library"}).json()["view"] == {"name": "library"}
    assert client.post("/api/library/view", json={"name": "sideways"}).status_code == 400


def test_no_device_is_conflict(client, spotify) -> None:
    spotify.devices_payload = {"devices": []}
    client.post("/api/library/category/liked-songs")
    response = client.post("/api/library/play/0")
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "NoDeviceFound"
    assert response.json()["detail"]["action"] == "Open the Spotify app on a device"


def test_rate_limited_is_429_with_retry_after(client, controller, spotify) -> None:
    controller.remote.rate_limit.block(30)
    response = client.post("/api/playback/next")
    assert response.status_code == 429
    assert response.headers["Retry-After"] == "31"
    assert spotify.calls == []


def test_seek_body_is_validated(client) -> None:
    assert client.post("/api/playback/seek", json={"percent": 150}).status_code == 422
    assert client.post("/api/playback/seek", json={"percent": 50}).status_code == 400


def test_unauthenticated_controls_are_401(client) -> None:
    assert client.post("/api/spotify/logout").json() == {"ok": True}
    response = client.post("/api/playback/toggle")
    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "NotAuthenticated"
    assert client.get("/api/spotify/status").json()["logged_in"] is False


def test_connect_without_credentials_is_503(client, monkeypatch) -> None:
    monkeypatch.setattr(spotify_routes, "is_spotify_configured", lambda: False)
    response = client.post("/api/spotify/connect")
    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "NotConfigured"


def test_devices(client) -> None:
    devices = client.get("/api/spotify/devices").json()
    assert devices == [
        {
            "id": "dev1",
            "name": "Desk",
            "type": "Computer",
            "is_active": True,
            "is_restricted": False,
            "volume_percent": 50,
        }
    ]
