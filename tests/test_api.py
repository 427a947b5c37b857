from fastapi.testclient import TestClient
import pytest

from chatstore.config.config import AppSettings
from chatstore.server.app_factory import create_app


@pytest.fixture
def app(tmp_path):
    cfg = AppSettings(root=str(tmp_path), required_keys=["CHATSTORE_TEST_MISSING_KEY"])
    return create_app(cfg=cfg)


@pytest.fixture
def client(app):
    # context manager runs the lifespan, which opens/closes the store
    with TestClient(app) as c:
        yield c


def as_user(user_id: str) -> dict[str, str]:
    return {"X-User-ID": user_id}


def test_status_on_empty_store(client):
    resp = client.get("/api/v1/status")
    assert resp.status_code == 200

    data = resp.json()
    assert data["dbSize"] == 0
    assert data["records"] == {}
    assert data["updated"].endswith("Z")


def test_status_after_writes(client, tmp_path):
    client.post("/api/v1/chats", json={"id": "c1", "title": "hi"}, headers=as_user("u1"))
    client.post("/api/v1/chats", json={"id": "c2", "title": "yo"}, headers=as_user("u1"))

    data = client.get("/api/v1/status").json()
    assert data["records"] == {"chat": 2}
    on_disk = (tmp_path / "items.json").stat().st_size + (tmp_path / "groups.json").stat().st_size
    assert data["dbSize"] == on_disk


def test_health_reports_clean_store(client):
    client.post("/api/v1/chats", json={"id": "c1"}, headers=as_user("u1"))
    data = client.get("/api/v1/health").json()
    assert data["open"] is True
    assert data["dirty"] is False
    assert data["items"] == 1
    assert data["last_error"] is None


def test_chat_crud_flow(client):
    resp = client.post(
        "/api/v1/chats",
        json={"id": "c1", "title": "hi", "messages": [{"role": "user", "content": "hello"}]},
        headers=as_user("u1"),
    )
    assert resp.status_code == 201
    assert resp.json() == {"saved": True}

    chat = client.get("/api/v1/chats/c1", headers=as_user("u1")).json()
    assert chat["userId"] == "u1"
    assert chat["messages"] == [{"role": "user", "content": "hello"}]

    listed = client.get("/api/v1/chats", headers=as_user("u1")).json()["chats"]
    assert [c["id"] for c in listed] == ["c1"]

    # other users see nothing
    assert client.get("/api/v1/chats", headers=as_user("u2")).json()["chats"] == []
    assert client.get("/api/v1/chats/c1", headers=as_user("u2")).status_code == 404

    assert client.delete("/api/v1/chats/c1", headers=as_user("u2")).status_code == 401
    assert client.delete("/api/v1/chats/c1", headers=as_user("u1")).status_code == 204
    assert client.get("/api/v1/chats/c1", headers=as_user("u1")).status_code == 404


def test_saved_chat_is_filed_under_caller(client):
    client.post("/api/v1/chats", json={"id": "c1", "userId": "someone-else"}, headers=as_user("u1"))
    assert [c["id"] for c in client.get("/api/v1/chats", headers=as_user("u1")).json()["chats"]] == ["c1"]
    assert client.get("/api/v1/chats", headers=as_user("someone-else")).json()["chats"] == []


def test_anonymous_requests_are_rejected(client):
    assert client.get("/api/v1/chats").json() == {"chats": []}
    assert client.post("/api/v1/chats", json={"id": "c1"}).status_code == 401
    assert client.get("/api/v1/chats/c1").status_code == 401
    assert client.delete("/api/v1/chats").status_code == 401
    assert client.post("/api/v1/chats/c1/share").status_code == 401


def test_clear_chats(client):
    for i in range(3):
        client.post("/api/v1/chats", json={"id": f"c{i}"}, headers=as_user("u1"))
    client.post("/api/v1/chats", json={"id": "other"}, headers=as_user("u2"))

    resp = client.delete("/api/v1/chats", headers=as_user("u1"))
    assert resp.status_code == 200
    assert resp.json() == {"deleted": 3}
    assert client.get("/api/v1/chats", headers=as_user("u1")).json()["chats"] == []
    assert client.get("/api/v1/status").json()["records"] == {"chat": 1}


def test_share_flow(client):
    client.post("/api/v1/chats", json={"id": "c1", "title": "hi"}, headers=as_user("u1"))

    assert client.get("/api/v1/share/c1").status_code == 404
    assert client.post("/api/v1/chats/c1/share", headers=as_user("u2")).status_code == 404

    resp = client.post("/api/v1/chats/c1/share", headers=as_user("u1"))
    assert resp.status_code == 200
    assert resp.json()["sharePath"] == "/share/c1"

    shared = client.get("/api/v1/share/c1")
    assert shared.status_code == 200
    assert shared.json()["title"] == "hi"


def test_missing_keys(client, monkeypatch):
    monkeypatch.delenv("CHATSTORE_TEST_MISSING_KEY", raising=False)
    assert client.get("/api/v1/keys/missing").json() == {"missing": ["CHATSTORE_TEST_MISSING_KEY"]}

    monkeypatch.setenv("CHATSTORE_TEST_MISSING_KEY", "set")
    assert client.get("/api/v1/keys/missing").json() == {"missing": []}


def test_data_survives_app_restart(tmp_path):
    cfg = AppSettings(root=str(tmp_path))
    with TestClient(create_app(cfg=cfg)) as c:
        c.post("/api/v1/chats", json={"id": "c1", "title": "hi"}, headers=as_user("u1"))

    with TestClient(create_app(cfg=AppSettings(root=str(tmp_path)))) as c:
        chats = c.get("/api/v1/chats", headers=as_user("u1")).json()["chats"]
        assert [ch["id"] for ch in chats] == ["c1"]
