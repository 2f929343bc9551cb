from http import HTTPStatus

import pytest

from axon.security import create_token


@pytest.fixture()
def other_headers(user_factory):
    user = user_factory(username="mallory", email="mallory@example.com")
    return {"Authorization": f"Bearer {create_token(user.id)}"}


def test_save_request_and_list(client, auth_headers, other_headers):
    response = client.post(
        "/api/requests/save",
        json={
            "name": "Users",
            "url": "https://api.test/users",
            "method": "get",
            "params": {"page": "1"},
            "auth": {"type": "bearer", "token": "t"},
        },
        headers=auth_headers,
    )
    assert response.status_code == HTTPStatus.OK
    saved = response.json()["request"]
    assert saved["method"] == "GET"
    assert saved["auth"] == {"type": "bearer", "token": "t"}

    listed = client.get("/api/requests/saved", headers=auth_headers).json()["requests"]
    assert [item["id"] for item in listed] == [saved["id"]]

    # Nothing leaks across users.
    assert client.get("/api/requests/saved", headers=other_headers).json()["requests"] == []
    stolen = client.delete(f"/api/requests/saved/{saved['id']}", headers=other_headers)
    assert stolen.status_code == HTTPStatus.NOT_FOUND

    assert client.delete(f"/api/requests/saved/{saved['id']}", headers=auth_headers).json() == {
        "success": True
    }


def test_save_request_requires_url(client, auth_headers):
    response = client.post("/api/requests/save", json={"name": "No url"}, headers=auth_headers)
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json()["code"] == "ValidationError"


def test_unknown_auth_type_is_treated_as_none(client, auth_headers):
    response = client.post(
        "/api/requests/save",
        json={"url": "https://api.test", "auth": {"type": "oauth2", "token": "x"}},
        headers=auth_headers,
    )
    assert response.json()["request"]["auth"] == {"type": "none"}
    assert response.json()["request"]["name"] == "Untitled Request"


def test_favorites_folders(client, auth_headers):
    for name, folder in (("a", "Work"), ("b", "Work"), ("c", None)):
        payload = {"name": name, "url": f"https://api.test/{name}"}
        if folder:
            payload["folder"] = folder
        assert client.post("/api/requests/favorite", json=payload, headers=auth_headers).status_code == 200

    work = client.get("/api/requests/favorites", params={"folder": "Work"}, headers=auth_headers)
    assert sorted(item["name"] for item in work.json()["favorites"]) == ["a", "b"]

    folders = client.get("/api/requests/favorites/folders", headers=auth_headers).json()["folders"]
    assert folders == [{"folder": "Default", "count": 1}, {"folder": "Work", "count": 2}]

    favorite_id = work.json()["favorites"][0]["id"]
    moved = client.put(
        f"/api/requests/favorites/{favorite_id}", json={"folder": "Archive"}, headers=auth_headers
    )
    assert moved.json()["favorite"]["folder"] == "Archive"
    assert client.delete(f"/api/requests/favorites/{favorite_id}", headers=auth_headers).status_code == 200
    assert client.delete(f"/api/requests/favorites/{favorite_id}", headers=auth_headers).status_code == 404


def test_environments_single_active(client, auth_headers):
    dev = client.post(
        "/api/environments", json={"name": "dev", "variables": {"host": "dev.test"}}, headers=auth_headers
    ).json()["environment"]
    prod = client.post(
        "/api/environments", json={"name": "prod", "variables": {"host": "prod.test"}}, headers=auth_headers
    ).json()["environment"]
    assert dev["is_active"] is False

    client.post(f"/api/environments/{dev['id']}/activate", headers=auth_headers)
    client.post(f"/api/environments/{prod['id']}/activate", headers=auth_headers)

    environments = client.get("/api/environments", headers=auth_headers).json()["environments"]
    active = [env["name"] for env in environments if env["is_active"]]
    assert active == ["prod"]

    updated = client.put(
        f"/api/environments/{dev['id']}", json={"variables": {"host": "dev2.test"}}, headers=auth_headers
    )
    assert updated.json()["environment"]["variables"] == {"host": "dev2.test"}
    assert client.delete(f"/api/environments/{dev['id']}", headers=auth_headers).status_code == 200
    assert client.put(
        f"/api/environments/{dev['id']}", json={"name": "x"}, headers=auth_headers
    ).status_code == HTTPStatus.NOT_FOUND


def test_history_pagination_and_search(client, auth_headers):
    for index in range(5):
        method = "POST" if index % 2 else "GET"
        response = client.post(
            "/api/history",
            json={"url": f"https://api.test/items/{index}", "method": method, "response_status": 200},
            headers=auth_headers,
        )
        assert response.status_code == HTTPStatus.CREATED

    first = client.get("/api/history", params={"page": 1, "limit": 2}, headers=auth_headers).json()
    assert first["pagination"] == {"page": 1, "limit": 2, "total": 5, "pages": 3}
    assert first["history"][0]["url"] == "https://api.test/items/4"

    posts = client.get("/api/history", params={"method": "POST"}, headers=auth_headers).json()
    assert {item["url"] for item in posts["history"]} == {
        "https://api.test/items/1",
        "https://api.test/items/3",
    }

    found = client.get("/api/history", params={"search": "items/2"}, headers=auth_headers).json()
    assert [item["name"] for item in found["history"]] == ["GET https://api.test/items/2"]

    too_big = client.get("/api/history", params={"limit": 101}, headers=auth_headers)
    assert too_big.status_code == HTTPStatus.BAD_REQUEST


def test_history_delete_and_clear(client, auth_headers):
    item = client.post(
        "/api/history", json={"url": "https://api.test/a"}, headers=auth_headers
    ).json()["item"]
    client.post("/api/history", json={"url": "https://api.test/b"}, headers=auth_headers)

    assert client.get(f"/api/history/{item['id']}", headers=auth_headers).json()["item"]["url"] == "https://api.test/a"
    assert client.delete(f"/api/history/{item['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/history/{item['id']}", headers=auth_headers).status_code == 404

    cleared = client.delete("/api/history", headers=auth_headers).json()
    assert cleared == {"success": True, "deleted": 1}


def test_health_and_unknown_route(client):
    health = client.get("/health").json()
    assert health["status"] == "ok"
    assert health["version"] == "1.0.0"

    missing = client.get("/api/nowhere")
    assert missing.status_code == HTTPStatus.NOT_FOUND
    assert missing.json()["success"] is False
