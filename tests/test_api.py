"""Tests for the gallery API endpoints."""

import pytest
from fastapi.testclient import TestClient

from main import create_app
from meme_utils.blob_storage import LocalBlobStore
from meme_utils.meme_store import JsonMemeRepository
from tests.conftest import make_image_bytes


@pytest.fixture
def client(tmp_path) -> TestClient:
    app = create_app(
        repository=JsonMemeRepository(storage_dir=tmp_path / "memes"),
        storage=LocalBlobStore(media_dir=tmp_path / "media", base_url="http://testserver"),
    )
    return TestClient(app)


def _create(client, **fields):
    payload = {"image_url": "https://cdn.test/a.png", "top_text": "top", "bottom_text": "bottom"}
    payload.update(fields)
    return client.post("/api/memes", json=payload)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "healthy"


def test_create_and_get(client):
    response = _create(client)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["error"] is None
    meme = body["data"]
    assert meme["image_url"] == "https://cdn.test/a.png"
    assert meme["id"]
    assert meme["created_at"]

    fetched = client.get(f"/api/memes/{meme['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["data"] == meme


def test_create_requires_image_url(client):
    response = client.post("/api/memes", json={"top_text": "top"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "data": None, "error": "Image URL is required"}


def test_missing_captions_default_to_empty(client):
    meme = client.post("/api/memes", json={"image_url": "https://cdn.test/b.png"}).json()["data"]
    assert (meme["top_text"], meme["bottom_text"]) == ("", "")


def test_list_and_count(client):
    ids = [_create(client, top_text=f"t{i}").json()["data"]["id"] for i in range(3)]

    listed = client.get("/api/memes").json()["data"]
    count = client.get("/api/memes/count").json()["data"]

    assert sorted(m["id"] for m in listed) == sorted(ids)
    assert count == {"count": 3}


def test_update_is_partial(client):
    meme = _create(client).json()["data"]

    response = client.put(f"/api/memes/{meme['id']}", json={"top_text": "changed"})

    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["top_text"] == "changed"
    assert updated["bottom_text"] == "bottom"


def test_delete(client):
    meme = _create(client).json()["data"]

    assert client.delete(f"/api/memes/{meme['id']}").json()["success"] is True
    assert client.get(f"/api/memes/{meme['id']}").status_code == 404
    assert client.get("/api/memes/count").json()["data"] == {"count": 0}


@pytest.mark.parametrize("method", ["get", "delete"])
def test_unknown_meme_is_404(client, method):
    response = getattr(client, method)("/api/memes/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"] == "Meme not found"


def test_update_unknown_meme_is_404(client):
    response = client.put("/api/memes/does-not-exist", json={"top_text": "x"})
    assert response.status_code == 404


def test_upload_and_serve_image(client):
    data = make_image_bytes(120, 80)

    response = client.post("/api/storage", files={"file": ("meme.png", data, "image/png")})

    assert response.status_code == 201
    url = response.json()["data"]["url"]
    assert url.startswith("http://testserver/media/")
    assert url.endswith(".png")

    served = client.get(url)
    assert served.status_code == 200
    assert served.content == data

    deleted = client.delete("/api/storage", params={"url": url})
    assert deleted.json()["success"] is True
    assert client.get(url).status_code == 404


def test_upload_rejects_wrong_type(client):
    response = client.post("/api/storage", files={"file": ("doc.pdf", b"%PDF-1.4", "application/pdf")})
    assert response.status_code == 400
    assert response.json()["error"] == "Please select a valid image file (JPEG, PNG, GIF, or WebP)"


def test_delete_unknown_image(client):
    response = client.delete("/api/storage", params={"url": "http://testserver/media/nothing.png"})
    assert response.status_code == 404
    assert response.json()["success"] is False
