"""Tests for the JSON-file meme repository."""

import json

import pytest

from meme_modules.collaborators import MemeDraft, MemeRepository, MemeUpdate
from meme_utils.exceptions import MemeNotFoundError, PersistenceError
from meme_utils.meme_store import JsonMemeRepository
from tests.conftest import run


@pytest.fixture
def repository(tmp_path) -> JsonMemeRepository:
    return JsonMemeRepository(storage_dir=tmp_path)


def test_satisfies_protocol(repository):
    assert isinstance(repository, MemeRepository)


def test_create_and_get(repository, tmp_path):
    created = run(repository.create(MemeDraft(image_url="https://cdn.test/a.png", top_text="top")))

    assert created.id
    assert created.created_at.tzinfo is not None
    assert (tmp_path / f"{created.id}.json").exists()

    fetched = run(repository.get_by_id(created.id))
    assert fetched == created
    assert fetched.bottom_text == ""


def test_update_is_partial(repository):
    created = run(repository.create(MemeDraft(image_url="u", top_text="top", bottom_text="bottom")))

    updated = run(repository.update(created.id, MemeUpdate(bottom_text="new bottom")))

    assert updated.top_text == "top"
    assert updated.bottom_text == "new bottom"
    assert updated.created_at == created.created_at
    assert run(repository.get_by_id(created.id)) == updated


def test_delete(repository):
    created = run(repository.create(MemeDraft(image_url="u")))

    run(repository.delete(created.id))

    with pytest.raises(MemeNotFoundError):
        run(repository.get_by_id(created.id))
    with pytest.raises(MemeNotFoundError):
        run(repository.delete(created.id))


def test_list_newest_first_and_count(repository):
    ids = [run(repository.create(MemeDraft(image_url=f"u{i}"))).id for i in range(3)]

    listed = run(repository.list())

    assert sorted(m.id for m in listed) == sorted(ids)
    assert all(a.created_at >= b.created_at for a, b in zip(listed, listed[1:]))
    assert run(repository.count()) == 3


def test_empty_repository(repository):
    assert run(repository.list()) == []
    assert run(repository.count()) == 0


@pytest.mark.parametrize("meme_id", ["missing", "../secrets", "", "a/b"])
def test_unknown_ids_are_not_found(repository, meme_id):
    with pytest.raises(MemeNotFoundError):
        run(repository.get_by_id(meme_id))
    with pytest.raises(MemeNotFoundError):
        run(repository.update(meme_id, MemeUpdate(top_text="x")))


def test_corrupt_record_raises_persistence_error(repository, tmp_path):
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistenceError):
        run(repository.get_by_id("broken"))


def test_record_file_format(repository, tmp_path):
    created = run(repository.create(MemeDraft(image_url="u", top_text="t", bottom_text="b")))

    payload = json.loads((tmp_path / f"{created.id}.json").read_text(encoding="utf-8"))

    assert payload["id"] == created.id
    assert payload["image_url"] == "u"
    assert payload["top_text"] == "t"
    assert payload["bottom_text"] == "b"
    assert "created_at" in payload
