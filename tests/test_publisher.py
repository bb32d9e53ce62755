"""Tests for the save and upload flows."""

import re

import pytest
from PIL import Image

from meme_modules.compositor import RenderedRaster
from meme_modules.optimizer import select_format
from meme_modules.publisher import MemePublisher, guess_content_type
from meme_utils.exceptions import EncodeError, InvalidFileError, PersistenceError
from tests.conftest import FakeRepository, make_image_bytes, run


@pytest.fixture
def raster() -> RenderedRaster:
    return RenderedRaster(Image.new("RGBA", (32, 24), (255, 0, 0, 255)))


def test_save_uploads_then_records(fake_repository, fake_storage, raster):
    publisher = MemePublisher(fake_repository, fake_storage)

    record = run(publisher.save(raster, "top", "bottom"))

    (name, (data, content_type)), = fake_storage.files.items()
    assert re.fullmatch(r"meme-\d+\.png", name)
    assert data == raster.blob("image/png").data
    assert content_type == "image/png"

    assert record.image_url == fake_storage.public_url(name)
    assert (record.top_text, record.bottom_text) == ("top", "bottom")
    assert run(fake_repository.count()) == 1


def test_save_removes_upload_when_record_fails(fake_storage, raster):
    publisher = MemePublisher(FakeRepository(fail_create=True), fake_storage)

    with pytest.raises(PersistenceError):
        run(publisher.save(raster, "top", ""))

    assert fake_storage.files == {}
    assert len(fake_storage.deleted) == 1


def test_save_does_nothing_when_export_fails(fake_repository, fake_storage, raster):
    raster.release()
    publisher = MemePublisher(fake_repository, fake_storage)

    with pytest.raises(EncodeError):
        run(publisher.save(raster, "top", ""))

    assert fake_storage.files == {}
    assert fake_repository.records == {}


def test_upload_image(fake_repository, fake_storage):
    publisher = MemePublisher(fake_repository, fake_storage)
    data = make_image_bytes(300, 200)

    url = run(publisher.upload_image(data, "holiday.png"))

    (name, (stored, content_type)), = fake_storage.files.items()
    assert url.endswith(name)
    assert name.endswith(".png")
    assert stored == data
    assert content_type == "image/png"


def test_upload_image_rejects_policy_violations(fake_repository, fake_storage):
    publisher = MemePublisher(fake_repository, fake_storage)

    with pytest.raises(InvalidFileError, match="JPEG or PNG"):
        run(publisher.upload_image(b"GIF89a", "anim.gif"))
    assert fake_storage.files == {}


def test_upload_image_optimized(fake_repository, fake_storage):
    publisher = MemePublisher(fake_repository, fake_storage)

    run(publisher.upload_image(make_image_bytes(2400, 1200), "big.jpg", "image/jpeg", optimize=True))

    (name, (stored, content_type)), = fake_storage.files.items()
    fmt = select_format()
    assert content_type == f"image/{fmt}"
    assert name.endswith(".webp" if fmt == "webp" else ".jpg")


@pytest.mark.parametrize("filename, expected", [
    ("a.PNG", "image/png"),
    ("b.jpeg", "image/jpeg"),
    ("c.jpg", "image/jpeg"),
    ("d.webp", "image/webp"),
    ("e.txt", None),
])
def test_guess_content_type(filename, expected):
    assert guess_content_type(filename) == expected
