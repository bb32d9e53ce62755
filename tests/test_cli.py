"""Tests for the command line interface."""

from PIL import Image
import pytest

from config import settings
from meme_cli import build_parser, main
from meme_utils.meme_store import JsonMemeRepository
from tests.conftest import make_image_bytes, run


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DATA_DIR", tmp_path / "memes")
    monkeypatch.setattr(settings, "MEDIA_DIR", tmp_path / "media")
    monkeypatch.setattr(settings, "DOWNLOADS_DIR", tmp_path / "downloads")
    monkeypatch.setattr(settings, "LOGS_DIR", tmp_path / "logs")
    return tmp_path


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "source.png"
    path.write_bytes(make_image_bytes(400, 200))
    return path


def test_render_to_file(tmp_path, source, capsys):
    output = tmp_path / "out" / "meme.png"

    code = main(["render", str(source), "--top", "hello", "--width", "200", "--height", "150", "-o", str(output)])

    assert code == 0
    assert capsys.readouterr().out.strip() == str(output)
    with Image.open(output) as image:
        assert image.size == (200, 150)


def test_render_to_downloads(tmp_path, source):
    code = main(["render", str(source), "--bottom", "bye", "--width", "100", "--height", "100"])

    assert code == 0
    saved = list((tmp_path / "downloads").glob("meme-*.png"))
    assert len(saved) == 1


def test_render_missing_image(tmp_path, capsys):
    code = main(["render", str(tmp_path / "missing.png"), "-o", str(tmp_path / "x.png")])

    assert code == 1
    assert capsys.readouterr().err.startswith("Error: Failed to load image")


def test_invalid_canvas_size(source, capsys):
    assert main(["render", str(source), "--width", "0"]) == 1
    assert "Canvas size must be positive" in capsys.readouterr().err


def test_optimize(tmp_path, capsys):
    big = tmp_path / "big.png"
    big.write_bytes(make_image_bytes(3000, 1500))
    output = tmp_path / "small.jpg"

    code = main(["optimize", str(big), "--format", "jpeg", "-o", str(output)])

    assert code == 0
    assert "1920x960" in capsys.readouterr().out
    with Image.open(output) as image:
        assert (image.format, image.size) == ("JPEG", (1920, 960))


def test_thumbnail(source, capsys):
    assert main(["thumbnail", str(source), "--size", "100"]) == 0

    output = source.with_name("source-thumb.jpg")
    assert capsys.readouterr().out.strip() == str(output)
    with Image.open(output) as image:
        assert image.size == (100, 50)


def test_validate(tmp_path, source, capsys):
    tiny = tmp_path / "tiny.png"
    tiny.write_bytes(make_image_bytes(50, 50))

    assert main(["validate", str(source)]) == 0
    assert capsys.readouterr().out.strip() == "OK: 400x200"

    assert main(["validate", str(tiny)]) == 1
    assert capsys.readouterr().out.startswith("size-too-small")


def test_publish_to_local_stores(tmp_path, source, capsys):
    code = main(["publish", str(source), "--top", "saved", "--width", "120", "--height", "90"])

    assert code == 0
    meme_id, image_url = capsys.readouterr().out.split()
    record = run(JsonMemeRepository(tmp_path / "memes").get_by_id(meme_id))
    assert record.top_text == "saved"
    assert record.image_url == image_url
    assert (tmp_path / "media" / image_url.rsplit("/", 1)[-1]).exists()


def test_serve_arguments():
    args = build_parser().parse_args(["serve", "--port", "9000"])
    assert (args.command, args.port, args.reload) == ("serve", 9000, False)


def test_unwritable_output_reports_error(tmp_path, source, capsys):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    code = main(["render", str(source), "--width", "100", "--height", "100", "-o", str(blocker / "meme.png")])

    assert code == 1
    assert capsys.readouterr().err.startswith("Error: ")
